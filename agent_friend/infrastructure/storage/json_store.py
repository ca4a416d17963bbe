import json
import os
import re
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence
from uuid import uuid4

from agent_friend.domain.conversation import ConversationStore
from agent_friend.domain.exceptions import InputError, StoreError
from agent_friend.domain.models import Turn, turn_from_dict, turn_to_dict

_SAFE_ID = re.compile(r"^[A-Za-z0-9_.-]{1,128}$")


class JsonConversationStore(ConversationStore):
    """每个会话一个目录，记录保存在 turns.jsonl 中。

    追加时把旧内容与新记录写入临时文件再 os.replace，
    所以一批记录要么全部可见，要么完全没有写入。
    同一进程内同一会话的追加按会话加锁串行，不同会话互不影响。
    """

    def __init__(self, root: str | Path):
        self._root = Path(root).resolve()
        self._conv_root = self._root / "conversations"
        self._conv_root.mkdir(parents=True, exist_ok=True)
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def append(self, conversation_id: str, turns: Sequence[Turn]) -> None:
        if not turns:
            return
        cdir = self._conv_dir(conversation_id)
        with self._lock_for(conversation_id):
            turns_path = cdir / "turns.jsonl"
            tmp_path = cdir / f"turns.{uuid4().hex}.jsonl.tmp"
            try:
                cdir.mkdir(parents=True, exist_ok=True)
                existing = turns_path.read_bytes() if turns_path.exists() else b""
                next_seq = self._count_lines(existing)
                now = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
                lines = []
                for offset, turn in enumerate(turns):
                    payload = turn_to_dict(turn)
                    payload["seq"] = next_seq + offset
                    payload["conversation_id"] = conversation_id
                    payload["created_at"] = now
                    lines.append(json.dumps(payload, ensure_ascii=False))
                tmp_path.write_bytes(existing + ("\n".join(lines) + "\n").encode("utf-8"))
                os.replace(tmp_path, turns_path)
            except (OSError, TypeError, ValueError) as e:
                tmp_path.unlink(missing_ok=True)
                raise StoreError(code="STORE_WRITE_FAILED", message=str(e), conversation_id=conversation_id)

    def load_recent(self, conversation_id: str, limit: Optional[int] = None) -> List[Turn]:
        turns_path = self._conv_dir(conversation_id) / "turns.jsonl"
        if not turns_path.exists():
            return []
        try:
            raw_lines = turns_path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise StoreError(code="STORE_READ_FAILED", message=str(e), conversation_id=conversation_id)
        if limit is not None:
            raw_lines = raw_lines[-limit:] if limit > 0 else []
        items: List[Turn] = []
        for line in raw_lines:
            try:
                items.append(turn_from_dict(json.loads(line)))
            except (KeyError, TypeError, ValueError) as e:
                raise StoreError(
                    code="STORE_READ_FAILED",
                    message=f"corrupt turn record: {e}",
                    conversation_id=conversation_id,
                )
        return items

    def list_conversations(self) -> List[str]:
        return sorted(p.parent.name for p in self._conv_root.glob("*/turns.jsonl"))

    def _conv_dir(self, conversation_id: str) -> Path:
        if not _SAFE_ID.match(conversation_id or "") or conversation_id in {".", ".."}:
            raise InputError(code="INVALID_CONVERSATION_ID", message=repr(conversation_id))
        return self._conv_root / conversation_id

    def _lock_for(self, conversation_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(conversation_id, threading.Lock())

    @staticmethod
    def _count_lines(data: bytes) -> int:
        return sum(1 for line in data.splitlines() if line.strip())

