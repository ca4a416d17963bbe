from typing import List, Optional, Protocol, Sequence

from .models import Turn


class ConversationStore(Protocol):
    """会话日志存储。

    - append: 原子追加一批记录，要么全部写入，要么全部不写。
    - load_recent: 按追加顺序返回最近 limit 条记录（limit=None 表示全部）。
    不同 conversation_id 之间的写入互不影响。
    """

    def append(self, conversation_id: str, turns: Sequence[Turn]) -> None:
        ...

    def load_recent(self, conversation_id: str, limit: Optional[int] = None) -> List[Turn]:
        ...

    def list_conversations(self) -> List[str]:
        ...
