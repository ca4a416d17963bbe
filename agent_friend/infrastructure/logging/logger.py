import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from agent_friend.config.settings import Settings

LOGGER_NAME = "agent_friend"

logger = logging.getLogger(LOGGER_NAME)


class JsonFormatter(logging.Formatter):
    def __init__(self, redact_content: bool = False):
        super().__init__()
        self._redact = redact_content

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if self._redact:
            msg = (msg or "")[:64]
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger(cfg: Settings) -> logging.Logger:
    """为 agent_friend 日志器挂上 JSON 文件输出，重复调用不会重复挂载。"""
    logger.setLevel(cfg.log_level)
    if any(getattr(h, "_agent_friend", False) for h in logger.handlers):
        return logger
    log_dir = Path(cfg.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / "agent.log", encoding="utf-8")
    fh.setLevel(cfg.log_level)
    fh.setFormatter(JsonFormatter(redact_content=cfg.log_redact_content))
    fh._agent_friend = True  # type: ignore[attr-defined]
    logger.addHandler(fh)
    return logger
