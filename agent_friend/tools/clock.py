from datetime import datetime
from typing import Any, Callable, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from agent_friend.domain.exceptions import ToolError
from agent_friend.tools.definitions import FailureReason


class ClockBackend:
    """当前时间查询，可选 IANA 时区（如 Africa/Cairo）。"""

    def __init__(self, now: Optional[Callable[[Optional[ZoneInfo]], datetime]] = None):
        self._now = now or (lambda tz: datetime.now(tz) if tz else datetime.now().astimezone())

    def lookup(self, timezone: Optional[str] = None) -> Dict[str, Any]:
        tz = None
        if timezone:
            try:
                tz = ZoneInfo(timezone)
            except (ZoneInfoNotFoundError, ValueError, OSError):
                # 目录名（如 "America"）会触发 IsADirectoryError
                raise ToolError(FailureReason.UNKNOWN_TIMEZONE, f"unknown timezone: {timezone!r}")
        now = self._now(tz)
        return {
            "time": now.strftime("%Y-%m-%d %H:%M:%S"),
            "timezone": timezone or (now.tzname() or "local"),
            "utc_offset": now.strftime("%z"),
        }
