import threading
from collections import deque
from dataclasses import replace
from typing import Any, Deque, Dict, List, Optional, Sequence

from core.log import get_logger
from core.models.base import utc_now
from core.models.system_log import LOG_LEVELS, SystemLog

logger = get_logger(__name__)


class SystemLogBuffer:
    """管理后台可见的操作日志，环形缓冲，超出上限丢弃最旧的"""

    def __init__(self, limit: int = 1000, persistence=None):
        self.limit = max(1, int(limit))
        self._logs: Deque[SystemLog] = deque(maxlen=self.limit)
        self._next_id = 1
        self._lock = threading.RLock()
        self._persistence = persistence

    def attach(self, persistence=None) -> None:
        if persistence is not None:
            self._persistence = persistence

    def append(self, level: str, message: str, source: str = "system") -> SystemLog:
        level = level if level in LOG_LEVELS else "info"
        with self._lock:
            entry = SystemLog(
                id=self._next_id,
                level=level,
                message=str(message or ""),
                source=str(source or "system"),
                timestamp=utc_now(),
            )
            self._next_id += 1
            self._logs.append(entry)
        if self._persistence is not None:
            self._persistence.request_save("system_log")
        return replace(entry)

    def list(self, limit: int = 100) -> List[SystemLog]:
        with self._lock:
            items = [replace(x) for x in self._logs]
        items.sort(key=lambda x: (x.timestamp, x.id), reverse=True)
        return items[: max(0, int(limit))]

    def recent_activity(self, limit: int = 10) -> List[SystemLog]:
        """最近动态，过滤掉系统内部错误"""
        items = [x for x in self.list(self.limit) if not (x.level == "error" and x.source == "system")]
        return items[: max(0, int(limit))]

    def __len__(self) -> int:
        with self._lock:
            return len(self._logs)

    def snapshot(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [x.to_dict() for x in self._logs]

    def restore(self, data: Optional[Sequence[Any]]) -> None:
        entries: List[SystemLog] = []
        if data is not None and not isinstance(data, list):
            logger.warning("系统日志快照格式错误，按空处理: type=%s", type(data).__name__)
            data = None
        for raw in data or []:
            if not isinstance(raw, dict):
                continue
            try:
                entries.append(SystemLog.from_dict(raw))
            except (TypeError, ValueError):
                continue
        with self._lock:
            self._logs = deque(entries[-self.limit:], maxlen=self.limit)
            self._next_id = max([len(entries), *(x.id for x in entries)]) + 1 if entries else 1
