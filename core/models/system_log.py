from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

from .base import dt_to_str, parse_dt, utc_now

LOG_LEVELS = ("info", "warning", "error")


@dataclass
class SystemLog:
    id: int
    level: str
    message: str
    source: str = "system"
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "level": self.level,
            "message": self.message,
            "source": self.source,
            "timestamp": dt_to_str(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SystemLog":
        return cls(
            id=int(data.get("id") or 0),
            level=str(data.get("level") or "info"),
            message=str(data.get("message") or ""),
            source=str(data.get("source") or "system"),
            timestamp=parse_dt(data.get("timestamp")) or utc_now(),
        )
