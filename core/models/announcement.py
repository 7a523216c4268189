from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict

from .base import dt_to_str, parse_dt, utc_now

CATEGORY_GENERAL = "general"
CATEGORY_STREAM = "stream"
CATEGORY_EVENT = "event"
CATEGORY_IMPORTANT = "important"
CATEGORIES = (CATEGORY_GENERAL, CATEGORY_STREAM, CATEGORY_EVENT, CATEGORY_IMPORTANT)

# 允许通过 update 修改的字段（id / createdAt 不可改）
MUTABLE_FIELDS = ("title", "content", "category", "isPinned")


@dataclass
class Announcement:
    id: int
    title: str
    content: str
    category: str = CATEGORY_GENERAL
    is_pinned: bool = False
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "isPinned": self.is_pinned,
            "createdAt": dt_to_str(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Announcement":
        return cls(
            id=int(data["id"]),
            title=str(data.get("title") or ""),
            content=str(data.get("content") or ""),
            category=str(data.get("category") or CATEGORY_GENERAL),
            is_pinned=data.get("isPinned") is True,
            created_at=parse_dt(data.get("createdAt")) or utc_now(),
        )
