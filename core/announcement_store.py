"""
core/announcement_store.py — 公告内存存储

• 进程内唯一的权威数据源，持久化只是尽力而为的旁路
• 置顶唯一：任何让 X 变为置顶的操作都在同一把锁内先取消其他置顶
• 列表顺序：置顶在前，其余按 createdAt 倒序，时间相同按插入顺序
• id 单调递增，删除后也不复用
• 变更成功后依次触发 request_save() 与 notify()，两者的异常都不会影响返回值
"""

import threading
from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional

from core.discord_service import build_announcement_embed
from core.errors import NotFoundError, ValidationError
from core.events import log_event, E
from core.log import get_logger
from core.models.activity_event import ActivityEvent
from core.models.announcement import (
    CATEGORIES,
    CATEGORY_GENERAL,
    MUTABLE_FIELDS,
    Announcement,
)
from core.models.base import utc_now

logger = get_logger(__name__)


def _require_text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field=field)
    return value.strip()


def _require_category(value: Any) -> str:
    if value is None:
        return CATEGORY_GENERAL
    if not isinstance(value, str) or value not in CATEGORIES:
        raise ValidationError(
            f"category must be one of: {', '.join(CATEGORIES)}",
            field="category",
        )
    return value


def _require_bool(value: Any, field: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be a boolean", field=field)
    return value


class AnnouncementStore:
    def __init__(
        self,
        clock: Callable = utc_now,
        persistence=None,
        notifier=None,
    ):
        self._items: Dict[int, Announcement] = {}
        self._next_id = 1
        self._lock = threading.RLock()
        self._clock = clock
        self._persistence = persistence
        self._notifier = notifier

    def attach(self, persistence=None, notifier=None) -> None:
        """绑定持久化（需有 request_save）与通知（需有 notify）"""
        if persistence is not None:
            self._persistence = persistence
        if notifier is not None:
            self._notifier = notifier

    # ── 读 ──────────────────────────────────────────────────────────────────
    def list(self) -> List[Announcement]:
        with self._lock:
            items = [replace(a) for a in self._items.values()]
        # sort 稳定：先按时间倒序，再把置顶提到最前
        items.sort(key=lambda a: a.created_at, reverse=True)
        items.sort(key=lambda a: not a.is_pinned)
        return items

    def get(self, announcement_id: int) -> Announcement:
        with self._lock:
            item = self._items.get(announcement_id)
            if item is None:
                raise NotFoundError("Announcement not found")
            return replace(item)

    def count(self) -> int:
        with self._lock:
            return len(self._items)

    # ── 写 ──────────────────────────────────────────────────────────────────
    def create(
        self,
        title: Any,
        content: Any,
        category: Any = CATEGORY_GENERAL,
        is_pinned: Any = False,
    ) -> Announcement:
        # 先校验，失败时不消耗 id
        title = _require_text(title, "title")
        content = _require_text(content, "content")
        category = _require_category(category)
        is_pinned = _require_bool(is_pinned, "isPinned")

        with self._lock:
            announcement = Announcement(
                id=self._next_id,
                title=title,
                content=content,
                category=category,
                is_pinned=is_pinned,
                created_at=self._clock(),
            )
            self._next_id += 1
            if is_pinned:
                self._unpin_others(announcement.id)
            self._items[announcement.id] = announcement
            result = replace(announcement)

        log_event(logger, E.ANNOUNCEMENT_CREATE, id=result.id, category=result.category, pinned=result.is_pinned)
        self._after_commit(
            "create",
            ActivityEvent(
                message=f"New announcement created: {result.title}",
                source="admin",
                embed=_announcement_embed(result),
            ),
        )
        return result

    def update(self, announcement_id: int, fields: Mapping[str, Any]) -> Announcement:
        fields = dict(fields or {})
        with self._lock:
            current = self._items.get(announcement_id)
            if current is None:
                raise NotFoundError("Announcement not found")

            changes: Dict[str, Any] = {}
            if "title" in fields:
                changes["title"] = _require_text(fields["title"], "title")
            if "content" in fields:
                changes["content"] = _require_text(fields["content"], "content")
            if "category" in fields:
                if fields["category"] is None:
                    raise ValidationError("category is required", field="category")
                changes["category"] = _require_category(fields["category"])
            if "isPinned" in fields:
                if fields["isPinned"] is None:
                    raise ValidationError("isPinned must be a boolean", field="isPinned")
                changes["is_pinned"] = _require_bool(fields["isPinned"], "isPinned")

            updated = replace(current, **changes)
            if updated.is_pinned:
                self._unpin_others(updated.id)
            self._items[updated.id] = updated
            result = replace(updated)

        log_event(
            logger,
            E.ANNOUNCEMENT_UPDATE,
            id=announcement_id,
            fields=",".join(k for k in fields if k in MUTABLE_FIELDS) or "-",
        )
        self._after_commit(
            "update",
            ActivityEvent(message=f"Announcement updated: ID {announcement_id}", source="admin"),
        )
        return result

    def delete(self, announcement_id: int) -> None:
        with self._lock:
            if announcement_id not in self._items:
                raise NotFoundError("Announcement not found")
            del self._items[announcement_id]

        log_event(logger, E.ANNOUNCEMENT_DELETE, id=announcement_id)
        self._after_commit(
            "delete",
            ActivityEvent(message=f"Announcement deleted: ID {announcement_id}", source="admin"),
        )

    def _unpin_others(self, keep_id: int) -> None:
        # 调用方必须持有 self._lock
        for other_id, other in self._items.items():
            if other_id != keep_id and other.is_pinned:
                self._items[other_id] = replace(other, is_pinned=False)
                log_event(logger, E.ANNOUNCEMENT_UNPIN, id=other_id, by=keep_id)

    def _after_commit(self, action: str, event: ActivityEvent) -> None:
        if self._persistence is not None:
            try:
                self._persistence.request_save(f"announcement.{action}")
            except Exception:
                logger.exception("公告变更后触发保存失败: action=%s", action)
        if self._notifier is not None:
            try:
                self._notifier.notify(event)
            except Exception:
                logger.exception("公告变更通知失败: action=%s", action)

    # ── 快照 ────────────────────────────────────────────────────────────────
    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "nextId": self._next_id,
                "items": {str(k): v.to_dict() for k, v in self._items.items()},
            }

    def restore(self, data: Optional[Mapping[str, Any]]) -> None:
        """从快照恢复；兼容不带 nextId 的 {id: record} 旧格式，形状不对的数据按空处理"""
        items: Dict[int, Announcement] = {}
        next_id = 1
        if data is not None and not isinstance(data, Mapping):
            logger.warning("公告快照格式错误，按空处理: type=%s", type(data).__name__)
            data = None
        if data:
            raw_items = data.get("items") if "items" in data else data
            stored_next = data.get("nextId") if "items" in data else None
            if raw_items is not None and not isinstance(raw_items, Mapping):
                logger.warning("公告快照 items 格式错误，按空处理: type=%s", type(raw_items).__name__)
                raw_items = None
            for key, raw in (raw_items or {}).items():
                if not isinstance(raw, Mapping):
                    continue
                try:
                    _require_text(raw.get("title"), "title")
                    _require_text(raw.get("content"), "content")
                    _require_category(raw.get("category"))
                    record = Announcement.from_dict({"id": key, **raw})
                except ValidationError as e:
                    logger.warning("跳过校验失败的公告记录: key=%s field=%s", key, e.field)
                    continue
                except (TypeError, ValueError, KeyError):
                    logger.warning("跳过无法解析的公告记录: key=%s", key)
                    continue
                items[record.id] = record
            next_id = max([next_id, *(k + 1 for k in items)])
            try:
                next_id = max(next_id, int(stored_next or 0))
            except (TypeError, ValueError):
                pass

        # 脏数据里可能有多条置顶，只保留最新的一条
        pinned = [a for a in items.values() if a.is_pinned]
        if len(pinned) > 1:
            keep = max(pinned, key=lambda a: (a.created_at, a.id))
            for a in pinned:
                if a.id != keep.id:
                    items[a.id] = replace(a, is_pinned=False)

        with self._lock:
            self._items = items
            self._next_id = next_id


def _announcement_embed(announcement: Announcement) -> Dict[str, Any]:
    return build_announcement_embed(
        title=announcement.title,
        content=announcement.content,
        category=announcement.category,
        is_pinned=announcement.is_pinned,
    )
