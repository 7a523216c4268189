import copy
import threading
from typing import Any, Callable, Dict, Mapping, Optional

from core.errors import ValidationError
from core.log import get_logger
from core.models.base import dt_to_str, utc_now
from core.models.site_settings import (
    CUSTOM_THEME_KEYS,
    FEATURED_STREAMS,
    THEMES,
    WEBHOOK_LOG_LEVELS,
)

logger = get_logger(__name__)

# 由系统维护、不接受外部写入的字段
_SYSTEM_FIELDS = ("updatedAt", "lastBackup")


class SettingsStore:
    """单条可合并的设置记录（直播 / 主题 / webhook）"""

    def __init__(
        self,
        name: str,
        defaults: Mapping[str, Any],
        validator: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None,
        persistence=None,
    ):
        self.name = name
        self._defaults = dict(defaults)
        self._data: Dict[str, Any] = copy.deepcopy(self._defaults)
        self._validator = validator
        self._persistence = persistence
        self._lock = threading.RLock()

    def attach(self, persistence=None) -> None:
        if persistence is not None:
            self._persistence = persistence

    def get(self) -> Dict[str, Any]:
        with self._lock:
            return copy.deepcopy(self._data)

    def update(self, partial: Mapping[str, Any]) -> Dict[str, Any]:
        changes = {
            k: v for k, v in dict(partial or {}).items()
            if k in self._defaults and k not in _SYSTEM_FIELDS
        }
        if self._validator is not None:
            changes = self._validator(changes)
        with self._lock:
            self._data.update(copy.deepcopy(changes))
            self._data["updatedAt"] = dt_to_str(utc_now())
            result = copy.deepcopy(self._data)
        if self._persistence is not None:
            try:
                self._persistence.request_save(f"settings.{self.name}")
            except Exception:
                logger.exception("设置变更后触发保存失败: settings=%s", self.name)
        return result

    def set_system_field(self, key: str, value: Any) -> None:
        """写入 lastBackup 等系统字段，不触发保存"""
        with self._lock:
            self._data[key] = value

    def snapshot(self) -> Dict[str, Any]:
        return self.get()

    def restore(self, data: Optional[Mapping[str, Any]]) -> None:
        """逐项校验，非法值回退到默认值"""
        merged = copy.deepcopy(self._defaults)
        if data is not None and not isinstance(data, Mapping):
            logger.warning("设置快照格式错误，使用默认值: settings=%s type=%s", self.name, type(data).__name__)
            data = None
        for key, value in (data or {}).items():
            if key not in self._defaults:
                continue
            if self._validator is not None and key not in _SYSTEM_FIELDS:
                try:
                    value = self._validator({key: value})[key]
                except ValidationError as e:
                    logger.warning("设置快照字段非法，使用默认值: settings=%s field=%s reason=%s",
                                   self.name, key, e.message)
                    continue
            merged[key] = value
        with self._lock:
            self._data = merged


# ─── 各设置的校验 ─────────────────────────────────────────────────────────────
def _optional_str(value: Any, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    return value.strip() or None


def validate_stream_settings(changes: Dict[str, Any]) -> Dict[str, Any]:
    if "featuredStream" in changes:
        featured = changes["featuredStream"]
        if featured not in FEATURED_STREAMS:
            raise ValidationError(
                f"featuredStream must be one of: {', '.join(FEATURED_STREAMS)}",
                field="featuredStream",
            )
    for key in ("customEmbedUrl", "scheduleImageUrl"):
        if key in changes:
            changes[key] = _optional_str(changes[key], key)
    return changes


def validate_custom_theme(value: Any) -> Optional[Dict[str, str]]:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise ValidationError("customTheme must be an object", field="customTheme")
    theme: Dict[str, str] = {}
    for key in CUSTOM_THEME_KEYS:
        item = value.get(key)
        if item is None:
            continue
        if not isinstance(item, str):
            raise ValidationError(f"customTheme.{key} must be a string", field=f"customTheme.{key}")
        theme[key] = item
    return theme


def validate_theme_settings(changes: Dict[str, Any]) -> Dict[str, Any]:
    if "currentTheme" in changes and changes["currentTheme"] not in THEMES:
        raise ValidationError(
            f"currentTheme must be one of: {', '.join(THEMES)}",
            field="currentTheme",
        )
    if "customTheme" in changes:
        changes["customTheme"] = validate_custom_theme(changes["customTheme"])
    if "backgroundImageUrl" in changes:
        changes["backgroundImageUrl"] = _optional_str(changes["backgroundImageUrl"], "backgroundImageUrl")
    return changes


def validate_webhook_settings(changes: Dict[str, Any]) -> Dict[str, Any]:
    if "url" in changes:
        url = changes["url"]
        if not isinstance(url, str) or not url.strip():
            raise ValidationError("Webhook URL is required", field="url")
        if not url.strip().startswith(("http://", "https://")):
            raise ValidationError("Webhook URL must be http(s)", field="url")
        changes["url"] = url.strip()
    if "logLevel" in changes and changes["logLevel"] not in WEBHOOK_LOG_LEVELS:
        raise ValidationError(
            f"logLevel must be one of: {', '.join(WEBHOOK_LOG_LEVELS)}",
            field="logLevel",
        )
    if "realTimeLogging" in changes and not isinstance(changes["realTimeLogging"], bool):
        raise ValidationError("realTimeLogging must be a boolean", field="realTimeLogging")
    return changes
