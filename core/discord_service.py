"""
Discord Webhook 推送

负责消息格式校验与发送；是否发送、发到哪里由调用方（ActivityNotifier）决定。
"""
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Union

import requests
from pydantic import BaseModel, ValidationError as PydanticValidationError

from core.config import cfg
from core.errors import NotificationError
from core.events import log_event, E
from core.log import get_logger

logger = get_logger(__name__)

COLOR_INFO = 0x0099FF
COLOR_WARNING = 0xFFCC00
COLOR_ERROR = 0xFF0000
COLOR_SUCCESS = 0x00FF00
COLOR_GOLD = 0xD4AF37
COLOR_PURPLE = 0x9B59B6
COLOR_ALERT = 0xFF4500

LEVEL_COLORS = {
    "info": COLOR_INFO,
    "warning": COLOR_WARNING,
    "error": COLOR_ERROR,
}

CATEGORY_COLORS = {
    "event": COLOR_GOLD,
    "important": COLOR_ERROR,
    "stream": COLOR_INFO,
    "general": COLOR_PURPLE,
}


class EmbedField(BaseModel):
    name: str
    value: str
    inline: Optional[bool] = None


class EmbedFooter(BaseModel):
    text: str
    icon_url: Optional[str] = None


class EmbedThumbnail(BaseModel):
    url: str


class EmbedAuthor(BaseModel):
    name: str
    icon_url: Optional[str] = None
    url: Optional[str] = None


class DiscordEmbed(BaseModel):
    title: Optional[str] = None
    description: str
    color: Optional[int] = None
    fields: Optional[List[EmbedField]] = None
    footer: Optional[EmbedFooter] = None
    timestamp: Optional[str] = None
    thumbnail: Optional[EmbedThumbnail] = None
    author: Optional[EmbedAuthor] = None


class WebhookMessage(BaseModel):
    content: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    embeds: Optional[List[DiscordEmbed]] = None


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _clip(text: str, limit: int = 1000) -> str:
    text = str(text or "")
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


class DiscordWebhook:
    def __init__(
        self,
        url_provider: Optional[Callable[[], str]] = None,
        username: Optional[str] = None,
        avatar_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        Args:
            url_provider: 返回当前 webhook 地址的函数（通常读取 webhook 设置）；
                          返回空时回退到配置项 discord.webhook_url
            timeout: 请求超时时间（秒）
        """
        self.url_provider = url_provider
        self.username = username or cfg.get("discord.username", "RENNSZ Website")
        self.avatar_url = avatar_url or cfg.get("discord.avatar_url", "")
        self.timeout = float(timeout or cfg.get("discord.timeout", 10))

    def resolve_url(self) -> str:
        url = ""
        if self.url_provider is not None:
            url = str(self.url_provider() or "").strip()
        return url or str(cfg.get("discord.webhook_url", "") or "").strip()

    def build_message(self, message: Union[Dict[str, Any], DiscordEmbed, WebhookMessage]) -> Dict[str, Any]:
        """单个 embed 自动包装成完整消息，并做格式校验"""
        if isinstance(message, BaseModel):
            message = message.model_dump(exclude_none=True)
        payload: Dict[str, Any] = {"username": self.username}
        if self.avatar_url:
            payload["avatar_url"] = self.avatar_url
        if "description" in message:
            payload["embeds"] = [message]
        else:
            payload.update(message)
        try:
            validated = WebhookMessage.model_validate(payload)
        except PydanticValidationError as e:
            raise NotificationError(f"invalid webhook message: {e}") from e
        return validated.model_dump(exclude_none=True)

    def send(self, message: Union[Dict[str, Any], DiscordEmbed, WebhookMessage]) -> bool:
        """发送消息，失败返回 False，不抛异常"""
        url = self.resolve_url()
        if not url:
            log_event(logger, E.WEBHOOK_SEND_SKIP, reason="no_url")
            return False
        try:
            payload = self.build_message(message)
            log_event(logger, E.WEBHOOK_SEND_START, embeds=len(payload.get("embeds") or []))
            response = requests.post(url, json=payload, timeout=self.timeout)
            if not response.ok:
                raise NotificationError(f"discord webhook error ({response.status_code}): {response.text[:200]}")
        except (NotificationError, requests.RequestException) as e:
            log_event(logger, E.WEBHOOK_SEND_FAIL, level="warning", error=e)
            return False
        log_event(logger, E.WEBHOOK_SEND_COMPLETE, status=response.status_code)
        return True


# ─── Embed 构造 ────────────────────────────────────────────────────────────────
def build_log_embed(level: str, message: str, source: str) -> Dict[str, Any]:
    return {
        "title": f"{str(level).upper()}: {source}",
        "description": _clip(message, 4000),
        "color": LEVEL_COLORS.get(level, COLOR_INFO),
        "timestamp": _now_iso(),
    }


def build_announcement_embed(title: str, content: str, category: str, is_pinned: bool) -> Dict[str, Any]:
    return {
        "title": f"New {'Pinned ' if is_pinned else ''}Announcement",
        "description": title,
        "color": CATEGORY_COLORS.get(str(category or "").lower(), COLOR_PURPLE),
        "fields": [
            {"name": "Content", "value": _clip(content)},
            {"name": "Category", "value": category, "inline": True},
            {"name": "Status", "value": "📌 Pinned" if is_pinned else "Regular", "inline": True},
        ],
        "timestamp": _now_iso(),
        "footer": {"text": "RENNSZ Website Announcements"},
    }


def build_backup_embed(success: bool, details: str) -> Dict[str, Any]:
    return {
        "title": "System Backup Successful" if success else "System Backup Failed",
        "description": details,
        "color": COLOR_SUCCESS if success else COLOR_ERROR,
        "timestamp": _now_iso(),
        "footer": {"text": "RENNSZ Website Backup System"},
    }


def build_theme_change_embed(theme: str, changed_by: str) -> Dict[str, Any]:
    return {
        "title": "Theme Changed",
        "description": f"Website theme has been updated to **{theme}**",
        "color": COLOR_GOLD,
        "fields": [{"name": "Changed By", "value": changed_by}],
        "timestamp": _now_iso(),
        "footer": {"text": "RENNSZ Website Appearance System"},
    }


def build_security_alert_embed(action: str, ip: str, details: str) -> Dict[str, Any]:
    return {
        "title": "⚠️ Security Alert",
        "description": action,
        "color": COLOR_ALERT,
        "fields": [
            {"name": "IP Address", "value": ip or "unknown", "inline": True},
            {"name": "Details", "value": _clip(details)},
        ],
        "timestamp": _now_iso(),
        "footer": {"text": "RENNSZ Website Security System"},
    }


def build_test_embed() -> Dict[str, Any]:
    return {
        "title": "🧪 Webhook Test",
        "description": "This is a test message to verify the Discord webhook integration is working correctly.",
        "color": COLOR_GOLD,
        "fields": [{"name": "Status", "value": "✅ Connected", "inline": True}],
        "timestamp": _now_iso(),
        "footer": {"text": "RENNSZ Website System"},
    }
