from typing import Any, Dict, Mapping, Optional

from core.discord_service import DiscordWebhook, build_log_embed
from core.errors import NotificationError
from core.events import log_event, E
from core.log import get_logger
from core.models.activity_event import ActivityEvent
from core.task_queue import TaskQueue

logger = get_logger(__name__)


def should_forward(level: str, settings: Mapping[str, Any]) -> bool:
    """按 webhook 设置判断该级别是否推送：error 总是推，warning 在阈值非 error 时推，info 仅阈值为 info 时推"""
    if not settings or not settings.get("url"):
        return False
    if not settings.get("realTimeLogging", True):
        return False
    threshold = settings.get("logLevel") or "info"
    if level == "error":
        return True
    if level == "warning":
        return threshold != "error"
    if level == "info":
        return threshold == "info"
    return False


class ActivityNotifier:
    """
    通知旁路：写入系统日志，并按设置异步推送到 Discord。
    notify() 永远不向调用方抛异常。
    """

    def __init__(self, log_buffer, webhook_settings, webhook: Optional[DiscordWebhook] = None,
                 task_queue: Optional[TaskQueue] = None):
        self.log_buffer = log_buffer
        self.webhook_settings = webhook_settings
        self.webhook = webhook or DiscordWebhook(url_provider=self._current_url)
        self.task_queue = task_queue or TaskQueue(name="discord-webhook")

    def _current_url(self) -> str:
        return str((self.webhook_settings.get() or {}).get("url") or "")

    def notify(self, event: ActivityEvent) -> None:
        try:
            self.log_buffer.append(event.level, event.message, event.source)
            settings = self.webhook_settings.get()
            if not should_forward(event.level, settings):
                return
            embed = event.embed or build_log_embed(event.level, event.message, event.source)
            self.task_queue.submit(self._deliver, embed)
        except Exception:
            logger.exception("通知处理失败: message=%s", event.message[:80])

    def log(self, level: str, message: str, source: str = "system", embed: Optional[Dict[str, Any]] = None) -> None:
        self.notify(ActivityEvent(message=message, level=level, source=source, embed=embed))

    def alert(self, level: str, embed: Dict[str, Any]) -> None:
        """只推送 Discord，不写系统日志"""
        try:
            if should_forward(level, self.webhook_settings.get()):
                self.task_queue.submit(self._deliver, embed)
        except Exception:
            logger.exception("告警推送失败: title=%s", embed.get("title", ""))

    def _deliver(self, embed: Dict[str, Any]) -> None:
        if not self.webhook.send(embed):
            log_event(logger, E.WEBHOOK_SEND_FAIL, level="warning", title=embed.get("title", ""))
            raise NotificationError("discord webhook delivery failed")

    def stop(self) -> None:
        self.task_queue.stop()
