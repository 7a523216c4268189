"""
core/site_storage.py — 站点数据总入口

进程启动时构造一次，挂在 app.state.storage 上，由请求处理函数通过依赖注入取得：
公告、三类设置、系统日志，以及它们共用的后台保存线程和通知旁路。
"""
from typing import Any, Dict, Optional

from core.announcement_store import AnnouncementStore
from core.blob_store import BlobStore, create_blob_store
from core.config import cfg
from core.discord_service import build_backup_embed
from core.log import get_logger
from core.models.site_settings import (
    STREAM_SETTINGS_DEFAULTS,
    THEME_SETTINGS_DEFAULTS,
    WEBHOOK_SETTINGS_DEFAULTS,
)
from core.notify_service import ActivityNotifier
from core.persistence import BackgroundSaver, PersistenceAdapter
from core.settings_store import (
    SettingsStore,
    validate_stream_settings,
    validate_theme_settings,
    validate_webhook_settings,
)
from core.system_log import SystemLogBuffer
from core.twitch_service import MockTwitchProvider, StreamStatusProvider

logger = get_logger(__name__)


class SiteStorage:
    def __init__(
        self,
        blob_store: Optional[BlobStore] = None,
        notifier: Optional[ActivityNotifier] = None,
        stream_provider: Optional[StreamStatusProvider] = None,
        backup_keep: Optional[int] = None,
        log_limit: Optional[int] = None,
    ):
        self.announcements = AnnouncementStore()
        self.stream_settings = SettingsStore("stream", STREAM_SETTINGS_DEFAULTS, validate_stream_settings)
        self.theme_settings = SettingsStore("theme", THEME_SETTINGS_DEFAULTS, validate_theme_settings)
        self.webhook_settings = SettingsStore("webhook", WEBHOOK_SETTINGS_DEFAULTS, validate_webhook_settings)
        self.logs = SystemLogBuffer(limit=log_limit or int(cfg.get("storage.system_log_limit", 1000)))

        self.persistence = PersistenceAdapter(blob_store or create_blob_store(), backup_keep=backup_keep)
        self.saver = BackgroundSaver(self.persistence, self.snapshot, on_saved=self._on_saved)
        self.notifier = notifier or ActivityNotifier(self.logs, self.webhook_settings)
        self.streams = stream_provider or MockTwitchProvider()
        self._last_save_ok = True

        self.announcements.attach(persistence=self.saver, notifier=self.notifier)
        for store in (self.stream_settings, self.theme_settings, self.webhook_settings, self.logs):
            store.attach(persistence=self.saver)

    # ── 快照 ────────────────────────────────────────────────────────────────
    def snapshot(self) -> Dict[str, Any]:
        return {
            "announcements": self.announcements.snapshot(),
            "streamSettings": self.stream_settings.snapshot(),
            "themeSettings": self.theme_settings.snapshot(),
            "webhookSettings": self.webhook_settings.snapshot(),
            "logs": self.logs.snapshot(),
        }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        """逐个集合恢复，单个集合失败时回退到默认值，不影响其它集合"""
        snapshot = snapshot if isinstance(snapshot, dict) else {}
        for key, store in (
            ("announcements", self.announcements),
            ("streamSettings", self.stream_settings),
            ("themeSettings", self.theme_settings),
            ("webhookSettings", self.webhook_settings),
            ("logs", self.logs),
        ):
            try:
                store.restore(snapshot.get(key))
            except Exception:
                logger.exception("恢复集合失败，使用默认值: collection=%s", key)
                store.restore(None)

    # ── 生命周期 ────────────────────────────────────────────────────────────
    def load(self) -> None:
        self.restore(self.persistence.load_all())

    def request_save(self, reason: str = "manual") -> None:
        self.saver.request_save(reason)

    def flush(self) -> bool:
        return self.saver.flush()

    def close(self) -> None:
        self.saver.stop()
        self.notifier.stop()

    def _on_saved(self, ok: bool, last_backup: Optional[str]) -> None:
        if ok and last_backup:
            self.webhook_settings.set_system_field("lastBackup", last_backup)
        # 只在成功 -> 失败、失败 -> 成功时推送一次
        if ok != self._last_save_ok:
            details = f"backend={self.persistence.store.kind}"
            self.notifier.alert("info" if ok else "error", build_backup_embed(ok, details))
        self._last_save_ok = ok

    # ── 统计 ────────────────────────────────────────────────────────────────
    def stats(self) -> Dict[str, int]:
        viewers = self.streams.get_current_viewers() or {}
        visits = self.streams.get_website_visits() or {}
        return {
            "announcements": self.announcements.count(),
            "viewers": int(viewers.get("viewers", 0) or 0),
            "visits": int(visits.get("visits", 0) or 0),
        }
