"""
core/events.py — 结构化事件日志

格式：event=xxx | key=val | key=val

    from core.log import get_logger
    from core.events import log_event, E

    logger = get_logger(__name__)
    log_event(logger, E.ANNOUNCEMENT_CREATE, id=3, pinned=True)
    # 输出：event=announcement.create | id=3 | pinned=True
"""

import logging
from typing import Any


class E:
    """事件类型常量，按功能模块分组。"""

    # ── 认证 Auth ──────────────────────────────────────────────────────────────
    AUTH_LOGIN_SUCCESS = "auth.login.success"
    AUTH_LOGIN_FAIL = "auth.login.fail"
    AUTH_LOGOUT = "auth.logout"
    AUTH_REJECT = "auth.reject"

    # ── 公告 Announcement ──────────────────────────────────────────────────────
    ANNOUNCEMENT_CREATE = "announcement.create"
    ANNOUNCEMENT_UPDATE = "announcement.update"
    ANNOUNCEMENT_DELETE = "announcement.delete"
    ANNOUNCEMENT_UNPIN = "announcement.unpin"
    REQUEST_REJECT = "request.reject"

    # ── 站点设置 Settings ──────────────────────────────────────────────────────
    SETTINGS_STREAM_UPDATE = "settings.stream.update"
    SETTINGS_THEME_UPDATE = "settings.theme.update"
    SETTINGS_WEBHOOK_UPDATE = "settings.webhook.update"

    # ── 持久化 Storage ─────────────────────────────────────────────────────────
    STORAGE_LOAD = "storage.load"
    STORAGE_LOAD_FAIL = "storage.load.fail"
    STORAGE_SAVE_REQUEST = "storage.save.request"
    STORAGE_SAVE_COMPLETE = "storage.save.complete"
    STORAGE_SAVE_FAIL = "storage.save.fail"
    STORAGE_BACKUP_PRUNE = "storage.backup.prune"
    STORAGE_BACKUP_TICK = "storage.backup.tick"

    # ── Webhook ────────────────────────────────────────────────────────────────
    WEBHOOK_SEND_START = "webhook.send.start"
    WEBHOOK_SEND_COMPLETE = "webhook.send.complete"
    WEBHOOK_SEND_FAIL = "webhook.send.fail"
    WEBHOOK_SEND_SKIP = "webhook.send.skip"

    # ── 系统 System ────────────────────────────────────────────────────────────
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"
    SYSTEM_QUEUE_START = "system.queue.start"
    SYSTEM_JOB_ADD = "system.job.add"
    SYSTEM_CONFIG_LOAD = "system.config.load"
    SYSTEM_DB_INIT = "system.db_init"


def log_event(
    logger: logging.Logger,
    event: str,
    level: str = "info",
    **fields: Any,
) -> None:
    """
    记录结构化事件日志。

        log_event(logger, E.STORAGE_SAVE_FAIL, level="error",
                  blob="logs.json", reason="timeout")
        # → event=storage.save.fail | blob=logs.json | reason=timeout
    """
    parts = [f"event={event}"]
    for k, v in fields.items():
        sv = str(v) if not isinstance(v, str) else v
        # 截断超长字段
        if len(sv) > 300:
            sv = sv[:297] + "..."
        parts.append(f"{k}={sv}")
    msg = " | ".join(parts)
    getattr(logger, level)(msg, stacklevel=2)
