import secrets
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from core.config import cfg
from core.discord_service import build_security_alert_embed, build_test_embed, build_theme_change_embed
from core.errors import ValidationError
from core.events import log_event, E
from core.log import get_logger
from core.models.base import parse_dt
from core.settings_store import validate_custom_theme
from core.site_storage import SiteStorage
from .deps import (
    SESSION_AUTH_KEY,
    SESSION_USER_KEY,
    client_ip,
    get_storage,
    is_authorized,
    require_admin,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["管理后台"])


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class FeaturedStreamRequest(BaseModel):
    featured: Optional[str] = None
    customUrl: Optional[str] = None


class ThemeSettingsRequest(BaseModel):
    theme: Optional[str] = None


class CustomThemeRequest(BaseModel):
    primaryColor: Optional[str] = None
    secondaryColor: Optional[str] = None
    accentColor: Optional[str] = None
    backgroundColor: Optional[str] = None
    textColor: Optional[str] = None


class WebhookSettingsRequest(BaseModel):
    url: Optional[str] = None
    logLevel: Optional[str] = None
    realTimeLogging: Optional[bool] = None


def _check_credentials(username: str, password: str) -> bool:
    expected_user = str(cfg.get("admin.username", "admin"))
    expected_password = str(cfg.get("admin.password", "") or "")
    if not expected_password:
        logger.warning("admin.password 未配置，拒绝所有登录")
        return False
    # 明文比较，不做哈希
    user_ok = secrets.compare_digest(username.strip().lower(), expected_user.lower())
    password_ok = secrets.compare_digest(password, expected_password)
    return user_ok and password_ok


# ─── 登录 ─────────────────────────────────────────────────────────────────────
@router.post("/login", summary="管理员登录")
async def login(payload: LoginRequest, request: Request, storage: SiteStorage = Depends(get_storage)):
    username = payload.username.strip()
    if _check_credentials(payload.username, payload.password):
        request.session[SESSION_AUTH_KEY] = True
        request.session[SESSION_USER_KEY] = username
        log_event(logger, E.AUTH_LOGIN_SUCCESS, username=username)
        storage.notifier.log("info", f"Admin login successful: {username}", "auth")
        return {"success": True}

    ip = client_ip(request)
    log_event(logger, E.AUTH_LOGIN_FAIL, level="warning", username=username, ip=ip)
    storage.notifier.log(
        "warning",
        f"Failed login attempt: {username}",
        "auth",
        embed=build_security_alert_embed("Failed admin login attempt", ip, f"username={username}"),
    )
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")


@router.post("/logout", summary="退出登录")
async def logout(request: Request, storage: SiteStorage = Depends(get_storage)):
    username = request.session.get(SESSION_USER_KEY)
    if username:
        log_event(logger, E.AUTH_LOGOUT, username=username)
        storage.notifier.log("info", f"Admin logout: {username}", "auth")
    request.session.clear()
    return {"success": True}


@router.get("/check-auth", summary="检查登录状态")
async def check_auth(request: Request):
    return {"authenticated": is_authorized(request)}


# ─── 直播设置 ─────────────────────────────────────────────────────────────────
@router.get("/stream-settings", summary="获取直播设置")
async def get_stream_settings(storage: SiteStorage = Depends(get_storage), admin: str = Depends(require_admin)):
    return storage.stream_settings.get()


@router.post("/stream-settings/featured", summary="设置首页推荐直播")
async def update_featured_stream(
    payload: FeaturedStreamRequest,
    storage: SiteStorage = Depends(get_storage),
    admin: str = Depends(require_admin),
):
    if not payload.featured:
        raise ValidationError("Featured stream type is required", field="featured")
    changes = {"featuredStream": payload.featured}
    if payload.featured == "custom" and payload.customUrl:
        changes["customEmbedUrl"] = payload.customUrl
    settings = storage.stream_settings.update(changes)
    log_event(logger, E.SETTINGS_STREAM_UPDATE, featured=payload.featured)
    storage.notifier.log("info", f"Stream settings updated: featured={payload.featured}", "admin")
    return settings


# ─── 主题设置 ─────────────────────────────────────────────────────────────────
@router.get("/theme-settings", summary="获取主题设置")
async def get_theme_settings(storage: SiteStorage = Depends(get_storage), admin: str = Depends(require_admin)):
    return storage.theme_settings.get()


@router.post("/theme-settings", summary="切换主题")
async def update_theme_settings(
    payload: ThemeSettingsRequest,
    storage: SiteStorage = Depends(get_storage),
    admin: str = Depends(require_admin),
):
    if not payload.theme:
        raise ValidationError("Theme name is required", field="theme")
    settings = storage.theme_settings.update({"currentTheme": payload.theme})
    log_event(logger, E.SETTINGS_THEME_UPDATE, theme=payload.theme, by=admin)
    storage.notifier.log(
        "info",
        f"Admin updated theme: {payload.theme}",
        "admin",
        embed=build_theme_change_embed(payload.theme, admin or "admin"),
    )
    return settings


@router.post("/theme-settings/custom", summary="保存并应用自定义主题")
async def update_custom_theme(
    payload: CustomThemeRequest,
    storage: SiteStorage = Depends(get_storage),
    admin: str = Depends(require_admin),
):
    custom_theme = validate_custom_theme(payload.model_dump(exclude_none=True))
    settings = storage.theme_settings.update({"currentTheme": "custom", "customTheme": custom_theme})
    log_event(logger, E.SETTINGS_THEME_UPDATE, theme="custom", by=admin)
    storage.notifier.log("info", "Custom theme created and applied", "admin")
    return settings


# ─── Webhook 设置 ─────────────────────────────────────────────────────────────
@router.get("/webhook-settings", summary="获取 webhook 设置")
async def get_webhook_settings(storage: SiteStorage = Depends(get_storage), admin: str = Depends(require_admin)):
    settings = storage.webhook_settings.get()
    if not settings.get("url"):
        settings["url"] = str(cfg.get("discord.webhook_url", "") or "")
    return settings


@router.post("/webhook-settings", summary="更新 webhook 设置")
async def update_webhook_settings(
    payload: WebhookSettingsRequest,
    storage: SiteStorage = Depends(get_storage),
    admin: str = Depends(require_admin),
):
    if not payload.url:
        raise ValidationError("Webhook URL is required", field="url")
    settings = storage.webhook_settings.update({
        "url": payload.url,
        "logLevel": payload.logLevel or "info",
        "realTimeLogging": payload.realTimeLogging is not False,
    })
    log_event(logger, E.SETTINGS_WEBHOOK_UPDATE, log_level=settings.get("logLevel"))
    storage.notifier.log("info", "Webhook settings updated", "admin")
    return settings


@router.post("/webhook-settings/test", summary="发送测试消息")
async def test_webhook(storage: SiteStorage = Depends(get_storage), admin: str = Depends(require_admin)):
    ok = await run_in_threadpool(storage.notifier.webhook.send, build_test_embed())
    if not ok:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to send webhook")
    return {"success": True}


# ─── 日志与统计 ───────────────────────────────────────────────────────────────
@router.get("/logs", summary="系统日志")
async def get_system_logs(
    limit: int = Query(100, ge=1, le=1000),
    storage: SiteStorage = Depends(get_storage),
    admin: str = Depends(require_admin),
):
    return [x.to_dict() for x in storage.logs.list(limit)]


@router.get("/stats", summary="后台概览数据")
async def get_stats(storage: SiteStorage = Depends(get_storage), admin: str = Depends(require_admin)):
    return storage.stats()


@router.get("/activity", summary="最近动态")
async def get_activity(
    limit: int = Query(10, ge=1, le=100),
    storage: SiteStorage = Depends(get_storage),
    admin: str = Depends(require_admin),
):
    return [
        {
            "id": log.id,
            "type": log.level,
            "description": log.message,
            "timestamp": time_ago(log.timestamp),
            "icon": log_icon(log.level, log.source),
        }
        for log in storage.logs.recent_activity(limit)
    ]


@router.get("/metrics/viewers", summary="近 7 天观众数")
async def get_viewer_metrics(storage: SiteStorage = Depends(get_storage), admin: str = Depends(require_admin)):
    return storage.streams.get_viewer_metrics()


def time_ago(value, now: Optional[datetime] = None) -> str:
    past = parse_dt(value)
    if past is None:
        return ""
    now = now or datetime.now(timezone.utc)
    seconds = int((now - past).total_seconds())
    if seconds < 60:
        return "Just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes > 1 else ''} ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    days = hours // 24
    if days < 7:
        return f"{days} day{'s' if days > 1 else ''} ago"
    return past.strftime("%Y-%m-%d")


def log_icon(level: str, source: str) -> str:
    if source == "auth":
        return "user-shield"
    if source == "admin":
        return "user-edit"
    if source == "backup":
        return "database"
    return {
        "info": "info-circle",
        "warning": "exclamation-triangle",
        "error": "exclamation-circle",
    }.get(level, "info-circle")
