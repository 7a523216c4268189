from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core.discord_service import build_theme_change_embed
from core.errors import ValidationError
from core.events import log_event, E
from core.log import get_logger
from core.site_storage import SiteStorage
from .deps import get_storage, require_admin

logger = get_logger(__name__)

router = APIRouter(prefix="/theme", tags=["主题"])


class ThemeRequest(BaseModel):
    theme: Optional[str] = None
    customTheme: Optional[Dict[str, Any]] = None


@router.get("", summary="当前主题（公开）")
async def get_theme(storage: SiteStorage = Depends(get_storage)):
    return storage.theme_settings.get()


@router.post("", summary="切换主题")
async def update_theme(
    payload: ThemeRequest,
    storage: SiteStorage = Depends(get_storage),
    admin: str = Depends(require_admin),
):
    if not payload.theme:
        raise ValidationError("Theme name is required", field="theme")
    changes: Dict[str, Any] = {"currentTheme": payload.theme}
    if payload.theme == "custom" and payload.customTheme:
        changes["customTheme"] = payload.customTheme
    settings = storage.theme_settings.update(changes)
    log_event(logger, E.SETTINGS_THEME_UPDATE, theme=payload.theme, by=admin)
    storage.notifier.log(
        "info",
        f"Theme updated: {payload.theme}",
        "system",
        embed=build_theme_change_embed(payload.theme, admin or "admin"),
    )
    return settings
