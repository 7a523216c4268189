from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from core.errors import ValidationError
from core.site_storage import SiteStorage
from .deps import get_storage, require_admin

router = APIRouter(prefix="/discord", tags=["Discord"])


class DiscordLogRequest(BaseModel):
    embeds: Optional[List[Dict[str, Any]]] = None


@router.post("/log", summary="转发前端日志到 Discord")
async def forward_log(
    payload: DiscordLogRequest,
    storage: SiteStorage = Depends(get_storage),
    admin: str = Depends(require_admin),
):
    if not payload.embeds:
        raise ValidationError("Invalid webhook data format", field="embeds")
    # 直接写系统日志，不经 notifier
    storage.logs.append("info", str(payload.embeds[0].get("title") or "Discord webhook log"), "webhook")
    ok = await run_in_threadpool(storage.notifier.webhook.send, {"embeds": payload.embeds})
    if not ok:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send webhook")
    return {"success": True, "message": "Webhook sent successfully"}
