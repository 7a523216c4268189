from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from core.models.announcement import CATEGORY_GENERAL
from core.site_storage import SiteStorage
from .deps import get_storage, require_admin

router = APIRouter(prefix="/announcements", tags=["公告"])


class AnnouncementCreate(BaseModel):
    title: str
    content: str
    category: Optional[str] = CATEGORY_GENERAL
    isPinned: Optional[bool] = False


class AnnouncementUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    isPinned: Optional[bool] = None


@router.get("", summary="公告列表（置顶在前，其余按时间倒序）")
async def list_announcements(storage: SiteStorage = Depends(get_storage)):
    return [a.to_dict() for a in storage.announcements.list()]


@router.get("/{announcement_id}", summary="公告详情")
async def get_announcement(announcement_id: int, storage: SiteStorage = Depends(get_storage)):
    return storage.announcements.get(announcement_id).to_dict()


@router.post("", status_code=status.HTTP_201_CREATED, summary="发布公告")
async def create_announcement(
    payload: AnnouncementCreate,
    storage: SiteStorage = Depends(get_storage),
    admin: str = Depends(require_admin),
):
    announcement = storage.announcements.create(
        title=payload.title,
        content=payload.content,
        category=payload.category,
        is_pinned=payload.isPinned,
    )
    return announcement.to_dict()


@router.patch("/{announcement_id}", summary="修改公告")
async def update_announcement(
    announcement_id: int,
    payload: AnnouncementUpdate,
    storage: SiteStorage = Depends(get_storage),
    admin: str = Depends(require_admin),
):
    # 只合并请求里显式给出的字段
    fields = payload.model_dump(exclude_unset=True)
    return storage.announcements.update(announcement_id, fields).to_dict()


@router.delete("/{announcement_id}", summary="删除公告")
async def delete_announcement(
    announcement_id: int,
    storage: SiteStorage = Depends(get_storage),
    admin: str = Depends(require_admin),
):
    storage.announcements.delete(announcement_id)
    return {"success": True}
