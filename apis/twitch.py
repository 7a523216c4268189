from fastapi import APIRouter, Depends

from core.site_storage import SiteStorage
from .deps import get_storage

router = APIRouter(prefix="/twitch", tags=["直播"])


@router.get("/live", summary="当前正在直播的频道，均未开播返回 null")
async def get_live_streamer(storage: SiteStorage = Depends(get_storage)):
    return storage.streams.get_live_streamer()


@router.get("/streamers", summary="主频道与游戏频道状态")
async def get_streamers(storage: SiteStorage = Depends(get_storage)):
    return storage.streams.get_all_streamers_status()


@router.get("/streams/{channel}", summary="指定频道状态")
async def get_stream(channel: str, storage: SiteStorage = Depends(get_storage)):
    return storage.streams.get_streamer_status(channel)
