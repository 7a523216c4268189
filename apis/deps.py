from fastapi import HTTPException, Request, status

from core.events import log_event, E
from core.log import get_logger
from core.site_storage import SiteStorage

logger = get_logger(__name__)

SESSION_AUTH_KEY = "is_authenticated"
SESSION_USER_KEY = "username"


def get_storage(request: Request) -> SiteStorage:
    return request.app.state.storage


def is_authorized(request: Request) -> bool:
    session = request.scope.get("session") or {}
    return bool(session.get(SESSION_AUTH_KEY))


def current_admin(request: Request) -> str:
    session = request.scope.get("session") or {}
    return str(session.get(SESSION_USER_KEY) or "")


def require_admin(request: Request) -> str:
    """写操作前置检查，未登录返回 401"""
    if not is_authorized(request):
        log_event(logger, E.AUTH_REJECT, level="warning", method=request.method, path=request.url.path)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return current_admin(request)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else ""
