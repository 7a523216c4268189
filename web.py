import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.middleware.sessions import SessionMiddleware

from apis.admin import router as admin_router
from apis.announcements import router as announcements_router
from apis.discord import router as discord_router
from apis.theme import router as theme_router
from apis.twitch import router as twitch_router
from core.config import API_BASE, VERSION, cfg
from core.errors import NotFoundError, ValidationError
from core.events import log_event, E
from core.log import get_logger, set_trace_id
from core.site_storage import SiteStorage
from jobs.backup import start_backup_worker

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    storage: SiteStorage = app.state.storage
    backup_stop = None
    if app.state.load_on_startup:
        storage.load()
    if app.state.start_workers:
        storage.saver.start()
        _, backup_stop = start_backup_worker(storage)
    log_event(logger, E.SYSTEM_STARTUP, version=VERSION, backend=storage.persistence.store.kind)
    try:
        yield
    finally:
        if backup_stop is not None:
            backup_stop.set()
        if app.state.start_workers:
            storage.flush()
        storage.close()
        log_event(logger, E.SYSTEM_SHUTDOWN)


def create_app(
    storage: Optional[SiteStorage] = None,
    load_on_startup: bool = True,
    start_workers: bool = True,
) -> FastAPI:
    app = FastAPI(
        title=cfg.get("app_name", "RENNSZ Website API"),
        version=VERSION,
        docs_url=f"{API_BASE}/docs",
        redoc_url=f"{API_BASE}/redoc",
        openapi_url=f"{API_BASE}/openapi.json",
        lifespan=lifespan,
    )
    # 进程内唯一的站点存储，路由通过 Depends(get_storage) 取得
    app.state.storage = storage or SiteStorage()
    app.state.load_on_startup = load_on_startup
    app.state.start_workers = start_workers

    origins = cfg.get("cors.origins", ["*"])
    if isinstance(origins, str):
        origins = [o.strip() for o in origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        SessionMiddleware,
        secret_key=str(cfg.get("secret_key", "dev-secret")),
        session_cookie=str(cfg.get("session.cookie_name", "site_session")),
        max_age=int(cfg.get("session.max_age", 24 * 60 * 60)),
        same_site=str(cfg.get("session.same_site", "lax")),
        https_only=bool(cfg.get("session.https_only", False)),
    )

    @app.middleware("http")
    async def add_trace_id(request: Request, call_next):
        tid = set_trace_id(request.headers.get("X-Request-Id"))
        response = await call_next(request)
        response.headers["X-Request-Id"] = tid
        response.headers["X-Version"] = VERSION
        return response

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        log_event(logger, E.REQUEST_REJECT, level="warning", path=request.url.path, field=exc.field, reason=exc.message)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": exc.message, "field": exc.field or None},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = []
        for error in exc.errors():
            errors.append({
                "field": " -> ".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            })
        logger.warning("请求参数校验失败: path=%s errors=%s", request.url.path, errors)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": errors, "message": "Validation error. Please check your input data."},
        )

    api_router = APIRouter(prefix=API_BASE)
    api_router.include_router(announcements_router)
    api_router.include_router(admin_router)
    api_router.include_router(theme_router)
    api_router.include_router(twitch_router)
    api_router.include_router(discord_router)
    app.include_router(api_router)

    @app.get("/healthz", tags=["系统"])
    async def healthcheck():
        return {"status": "ok"}

    static_dir = str(cfg.get("static_dir", "static"))
    if os.path.isdir(static_dir):
        app.mount("/assets", StaticFiles(directory=static_dir), name="assets")

        @app.get("/{path:path}", include_in_schema=False)
        async def serve_spa(path: str):
            """前端路由统一返回 index.html"""
            index_path = os.path.join(static_dir, "index.html")
            if path.startswith("api") or not os.path.exists(index_path):
                return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": "Not Found"})
            return FileResponse(index_path)

    return app


app = create_app()
