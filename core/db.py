from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from core.config import cfg
from core.log import get_logger
from core.events import log_event, E
from core.models.base import Base

logger = get_logger(__name__)


class Db:
    """SQLAlchemy 引擎与会话工厂，按需懒加载"""

    def __init__(self, url: Optional[str] = None):
        self._url = url
        self.engine = None
        self._session_factory = None

    @property
    def url(self) -> str:
        return self._url or str(cfg.get("storage.db_url", "sqlite:///.data/site.db"))

    def init(self, url: Optional[str] = None) -> "Db":
        if url:
            self._url = url
        connect_args = {}
        if self.url.startswith("sqlite"):
            # 后台保存线程与请求线程共用连接池
            connect_args = {"check_same_thread": False}
        self.engine = create_engine(
            self.url,
            connect_args=connect_args,
            pool_pre_ping=True,
            future=True,
        )
        self._session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
            future=True,
        )
        return self

    def create_tables(self) -> None:
        if self.engine is None:
            self.init()
        from core import models  # noqa: F401  注册全部表
        Base.metadata.create_all(bind=self.engine)
        log_event(logger, E.SYSTEM_DB_INIT, dialect=self.url.split("://")[0])

    def get_session(self):
        if self._session_factory is None:
            self.init()
        return self._session_factory()


DB = Db()
