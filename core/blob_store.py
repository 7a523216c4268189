"""
持久化后端：按名字读写文本 blob

    LocalBlobStore  本地目录，一个 blob 一个文件
    QiniuBlobStore  七牛对象存储（core/qiniu_service.py）
    SqlBlobStore    SQLAlchemy 表 storage_blobs

读不到返回 None；写失败抛 PersistenceError。
"""
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from core.config import cfg
from core.db import DB, Db
from core.errors import PersistenceError
from core.log import get_logger
from core.models.base import utc_now
from core.models.storage_blob import StorageBlob

logger = get_logger(__name__)


class BlobStore(ABC):
    kind: str = "blob"

    @abstractmethod
    def read_text(self, name: str) -> Optional[str]:
        ...

    @abstractmethod
    def write_text(self, name: str, text: str) -> None:
        ...

    @abstractmethod
    def list_names(self, prefix: str = "") -> List[str]:
        ...

    @abstractmethod
    def delete(self, name: str) -> None:
        ...


class LocalBlobStore(BlobStore):
    kind = "file"

    def __init__(self, data_dir: Optional[str] = None):
        self.data_dir = Path(data_dir or cfg.get("storage.data_dir", ".data"))

    def _ensure_dir(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise PersistenceError(f"invalid blob name: {name!r}", blob=name)
        return self.data_dir / name

    def read_text(self, name: str) -> Optional[str]:
        path = self._path(name)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"read failed: {e}", blob=name) from e

    def write_text(self, name: str, text: str) -> None:
        path = self._path(name)
        try:
            self._ensure_dir()
            # 先写临时文件再替换，避免读到半个文件
            fd, tmp = tempfile.mkstemp(prefix=f".{name}.", dir=str(self.data_dir))
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(text)
                os.replace(tmp, path)
            except BaseException:
                if os.path.exists(tmp):
                    os.remove(tmp)
                raise
        except OSError as e:
            raise PersistenceError(f"write failed: {e}", blob=name) from e

    def list_names(self, prefix: str = "") -> List[str]:
        if not self.data_dir.exists():
            return []
        return sorted(
            p.name for p in self.data_dir.iterdir()
            if p.is_file() and p.name.startswith(prefix) and not p.name.startswith(".")
        )

    def delete(self, name: str) -> None:
        try:
            self._path(name).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(f"delete failed: {e}", blob=name) from e


class SqlBlobStore(BlobStore):
    kind = "db"

    def __init__(self, db: Optional[Db] = None):
        self.db = db or DB
        self.db.create_tables()

    def read_text(self, name: str) -> Optional[str]:
        session = self.db.get_session()
        try:
            row = session.get(StorageBlob, name)
            return None if row is None else row.content
        except SQLAlchemyError as e:
            raise PersistenceError(f"read failed: {e}", blob=name) from e
        finally:
            session.close()

    def write_text(self, name: str, text: str) -> None:
        session = self.db.get_session()
        try:
            row = session.get(StorageBlob, name)
            if row is None:
                row = StorageBlob(name=name)
                session.add(row)
            row.content = text
            row.updated_at = utc_now()
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"write failed: {e}", blob=name) from e
        finally:
            session.close()

    def list_names(self, prefix: str = "") -> List[str]:
        session = self.db.get_session()
        try:
            rows = (
                session.query(StorageBlob.name)
                .filter(StorageBlob.name.startswith(prefix, autoescape=True))
                .order_by(StorageBlob.name)
                .all()
            )
            return [r[0] for r in rows]
        except SQLAlchemyError as e:
            raise PersistenceError(f"list failed: {e}", blob=prefix) from e
        finally:
            session.close()

    def delete(self, name: str) -> None:
        session = self.db.get_session()
        try:
            session.query(StorageBlob).filter(StorageBlob.name == name).delete(synchronize_session=False)
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise PersistenceError(f"delete failed: {e}", blob=name) from e
        finally:
            session.close()


def create_blob_store(backend: Optional[str] = None) -> BlobStore:
    """按配置 storage.backend 创建后端：file（默认）/ qiniu / db"""
    backend = str(backend or cfg.get("storage.backend", "file")).strip().lower()
    if backend == "qiniu":
        from core.qiniu_service import QiniuBlobStore

        return QiniuBlobStore()
    if backend == "db":
        return SqlBlobStore()
    if backend != "file":
        logger.warning("未知的 storage.backend=%s，使用本地文件", backend)
    return LocalBlobStore()
