"""
core/persistence.py — 快照持久化

PersistenceAdapter
    save_all(snapshot) -> bool   每个集合写一个 blob，另写一份带时间戳的备份，
                                 按 storage.backup_keep 清理旧备份，并在 webhook 设置里记录 lastBackup
    load_all() -> dict           每个集合独立读取，缺失或损坏的集合返回 None，不影响其它集合

BackgroundSaver
    所有保存都经由同一个后台线程串行执行；request_save() 只做标记立即返回，
    积压的多次请求合并成一次对“当前完整快照”的保存。
"""
import json
import threading
from typing import Any, Callable, Dict, List, Optional

from core.blob_store import BlobStore
from core.config import cfg
from core.errors import PersistenceError
from core.events import log_event, E
from core.log import get_logger, trace_ctx
from core.models.base import dt_to_str, utc_now

logger = get_logger(__name__)

# 集合名 -> blob 名
COLLECTION_BLOBS: Dict[str, str] = {
    "announcements": "announcements.json",
    "streamSettings": "streamSettings.json",
    "themeSettings": "themeSettings.json",
    "webhookSettings": "webhookSettings.json",
    "logs": "logs.json",
}

BACKUP_PREFIX = "backup_"


def backup_name(blob: str, millis: int) -> str:
    return f"{BACKUP_PREFIX}{blob}_{millis}"


def _backup_millis(name: str) -> int:
    try:
        return int(name.rsplit("_", 1)[1])
    except (IndexError, ValueError):
        return 0


class PersistenceAdapter:
    def __init__(self, store: BlobStore, backup_keep: Optional[int] = None):
        self.store = store
        keep = cfg.get("storage.backup_keep", 20) if backup_keep is None else backup_keep
        # <=0 表示不清理
        self.backup_keep = int(keep)
        self.last_backup: Optional[str] = None

    def save_all(self, snapshot: Dict[str, Any]) -> bool:
        stamp = utc_now()
        stamp_iso = dt_to_str(stamp)
        millis = int(stamp.timestamp() * 1000)

        data = dict(snapshot or {})
        if "webhookSettings" in data:
            data["webhookSettings"] = {**(data["webhookSettings"] or {}), "lastBackup": stamp_iso}

        ok = True
        written: List[str] = []
        for name, blob in COLLECTION_BLOBS.items():
            if name not in data:
                continue
            try:
                text = json.dumps(data[name], ensure_ascii=False, indent=2)
                self.store.write_text(blob, text)
                self.store.write_text(backup_name(blob, millis), text)
            except (PersistenceError, TypeError, ValueError) as e:
                ok = False
                log_event(logger, E.STORAGE_SAVE_FAIL, level="error", blob=blob, error=e)
                continue
            written.append(name)
            self._prune_backups(blob)

        if written:
            self.last_backup = stamp_iso
        log_event(
            logger,
            E.STORAGE_SAVE_COMPLETE,
            backend=self.store.kind,
            ok=ok,
            written=",".join(written) or "-",
        )
        return ok

    def _prune_backups(self, blob: str) -> None:
        if self.backup_keep <= 0:
            return
        try:
            names = self.store.list_names(f"{BACKUP_PREFIX}{blob}_")
            names.sort(key=_backup_millis)
            stale = names[: max(0, len(names) - self.backup_keep)]
            for name in stale:
                self.store.delete(name)
        except PersistenceError as e:
            log_event(logger, E.STORAGE_SAVE_FAIL, level="warning", blob=blob, stage="prune", error=e)
            return
        if stale:
            log_event(logger, E.STORAGE_BACKUP_PRUNE, blob=blob, removed=len(stale), keep=self.backup_keep)

    def load_all(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for name, blob in COLLECTION_BLOBS.items():
            try:
                text = self.store.read_text(blob)
                result[name] = json.loads(text) if text is not None else None
            except (PersistenceError, ValueError) as e:
                result[name] = None
                log_event(logger, E.STORAGE_LOAD_FAIL, level="warning", blob=blob, error=e)
                continue
            if text is None:
                logger.info("未找到 %s，使用默认值", blob)
        log_event(
            logger,
            E.STORAGE_LOAD,
            backend=self.store.kind,
            loaded=",".join(k for k, v in result.items() if v is not None) or "-",
        )
        return result


class BackgroundSaver:
    def __init__(
        self,
        adapter: PersistenceAdapter,
        snapshot_fn: Callable[[], Dict[str, Any]],
        on_saved: Optional[Callable[[bool, Optional[str]], None]] = None,
    ):
        self.adapter = adapter
        self._snapshot_fn = snapshot_fn
        self._on_saved = on_saved
        self._cond = threading.Condition()
        self._save_lock = threading.Lock()
        self._requested = 0
        self._completed = 0
        self._last_reason = ""
        self._stopping = False
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "BackgroundSaver":
        with self._cond:
            if self._stopping or (self._thread is not None and self._thread.is_alive()):
                return self
            self._thread = threading.Thread(target=self._worker_loop, name="storage-saver", daemon=True)
            self._thread.start()
        log_event(logger, E.SYSTEM_QUEUE_START, queue="storage-saver")
        return self

    def request_save(self, reason: str = "manual") -> None:
        with self._cond:
            self._requested += 1
            self._last_reason = reason
            self._cond.notify_all()
        log_event(logger, E.STORAGE_SAVE_REQUEST, level="debug", reason=reason)
        self.start()

    def _worker_loop(self) -> None:
        while True:
            with self._cond:
                while not self._stopping and self._completed >= self._requested:
                    self._cond.wait()
                if self._stopping:
                    return
                target = self._requested
                reason = self._last_reason
            with trace_ctx("saver"):
                self._save(reason)
            with self._cond:
                self._completed = max(self._completed, target)
                self._cond.notify_all()

    def _save(self, reason: str) -> bool:
        with self._save_lock:
            try:
                ok = self.adapter.save_all(self._snapshot_fn())
            except Exception:
                logger.exception("保存快照异常: reason=%s", reason)
                ok = False
            if self._on_saved is not None:
                try:
                    self._on_saved(ok, self.adapter.last_backup)
                except Exception:
                    logger.exception("保存回调异常")
            return ok

    def flush(self) -> bool:
        """同步保存一次（停机时使用）"""
        with self._cond:
            target = self._requested
        ok = self._save("flush")
        with self._cond:
            self._completed = max(self._completed, target)
            self._cond.notify_all()
        return ok

    def wait_idle(self, timeout: float = 5.0) -> bool:
        with self._cond:
            return self._cond.wait_for(lambda: self._completed >= self._requested, timeout)

    def stop(self, timeout: float = 5.0) -> None:
        with self._cond:
            self._stopping = True
            self._cond.notify_all()
        thread = self._thread
        if thread is not None and thread.is_alive():
            thread.join(timeout)
