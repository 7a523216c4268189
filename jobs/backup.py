from threading import Event, Thread

from core.config import cfg
from core.log import get_logger, trace_ctx
from core.events import log_event, E

logger = get_logger(__name__)


def backup_interval() -> int:
    return max(10, int(cfg.get("storage.backup_interval_seconds", 300) or 300))


def _worker_loop(storage, interval: int, stop_event: Event):
    # 首轮先等一个周期，启动时刚加载过数据
    while not stop_event.wait(interval):
        with trace_ctx("backup"):
            try:
                log_event(logger, E.STORAGE_BACKUP_TICK, interval=interval)
                storage.request_save("periodic")
            except Exception:
                logger.exception("定时备份触发异常")


def start_backup_worker(storage, interval: int = None, stop_event: Event = None):
    """每隔 interval 秒请求一次完整快照保存，与请求触发的保存共用同一个保存线程"""
    interval = interval or backup_interval()
    stop_event = stop_event or Event()
    t = Thread(target=_worker_loop, args=(storage, interval, stop_event), name="backup-timer", daemon=True)
    t.start()
    log_event(logger, E.SYSTEM_JOB_ADD, job="backup", interval=interval)
    return t, stop_event
