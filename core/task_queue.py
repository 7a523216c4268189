import queue
import threading
from typing import Any, Callable, Optional

from core.events import log_event, E
from core.log import get_logger, trace_ctx

logger = get_logger(__name__)

_STOP = object()


class TaskQueue:
    """单线程后台任务队列：submit() 立即返回，任务按提交顺序执行，异常只记日志"""

    def __init__(self, name: str = "task-queue", maxsize: int = 1000):
        self.name = name
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=maxsize)
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def start(self) -> "TaskQueue":
        with self._lock:
            if self._thread is not None and self._thread.is_alive():
                return self
            self._thread = threading.Thread(target=self._worker_loop, name=self.name, daemon=True)
            self._thread.start()
        log_event(logger, E.SYSTEM_QUEUE_START, queue=self.name)
        return self

    def submit(self, fn: Callable, *args, **kwargs) -> bool:
        self.start()
        try:
            self._queue.put_nowait((fn, args, kwargs))
            return True
        except queue.Full:
            logger.warning("后台队列已满，丢弃任务: queue=%s fn=%s", self.name, getattr(fn, "__name__", fn))
            return False

    def join(self) -> None:
        """等待已提交任务全部执行完（测试与停机使用）"""
        self._queue.join()

    def stop(self, timeout: float = 5.0) -> None:
        thread = self._thread
        if thread is None or not thread.is_alive():
            return
        self._queue.put(_STOP)
        thread.join(timeout)

    def _worker_loop(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                fn, args, kwargs = item
                with trace_ctx(self.name[:16]):
                    fn(*args, **kwargs)
            except Exception:
                logger.exception("后台任务执行异常: queue=%s", self.name)
            finally:
                self._queue.task_done()
