"""
core/log.py — 统一日志

• trace_id 通过 ContextVar 传播：HTTP 请求由 web.py 中间件设置，后台任务用 trace_ctx()
• 格式: 时间 [级别] [trace_id] 模块.函数:行号 - 消息
• 根日志器只配置一次，各模块 get_logger(__name__) 即可

    from core.log import get_logger
    logger = get_logger(__name__)

    with trace_ctx("backup") as tid:
        logger.info("event=storage.backup.start")
"""

import logging
import logging.handlers
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Generator, Optional

import colorlog

from core.config import cfg

_trace_id_var: ContextVar[str] = ContextVar("trace_id", default="-")


def _new_trace_id() -> str:
    return uuid.uuid4().hex[:8]


def set_trace_id(tid: Optional[str] = None) -> str:
    """设置当前上下文的 trace_id，返回实际值。"""
    tid = str(tid or "").strip()[:16] or _new_trace_id()
    _trace_id_var.set(tid)
    return tid


def get_trace_id() -> str:
    return _trace_id_var.get()


@contextmanager
def trace_ctx(trace_id: Optional[str] = None) -> Generator[str, None, None]:
    """后台线程的 trace 上下文，退出时复位。"""
    token = _trace_id_var.set(str(trace_id or "").strip()[:16] or _new_trace_id())
    try:
        yield _trace_id_var.get()
    finally:
        _trace_id_var.reset(token)


_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_FMT = "%(asctime)s [%(levelname)-5s] [%(trace_id)s] %(name)s.%(funcName)s:%(lineno)d - %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"


class _TraceIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = _trace_id_var.get()
        return True


_trace_filter = _TraceIdFilter()

# uvicorn --reload 会重复导入，用标记保证只注册一次
_APP_HANDLER_MARKER = "_is_app_log_handler"


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """向根日志器注册 handler；重复调用时先移除旧的应用 handler（配置重新加载后使用）。"""
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, _APP_HANDLER_MARKER, False):
            root.removeHandler(handler)

    level_name = str(level or cfg.get("log.level", "INFO")).upper()
    log_level = _LEVEL_MAP.get(level_name, logging.INFO)
    log_file = log_file if log_file is not None else cfg.get("log.file", "")
    root.setLevel(log_level)

    ch = colorlog.StreamHandler(stream=sys.stdout)
    ch.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s" + _FMT,
            datefmt=_DATE_FMT,
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )
    ch.setLevel(log_level)
    ch.addFilter(_trace_filter)
    setattr(ch, _APP_HANDLER_MARKER, True)
    root.addHandler(ch)

    if log_file:
        fh = logging.handlers.RotatingFileHandler(
            f"{log_file}.log",
            maxBytes=5 * 1024 * 1024,
            backupCount=7,
            encoding="utf-8",
        )
        fh.setLevel(log_level)
        fh.setFormatter(logging.Formatter(_FMT, datefmt=_DATE_FMT))
        fh.addFilter(_trace_filter)
        setattr(fh, _APP_HANDLER_MARKER, True)
        root.addHandler(fh)


if not any(getattr(h, _APP_HANDLER_MARKER, False) for h in logging.getLogger().handlers):
    setup_logging()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
