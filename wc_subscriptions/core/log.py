"""
core/log.py — 统一日志系统

特性：
• trace_id 通过 ContextVar 自动传播，请求 / 订单完成事件 / 后台续费任务各自一个
• 格式: 时间 [级别] [trace_id] 模块.函数:行号 - 消息
• get_logger(__name__) 获取任意模块的命名 logger
• trace_ctx() 上下文管理器供后台 Job 使用
• 根日志器统一配置，所有子模块自动继承

使用方式：
    from wc_subscriptions.core.log import get_logger, trace_ctx
    logger = get_logger(__name__)

    with trace_ctx(f"order-{order_id}"):
        logger.info("event=billing.schedule.start | order_id=%s", order_id)
"""

import logging
import logging.handlers
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Generator, Optional

import colorlog

from wc_subscriptions.core.config import cfg

# ─── Trace ID ContextVar ──────────────────────────────────────────────────────
_trace_id_var: ContextVar[str] = ContextVar("trace_id", default="-")


def _new_trace_id() -> str:
    return uuid.uuid4().hex[:8]


def set_trace_id(tid: Optional[str] = None) -> str:
    """设置当前上下文的 trace_id，返回实际值。"""
    tid = str(tid or "").strip()[:16] or _new_trace_id()
    _trace_id_var.set(tid)
    return tid


@contextmanager
def trace_ctx(trace_id: Optional[str] = None) -> Generator[str, None, None]:
    """后台 Job 的 trace 上下文管理器，退出时自动重置。"""
    token = _trace_id_var.set(str(trace_id or "").strip()[:16] or _new_trace_id())
    try:
        yield _trace_id_var.get()
    finally:
        _trace_id_var.reset(token)


# ─── Log Level ────────────────────────────────────────────────────────────────
_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}
_level = _LEVEL_MAP.get(str(cfg.get("log.level", "INFO")).upper(), logging.INFO)
_LOG_FILE = str(cfg.get("log.file", "") or "")

# 时间 [级别  ] [trace_id] 模块.函数:行号 - 消息
_FMT = "%(asctime)s [%(levelname)-5s] [%(trace_id)s] %(name)s.%(funcName)s:%(lineno)d - %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"


class _TraceIdFilter(logging.Filter):
    """自动将 trace_id 注入每条日志 record，供 %(trace_id)s 使用。"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = _trace_id_var.get()
        return True


_trace_filter = _TraceIdFilter()

# ─── Handler 注册（幂等，防止 uvicorn --reload 重复添加）──────────────────────
_APP_HANDLER_MARKER = "_is_app_log_handler"


def _setup_app_logging() -> None:
    root = logging.getLogger()
    if any(getattr(h, _APP_HANDLER_MARKER, False) for h in root.handlers):
        return

    root.setLevel(_level)

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
    ch.setLevel(_level)
    ch.addFilter(_trace_filter)
    setattr(ch, _APP_HANDLER_MARKER, True)
    root.addHandler(ch)

    if _LOG_FILE:
        fh = logging.handlers.RotatingFileHandler(
            f"{_LOG_FILE}.log",
            maxBytes=5 * 1024 * 1024,
            backupCount=7,
            encoding="utf-8",
        )
        fh.setLevel(_level)
        fh.setFormatter(logging.Formatter(_FMT, datefmt=_DATE_FMT))
        fh.addFilter(_trace_filter)
        setattr(fh, _APP_HANDLER_MARKER, True)
        root.addHandler(fh)


_setup_app_logging()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
