"""
日志配置
运行日志统一使用 structlog 输出结构化事件，业务审计记录另存于 logs 表
"""

import logging
import sys

import structlog

logger = structlog.get_logger("officelunch")


def configure_logging(level: str = "INFO", debug: bool = False) -> None:
    """初始化日志输出，应用启动时调用一次"""
    log_level = getattr(logging, str(level).upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    renderer = structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )

    # 第三方库日志降噪
    logging.getLogger("stripe").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
