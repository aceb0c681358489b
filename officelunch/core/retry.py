"""
数据库调用重试
在持久化客户端构造时统一包装，瞬时故障按指数退避重试，调用方只会看到最终成功或最终失败
"""

import functools
import time
from typing import Callable, Optional, Tuple, Type

import duckdb

from .exceptions import BaseApplicationError, PersistenceError
from .logging import logger

# 视为瞬时故障的异常类型与错误信息片段
TRANSIENT_EXCEPTIONS: Tuple[Type[BaseException], ...] = (
    duckdb.ConnectionException,
    duckdb.IOException,
)
TRANSIENT_MARKERS = (
    "endpoint has been disabled",
    "XX000",
    "connection reset",
    "could not set lock on file",
)


def is_transient_error(error: BaseException) -> bool:
    """判断异常是否属于可重试的基础设施瞬时故障"""
    if isinstance(error, TRANSIENT_EXCEPTIONS):
        return True
    message = str(error)
    return any(marker.lower() in message.lower() for marker in TRANSIENT_MARKERS)


def with_retry(
    func: Callable = None,
    *,
    attempts: int = 3,
    base_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
    on_retry: Optional[Callable[[BaseException], None]] = None,
):
    """
    为数据库调用增加有界指数退避重试

    Args:
        attempts: 最大尝试次数（含首次）
        base_delay: 首次重试前的等待秒数，之后每次翻倍
        sleep: 等待函数，测试中可替换
        on_retry: 每次重试前调用，用于重建失效的连接

    非瞬时异常原样抛出（业务异常）或包装为 PersistenceError；
    重试耗尽后抛出 PersistenceError。
    """
    if func is None:
        return functools.partial(
            with_retry, attempts=attempts, base_delay=base_delay, sleep=sleep, on_retry=on_retry
        )

    max_attempts = max(1, attempts)
    operation = getattr(func, "__qualname__", None) or repr(func)

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        for attempt in range(1, max_attempts + 1):
            try:
                return func(*args, **kwargs)
            except BaseApplicationError:
                raise
            except Exception as e:
                if not is_transient_error(e):
                    raise PersistenceError(f"数据库操作失败: {e}") from e
                if attempt >= max_attempts:
                    logger.error(
                        "db_retry_exhausted",
                        operation=operation,
                        attempts=attempt,
                        error=str(e),
                    )
                    raise PersistenceError(
                        "数据库暂时不可用，请稍后重试",
                        details={"attempts": attempt},
                    ) from e
                wait = base_delay * (2 ** (attempt - 1))
                logger.warning(
                    "db_retry",
                    operation=operation,
                    attempt=attempt,
                    max_attempts=max_attempts,
                    wait_seconds=wait,
                    error=str(e),
                )
                if on_retry is not None:
                    on_retry(e)
                sleep(wait)

    return wrapper
