"""Root exceptions and error codes for the configurator.

``ErrorCode`` values show up in log lines (``[DATA001] ...``) so a failure in
the log file can be matched to the notice the operator saw.
"""

from __future__ import annotations

from collections.abc import Callable
import functools
import logging
from typing import Any


class ConfiguratorError(Exception):
    """プロジェクト共通の上位例外。"""


class DataValidationError(ConfiguratorError, ValueError):
    """設定ファイルや入力データが検証を通らなかった。"""


class ErrorCode:
    """ログと通知で共有するエラーコード。"""

    # 読み込み
    DATA_LOAD_FAILED = "DATA001"

    # 設定・書き出し
    SYSTEM_CONFIG_ERROR = "SYS001"
    SYSTEM_EXPORT_ERROR = "SYS002"

    # フィルター・重み
    CALC_FILTER_ERROR = "CALC001"
    CALC_CAPACITY_EXCEEDED = "CALC003"


class CodedError(ConfiguratorError):
    """``code`` と任意の ``details`` を持つ例外。

    ``str(exc)`` は :meth:`_render` が決める。既定は ``"[CODE] message"``。
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None):
        self.code = code
        self.message = message
        self.details: dict[str, Any] = dict(details or {})
        super().__init__(self._render())

    def _render(self) -> str:
        return f"[{self.code}] {self.message}"


def log_with_code(
    logger: logging.Logger,
    level: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> None:
    """``[CODE] message | Details: {...}`` の形で 1 行出力する。"""
    line = f"[{code}] {message}"
    if details:
        line = f"{line} | Details: {details}"
    logger.log(level, line)


def handle_exceptions(
    *,
    logger: logging.Logger | None = None,
    reraise: bool = False,
    default: Any = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Best-effort wrapper for helpers whose failure must not stop the page.

    The exception is logged with traceback; ``default`` is returned unless
    ``reraise`` is set.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as exc:  # noqa: BLE001
                (logger or logging.getLogger(func.__module__)).exception(
                    "Unhandled exception in %s: %s", func.__name__, exc
                )
                if reraise:
                    raise
                return default

        return wrapper

    return decorator


__all__ = [
    "ConfiguratorError",
    "DataValidationError",
    "ErrorCode",
    "CodedError",
    "log_with_code",
    "handle_exceptions",
]
