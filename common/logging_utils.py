"""ロガー周り: コンポーネント別ロガーとファイル出力の初期化。"""

from __future__ import annotations

from collections.abc import Callable
import logging
import logging.handlers
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from config.settings import Settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024

_CALLBACK_PREFIX = {
    logging.DEBUG: "[DEBUG]",
    logging.INFO: "[INFO]",
    logging.WARNING: "[WARN]",
    logging.ERROR: "[ERROR]",
    logging.CRITICAL: "[CRITICAL]",
}

_SIZE_UNITS = {"k": 1024, "m": 1024**2, "g": 1024**3}


class ComponentLogger:
    """1 つのコンポーネント名を前置して logger と UI コールバックへ流す。

    コールバックには ``[WARN] WeightLedger: weight rejected (pillar=Ads)`` のように
    レベル接頭辞付きで渡る。Streamlit 側はこれを通知欄に積む。

        >>> log = ComponentLogger.create("WeightLedger", log_callback=notices.append)
        >>> log.info("weight set", pillar="Ads", value="12.5")
    """

    def __init__(
        self,
        component: str,
        logger: logging.Logger | None = None,
        log_callback: Callable[[str], None] | None = None,
        compact_mode: bool = False,
    ):
        self.component = component
        self.logger = logger or logging.getLogger(__name__)
        self.log_callback = log_callback
        self.compact_mode = compact_mode

    @classmethod
    def create(
        cls,
        component: str,
        logger: logging.Logger | None = None,
        log_callback: Callable[[str], None] | None = None,
    ) -> ComponentLogger:
        """COMPACT_LOGS を見て compact_mode を決める。"""
        from config.environment import get_env_config

        return cls(component, logger, log_callback, compact_mode=get_env_config().compact_logs)

    def _format_message(self, message: str, **context: Any) -> str:
        text = f"{self.component}: {message}"
        if context:
            text += " (" + ", ".join(f"{k}={v}" for k, v in context.items()) + ")"
        return text

    def _emit_callback(self, line: str) -> None:
        if self.log_callback is None:
            return
        try:
            self.log_callback(line)
        except Exception as exc:  # noqa: BLE001
            # コールバック由来の失敗を再度コールバックに流さない
            self.logger.debug("log_callback failed: %s", exc, exc_info=True)

    def _log(self, level: int, message: str, **context: Any) -> None:
        text = self._format_message(message, **context)
        self.logger.log(level, text)
        prefix = _CALLBACK_PREFIX.get(level)
        self._emit_callback(f"{prefix} {text}" if prefix else text)

    def debug(self, message: str, **context: Any) -> None:
        self._log(logging.DEBUG, message, **context)

    def info(self, message: str, **context: Any) -> None:
        self._log(logging.DEBUG if self.compact_mode else logging.INFO, message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._log(logging.WARNING, message, **context)

    def error(self, message: str, **context: Any) -> None:
        self._log(logging.ERROR, message, **context)

    def exception(self, message: str, exc_info: BaseException | None = None, **context: Any) -> None:
        """トレースバック付きで ERROR を出す。コールバックには例外の型名だけ渡す。"""
        text = self._format_message(message, **context)
        self.logger.error(text, exc_info=exc_info or True)
        kind = type(exc_info).__name__ if exc_info is not None else "Exception"
        self._emit_callback(f"[ERROR] {text} | Exception: {kind}")


def _parse_size(rotation: str) -> int:
    """``"10 MB"`` のような表記をバイト数にする。読めなければ 10MB。"""
    number, _, unit = rotation.strip().partition(" ")
    try:
        value = float(number)
    except ValueError:
        return DEFAULT_MAX_BYTES
    return int(value * _SIZE_UNITS.get(unit.strip()[:1].lower(), 1))


def _file_handler(path: Path, rotation: str) -> logging.Handler:
    if rotation == "daily":
        return logging.handlers.TimedRotatingFileHandler(
            filename=str(path), when="midnight", backupCount=7, encoding="utf-8"
        )
    return logging.handlers.RotatingFileHandler(
        filename=str(path), maxBytes=_parse_size(rotation), backupCount=5, encoding="utf-8"
    )


def setup_logging(settings: Settings) -> logging.Logger:
    """root ロガーにファイル出力とコンソール出力を付け直して返す。

    rotation が ``"daily"`` なら日次、それ以外はサイズ指定（例: ``"10 MB"``）。
    """
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)
    logs_dir = Path(settings.LOGS_DIR)
    logs_dir.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(level)
    # Streamlit の再実行ごとにハンドラが増えないよう外してから付ける
    for old in list(root.handlers):
        root.removeHandler(old)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    file_handler = _file_handler(logs_dir / settings.logging.filename, settings.logging.rotation.lower())
    console = logging.StreamHandler()
    console.setLevel(level)
    for handler in (file_handler, console):
        handler.setFormatter(formatter)
        root.addHandler(handler)

    root.debug("logging ready: %s", logs_dir / settings.logging.filename)
    return root


__all__ = ["ComponentLogger", "setup_logging"]
