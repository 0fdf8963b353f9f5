"""統一エラーハンドリングフレームワーク

コンフィギュレーター内部の失敗は例外として送出し、``core.configurator`` の
境界で CommandResult の通知へ変換する。UI 側に例外が漏れることはない。

Usage:
    from common.error_handling import CapacityExceededError, LoadError

    raise LoadError("template.csv を読み込めません", path="data/template.csv")

    try:
        ...
    except ConfigError as exc:
        handle_command_error(component_logger, "テンプレート読み込み", exc)
        return CommandResult.failure(exc.notice)
"""

from __future__ import annotations

from typing import Any

from common.exceptions import CodedError, ErrorCode
from common.logging_utils import ComponentLogger

# ===== カスタム例外階層 =====


class ConfigError(CodedError):
    """コンフィギュレーター内部で想定される失敗の基底例外

    ``code`` はサブクラスごとのクラス属性。``str(exc)`` はメッセージに
    コンテキスト（ファイル名・pillar 等）を添えたログ向けの 1 行、
    ``notice`` は UI 通知向けのメッセージのみ。
    """

    code: str = ""

    def __init__(self, message: str, **context: Any):
        super().__init__(type(self).code, message, context)

    @property
    def context(self) -> dict[str, Any]:
        return self.details

    def _render(self) -> str:
        if not self.details:
            return self.message
        extras = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({extras})"

    @property
    def notice(self) -> str:
        return self.message


class LoadError(ConfigError):
    """テンプレート/アップロードの読み込み失敗

    使用例:
        - ファイルが存在しない、読めない
        - 文字コードを判別できない
        - ヘッダー行が空
    """

    code = ErrorCode.DATA_LOAD_FAILED


class CapacityExceededError(ConfigError):
    """pillar の重み上限を超える更新

    使用例:
        - 他カードだけで既に上限 (20) に達している pillar への重み設定
        - 5 pillar 以外のカードへの重み設定
    """

    code = ErrorCode.CALC_CAPACITY_EXCEEDED

    def __init__(self, message: str, *, pillar: str, used: Any = None, budget: Any = None):
        super().__init__(message, pillar=pillar, used=used, budget=budget)
        self.pillar = pillar
        self.used = used
        self.budget = budget


class FilterError(ConfigError):
    """facet 名や facet 値の誤用（呼び出し側のプログラミングエラー）"""

    code = ErrorCode.CALC_FILTER_ERROR


class ExportError(ConfigError):
    """エクスポートファイルの書き出し失敗"""

    code = ErrorCode.SYSTEM_EXPORT_ERROR


# ===== ヘルパー関数 =====


def handle_command_error(
    logger: ComponentLogger,
    operation: str,
    exc: Exception,
    **context: Any,
) -> None:
    """コマンド失敗の統一ハンドリング

    ConfigError は想定内の失敗として WARNING、それ以外はトレースバック付きで
    ERROR に記録する。

    Args:
        logger: ComponentLogger インスタンス
        operation: 操作名（例: "テンプレート読み込み", "重み設定"）
        exc: 例外インスタンス
        **context: コンテキスト情報
    """
    if isinstance(exc, ConfigError):
        code = exc.code or "-"
        logger.warning(f"[{code}] {operation} failed: {exc}", **context)
    else:
        logger.exception(f"{operation} failed", exc_info=exc, **context)


__all__ = [
    "ConfigError",
    "LoadError",
    "CapacityExceededError",
    "FilterError",
    "ExportError",
    "handle_command_error",
]
