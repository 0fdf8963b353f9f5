"""実行時スイッチ（環境変数）の読み取り。

YAML 設定とは別に、ログやデバッグ出力などプロセス単位で切り替えたい値だけを
ここで扱う。値は ``get_env_config()`` の初回呼び出し時に読み込まれる。

    >>> from config.environment import get_env_config
    >>> get_env_config().filter_debug
    False
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
import os

_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _get_bool_env(key: str, default: bool = False) -> bool:
    raw = os.environ.get(key, "").strip().lower()
    return raw in _TRUTHY if raw else default


def _get_int_env(key: str, default: int) -> int:
    """数値でなければ default。"""
    raw = os.environ.get(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _get_str_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _emoji_disabled() -> bool:
    # 旧名 DISABLE_EMOJI も受け付ける
    return _get_bool_env("NO_EMOJI") or _get_bool_env("DISABLE_EMOJI")


@dataclass
class EnvironmentConfig:
    """プロセス単位のスイッチ一覧。

    Attributes:
        compact_logs: COMPACT_LOGS。INFO を DEBUG に落としてログを短くする
        no_emoji: NO_EMOJI / DISABLE_EMOJI。通知から絵文字を外す
        filter_debug: FILTER_DEBUG。facet ごとの残件数を DEBUG ログに出す
        notice_history: NOTICE_HISTORY。Configurator が覚えておく通知の数
        run_namespace: RUN_NAMESPACE。エクスポート先のサブフォルダ名
    """

    compact_logs: bool = field(default_factory=lambda: _get_bool_env("COMPACT_LOGS"))
    no_emoji: bool = field(default_factory=_emoji_disabled)
    filter_debug: bool = field(default_factory=lambda: _get_bool_env("FILTER_DEBUG"))
    notice_history: int = field(default_factory=lambda: _get_int_env("NOTICE_HISTORY", 20))
    run_namespace: str = field(default_factory=lambda: _get_str_env("RUN_NAMESPACE"))

    def validate(self) -> list[str]:
        """おかしな値があれば説明文を返す（空リストなら問題なし）。"""
        problems: list[str] = []
        if self.notice_history < 1:
            problems.append(f"NOTICE_HISTORY must be >= 1 (got {self.notice_history})")
        if "/" in self.run_namespace or "\\" in self.run_namespace:
            problems.append(f"RUN_NAMESPACE must not contain path separators: {self.run_namespace!r}")
        return problems


@lru_cache(maxsize=1)
def get_env_config() -> EnvironmentConfig:
    return EnvironmentConfig()


def reset_env_config_cache() -> None:
    """os.environ を書き換えた後に呼ぶ（主にテスト用）。"""
    get_env_config.cache_clear()


__all__ = [
    "EnvironmentConfig",
    "get_env_config",
    "reset_env_config_cache",
]
