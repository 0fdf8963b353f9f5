"""アプリ設定の読み込み.

優先度: 環境変数 (.env 含む) > config/config.json > config/config.yaml > コード既定値

``get_settings()`` はプロセス内でキャッシュされる。テストや Streamlit の
再実行で環境変数を変えたときは ``get_settings.cache_clear()`` を呼ぶ。
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
import json
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
import yaml  # type: ignore[import-untyped]

from common.exceptions import DataValidationError, ErrorCode, log_with_code

from .schemas import DEFAULT_PILLAR_BUDGETS, validate_config_dict

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[1]

# 既存の環境変数は上書きしない
load_dotenv(dotenv_path=PROJECT_ROOT / ".env", override=False)


# ===== セクション別 dataclass =====


@dataclass(frozen=True)
class CatalogConfig:
    template_csv: Path = Path("data/template.csv")
    encoding: str = "utf-8"


@dataclass(frozen=True)
class BudgetConfig:
    # pillar -> 上限。ここに無い pillar のカードは重みを持てない
    pillars: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_PILLAR_BUDGETS))

    @property
    def total(self) -> float:
        return float(sum(self.pillars.values()))


@dataclass(frozen=True)
class ExportConfig:
    default_filename: str = "new.csv"
    weight_decimals: int = 2


@dataclass(frozen=True)
class OutputConfig:
    exports_dir: Path = Path("exports")
    logs_dir: Path = Path("logs")


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"
    rotation: str = "daily"
    filename: str = "configurator.log"


@dataclass(frozen=True)
class UIConfig:
    page_title: str = "DMS Card Configurator"
    show_inventory_table: bool = True
    debug_mode: bool = False


@dataclass(frozen=True)
class Settings:
    """読み込み済みの設定一式。

    大文字のパス属性は絶対パスに解決済み。
    """

    PROJECT_ROOT: Path
    TEMPLATE_CSV: Path
    EXPORT_DIR: Path
    LOGS_DIR: Path

    catalog: CatalogConfig
    budget: BudgetConfig
    export: ExportConfig
    outputs: OutputConfig
    logging: LoggingConfig
    ui: UIConfig

    # facet 名 -> {"default": ...}
    facets: Mapping[str, Mapping[str, Any]]


# ===== 値の変換 =====


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def _coerce_int(val: Any, default: int) -> int:
    """int へ寄せる。bool/float/数字文字列を受け付け、それ以外は default。"""
    if isinstance(val, (bool, int)):
        return int(val)
    if isinstance(val, float):
        return int(val)
    if isinstance(val, str):
        try:
            return int(val.strip())
        except ValueError:
            return default
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes")


def _as_path(base: Path, p: str | os.PathLike) -> Path:
    pth = Path(p)
    return pth if pth.is_absolute() else base / pth


# ===== ファイル読み込み =====


def _load_config_generic(env_var: str, default_path: Path, loader) -> dict[str, Any]:
    """``env_var`` が指すファイル（無ければ ``default_path``）を ``loader`` で読む。

    ファイルが無い・壊れているときは空辞書。
    """
    override = os.getenv(env_var, "")
    path = Path(override) if override else default_path
    if not path.exists():
        return {}
    try:
        with open(path, encoding="utf-8") as fh:
            loaded = loader(fh)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.warning("config file ignored: %s (%s)", path, exc)
        return {}
    return loaded if isinstance(loaded, dict) else {}


def _read_raw_config(root: Path) -> dict[str, Any]:
    data = _load_config_generic("APP_CONFIG_JSON", root / "config" / "config.json", json.load)
    if not data:
        data = _load_config_generic("APP_CONFIG", root / "config" / "config.yaml", yaml.safe_load)
    return data


def _validated(data: dict[str, Any]) -> dict[str, Any]:
    """pydantic で正規化する。通らなければ生の辞書を返し、_build_* 側で補正する。"""
    if not data:
        return data
    try:
        return validate_config_dict(data).model_dump()
    except DataValidationError as exc:
        log_with_code(logger, logging.WARNING, ErrorCode.SYSTEM_CONFIG_ERROR, str(exc), {"cause": exc.__cause__})
        return data


# ===== セクション構築 =====


def _section(cfg: Mapping[str, Any], name: str) -> dict[str, Any]:
    value = cfg.get(name)
    return dict(value) if isinstance(value, Mapping) else {}


def _build_catalog_config(cfg: dict[str, Any], root: Path) -> CatalogConfig:
    template = os.getenv("TEMPLATE_CSV") or cfg.get("template_csv") or "data/template.csv"
    return CatalogConfig(template_csv=_as_path(root, template), encoding=str(cfg.get("encoding") or "utf-8"))


def _build_budget_config(cfg: dict[str, Any]) -> BudgetConfig:
    pillars: dict[str, float] = {}
    raw = cfg.get("pillars")
    if isinstance(raw, Mapping):
        for name, value in raw.items():
            try:
                budget = float(value)
            except (TypeError, ValueError):
                continue
            if budget >= 0:
                pillars[str(name)] = budget
    if not pillars:
        pillars = dict(DEFAULT_PILLAR_BUDGETS)
    # PILLAR_BUDGET: 全 pillar 共通の上限
    if os.getenv("PILLAR_BUDGET"):
        uniform = _env_float("PILLAR_BUDGET", -1.0)
        if uniform >= 0:
            pillars = dict.fromkeys(pillars, uniform)
    return BudgetConfig(pillars=pillars)


def _build_export_config(cfg: dict[str, Any]) -> ExportConfig:
    filename = os.getenv("DEFAULT_EXPORT_FILENAME") or cfg.get("default_filename") or "new.csv"
    decimals = _coerce_int(cfg.get("weight_decimals", 2), 2)
    return ExportConfig(default_filename=str(filename), weight_decimals=max(0, min(4, decimals)))


def _build_outputs_config(cfg: dict[str, Any], root: Path) -> OutputConfig:
    exports = os.getenv("EXPORT_DIR") or cfg.get("exports_dir") or "exports"
    logs = os.getenv("LOGS_DIR") or cfg.get("logs_dir") or "logs"
    return OutputConfig(exports_dir=_as_path(root, exports), logs_dir=_as_path(root, logs))


def _build_logging_config(cfg: dict[str, Any]) -> LoggingConfig:
    return LoggingConfig(
        level=str(os.getenv("LOG_LEVEL") or cfg.get("level") or "INFO").upper(),
        rotation=str(cfg.get("rotation") or "daily"),
        filename=str(os.getenv("LOG_FILENAME") or cfg.get("filename") or "configurator.log"),
    )


def _build_ui_config(cfg: dict[str, Any]) -> UIConfig:
    return UIConfig(
        page_title=str(cfg.get("page_title") or "DMS Card Configurator"),
        show_inventory_table=_env_bool("SHOW_INVENTORY_TABLE", bool(cfg.get("show_inventory_table", True))),
        debug_mode=_env_bool("DEBUG_MODE", bool(cfg.get("debug_mode", False))),
    )


# ===== 公開 API =====


@lru_cache(maxsize=1)
def get_settings(create_dirs: bool = False) -> Settings:
    """設定を構築して返す。``create_dirs`` で exports/logs を作成する。"""
    root = PROJECT_ROOT
    cfg = _validated(_read_raw_config(root))

    catalog = _build_catalog_config(_section(cfg, "catalog"), root)
    outputs = _build_outputs_config(_section(cfg, "outputs"), root)
    settings = Settings(
        PROJECT_ROOT=root,
        TEMPLATE_CSV=catalog.template_csv,
        EXPORT_DIR=outputs.exports_dir,
        LOGS_DIR=outputs.logs_dir,
        catalog=catalog,
        budget=_build_budget_config(_section(cfg, "budget")),
        export=_build_export_config(_section(cfg, "export")),
        outputs=outputs,
        logging=_build_logging_config(_section(cfg, "logging")),
        ui=_build_ui_config(_section(cfg, "ui")),
        facets=_section(cfg, "facets"),
    )

    if create_dirs:
        for directory in (settings.EXPORT_DIR, settings.LOGS_DIR):
            directory.mkdir(parents=True, exist_ok=True)
    return settings


def get_facet_defaults(settings: Settings | None = None) -> dict[str, Any]:
    """facets.<name>.default を {name: default} で返す。"""
    s = settings or get_settings()
    return {
        str(name): entry["default"]
        for name, entry in s.facets.items()
        if isinstance(entry, Mapping) and "default" in entry
    }


__all__ = [
    "PROJECT_ROOT",
    "Settings",
    "CatalogConfig",
    "BudgetConfig",
    "ExportConfig",
    "OutputConfig",
    "LoggingConfig",
    "UIConfig",
    "get_settings",
    "get_facet_defaults",
]
