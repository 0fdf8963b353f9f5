from __future__ import annotations

from collections.abc import Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

from common.exceptions import DataValidationError

# mypy: disable-error-code=call-arg

DEFAULT_PILLAR_BUDGETS: dict[str, float] = {
    "Targeting": 20.0,
    "Budget & Bidding": 20.0,
    "Audience": 20.0,
    "Ads": 20.0,
    "Measurement": 20.0,
}


class CatalogModel(BaseModel):
    template_csv: str = "data/template.csv"
    encoding: str = "utf-8"


class BudgetModel(BaseModel):
    pillars: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_PILLAR_BUDGETS))

    @field_validator("pillars")
    @classmethod
    def _non_negative(cls, v: dict[str, float]):
        for name, budget in v.items():
            if budget < 0:
                raise ValueError(f"budget for pillar {name!r} must be >= 0")
        return v


class ExportModel(BaseModel):
    default_filename: str = "new.csv"
    weight_decimals: int = Field(2, ge=0, le=4)


class OutputsModel(BaseModel):
    exports_dir: str = "exports"
    logs_dir: str = "logs"


class LoggingModel(BaseModel):
    level: str = "INFO"
    rotation: str = "daily"
    filename: str = "configurator.log"


class UIModel(BaseModel):
    page_title: str = "DMS Card Configurator"
    show_inventory_table: bool = True
    debug_mode: bool = False


class AppConfigModel(BaseModel):
    catalog: CatalogModel = CatalogModel()
    budget: BudgetModel = BudgetModel()
    export: ExportModel = ExportModel()
    outputs: OutputsModel = OutputsModel()
    logging: LoggingModel = LoggingModel()
    ui: UIModel = UIModel()
    facets: Mapping[str, Mapping[str, object]] = Field(default_factory=dict)

    @field_validator("logging")
    @classmethod
    def _normalize_logging(cls, v: LoggingModel):
        v.level = v.level.upper()
        return v


def validate_config_dict(d: Mapping[str, object]) -> AppConfigModel:
    """YAML/JSON の辞書を検証し、正規化したモデルを返す。

    Raises:
        DataValidationError: 型・範囲が合わない値があるとき
    """
    try:
        return AppConfigModel.model_validate(d)
    except ValidationError as exc:
        raise DataValidationError(f"invalid configuration: {exc.error_count()} error(s)") from exc
