"""Card record and column schema shared by catalog, filters and ledger.

A card is one template row. The template carries a few dozen columns and
new ones appear over time, so a :class:`Card` keeps the full column mapping
(read-only) and exposes typed accessors for the columns the configurator
actually reasons about.

Selection identity is the composite :class:`CardKey`; ``Item`` on its own is
not unique in the template.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import NamedTuple


class Col:
    """Column names as they appear in the template header."""

    ITEM = "Item"
    PILLAR = "Pillar"
    CATEGORY = "Category"
    UCM_STATUS = "UCM status"
    WEBUI_STATUS = "WebUI status"
    UCM_DMS_WEIGHTAGE = "UCM DMS Weightage"
    CAMPAIGN = "Campaign"
    CAMPAIGN_CREATION = "Campaign creation"
    EXISTING_CAMPAIGN = "Existing campaign"
    NOTES = "Notes"
    WEBUI_WEIGHTAGE = "WebUI Weightage"
    DMS_STATUS = "DMS status"
    UCM_DMS = "UCM DMS"
    TACTIC_CODE = "Tactic code"
    OWNER_GPM = "Owner GPM"


PILLARS: tuple[str, ...] = ("Targeting", "Budget & Bidding", "Audience", "Ads", "Measurement")

# 5 列すべてが一致したときだけ同一カードとみなす
KEY_COLUMNS: tuple[str, ...] = (
    Col.ITEM,
    Col.UCM_DMS_WEIGHTAGE,
    Col.UCM_STATUS,
    Col.WEBUI_STATUS,
    Col.CAMPAIGN,
)

EXPORT_COLUMNS: tuple[str, ...] = (
    Col.PILLAR,
    Col.CATEGORY,
    Col.ITEM,
    Col.UCM_DMS_WEIGHTAGE,
    Col.UCM_STATUS,
    Col.WEBUI_STATUS,
    Col.CAMPAIGN,
    Col.CAMPAIGN_CREATION,
    Col.EXISTING_CAMPAIGN,
    Col.NOTES,
    Col.WEBUI_WEIGHTAGE,
)

NOT_APPLICABLE = "-"
OTHER = "Other"


class CardKey(NamedTuple):
    item: str
    ucm_dms_weightage: str
    ucm_status: str
    webui_status: str
    campaign: str

    @classmethod
    def from_mapping(cls, row: Mapping[str, object]) -> "CardKey":
        return cls(*(str(row.get(col, "") or "") for col in KEY_COLUMNS))

    def label(self) -> str:
        extras = [v for v in self[1:] if v]
        return f"{self.item} [{' | '.join(extras)}]" if extras else self.item


def parse_weight(text: object) -> Decimal | None:
    """Decimal value of a stored weight, ``None`` when unset or unparsable."""
    if text is None:
        return None
    s = str(text).strip()
    if not s:
        return None
    try:
        value = Decimal(s)
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def format_weight(value: Decimal | float | int) -> str:
    """Canonical text for a weight: at most two decimals, no trailing zeros."""
    d = Decimal(str(value)).quantize(Decimal("0.01"))
    text = format(d, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


@dataclass(frozen=True)
class Card:
    """Immutable template row, optionally carrying an assigned weight.

    ``weightage`` is ``None`` (absent, not zero) until a weight is set.
    """

    values: Mapping[str, str] = field(hash=False)
    weightage: str | None = None

    def __post_init__(self) -> None:
        frozen = MappingProxyType({str(k): "" if v is None else str(v) for k, v in self.values.items()})
        object.__setattr__(self, "values", frozen)

    @classmethod
    def from_row(cls, row: Mapping[str, object], weightage: str | None = None) -> "Card":
        return cls(values=dict(row), weightage=weightage)  # type: ignore[arg-type]

    def get(self, column: str, default: str = "") -> str:
        return self.values.get(column, default)

    def __getitem__(self, column: str) -> str:
        return self.values[column]

    @property
    def item(self) -> str:
        return self.get(Col.ITEM)

    @property
    def pillar(self) -> str:
        return self.get(Col.PILLAR)

    @property
    def category(self) -> str:
        return self.get(Col.CATEGORY)

    @property
    def owner(self) -> str:
        return self.get(Col.OWNER_GPM)

    @property
    def key(self) -> CardKey:
        return CardKey.from_mapping(self.values)

    @property
    def weight(self) -> Decimal | None:
        return parse_weight(self.weightage)

    @property
    def has_weight(self) -> bool:
        return self.weightage is not None

    def with_weightage(self, weightage: str | None) -> "Card":
        return replace(self, weightage=weightage)

    def to_row(self, *, weight_column: str | None = None, decimals: int = 2) -> dict[str, str]:
        """Plain dict of the row; ``weight_column`` adds the weight as ``<n>%``."""
        row = dict(self.values)
        if weight_column:
            w = self.weight
            row[weight_column] = f"{w:.{decimals}f}%" if w is not None else ""
        return row


__all__ = [
    "Col",
    "PILLARS",
    "KEY_COLUMNS",
    "EXPORT_COLUMNS",
    "NOT_APPLICABLE",
    "OTHER",
    "CardKey",
    "Card",
    "parse_weight",
    "format_weight",
]
