"""Catalog of template cards with memoized facet indexes.

A :class:`Catalog` is built wholesale from raw CSV text (the bundled template
or a user-supplied file) and never patched afterwards; reloading produces a
new instance with freshly computed indexes.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
import logging
from types import MappingProxyType

import pandas as pd

from common.card_schema import OTHER, Card, CardKey, Col
from common.csv_codec import parse_csv, rows_to_frame

logger = logging.getLogger(__name__)

ALL = "All"

# 単一選択 facet の列（候補の先頭に "All" を付ける）
SINGLE_SELECT_COLUMNS: tuple[str, ...] = (
    Col.UCM_STATUS,
    Col.WEBUI_STATUS,
    Col.CAMPAIGN,
)

# 複数選択 facet の列
MULTI_SELECT_COLUMNS: tuple[str, ...] = (
    Col.OWNER_GPM,
    Col.DMS_STATUS,
)

INDEXED_COLUMNS: tuple[str, ...] = (
    Col.PILLAR,
    Col.CATEGORY,
    *SINGLE_SELECT_COLUMNS,
    *MULTI_SELECT_COLUMNS,
)


def _distinct_sorted(cards: Iterable[Card], column: str) -> tuple[str, ...]:
    return tuple(sorted({c.get(column) for c in cards if c.get(column)}))


@dataclass(frozen=True)
class Catalog:
    """Ordered cards plus per-column distinct value indexes."""

    headers: tuple[str, ...] = ()
    cards: tuple[Card, ...] = ()
    _facet_index: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({}), repr=False, compare=False
    )

    @classmethod
    def empty(cls) -> "Catalog":
        return cls()

    @classmethod
    def from_rows(cls, headers: Sequence[str], rows: Iterable[Mapping[str, str]]) -> "Catalog":
        cards = tuple(Card.from_row(r) for r in rows)
        index: dict[str, tuple[str, ...]] = {}
        for column in INDEXED_COLUMNS:
            values = _distinct_sorted(cards, column)
            index[column] = (ALL, *values) if column in SINGLE_SELECT_COLUMNS else values
        return cls(headers=tuple(headers), cards=cards, _facet_index=MappingProxyType(index))

    @classmethod
    def load(cls, raw_text: str) -> "Catalog":
        """Parse CSV text and build a new catalog."""
        headers, rows = parse_csv(raw_text)
        catalog = cls.from_rows(headers, rows)
        logger.info("catalog loaded: %d cards, %d columns", len(catalog), len(headers))
        return catalog

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self):
        return iter(self.cards)

    @property
    def is_loaded(self) -> bool:
        return bool(self.headers)

    def facet_values(self, column: str) -> tuple[str, ...]:
        """Cached distinct values of ``column``; empty when unloaded/unknown.

        Columns outside the prebuilt index (e.g. the "Can apply to ..."
        columns) are computed on demand without "All".
        """
        if column in self._facet_index:
            return self._facet_index[column]
        if column not in self.headers:
            return ()
        return _distinct_sorted(self.cards, column)

    def pillars_and_categories(self) -> dict[str, list[str]]:
        """Navigation tree: pillar -> categories, first-seen order.

        Blank values and the catch-all "Other" are left out.
        """
        tree: dict[str, list[str]] = {}
        for card in self.cards:
            pillar = card.pillar
            if not pillar or pillar == OTHER:
                continue
            cats = tree.setdefault(pillar, [])
            category = card.category
            if category and category != OTHER and category not in cats:
                cats.append(category)
        return tree

    def find(self, key: CardKey) -> Card | None:
        for card in self.cards:
            if card.key == key:
                return card
        return None

    def to_frame(self, columns: Sequence[str] | None = None, cards: Iterable[Card] | None = None) -> pd.DataFrame:
        """DataFrame of ``cards`` (default: all) restricted to ``columns``."""
        cols = list(columns) if columns is not None else list(self.headers)
        source = self.cards if cards is None else cards
        return rows_to_frame(cols, (c.values for c in source))


__all__ = ["ALL", "Catalog", "SINGLE_SELECT_COLUMNS", "MULTI_SELECT_COLUMNS"]
