"""Selection set and per-pillar weight ledger.

Selected cards keep their template order of insertion and are identified by
:class:`~common.card_schema.CardKey`. Weights are stored as text (what the
operator typed, possibly clamped) and summed with :class:`~decimal.Decimal`
so the per-pillar budget check is exact.

Interactive entry (:meth:`WeightLedger.set_weight`) enforces the budget;
:meth:`WeightLedger.reload` trusts previously exported files and does not.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
import logging
import math
import re

import pandas as pd

from common.card_schema import OTHER, PILLARS, Card, CardKey, Col, format_weight
from common.error_handling import CapacityExceededError
from common.logging_utils import ComponentLogger

logger = logging.getLogger(__name__)

DEFAULT_BUDGET = Decimal("20")

# 12 / 12. / 12.5 / 12.55 / .5  (ASCII digits only, matched with fullmatch)
WEIGHT_PATTERN = re.compile(r"[0-9]+(\.[0-9]{0,2})?|\.[0-9]{1,2}")

HEALTH_CHECK = "Health check"
FEATURE_ADOPTION = "Feature adoption"
RECOMMENDATION = "Recommendation"
GROUP_ORDER: tuple[str, ...] = (HEALTH_CHECK, FEATURE_ADOPTION, RECOMMENDATION)

_TACTIC_RE = re.compile(r"^tactic\s*(\d+)", re.IGNORECASE)


class LedgerStatus(str, Enum):
    ADDED = "added"
    DUPLICATE = "duplicate"
    REMOVED = "removed"
    OK = "ok"
    CLAMPED = "clamped"
    CLEARED = "cleared"
    IGNORED = "ignored"
    REJECTED = "rejected"
    MISSING = "missing"


_SUCCESS = frozenset(
    {LedgerStatus.ADDED, LedgerStatus.REMOVED, LedgerStatus.OK, LedgerStatus.CLAMPED, LedgerStatus.CLEARED}
)


@dataclass(frozen=True)
class LedgerResult:
    """Outcome of one ledger mutation.

    ``notice`` is a user-facing line (empty when nothing needs saying);
    ``weightage`` is the stored text after the call.
    """

    status: LedgerStatus
    notice: str = ""
    weightage: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in _SUCCESS

    @property
    def changed(self) -> bool:
        return self.status not in (LedgerStatus.IGNORED, LedgerStatus.REJECTED, LedgerStatus.MISSING)


@dataclass(frozen=True)
class PillarBudget:
    pillar: str
    budget: Decimal
    used: Decimal

    @property
    def available(self) -> Decimal:
        return max(Decimal(0), self.budget - self.used)

    @property
    def ratio(self) -> float:
        if self.budget <= 0:
            return 0.0
        return float(min(self.used / self.budget, Decimal(1)))


def category_sort_key(category: str) -> tuple[int, int, str]:
    """Health check, Feature adoption, Tactic N (by N), then alphabetical."""
    lowered = category.strip().lower()
    if lowered == HEALTH_CHECK.lower():
        return (0, 0, "")
    if lowered == FEATURE_ADOPTION.lower():
        return (1, 0, "")
    m = _TACTIC_RE.match(lowered)
    if m:
        return (2, int(m.group(1)), category)
    return (3, 0, category)


def selection_group(category: str) -> str:
    """Right-panel group of a category (substring match, case-insensitive)."""
    lowered = category.lower()
    if "health check" in lowered:
        return HEALTH_CHECK
    if "feature" in lowered:
        return FEATURE_ADOPTION
    return RECOMMENDATION


def _parse_reload_weight(raw: object) -> str | None:
    text = str(raw or "").replace("%", "").strip()
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    try:
        return format_weight(value)
    except InvalidOperation:
        # 2 桁に丸めると Decimal の精度を超える値（1e30 など）
        return None


class WeightLedger:
    """Ordered selection set with budget-checked weights.

    Args:
        budgets: pillar -> budget. Only these pillars take part in weight
            accounting; defaults to the five pillars at 20 each.
        log_callback: optional sink for user-facing log lines
    """

    def __init__(
        self,
        budgets: Mapping[str, float | int | Decimal] | None = None,
        log_callback=None,
    ) -> None:
        if budgets is None:
            budgets = {p: DEFAULT_BUDGET for p in PILLARS}
        self._budgets: dict[str, Decimal] = {str(k): Decimal(str(v)) for k, v in budgets.items()}
        self._cards: list[Card] = []
        self._log = ComponentLogger.create("WeightLedger", logger=logger, log_callback=log_callback)

    # ------------------------------------------------------------------
    # selection set
    # ------------------------------------------------------------------
    @property
    def selection(self) -> tuple[Card, ...]:
        return tuple(self._cards)

    @property
    def keys(self) -> frozenset[CardKey]:
        return frozenset(c.key for c in self._cards)

    @property
    def pillars(self) -> tuple[str, ...]:
        return tuple(self._budgets)

    def __len__(self) -> int:
        return len(self._cards)

    def __contains__(self, key: object) -> bool:
        return any(c.key == key for c in self._cards)

    def _index(self, key: CardKey) -> int | None:
        for idx, card in enumerate(self._cards):
            if card.key == key:
                return idx
        return None

    def get(self, key: CardKey) -> Card | None:
        idx = self._index(key)
        return None if idx is None else self._cards[idx]

    def add(self, card: Card) -> LedgerResult:
        if card.key in self:
            return LedgerResult(LedgerStatus.DUPLICATE)
        self._cards.append(card.with_weightage(None))
        self._log.debug("selected", item=card.item, pillar=card.pillar)
        return LedgerResult(LedgerStatus.ADDED)

    def remove(self, key: CardKey) -> LedgerResult:
        idx = self._index(key)
        if idx is None:
            return LedgerResult(LedgerStatus.MISSING)
        removed = self._cards.pop(idx)
        self._log.debug("deselected", item=removed.item, pillar=removed.pillar)
        return LedgerResult(LedgerStatus.REMOVED)

    def replace(self, cards: Iterable[Card]) -> None:
        """Swap in ``cards`` as-is (used to roll back a failed import)."""
        self._cards = list(cards)

    def clear(self) -> None:
        self._cards.clear()

    # ------------------------------------------------------------------
    # weights
    # ------------------------------------------------------------------
    def budget(self, pillar: str) -> Decimal:
        return self._budgets.get(pillar, Decimal(0))

    def used_weight(self, pillar: str, *, exclude: CardKey | None = None) -> Decimal:
        total = Decimal(0)
        for card in self._cards:
            if card.pillar != pillar or (exclude is not None and card.key == exclude):
                continue
            w = card.weight
            if w is not None:
                total += w
        return total

    def available_weight(self, pillar: str) -> Decimal:
        return max(Decimal(0), self.budget(pillar) - self.used_weight(pillar))

    def _allowance(self, card: Card) -> Decimal:
        """Headroom for ``card``; raises when nothing is left."""
        pillar = card.pillar
        if pillar not in self._budgets:
            raise CapacityExceededError(
                f"'{card.item}' is not in a weighted pillar", pillar=pillar or "-"
            )
        budget = self._budgets[pillar]
        used = self.used_weight(pillar, exclude=card.key)
        if used >= budget:
            raise CapacityExceededError(
                f"{pillar} has no weight left ({format_weight(used)}/{format_weight(budget)})",
                pillar=pillar,
                used=used,
                budget=budget,
            )
        return budget - used

    def set_weight(self, key: CardKey, raw: str | None) -> LedgerResult:
        """Validate, clamp and store a weight typed by the operator.

        Empty input (or a numeric zero) clears the weight. Input outside the
        accepted grammar is ignored without a notice.
        """
        idx = self._index(key)
        if idx is None:
            return LedgerResult(LedgerStatus.MISSING, f"{key.item} is not selected")
        card = self._cards[idx]
        text = "" if raw is None else str(raw)

        if text == "":
            self._cards[idx] = card.with_weightage(None)
            return LedgerResult(LedgerStatus.CLEARED)
        if not WEIGHT_PATTERN.fullmatch(text):
            return LedgerResult(LedgerStatus.IGNORED, weightage=card.weightage)

        requested = Decimal(text)
        if requested == 0:
            self._cards[idx] = card.with_weightage(None)
            return LedgerResult(LedgerStatus.CLEARED)

        try:
            allowance = self._allowance(card)
        except CapacityExceededError as exc:
            self._log.warning("weight rejected", item=card.item, pillar=exc.pillar)
            return LedgerResult(LedgerStatus.REJECTED, exc.notice, weightage=card.weightage)

        stored = min(requested, allowance)
        weightage = format_weight(stored)
        self._cards[idx] = card.with_weightage(weightage)
        if stored < requested:
            notice = f"{card.pillar} weight capped at {weightage} (budget {format_weight(self.budget(card.pillar))})"
            self._log.info("weight clamped", item=card.item, requested=text, stored=weightage)
            return LedgerResult(LedgerStatus.CLAMPED, notice, weightage=weightage)
        return LedgerResult(LedgerStatus.OK, weightage=weightage)

    # ------------------------------------------------------------------
    # views
    # ------------------------------------------------------------------
    def category_weights(self, pillar: str) -> dict[str, Decimal]:
        sums: dict[str, Decimal] = {}
        for card in self._cards:
            w = card.weight
            if card.pillar != pillar or w is None:
                continue
            category = card.category or OTHER
            sums[category] = sums.get(category, Decimal(0)) + w
        return {cat: sums[cat] for cat in sorted(sums, key=category_sort_key)}

    def grouped_by_category(self) -> dict[str, dict[str, list[Card]]]:
        """Selection grouped by Health check / Feature adoption / Recommendation, then pillar."""
        groups: dict[str, dict[str, list[Card]]] = {g: {} for g in GROUP_ORDER}
        for card in self._cards:
            group = selection_group(card.category)
            groups[group].setdefault(card.pillar or OTHER, []).append(card)
        return groups

    def summary(self) -> list[PillarBudget]:
        return [PillarBudget(p, b, self.used_weight(p)) for p, b in self._budgets.items()]

    def summary_frame(self) -> pd.DataFrame:
        rows = [
            {
                "pillar": s.pillar,
                "budget": float(s.budget),
                "used": float(s.used),
                "available": float(s.available),
                "ratio": s.ratio,
            }
            for s in self.summary()
        ]
        return pd.DataFrame(rows, columns=["pillar", "budget", "used", "available", "ratio"])

    # ------------------------------------------------------------------
    # reload
    # ------------------------------------------------------------------
    def reload(self, rows: Iterable[Mapping[str, str]]) -> int:
        """Replace the selection from exported rows carrying ``<n>%`` weights.

        Rows whose weight does not parse are dropped. Budgets are not
        re-checked. Returns the number of cards kept.
        """
        cards: list[Card] = []
        seen: set[CardKey] = set()
        for row in rows:
            weightage = _parse_reload_weight(row.get(Col.WEBUI_WEIGHTAGE))
            if weightage is None:
                continue
            values = {k: v for k, v in row.items() if k != Col.WEBUI_WEIGHTAGE}
            card = Card.from_row(values, weightage=weightage)
            if card.key in seen:
                logger.debug("reload: duplicate key skipped: %s", card.key.label())
                continue
            seen.add(card.key)
            cards.append(card)
        self._cards = cards
        self._log.info("selection reloaded", cards=len(cards))
        return len(cards)


__all__ = [
    "DEFAULT_BUDGET",
    "WEIGHT_PATTERN",
    "GROUP_ORDER",
    "LedgerStatus",
    "LedgerResult",
    "PillarBudget",
    "WeightLedger",
    "category_sort_key",
    "selection_group",
]
