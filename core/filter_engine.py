"""Facet filters over the catalog.

The engine keeps one selection per facet and evaluates their conjunction per
card. Nothing is cached between calls: candidate sets and counts are
recomputed from the current selections every time, which is cheap at
template scale (a few hundred rows).

Facet kinds:

- ``single``: one value or ``"All"``.
- ``multi``: a set of values. Empty set hides every card; the full set of
  discovered values (or a never-touched facet) lets every card through.
- ``tri``: ``"Yes"`` / ``"No"`` / ``"All"`` against an "applies" marker. "No"
  means the literal ``"-"`` marker unless the facet is declared negating.
- ``text``: case-insensitive substring over every column; empty passes.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
import logging
from types import MappingProxyType
from typing import Any

from common.card_schema import NOT_APPLICABLE, Card, CardKey, Col
from common.error_handling import FilterError
from config.environment import get_env_config
from core.catalog import ALL, Catalog

logger = logging.getLogger(__name__)

YES = "Yes"
NO = "No"
TRI_OPTIONS: tuple[str, ...] = (YES, NO, ALL)

# WebUI status の表示ラベル → テンプレート上の値
WEBUI_STATUS_LABELS: Mapping[str, str] = MappingProxyType(
    {
        "Available": "WebUI Ready",
        "Partially available": "WebUI Partially Ready",
        "Not available": "WebUI Not Ready",
    }
)

UCM_DMS_MARKER = "Included in UCM DMS"


class FacetKind(str, Enum):
    SINGLE = "single"
    MULTI = "multi"
    TRI = "tri"
    TEXT = "text"


@dataclass(frozen=True)
class FacetSpec:
    """Static description of one facet."""

    name: str
    kind: FacetKind
    column: str | None = None
    # tri: value meaning "applies"; defaults to the column name itself
    marker: str | None = None
    # tri: value meaning "does not apply"; None means "anything but marker"
    no_marker: str | None = NOT_APPLICABLE
    # single: display label -> stored value
    aliases: Mapping[str, str] = field(default_factory=dict)

    @property
    def applies_marker(self) -> str:
        return self.marker or self.column or self.name


def _tri(column: str, **kwargs: Any) -> FacetSpec:
    return FacetSpec(name=column, kind=FacetKind.TRI, column=column, **kwargs)


CAMPAIGN_TYPES: tuple[str, ...] = ("Search", "Pmax", "Shopping", "DNV")

FACETS: tuple[FacetSpec, ...] = (
    FacetSpec(Col.UCM_STATUS, FacetKind.SINGLE, Col.UCM_STATUS),
    FacetSpec(Col.WEBUI_STATUS, FacetKind.SINGLE, Col.WEBUI_STATUS, aliases=WEBUI_STATUS_LABELS),
    FacetSpec(Col.CAMPAIGN, FacetKind.SINGLE, Col.CAMPAIGN),
    FacetSpec(Col.OWNER_GPM, FacetKind.MULTI, Col.OWNER_GPM),
    FacetSpec(Col.DMS_STATUS, FacetKind.MULTI, Col.DMS_STATUS),
    FacetSpec(
        "Included in UCM DMS",
        FacetKind.TRI,
        Col.UCM_STATUS,
        marker=UCM_DMS_MARKER,
        no_marker=None,
    ),
    _tri("Can apply to account level"),
    _tri("Can apply to manager account level"),
    _tri("Can apply to campaign level"),
    _tri("Can apply to new campaign"),
    _tri("Can apply to existing campaign"),
    *(_tri(f"Can apply to {t} campaign") for t in CAMPAIGN_TYPES),
    *(_tri(f"Already apply to {t} campaign") for t in CAMPAIGN_TYPES),
    FacetSpec("Search", FacetKind.TEXT),
)

OWNER_FACET = Col.OWNER_GPM


def _normalize_tri(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    for option in TRI_OPTIONS:
        if value.strip().lower() == option.lower():
            return option
    return None


class FilterEngine:
    """Mutable facet selections plus the composite predicate.

    Args:
        facets: facet definitions (default: :data:`FACETS`)
        defaults: facet name -> initial selection, overriding "All"/full
    """

    def __init__(
        self,
        facets: Iterable[FacetSpec] = FACETS,
        defaults: Mapping[str, Any] | None = None,
    ) -> None:
        self._specs: dict[str, FacetSpec] = {f.name: f for f in facets}
        self._defaults: dict[str, Any] = {}
        for name, value in (defaults or {}).items():
            if name not in self._specs:
                logger.warning("ignoring default for unknown facet %r", name)
                continue
            self._defaults[name] = value
        # multi facet -> values discovered at first load
        self._universe: dict[str, frozenset[str]] = {}
        self._state: dict[str, Any] = {}
        self._initialized = False
        self.pillar: str | None = None
        self.category: str | None = None
        self.reset()

    # ------------------------------------------------------------------
    # state
    # ------------------------------------------------------------------
    @property
    def specs(self) -> Mapping[str, FacetSpec]:
        return MappingProxyType(self._specs)

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _spec(self, name: str) -> FacetSpec:
        try:
            return self._specs[name]
        except KeyError:
            raise FilterError(f"unknown facet: {name}", facet=name) from None

    def _coerce(self, spec: FacetSpec, value: Any) -> Any:
        if spec.kind is FacetKind.TRI:
            norm = _normalize_tri(value)
            if norm is None:
                raise FilterError(
                    f"{spec.name} expects one of {', '.join(TRI_OPTIONS)}", facet=spec.name, value=value
                )
            return norm
        if spec.kind is FacetKind.MULTI:
            if isinstance(value, str) or not isinstance(value, Iterable):
                raise FilterError(f"{spec.name} expects a collection of values", facet=spec.name)
            return {str(v) for v in value}
        if not isinstance(value, str):
            raise FilterError(f"{spec.name} expects a string", facet=spec.name, value=value)
        if spec.kind is FacetKind.SINGLE:
            return value.strip() or ALL
        return value

    def reset(self) -> None:
        """Restore every facet (and the navigation) to its default."""
        for name, spec in self._specs.items():
            if name in self._defaults:
                self._state[name] = self._coerce(spec, self._defaults[name])
            elif spec.kind is FacetKind.MULTI:
                universe = self._universe.get(name)
                # None = 未初期化（全件通過）
                self._state[name] = set(universe) if universe else None
            elif spec.kind is FacetKind.TEXT:
                self._state[name] = ""
            else:
                self._state[name] = ALL
        self.pillar = None
        self.category = None

    def initialize(self, catalog: Catalog) -> None:
        """Discover multi-facet options; only the first loaded catalog counts."""
        if self._initialized or not catalog.is_loaded:
            return
        for name, spec in self._specs.items():
            if spec.kind is not FacetKind.MULTI or spec.column is None:
                continue
            universe = frozenset(catalog.facet_values(spec.column))
            self._universe[name] = universe
            if self._state.get(name) is None and universe:
                self._state[name] = set(universe)
        self._initialized = True
        logger.debug(
            "filter facets initialised: %s",
            {k: len(v) for k, v in self._universe.items()},
        )

    def set_facet(self, name: str, value: Any) -> None:
        spec = self._spec(name)
        self._state[name] = self._coerce(spec, value)
        logger.debug("facet %s -> %r", name, self._state[name])

    def toggle_option(self, name: str, option: str) -> None:
        """Flip ``option`` in a multi facet (owner button semantics)."""
        spec = self._spec(name)
        if spec.kind is not FacetKind.MULTI:
            raise FilterError(f"{name} is not a multi-select facet", facet=name)
        current = self._state.get(name)
        selected = set(self._universe.get(name, ())) if current is None else set(current)
        if option in selected:
            selected.discard(option)
        else:
            selected.add(option)
        self._state[name] = selected

    def select_navigation(self, pillar: str | None = None, category: str | None = None) -> None:
        """Restrict candidates to one pillar (and optionally one category)."""
        self.pillar = pillar or None
        self.category = category or None

    def selection(self, name: str) -> Any:
        spec = self._spec(name)
        value = self._state.get(name)
        if spec.kind is FacetKind.MULTI:
            if value is None:
                return frozenset(self._universe.get(name, ()))
            return frozenset(value)
        return value

    def snapshot(self) -> dict[str, Any]:
        """Copy of every facet selection, for display or persistence."""
        out: dict[str, Any] = {}
        for name in self._specs:
            value = self.selection(name)
            out[name] = sorted(value) if isinstance(value, frozenset) else value
        out["_pillar"] = self.pillar
        out["_category"] = self.category
        return out

    # ------------------------------------------------------------------
    # evaluation
    # ------------------------------------------------------------------
    def _passes(self, spec: FacetSpec, selected: Any, card: Card) -> bool:
        if spec.kind is FacetKind.MULTI:
            if selected is None:
                return True
            if not selected:
                return False
            universe = self._universe.get(spec.name)
            if universe and universe <= selected:
                return True
            return card.get(spec.column or spec.name) in selected

        if spec.kind is FacetKind.TEXT:
            needle = str(selected or "").strip().lower()
            if not needle:
                return True
            return any(needle in v.lower() for v in card.values.values())

        if selected == ALL or selected is None:
            return True
        value = card.get(spec.column or spec.name)

        if spec.kind is FacetKind.TRI:
            marker = spec.applies_marker
            if selected == YES:
                return value == marker
            if spec.no_marker is None:
                return value != marker
            return value == spec.no_marker

        raw = spec.aliases.get(selected, selected)
        return value == raw

    def evaluate(self, card: Card) -> bool:
        """Conjunction of every facet predicate (navigation excluded)."""
        for name, spec in self._specs.items():
            if not self._passes(spec, self._state.get(name), card):
                return False
        return True

    def _in_navigation(self, card: Card) -> bool:
        if self.pillar is None and self.category is None:
            return True
        if self.pillar is not None and card.pillar != self.pillar:
            return False
        return self.category is None or card.category == self.category

    def candidate_set(self, catalog: Catalog, selection_keys: Collection[CardKey] = ()) -> list[Card]:
        """Cards passing every facet and the navigation, minus selected keys."""
        self.initialize(catalog)
        keys = selection_keys if isinstance(selection_keys, (set, frozenset)) else set(selection_keys)
        out = [
            card
            for card in catalog.cards
            if self._in_navigation(card) and card.key not in keys and self.evaluate(card)
        ]
        if get_env_config().filter_debug:
            self._emit_filter_debug(catalog, len(out))
        return out

    def count(self, catalog: Catalog, pillar: str | None = None, category: str | None = None) -> int:
        self.initialize(catalog)
        return sum(
            1
            for card in catalog.cards
            if (pillar is None or card.pillar == pillar)
            and (category is None or card.category == category)
            and self.evaluate(card)
        )

    def navigation_counts(self, catalog: Catalog) -> dict[str, tuple[int, dict[str, int]]]:
        """pillar -> (count, {category: count}) over the navigation tree."""
        tree = catalog.pillars_and_categories()
        return {
            pillar: (
                self.count(catalog, pillar),
                {cat: self.count(catalog, pillar, cat) for cat in categories},
            )
            for pillar, categories in tree.items()
        }

    def _emit_filter_debug(self, catalog: Catalog, final_len: int) -> None:
        total = len(catalog)
        parts = [f"total={total}"]
        for name, spec in self._specs.items():
            selected = self._state.get(name)
            passed = sum(1 for c in catalog.cards if self._passes(spec, selected, c))
            if passed != total:
                parts.append(f"{name}={passed}")
        parts.append(f"final={final_len}")
        logger.debug("[FDBG] %s", " ".join(parts))


__all__ = [
    "YES",
    "NO",
    "TRI_OPTIONS",
    "WEBUI_STATUS_LABELS",
    "FacetKind",
    "FacetSpec",
    "FACETS",
    "OWNER_FACET",
    "FilterEngine",
]
