"""Configurator context: one catalog, one filter state, one ledger.

Every user action maps to a command method. Commands never raise for the
expected failures (unreadable files, capacity, bad facet input); they log
through :func:`common.error_handling.handle_command_error` and return a
:class:`CommandResult` whose ``notice`` the UI shows as a toast.

Loads read and parse fully before swapping any state, so a failed load
leaves the previous catalog and selection untouched.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
import logging
from pathlib import Path
from typing import Any

import pandas as pd

from common.card_schema import EXPORT_COLUMNS, Card, CardKey, Col
from common.csv_codec import FALLBACK_ENCODINGS, Row, decode_bytes, parse_csv, serialize_csv
from common.error_handling import ConfigError, ExportError, LoadError, handle_command_error
from common.io_utils import read_bytes, unique_path, write_bytes
from common.logging_utils import ComponentLogger
from config.environment import get_env_config
from config.settings import Settings, get_facet_defaults, get_settings
from core.catalog import Catalog
from core.filter_engine import FilterEngine
from core.weight_ledger import LedgerStatus, PillarBudget, WeightLedger

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a command; ``level`` is one of info/success/warning/error."""

    ok: bool
    notice: str = ""
    level: str = "info"
    data: Any = None

    @classmethod
    def success(cls, notice: str = "", data: Any = None) -> "CommandResult":
        return cls(True, notice, "success" if notice else "info", data)

    @classmethod
    def warning(cls, notice: str, *, ok: bool = False) -> "CommandResult":
        return cls(ok, notice, "warning")

    @classmethod
    def failure(cls, notice: str) -> "CommandResult":
        return cls(False, notice, "error")

    @classmethod
    def unchanged(cls) -> "CommandResult":
        return cls(False)


@dataclass(frozen=True)
class ExportResult:
    filename: str
    data: bytes
    rows: int = 0


class Configurator:
    """Explicit state holder driven by the UI layer.

    Args:
        settings: application settings (default: :func:`get_settings`)
        log_callback: optional sink mirroring log lines into the UI
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        log_callback: Callable[[str], None] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        env = get_env_config()
        self._log = ComponentLogger.create("Configurator", logger=logger, log_callback=log_callback)
        self.catalog: Catalog = Catalog.empty()
        self.filters = FilterEngine(defaults=get_facet_defaults(self.settings))
        self.ledger = WeightLedger(self.settings.budget.pillars, log_callback=log_callback)
        self.source_name = ""
        self._notices: deque[tuple[str, str]] = deque(maxlen=max(1, env.notice_history))

    # ------------------------------------------------------------------
    # notices
    # ------------------------------------------------------------------
    @property
    def notices(self) -> tuple[tuple[str, str], ...]:
        """Recent ``(level, notice)`` pairs, oldest first."""
        return tuple(self._notices)

    def _record(self, result: CommandResult) -> CommandResult:
        if result.notice:
            self._notices.append((result.level, result.notice))
        return result

    def _fail(self, operation: str, exc: Exception, **context: Any) -> CommandResult:
        handle_command_error(self._log, operation, exc, **context)
        notice = exc.notice if isinstance(exc, ConfigError) else f"{operation} failed"
        return self._record(CommandResult.failure(notice))

    # ------------------------------------------------------------------
    # loading
    # ------------------------------------------------------------------
    def _decode(self, data: bytes, source: str) -> str:
        encodings = tuple(dict.fromkeys((self.settings.catalog.encoding, *FALLBACK_ENCODINGS)))
        try:
            return decode_bytes(data, encodings)
        except (UnicodeDecodeError, LookupError) as exc:
            raise LoadError(f"Could not decode {source}", source=source) from exc

    def _parse(self, text: str, source: str) -> tuple[list[str], list[Row]]:
        headers, rows = parse_csv(text)
        if not headers:
            raise LoadError(f"{source} has no header row", source=source)
        return headers, rows

    def _replace_catalog(self, headers: Sequence[str], rows: Sequence[Row], source: str) -> None:
        self.catalog = Catalog.from_rows(headers, rows)
        self.filters.initialize(self.catalog)
        self.source_name = source
        self._log.info("catalog replaced", source=source, cards=len(self.catalog))

    def load_template(self, path: str | Path | None = None) -> CommandResult:
        """Read the template CSV and replace the catalog."""
        target = Path(path) if path is not None else Path(self.settings.TEMPLATE_CSV)
        try:
            try:
                data = read_bytes(target)
            except OSError as exc:
                raise LoadError(
                    f"Failed to load template cards from {target.name}", path=str(target)
                ) from exc
            headers, rows = self._parse(self._decode(data, target.name), target.name)
        except ConfigError as exc:
            return self._fail("template load", exc)
        self._replace_catalog(headers, rows, target.name)
        return self._record(CommandResult.success(data=len(self.catalog)))

    def import_file(self, data: bytes, filename: str = "") -> CommandResult:
        """Import an uploaded file.

        A file carrying ``WebUI Weightage`` on any row restores a previously
        exported selection; any other file replaces the catalog.
        """
        source = filename or "uploaded file"
        try:
            headers, rows = self._parse(self._decode(data, source), source)
        except ConfigError as exc:
            return self._fail("file import", exc, filename=source)

        if any(row.get(Col.WEBUI_WEIGHTAGE) for row in rows):
            previous = self.ledger.selection
            restored = self.ledger.reload(rows)
            if restored == 0:
                self.ledger.replace(previous)
                return self._record(CommandResult.warning(f"No weighted cards found in {source}"))
            self.source_name = source
            return self._record(CommandResult.success(f"Loaded {restored} cards with weightage", data=restored))

        self._replace_catalog(headers, rows, source)
        return self._record(CommandResult.success(f"Loaded {len(self.catalog)} cards from {source}", data=len(self.catalog)))

    # ------------------------------------------------------------------
    # export
    # ------------------------------------------------------------------
    def export_rows(self) -> list[dict[str, str]]:
        decimals = self.settings.export.weight_decimals
        return [
            card.to_row(weight_column=Col.WEBUI_WEIGHTAGE, decimals=decimals)
            for card in self.ledger.selection
        ]

    def export_selection(self, filename: str | None = None) -> ExportResult:
        """Serialize the selection in the fixed export column order."""
        name = (filename or "").strip() or self.settings.export.default_filename
        rows = self.export_rows()
        text = serialize_csv(EXPORT_COLUMNS, rows)
        self._log.info("selection exported", filename=name, rows=len(rows))
        return ExportResult(filename=name, data=text.encode("utf-8"), rows=len(rows))

    def save_export(self, result: ExportResult, directory: str | Path | None = None) -> CommandResult:
        if directory is not None:
            base = Path(directory)
        else:
            base = Path(self.settings.EXPORT_DIR)
            namespace = get_env_config().run_namespace
            if namespace:
                base = base / namespace
        path = unique_path(base, result.filename)
        try:
            try:
                write_bytes(path, result.data)
            except OSError as exc:
                raise ExportError(f"Error saving {result.filename}", path=str(path)) from exc
        except ConfigError as exc:
            return self._fail("export", exc)
        return self._record(CommandResult.success(f"File saved: {path.name}", data=path))

    # ------------------------------------------------------------------
    # filters
    # ------------------------------------------------------------------
    def set_facet(self, name: str, value: Any) -> CommandResult:
        try:
            self.filters.set_facet(name, value)
        except ConfigError as exc:
            return self._fail("facet update", exc, facet=name)
        return CommandResult.success()

    def toggle_facet_option(self, name: str, option: str) -> CommandResult:
        try:
            self.filters.toggle_option(name, option)
        except ConfigError as exc:
            return self._fail("facet toggle", exc, facet=name)
        return CommandResult.success()

    def reset_filters(self) -> CommandResult:
        self.filters.reset()
        return CommandResult.success()

    def select_navigation(self, pillar: str | None = None, category: str | None = None) -> CommandResult:
        self.filters.select_navigation(pillar, category)
        return CommandResult.success()

    # ------------------------------------------------------------------
    # selection
    # ------------------------------------------------------------------
    def add_selection(self, card: Card) -> CommandResult:
        result = self.ledger.add(card)
        if result.status is LedgerStatus.DUPLICATE:
            return CommandResult.unchanged()
        return CommandResult.success()

    def remove_selection(self, key: CardKey) -> CommandResult:
        result = self.ledger.remove(key)
        return CommandResult.success() if result.ok else CommandResult.unchanged()

    def set_weight(self, key: CardKey, text: str | None) -> CommandResult:
        result = self.ledger.set_weight(key, text)
        if result.status is LedgerStatus.IGNORED:
            return CommandResult.unchanged()
        if result.status in (LedgerStatus.REJECTED, LedgerStatus.MISSING):
            return self._record(CommandResult.warning(result.notice))
        if result.status is LedgerStatus.CLAMPED:
            return self._record(CommandResult.warning(result.notice, ok=True))
        return CommandResult.success(data=result.weightage)

    # ------------------------------------------------------------------
    # read-only views
    # ------------------------------------------------------------------
    @property
    def selection(self) -> tuple[Card, ...]:
        return self.ledger.selection

    def candidates(self) -> list[Card]:
        return self.filters.candidate_set(self.catalog, self.ledger.keys)

    def candidates_frame(self, columns: Sequence[str] | None = None) -> pd.DataFrame:
        return self.catalog.to_frame(columns, cards=self.candidates())

    def count(self, pillar: str | None = None, category: str | None = None) -> int:
        return self.filters.count(self.catalog, pillar, category)

    def navigation(self) -> dict[str, tuple[int, dict[str, int]]]:
        return self.filters.navigation_counts(self.catalog)

    def facet_values(self, column: str) -> tuple[str, ...]:
        return self.catalog.facet_values(column)

    def selection_groups(self) -> dict[str, dict[str, list[Card]]]:
        return self.ledger.grouped_by_category()

    def weight_summary(self) -> list[PillarBudget]:
        return self.ledger.summary()

    def category_weights(self, pillar: str) -> Mapping[str, Decimal]:
        return self.ledger.category_weights(pillar)


__all__ = ["CommandResult", "ExportResult", "Configurator"]
