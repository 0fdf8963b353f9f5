"""Quoted comma-delimited text codec.

The template and export files are plain CSV with double-quote escaping, but
the configurator needs exact control over a few behaviours the ``csv`` module
and ``pandas.read_csv`` do differently:

- every field is trimmed, and a quote-wrapped field loses its wrapping quotes;
- rows shorter than the header are padded with ``""``;
- an unterminated quote never raises; the rest of the input is absorbed into
  the open field (line-feeds included). Records are split quote-aware so that
  quoted newlines survive a round trip, which means one stray unquoted ``"``
  (e.g. ``5" screen``) swallows every later row of the file, not just its own
  line;
- serialization quotes a field only when it contains a comma, a quote or a
  newline, and joins lines with a bare ``"\\n"``.

``parse_csv(serialize_csv(h, r)) == (h, r)`` holds whenever newlines occur
only inside quoted fields and no value carries leading/trailing whitespace.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
import logging

import pandas as pd

logger = logging.getLogger(__name__)

BOM = "\ufeff"
QUOTE = '"'
DELIMITER = ","
LINE_SEP = "\n"

# 先頭から順に試す（utf-8-sig は BOM 有無の両方を読める）
FALLBACK_ENCODINGS: tuple[str, ...] = ("utf-8-sig", "cp1252", "latin-1")

Row = dict[str, str]


def strip_bom(text: str) -> str:
    return text[1:] if text.startswith(BOM) else text


def decode_bytes(data: bytes, encodings: Sequence[str] = FALLBACK_ENCODINGS) -> str:
    """Decode an uploaded/template file, trying ``encodings`` in order.

    latin-1 maps every byte, so with the default list this never fails.
    Raises ``UnicodeDecodeError`` only when a caller passes a stricter list.
    """
    last_error: UnicodeDecodeError | None = None
    for enc in encodings:
        try:
            text = data.decode(enc)
        except UnicodeDecodeError as exc:
            last_error = exc
            continue
        if enc != encodings[0]:
            logger.debug("decoded %d bytes with fallback encoding %s", len(data), enc)
        return strip_bom(text)
    assert last_error is not None
    raise last_error


def split_records(text: str) -> list[str]:
    """Split ``text`` on line-feeds that sit outside quoted fields."""
    records: list[str] = []
    current: list[str] = []
    in_quotes = False
    for ch in text:
        if ch == QUOTE:
            # "" inside quotes toggles twice, so the state comes out unchanged
            in_quotes = not in_quotes
        elif ch == LINE_SEP and not in_quotes:
            records.append("".join(current))
            current = []
            continue
        current.append(ch)
    records.append("".join(current))
    return records


def parse_line(line: str) -> list[str]:
    """Scan one record into field values.

    Quote handling follows the template exporter: a doubled quote is always a
    literal quote, a single quote toggles the quoted state, and a comma only
    delimits outside quotes. Values are trimmed afterwards.
    """
    values: list[str] = []
    wrapped: list[bool] = []
    current: list[str] = []
    seen_content = False
    is_wrapped = False
    in_quotes = False

    i = 0
    n = len(line)
    while i < n:
        ch = line[i]
        if ch == QUOTE:
            if not seen_content:
                is_wrapped = True
                seen_content = True
            if i + 1 < n and line[i + 1] == QUOTE and (in_quotes or current):
                current.append(QUOTE)
                i += 2
                continue
            in_quotes = not in_quotes
        elif ch == DELIMITER and not in_quotes:
            values.append("".join(current))
            wrapped.append(is_wrapped)
            current = []
            seen_content = False
            is_wrapped = False
        else:
            if not seen_content and not ch.isspace():
                seen_content = True
            current.append(ch)
        i += 1
    values.append("".join(current))
    wrapped.append(is_wrapped)

    out: list[str] = []
    for value, was_wrapped in zip(values, wrapped):
        value = value.strip()
        # 引用符で囲まれていない値に残った外側の引用符は除去する
        if not was_wrapped and len(value) >= 2 and value[0] == QUOTE and value[-1] == QUOTE:
            value = value[1:-1]
        out.append(value)
    return out


def parse_csv(text: str) -> tuple[list[str], list[Row]]:
    """Parse CSV text into ``(headers, rows)``.

    Blank records are skipped; each row maps every header to a string (missing
    trailing fields become ``""``; surplus fields are dropped).
    """
    records = split_records(strip_bom(text))
    if not records or not records[0].strip():
        return [], []
    headers = parse_line(records[0])
    rows: list[Row] = []
    for record in records[1:]:
        if not record.strip():
            continue
        values = parse_line(record)
        rows.append({h: (values[idx] if idx < len(values) else "") for idx, h in enumerate(headers)})
    return headers, rows


def escape_field(value: object) -> str:
    """Quote-wrap (doubling embedded quotes) only when needed."""
    if value is None:
        return ""
    s = str(value)
    if DELIMITER in s or QUOTE in s or LINE_SEP in s:
        return QUOTE + s.replace(QUOTE, QUOTE + QUOTE) + QUOTE
    return s


def serialize_csv(headers: Sequence[str], rows: Iterable[Mapping[str, object]]) -> str:
    """Inverse of :func:`parse_csv`; columns follow ``headers`` order."""
    lines = [DELIMITER.join(escape_field(h) for h in headers)]
    for row in rows:
        lines.append(DELIMITER.join(escape_field(row.get(h, "")) for h in headers))
    return LINE_SEP.join(lines)


def rows_to_frame(headers: Sequence[str], rows: Iterable[Mapping[str, object]]) -> pd.DataFrame:
    """Tabular view for display; every cell is a string, missing cells ``""``."""
    records = [{h: ("" if row.get(h) is None else str(row.get(h))) for h in headers} for row in rows]
    return pd.DataFrame.from_records(records, columns=list(headers))


__all__ = [
    "Row",
    "strip_bom",
    "decode_bytes",
    "split_records",
    "parse_line",
    "parse_csv",
    "escape_field",
    "serialize_csv",
    "rows_to_frame",
]
