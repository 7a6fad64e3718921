"""CSV line scanning and typed row decoding for the history and events files.

Both files share one decoding core per schema. Runtime loading uses the
lenient policy (bad rows are dropped and counted); the offline validator uses
the strict policy (bad rows are enumerated with their line numbers).
"""

from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass, field
from typing import Callable, Iterable, TypeVar

import pandas as pd

from src.app_config import METRIC_KEYS
from src.errors import DataShapeError, RowDecodeError


HISTORY_HEADER: tuple[str, ...] = ("region", "chapter", "metric_key", "year", "month", "value")
EVENTS_HEADER: tuple[str, ...] = (
    "region",
    "chapter",
    "year",
    "month",
    "event_name",
    "events",
    "new_teens",
    "avg_attendance",
    "retention_contacts",
    "notes",
)

_LINE_BREAK = re.compile(r"\r?\n")

RowT = TypeVar("RowT")


@dataclass(frozen=True)
class HistoryRow:
    region: str
    chapter: str
    metric_key: str
    year: int
    month: int
    value: float


@dataclass(frozen=True)
class EventRow:
    region: str
    chapter: str
    year: int
    month: int
    event_name: str
    events: float
    new_teens: float
    avg_attendance: float
    retention_contacts: float
    notes: str


@dataclass
class LenientResult:
    rows: list = field(default_factory=list)
    discarded_count: int = 0


@dataclass
class StrictResult:
    rows: list = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def parse_csv_line(line: str) -> list[str]:
    """Split one CSV line into trimmed fields, honoring quotes and "" escapes."""
    out: list[str] = []
    current: list[str] = []
    in_quotes = False
    index = 0
    length = len(line)
    while index < length:
        char = line[index]
        if char == '"':
            if in_quotes and index + 1 < length and line[index + 1] == '"':
                current.append('"')
                index += 2
                continue
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            out.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        index += 1
    out.append("".join(current).strip())
    return out


def split_lines(text: str) -> list[str]:
    lines = (line.strip() for line in _LINE_BREAK.split(text))
    return [line for line in lines if line]


def header_matches(line: str, expected: tuple[str, ...]) -> bool:
    return tuple(parse_csv_line(line)) == expected


def _parse_number(raw: str) -> float | None:
    text = raw.strip()
    if not text:
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def _parse_int(raw: str) -> int | None:
    value = _parse_number(raw)
    if value is None or not value.is_integer():
        return None
    return int(value)


def _number_or_zero(raw: str) -> float:
    value = _parse_number(raw)
    return 0.0 if value is None else value


def decode_history_fields(cols: list[str]) -> HistoryRow:
    if len(cols) != len(HISTORY_HEADER):
        raise RowDecodeError([f"expected {len(HISTORY_HEADER)} columns, got {len(cols)}."])

    region, chapter, metric_key, year_raw, month_raw, value_raw = cols
    year = _parse_int(year_raw)
    month = _parse_int(month_raw)
    value = _parse_number(value_raw)

    errors: list[str] = []
    if not region:
        errors.append("region is required.")
    if metric_key not in METRIC_KEYS:
        errors.append(f"metric_key '{metric_key}' is not a configured metric.")
    if year is None:
        errors.append("year must be an integer.")
    if month is None or not 1 <= month <= 12:
        errors.append("month must be an integer 1-12.")
    if value is None:
        errors.append("value must be numeric.")
    if errors:
        raise RowDecodeError(errors)

    return HistoryRow(
        region=region,
        chapter=chapter,
        metric_key=metric_key,
        year=int(year),
        month=int(month),
        value=float(value),
    )


def decode_event_fields(cols: list[str]) -> EventRow:
    if len(cols) != len(EVENTS_HEADER):
        raise RowDecodeError([f"expected {len(EVENTS_HEADER)} columns, got {len(cols)}."])

    region, chapter, year_raw, month_raw, event_name, events, new_teens, avg_attendance, retention, notes = cols
    year = _parse_int(year_raw)
    month = _parse_int(month_raw)

    errors: list[str] = []
    if year is None:
        errors.append("year must be an integer.")
    if month is None or not 1 <= month <= 12:
        errors.append("month must be an integer 1-12.")
    if not event_name:
        errors.append("event_name is required.")
    if errors:
        raise RowDecodeError(errors)

    return EventRow(
        region=region,
        chapter=chapter,
        year=int(year),
        month=int(month),
        event_name=event_name,
        events=_number_or_zero(events),
        new_teens=_number_or_zero(new_teens),
        avg_attendance=_number_or_zero(avg_attendance),
        retention_contacts=_number_or_zero(retention),
        notes=notes,
    )


def decode_lenient(lines: Iterable[str], decoder: Callable[[list[str]], RowT]) -> LenientResult:
    result = LenientResult()
    for line in lines:
        try:
            result.rows.append(decoder(parse_csv_line(line)))
        except RowDecodeError:
            result.discarded_count += 1
    return result


def decode_strict(
    lines: Iterable[str], decoder: Callable[[list[str]], RowT], first_line_no: int = 2
) -> StrictResult:
    result = StrictResult()
    for line_no, line in enumerate(lines, start=first_line_no):
        try:
            result.rows.append(decoder(parse_csv_line(line)))
        except RowDecodeError as exc:
            result.errors.extend(f"Line {line_no}: {message}" for message in exc.messages)
    return result


def parse_history_csv(text: str) -> LenientResult:
    """Parse history.csv text. A header mismatch is a blocking data-shape error."""
    lines = split_lines(text)
    if len(lines) < 2:
        return LenientResult()
    if not header_matches(lines[0], HISTORY_HEADER):
        raise DataShapeError(f"Unexpected history.csv header. Expected: {','.join(HISTORY_HEADER)}")
    return decode_lenient(lines[1:], decode_history_fields)


def parse_events_csv(text: str) -> LenientResult:
    """Parse events.csv text; an unexpected header degrades to no rows."""
    lines = split_lines(text)
    if len(lines) < 2 or not header_matches(lines[0], EVENTS_HEADER):
        return LenientResult()
    return decode_lenient(lines[1:], decode_event_fields)


def history_frame(rows: Iterable[HistoryRow]) -> pd.DataFrame:
    records = [asdict(row) for row in rows]
    df = pd.DataFrame.from_records(records, columns=list(HISTORY_HEADER))
    return df.astype({"year": "int64", "month": "int64", "value": "float64"})
