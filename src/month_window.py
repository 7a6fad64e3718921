"""Goal month window and date label helpers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

import pandas as pd

from src.app_config import GOAL_WINDOW_START_OFFSET_MONTHS


@dataclass(frozen=True)
class MonthRef:
    key: str
    year: int
    month: int
    label: str


def to_month_key(year: int, month: int) -> str:
    return f"{int(year):04d}-{int(month):02d}"


def month_label(year: int, month: int) -> str:
    return pd.Timestamp(year=int(year), month=int(month), day=1).strftime("%B %Y")


def month_ref(year: int, month: int) -> MonthRef:
    return MonthRef(key=to_month_key(year, month), year=int(year), month=int(month), label=month_label(year, month))


def get_month_window(
    two_months: bool,
    offset_months: int = GOAL_WINDOW_START_OFFSET_MONTHS,
    now: datetime | None = None,
) -> list[MonthRef]:
    """Return the 1 or 2 consecutive goal months starting `offset_months` after now."""
    current = pd.Timestamp(now or datetime.now())
    start = pd.Timestamp(year=current.year, month=current.month, day=1) + pd.DateOffset(months=int(offset_months))
    count = 2 if two_months else 1
    months = [start + pd.DateOffset(months=i) for i in range(count)]
    return [month_ref(m.year, m.month) for m in months]


def previous_year_label(ref: MonthRef) -> str:
    return month_label(ref.year - 1, ref.month)


def format_local_datetime(value: datetime) -> str:
    """Format like "Mar 5, 2025, 2:07 PM"."""
    hour = value.hour % 12 or 12
    meridiem = "AM" if value.hour < 12 else "PM"
    return f"{value:%b} {value.day}, {value.year}, {hour}:{value:%M} {meridiem}"
