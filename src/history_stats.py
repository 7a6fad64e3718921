"""Trailing same-month history statistics used to seed and guide goal entry."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from src.app_config import HISTORY_YEARS
from src.csv_rows import EventRow, HistoryRow, history_frame
from src.month_window import MonthRef


CONSISTENT = "Consistent"
MIXED = "Mixed"
VOLATILE = "Volatile"
VARIABILITY_LEVELS = (CONSISTENT, MIXED, VOLATILE)

# Coefficient-of-variation cutoffs when the mean is positive.
CV_CONSISTENT_BELOW = 0.20
CV_MIXED_BELOW = 0.45
# Absolute-range cutoffs when the mean is zero or negative. Tunable heuristic.
RANGE_CONSISTENT_AT_MOST = 1.0
RANGE_MIXED_AT_MOST = 3.0

_VARIABILITY_HINTS = {
    CONSISTENT: "Past years are tightly clustered for this month.",
    MIXED: "Past years vary somewhat. Consider local context before finalizing.",
    VOLATILE: "Past years swing widely, so estimates are less predictable for this month.",
}


@dataclass(frozen=True)
class MetricStats:
    count_years: int
    avg: float
    min: float
    max: float
    variability: str
    has_history: bool


@dataclass(frozen=True)
class RangeBarScale:
    scale_min: int
    scale_max: int
    value: float


NO_HISTORY = MetricStats(count_years=0, avg=0.0, min=0.0, max=0.0, variability=MIXED, has_history=False)


def _as_frame(history: pd.DataFrame | Iterable[HistoryRow]) -> pd.DataFrame:
    if isinstance(history, pd.DataFrame):
        return history
    return history_frame(history)


def classify_variability(values: Sequence[float]) -> str:
    arr = np.asarray(values, dtype=float)
    if arr.size <= 1:
        return MIXED

    mean = float(arr.mean())
    if mean > 0:
        cv = float(arr.std(ddof=0)) / mean
        if cv < CV_CONSISTENT_BELOW:
            return CONSISTENT
        if cv < CV_MIXED_BELOW:
            return MIXED
        return VOLATILE

    spread = float(arr.max() - arr.min())
    if spread <= RANGE_CONSISTENT_AT_MOST:
        return CONSISTENT
    if spread <= RANGE_MIXED_AT_MOST:
        return MIXED
    return VOLATILE


def compute_metric_stats(
    history: pd.DataFrame | Iterable[HistoryRow],
    region: str,
    chapter: str,
    metric_key: str,
    month: int,
    target_year: int,
) -> MetricStats:
    """Summarize up to four most recent prior-year values for one metric/month.

    An empty `chapter` matches every chapter in the region. Only rows strictly
    before `target_year` are eligible, and duplicate rows are all counted.
    """
    df = _as_frame(history)
    if df.empty:
        return NO_HISTORY

    mask = (
        (df["region"] == region)
        & (df["metric_key"] == metric_key)
        & (df["month"] == int(month))
        & (df["year"] < int(target_year))
    )
    if chapter:
        mask &= df["chapter"] == chapter

    matching = df.loc[mask].sort_values("year", ascending=False, kind="stable").head(HISTORY_YEARS)
    values = matching["value"].to_numpy(dtype=float)
    if values.size == 0:
        return NO_HISTORY

    lo = float(values.min())
    hi = float(values.max())
    return MetricStats(
        count_years=int(values.size),
        # mean() can drift a last bit past the extremes
        avg=_clamp(float(values.mean()), lo, hi),
        min=lo,
        max=hi,
        variability=classify_variability(values),
        has_history=True,
    )


def round_goal(value: float) -> int:
    """Round half up to a whole goal, never below zero."""
    return max(0, int(math.floor(float(value) + 0.5)))


def variability_hint(level: str) -> str:
    return _VARIABILITY_HINTS.get(level, _VARIABILITY_HINTS[VOLATILE])


def _clamp(value: float, lo: float, hi: float) -> float:
    return min(hi, max(lo, value))


def range_bar_scale(goal_min: float, value: float, stats: MetricStats) -> RangeBarScale:
    """Axis bounds and clamped goal position for the goal range bar."""
    if stats.has_history:
        span = max(1.0, stats.max - stats.min)
        scale_min = max(goal_min, math.floor(stats.min - span * 0.35))
        history_ceiling = math.ceil(stats.max * 2)
    else:
        scale_min = goal_min
        history_ceiling = goal_min + 10
    scale_max = max(history_ceiling, value + 2, goal_min + 5)
    safe_max = max(scale_min + 1, scale_max)
    return RangeBarScale(
        scale_min=int(math.floor(scale_min)),
        scale_max=int(math.ceil(safe_max)),
        value=_clamp(value, scale_min, safe_max),
    )


def regions_from_history(rows: Iterable[HistoryRow]) -> dict[str, list[str]]:
    """Map each region seen in history to its sorted, non-empty chapters."""
    regions: dict[str, set[str]] = {}
    for row in rows:
        region = row.region.strip()
        if not region:
            continue
        chapters = regions.setdefault(region, set())
        chapter = row.chapter.strip()
        if chapter:
            chapters.add(chapter)
    return {name: sorted(regions[name]) for name in sorted(regions)}


def last_year_events(events: Iterable[EventRow], region: str, chapter: str, ref: MonthRef) -> list[EventRow]:
    return [
        row
        for row in events
        if row.region == region
        and (not chapter or row.chapter == chapter)
        and row.year == ref.year - 1
        and row.month == ref.month
    ]
