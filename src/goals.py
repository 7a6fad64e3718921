"""In-progress goal draft state: defaults, edits, and readiness checks.

Drafts are plain dicts so they serialize straight into the local store:
``{month_key: {metric_key: {"goal_value": ..., "reasons": [...], "note": ""}}}``.
Edit helpers return new mappings and leave their input untouched.
"""

from __future__ import annotations

import math
from copy import deepcopy
from typing import Any, Iterable, Sequence

import pandas as pd

from src.app_config import METRICS, NOTE_MAX_LENGTH, OTHER_REASON
from src.csv_rows import HistoryRow
from src.history_stats import compute_metric_stats, round_goal
from src.month_window import MonthRef


def blank_metric_draft(goal_value: float | None = None) -> dict[str, Any]:
    return {"goal_value": goal_value, "reasons": [], "note": ""}


def default_goals(
    months: Sequence[MonthRef],
    region: str,
    chapter: str,
    history: pd.DataFrame | Iterable[HistoryRow],
) -> dict[str, dict[str, dict[str, Any]]]:
    """Seed each goal with the rounded trailing average, or the metric floor without history."""
    output: dict[str, dict[str, dict[str, Any]]] = {}
    for ref in months:
        output[ref.key] = {}
        for metric in METRICS:
            stats = compute_metric_stats(history, region, chapter, metric.key, ref.month, ref.year)
            seed = round_goal(stats.avg) if stats.has_history else metric.goal_min
            output[ref.key][metric.key] = blank_metric_draft(seed)
    return output


def default_touched(months: Sequence[MonthRef]) -> dict[str, dict[str, bool]]:
    return {ref.key: {metric.key: False for metric in METRICS} for ref in months}


def _coerce_goal_value(value: Any) -> float | int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return int(number) if number.is_integer() else number


def _unique(items: Iterable[Any]) -> list[str]:
    seen: list[str] = []
    for item in items:
        text = str(item)
        if text not in seen:
            seen.append(text)
    return seen


def normalize_draft(raw: Any, months: Sequence[MonthRef] | None = None) -> dict[str, dict[str, dict[str, Any]]]:
    """Coerce a loaded draft into a well-formed mapping over the configured metrics."""
    payload = raw if isinstance(raw, dict) else {}
    month_keys = [ref.key for ref in months] if months is not None else list(payload.keys())
    output: dict[str, dict[str, dict[str, Any]]] = {}
    for month_key in month_keys:
        month_raw = payload.get(month_key)
        month_raw = month_raw if isinstance(month_raw, dict) else {}
        output[month_key] = {}
        for metric in METRICS:
            item = month_raw.get(metric.key)
            item = item if isinstance(item, dict) else {}
            reasons = item.get("reasons")
            note = item.get("note")
            output[month_key][metric.key] = {
                "goal_value": _coerce_goal_value(item.get("goal_value")),
                "reasons": _unique(reasons) if isinstance(reasons, list) else [],
                "note": str(note)[:NOTE_MAX_LENGTH] if isinstance(note, str) else "",
            }
    return output


def _metric_entry(goals: dict, month_key: str, metric_key: str) -> dict[str, Any]:
    entry = goals.get(month_key, {}).get(metric_key)
    return deepcopy(entry) if isinstance(entry, dict) else blank_metric_draft()


def _with_entry(goals: dict, month_key: str, metric_key: str, entry: dict[str, Any]) -> dict:
    out = deepcopy(goals)
    out.setdefault(month_key, {})[metric_key] = entry
    return out


def update_goal(goals: dict, month_key: str, metric_key: str, value: float | None) -> dict:
    entry = _metric_entry(goals, month_key, metric_key)
    entry["goal_value"] = _coerce_goal_value(value)
    return _with_entry(goals, month_key, metric_key, entry)


def toggle_reason(goals: dict, month_key: str, metric_key: str, reason: str, checked: bool) -> dict:
    entry = _metric_entry(goals, month_key, metric_key)
    reasons = list(entry.get("reasons") or [])
    if checked:
        entry["reasons"] = _unique([*reasons, reason])
    else:
        entry["reasons"] = [item for item in reasons if item != reason]
        if reason == OTHER_REASON:
            entry["note"] = ""
    entry.setdefault("note", "")
    return _with_entry(goals, month_key, metric_key, entry)


def update_note(goals: dict, month_key: str, metric_key: str, note: str) -> dict:
    entry = _metric_entry(goals, month_key, metric_key)
    entry["note"] = str(note)[:NOTE_MAX_LENGTH]
    return _with_entry(goals, month_key, metric_key, entry)


def mark_touched(touched: dict, month_key: str, metric_key: str) -> dict:
    out = deepcopy(touched)
    out.setdefault(month_key, {})[metric_key] = True
    return out


def _metric_ready(goals: dict, touched: dict, month_key: str, metric) -> bool:
    value = goals.get(month_key, {}).get(metric.key, {}).get("goal_value")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if not math.isfinite(value) or value < metric.goal_min:
        return False
    return touched.get(month_key, {}).get(metric.key) is True


def remaining_goals_to_touch(goals: dict, touched: dict, month_key: str) -> int:
    return sum(1 for metric in METRICS if not _metric_ready(goals, touched, month_key, metric))


def month_ready(goals: dict, touched: dict, month_key: str) -> bool:
    return remaining_goals_to_touch(goals, touched, month_key) == 0
