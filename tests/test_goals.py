from __future__ import annotations

from copy import deepcopy

from src.app_config import METRIC_KEYS, NOTE_MAX_LENGTH
from src.goals import (
    default_goals,
    default_touched,
    mark_touched,
    month_ready,
    normalize_draft,
    remaining_goals_to_touch,
    toggle_reason,
    update_goal,
    update_note,
)
from src.month_window import month_ref


MONTHS = [month_ref(2026, 3), month_ref(2026, 4)]


def test_default_goals_seed_from_history_average(history_rows):
    goals = default_goals(MONTHS, "Midwest", "Chicago", history_rows)
    assert set(goals) == {"2026-03", "2026-04"}
    for month_goals in goals.values():
        assert set(month_goals) == METRIC_KEYS
    # 40, 7, 5, 6 -> 14.5 rounds half up.
    assert goals["2026-03"]["events"]["goal_value"] == 15
    assert goals["2026-03"]["new_teens"]["goal_value"] == 12
    assert goals["2026-04"]["events"]["goal_value"] == 11
    assert goals["2026-03"]["retention_contacts"] == {"goal_value": 0, "reasons": [], "note": ""}


def test_edits_do_not_mutate_input(history_rows):
    goals = default_goals(MONTHS, "Midwest", "Chicago", history_rows)
    snapshot = deepcopy(goals)
    updated = update_goal(goals, "2026-03", "events", 9)
    updated = toggle_reason(updated, "2026-03", "events", "Seasonality", True)
    assert goals == snapshot
    assert updated["2026-03"]["events"]["goal_value"] == 9
    assert updated["2026-03"]["events"]["reasons"] == ["Seasonality"]


def test_toggle_reason_keeps_reasons_unique_and_other_clears_note():
    goals = default_goals(MONTHS[:1], "Nowhere", "", [])
    goals = toggle_reason(goals, "2026-03", "events", "Other", True)
    goals = toggle_reason(goals, "2026-03", "events", "Other", True)
    goals = update_note(goals, "2026-03", "events", "x" * (NOTE_MAX_LENGTH + 10))
    entry = goals["2026-03"]["events"]
    assert entry["reasons"] == ["Other"]
    assert len(entry["note"]) == NOTE_MAX_LENGTH

    goals = toggle_reason(goals, "2026-03", "events", "Other", False)
    assert goals["2026-03"]["events"] == {"goal_value": 0, "reasons": [], "note": ""}


def test_month_ready_requires_every_metric_touched_and_valid():
    goals = default_goals(MONTHS[:1], "Nowhere", "", [])
    touched = default_touched(MONTHS[:1])
    assert not month_ready(goals, touched, "2026-03")
    assert remaining_goals_to_touch(goals, touched, "2026-03") == 4

    for key in METRIC_KEYS:
        touched = mark_touched(touched, "2026-03", key)
    assert month_ready(goals, touched, "2026-03")

    goals = update_goal(goals, "2026-03", "events", None)
    assert remaining_goals_to_touch(goals, touched, "2026-03") == 1
    goals = update_goal(goals, "2026-03", "events", -1)
    assert not month_ready(goals, touched, "2026-03")


def test_normalize_draft_fills_missing_metrics_and_drops_unknown():
    raw = {
        "2026-03": {
            "events": {"goal_value": "7", "reasons": ["Seasonality", "Seasonality"], "note": 5},
            "bogus": {"goal_value": 1},
        },
        "2026-04": "not a dict",
    }
    goals = normalize_draft(raw, MONTHS)
    assert goals["2026-03"]["events"] == {"goal_value": 7, "reasons": ["Seasonality"], "note": ""}
    assert "bogus" not in goals["2026-03"]
    assert set(goals["2026-04"]) == METRIC_KEYS
    assert goals["2026-04"]["events"]["goal_value"] is None
