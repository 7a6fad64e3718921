"""Compiled-in wizard configuration: metrics, reasons, and environment roots."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


APP_VERSION = "1.0.0"
APP_TITLE = "Monthly Goal Wizard"
SUBMISSION_TITLE = "NCSY Monthly Goals Submission"
TECH_MARKER = "---TECH (do not edit)---"

# First goal month is the month after "now".
GOAL_WINDOW_START_OFFSET_MONTHS = 1

NOTE_MAX_LENGTH = 120
HISTORY_YEARS = 4

STORAGE_ENV_VAR = "MGW_STORAGE_ROOT"
DATA_ENV_VAR = "MGW_DATA_ROOT"
DEFAULT_STORAGE_ROOT = Path(".local_store")
DEFAULT_DATA_ROOT = Path("data")
BUNDLED_DATA_DIR = Path(__file__).resolve().parent.parent / "data"


@dataclass(frozen=True)
class MetricConfig:
    key: str
    label: str
    description: str
    unit_label: str
    goal_min: int = 0


METRICS: tuple[MetricConfig, ...] = (
    MetricConfig(
        key="events",
        label="Events Hosted",
        description="Count of chapter programs and gatherings delivered in the month.",
        unit_label="events",
    ),
    MetricConfig(
        key="new_teens",
        label="New Teens Engaged",
        description="First-time teen participants reached this month.",
        unit_label="teens",
    ),
    MetricConfig(
        key="avg_attendance",
        label="Average Attendance",
        description="Average participants per event during the month.",
        unit_label="participants",
    ),
    MetricConfig(
        key="retention_contacts",
        label="Retention Contacts",
        description="Meaningful follow-up touchpoints with existing teens/families.",
        unit_label="contacts",
    ),
)
METRIC_KEYS = frozenset(metric.key for metric in METRICS)
METRIC_BY_KEY = {metric.key: metric for metric in METRICS}

OTHER_REASON = "Other"
REASON_OPTIONS: tuple[str, ...] = (
    "Travel / OOO",
    "Staffing change",
    "Special program",
    "Seasonality",
    "Community event",
    OTHER_REASON,
)


def expand_env_path(path_value: str | Path | None, default: Path) -> Path:
    if path_value is None:
        return default
    text = str(path_value).strip()
    if not text:
        return default
    return Path(os.path.expandvars(os.path.expanduser(text)))


def storage_root_from_env() -> Path:
    return expand_env_path(os.getenv(STORAGE_ENV_VAR, ""), DEFAULT_STORAGE_ROOT)


def data_root_from_env() -> Path:
    return expand_env_path(os.getenv(DATA_ENV_VAR, ""), DEFAULT_DATA_ROOT)
