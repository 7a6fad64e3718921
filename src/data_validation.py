"""Authoring-time gate for the bundled CSV files.

Applies the same per-row rules as the runtime loaders, but every bad row is
reported and any failure exits non-zero.

    python -m src.data_validation
    python -m src.data_validation --history data/history.csv --events data/events.csv
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from src.app_config import BUNDLED_DATA_DIR, METRICS, MetricConfig
from src.csv_rows import (
    EVENTS_HEADER,
    HISTORY_HEADER,
    decode_event_fields,
    decode_history_fields,
    decode_strict,
    parse_csv_line,
    split_lines,
)


EXPECTED_METRIC_COUNT = 4


@dataclass
class ValidationReport:
    name: str
    row_count: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def validate_metric_config(metrics: Sequence[MetricConfig] = METRICS) -> list[str]:
    keys = [metric.key for metric in metrics]
    errors: list[str] = []
    if len(set(keys)) != EXPECTED_METRIC_COUNT:
        errors.append(f"Expected exactly {EXPECTED_METRIC_COUNT} metrics in app config, found {len(set(keys))}.")
    if len(set(keys)) != len(keys):
        errors.append("Metric keys in app config must be unique.")
    return errors


def _validate_text(name: str, text: str, header: tuple[str, ...], decoder) -> ValidationReport:
    report = ValidationReport(name=name)
    lines = split_lines(text)
    if len(lines) < 2:
        report.errors.append(f"{name} must include a header and at least one data row.")
        return report
    received = parse_csv_line(lines[0])
    if tuple(received) != header:
        report.errors.append(f"Header mismatch. Expected: {','.join(header)} | Received: {','.join(received)}")
        return report
    result = decode_strict(lines[1:], decoder)
    report.row_count = len(lines) - 1
    report.errors.extend(result.errors)
    return report


def validate_history_text(text: str) -> ValidationReport:
    return _validate_text("history.csv", text, HISTORY_HEADER, decode_history_fields)


def validate_events_text(text: str) -> ValidationReport:
    return _validate_text("events.csv", text, EVENTS_HEADER, decode_event_fields)


def _read(path: Path, name: str) -> tuple[str | None, ValidationReport | None]:
    try:
        return path.read_text(encoding="utf-8-sig"), None
    except (OSError, UnicodeDecodeError) as exc:
        return None, ValidationReport(name=name, errors=[f"Could not read {path}: {exc}"])


def parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate the goal wizard history/events CSV files.")
    parser.add_argument("--history", type=Path, default=BUNDLED_DATA_DIR / "history.csv", help="Path to history.csv.")
    parser.add_argument("--events", type=Path, default=BUNDLED_DATA_DIR / "events.csv", help="Path to events.csv.")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)

    config_errors = validate_metric_config()
    if config_errors:
        for error in config_errors:
            print(error, file=sys.stderr)
        return 1

    reports: list[ValidationReport] = []
    text, failed = _read(args.history, "history.csv")
    reports.append(failed or validate_history_text(text))
    text, failed = _read(args.events, "events.csv")
    reports.append(failed or validate_events_text(text))

    exit_code = 0
    for report in reports:
        if report.ok:
            print(f"{report.name} validation passed ({report.row_count} rows).")
            continue
        exit_code = 1
        print(f"{report.name} validation failed:", file=sys.stderr)
        for error in report.errors:
            print(f"- {error}", file=sys.stderr)

    if exit_code == 0:
        print(f"Metric keys validated: {', '.join(metric.key for metric in METRICS)}")
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
