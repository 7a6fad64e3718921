"""Ordered primary/fallback loading of the bundled history and events CSVs."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence

import requests

from src.app_config import BUNDLED_DATA_DIR, data_root_from_env
from src.csv_rows import LenientResult, parse_events_csv, parse_history_csv
from src.errors import DataShapeError, DataSourceError


HISTORY_FILENAME = "history.csv"
EVENTS_FILENAME = "events.csv"
HTTP_TIMEOUT_SECONDS = 30


def default_sources(filename: str) -> list[str]:
    """Configured data root first, then the copy bundled beside the app."""
    sources: list[str] = []
    for root in (data_root_from_env(), BUNDLED_DATA_DIR):
        candidate = str(Path(root) / filename)
        if candidate not in sources:
            sources.append(candidate)
    return sources


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def read_text_source(source: str | Path) -> str:
    text = str(source)
    if _is_url(text):
        response = requests.get(text, timeout=HTTP_TIMEOUT_SECONDS, headers={"Cache-Control": "no-cache"})
        response.raise_for_status()
        return response.text
    return Path(text).read_text(encoding="utf-8-sig")


def read_first_available(sources: Iterable[str | Path]) -> tuple[str, str]:
    """Return (source, text) for the first readable source, trying each in order."""
    failures: list[str] = []
    for source in sources:
        try:
            return str(source), read_text_source(source)
        except (OSError, UnicodeDecodeError, requests.RequestException) as exc:
            failures.append(f"{source}: {exc}")
    detail = "; ".join(failures) if failures else "no sources configured"
    raise DataSourceError(f"Could not load data file ({detail})")


def load_history(sources: Sequence[str | Path] | None = None) -> LenientResult:
    """Load history rows; unreadable sources and header mismatches propagate."""
    _, text = read_first_available(sources or default_sources(HISTORY_FILENAME))
    return parse_history_csv(text)


def load_events(sources: Sequence[str | Path] | None = None) -> LenientResult:
    try:
        _, text = read_first_available(sources or default_sources(EVENTS_FILENAME))
    except DataSourceError:
        return LenientResult()
    try:
        return parse_events_csv(text)
    except DataShapeError:
        return LenientResult()
