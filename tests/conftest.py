from __future__ import annotations

import pytest

from src.csv_rows import HistoryRow
from src.persistence import MemoryStore


@pytest.fixture
def history_rows() -> list[HistoryRow]:
    return [
        HistoryRow("Midwest", "Chicago", "events", 2021, 3, 4.0),
        HistoryRow("Midwest", "Chicago", "events", 2022, 3, 6.0),
        HistoryRow("Midwest", "Chicago", "events", 2023, 3, 5.0),
        HistoryRow("Midwest", "Chicago", "events", 2024, 3, 7.0),
        HistoryRow("Midwest", "Chicago", "events", 2025, 3, 40.0),
        HistoryRow("Midwest", "Detroit", "events", 2024, 3, 9.0),
        HistoryRow("Midwest", "Chicago", "new_teens", 2024, 3, 12.0),
        HistoryRow("Midwest", "Chicago", "events", 2024, 4, 11.0),
    ]


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()
