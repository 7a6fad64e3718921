from __future__ import annotations

from pathlib import Path

import pytest
import requests

import src.data_sources as data_sources
from src.app_config import BUNDLED_DATA_DIR
from src.errors import DataShapeError, DataSourceError


HISTORY_TEXT = "region,chapter,metric_key,year,month,value\nMidwest,Chicago,events,2024,3,7\nbad,row\n"


def test_fallback_source_is_used_when_primary_missing(tmp_path):
    fallback = Path(tmp_path) / "history.csv"
    fallback.write_text(HISTORY_TEXT, encoding="utf-8")
    source, text = data_sources.read_first_available([Path(tmp_path) / "missing.csv", fallback])
    assert source == str(fallback)
    assert text == HISTORY_TEXT

    result = data_sources.load_history([Path(tmp_path) / "missing.csv", fallback])
    assert len(result.rows) == 1
    assert result.discarded_count == 1


def test_history_failure_is_raised_when_every_source_fails(tmp_path):
    with pytest.raises(DataSourceError):
        data_sources.load_history([Path(tmp_path) / "a.csv", Path(tmp_path) / "b.csv"])


def test_history_header_mismatch_propagates(tmp_path):
    path = Path(tmp_path) / "history.csv"
    path.write_text("wrong,header\nMidwest,Chicago\n", encoding="utf-8")
    with pytest.raises(DataShapeError):
        data_sources.load_history([path])


def test_events_failure_degrades_to_empty(tmp_path):
    assert data_sources.load_events([Path(tmp_path) / "missing.csv"]).rows == []
    path = Path(tmp_path) / "events.csv"
    path.write_text("wrong,header\nMidwest,Chicago\n", encoding="utf-8")
    assert data_sources.load_events([path]).rows == []


def test_url_source_failure_falls_back_to_local_file(tmp_path, monkeypatch):
    calls = []

    def fake_get(url, timeout, headers):
        calls.append(url)
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(data_sources.requests, "get", fake_get)
    local = Path(tmp_path) / "history.csv"
    local.write_text(HISTORY_TEXT, encoding="utf-8")
    source, _ = data_sources.read_first_available(["https://example.invalid/data/history.csv", local])
    assert calls == ["https://example.invalid/data/history.csv"]
    assert source == str(local)


def test_default_sources_prefer_configured_data_root(tmp_path, monkeypatch):
    monkeypatch.setenv("MGW_DATA_ROOT", str(tmp_path))
    sources = data_sources.default_sources("history.csv")
    assert sources[0] == str(Path(tmp_path) / "history.csv")
    assert sources[-1].endswith(str(Path("data") / "history.csv"))


def test_default_sources_drop_duplicate_roots(monkeypatch):
    monkeypatch.setenv("MGW_DATA_ROOT", str(BUNDLED_DATA_DIR))
    assert data_sources.default_sources("events.csv") == [str(BUNDLED_DATA_DIR / "events.csv")]


def test_bundled_sample_data_loads():
    history = data_sources.load_history()
    assert history.rows
    assert history.discarded_count == 0
    assert data_sources.load_events().rows
