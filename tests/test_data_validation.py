from __future__ import annotations

from pathlib import Path

import src.data_validation as data_validation
from src.app_config import METRICS, MetricConfig
from src.data_validation import main, validate_events_text, validate_history_text, validate_metric_config


def test_metric_config_expects_exactly_four_unique_keys():
    assert validate_metric_config() == []
    assert validate_metric_config(METRICS[:3])
    assert validate_metric_config([*METRICS, MetricConfig("events", "Dup", "", "events")])


def test_history_validation_enumerates_every_bad_row():
    text = (
        "region,chapter,metric_key,year,month,value\n"
        "Midwest,Chicago,events,2024,3,7\n"
        ",Chicago,events,2024,3,7\n"
        "Midwest,Chicago,unknown,2024,13,x\n"
        "Midwest,Chicago,events\n"
    )
    report = validate_history_text(text)
    assert not report.ok
    assert report.row_count == 4
    assert report.errors == [
        "Line 3: region is required.",
        "Line 4: metric_key 'unknown' is not a configured metric.",
        "Line 4: month must be an integer 1-12.",
        "Line 4: value must be numeric.",
        "Line 5: expected 6 columns, got 3.",
    ]


def test_history_validation_header_and_empty_file():
    assert validate_history_text("region,chapter\n").errors
    report = validate_history_text("region,chapter,metric,year,month,value\nMidwest,Chicago,events,2024,3,7\n")
    assert report.errors[0].startswith("Header mismatch.")


def test_events_validation_passes_for_well_formed_rows():
    text = (
        "region,chapter,year,month,event_name,events,new_teens,avg_attendance,retention_contacts,notes\n"
        "Midwest,Chicago,2024,3,Bowling,1,2,10,3,\n"
    )
    report = validate_events_text(text)
    assert report.ok
    assert report.row_count == 1


def test_main_exit_codes(tmp_path, capsys):
    good = Path(tmp_path) / "history.csv"
    good.write_text("region,chapter,metric_key,year,month,value\nMidwest,Chicago,events,2024,3,7\n", encoding="utf-8")
    assert main(["--history", str(good)]) == 0
    assert "validation passed (1 rows)" in capsys.readouterr().out

    bad = Path(tmp_path) / "bad.csv"
    bad.write_text("region,chapter,metric_key,year,month,value\nMidwest,Chicago,events,2024,0,7\n", encoding="utf-8")
    assert main(["--history", str(bad)]) == 1
    assert "Line 2: month must be an integer 1-12." in capsys.readouterr().err

    assert main(["--history", str(Path(tmp_path) / "missing.csv")]) == 1


def test_bundled_sample_data_passes_validation():
    data_dir = Path(__file__).resolve().parent.parent / "data"
    assert main(["--history", str(data_dir / "history.csv"), "--events", str(data_dir / "events.csv")]) == 0


def test_main_checks_bundled_events_by_default(tmp_path, monkeypatch, capsys):
    data_dir = Path(tmp_path)
    (data_dir / "history.csv").write_text(
        "region,chapter,metric_key,year,month,value\nMidwest,Chicago,events,2024,3,7\n", encoding="utf-8"
    )
    (data_dir / "events.csv").write_text("wrong,header\nMidwest,Chicago\n", encoding="utf-8")
    monkeypatch.setattr(data_validation, "BUNDLED_DATA_DIR", data_dir)

    assert main([]) == 1
    captured = capsys.readouterr()
    assert "history.csv validation passed (1 rows)." in captured.out
    assert "events.csv validation failed:" in captured.err
    assert "Header mismatch." in captured.err


def test_main_fails_when_default_events_file_is_missing(tmp_path, monkeypatch):
    data_dir = Path(tmp_path)
    (data_dir / "history.csv").write_text(
        "region,chapter,metric_key,year,month,value\nMidwest,Chicago,events,2024,3,7\n", encoding="utf-8"
    )
    monkeypatch.setattr(data_validation, "BUNDLED_DATA_DIR", data_dir)
    assert main([]) == 1
