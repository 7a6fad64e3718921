from __future__ import annotations

import pytest

from src.csv_rows import (
    HistoryRow,
    decode_history_fields,
    decode_lenient,
    decode_strict,
    history_frame,
    parse_csv_line,
    parse_events_csv,
    parse_history_csv,
    split_lines,
)
from src.errors import DataShapeError, RowDecodeError


HISTORY_TEXT = (
    "region,chapter,metric_key,year,month,value\r\n"
    "Midwest,Chicago,events,2024,3,7\r\n"
    "\r\n"
    "  Midwest,\"Chicago, IL\",new_teens,2024,3,12.5  \n"
    "Midwest,Chicago,events,2024,13,7\n"
    "Midwest,Chicago,unknown_metric,2024,3,7\n"
    "Midwest,Chicago,events,twenty,3,7\n"
    "Midwest,Chicago,events,2024,3,lots\n"
    "Midwest,Chicago,events,2024,3\n"
)


def test_parse_csv_line_handles_embedded_commas_and_escaped_quotes():
    assert parse_csv_line('"Chicago, IL ""North"""') == ['Chicago, IL "North"']
    assert parse_csv_line('a, "b,c" ,d') == ["a", "b,c", "d"]


def test_parse_csv_line_trims_fields_and_keeps_empty_trailing_field():
    assert parse_csv_line(" Midwest , , events,") == ["Midwest", "", "events", ""]


def test_parse_csv_line_unterminated_quote_swallows_remainder():
    assert parse_csv_line('a,"b,c,d') == ["a", "b,c,d"]


def test_split_lines_supports_crlf_and_drops_blank_lines():
    assert split_lines("a\r\n\r\n  b  \n\n c") == ["a", "b", "c"]


def test_parse_history_csv_skips_malformed_rows_silently():
    result = parse_history_csv(HISTORY_TEXT)
    assert result.rows == [
        HistoryRow("Midwest", "Chicago", "events", 2024, 3, 7.0),
        HistoryRow("Midwest", "Chicago, IL", "new_teens", 2024, 3, 12.5),
    ]
    assert result.discarded_count == 5


def test_parse_history_csv_header_mismatch_is_blocking():
    with pytest.raises(DataShapeError):
        parse_history_csv("region,chapter,metric,year,month,value\nMidwest,Chicago,events,2024,3,7\n")


def test_parse_history_csv_header_only_returns_no_rows():
    assert parse_history_csv("region,chapter,metric_key,year,month,value\n").rows == []


def test_parse_events_csv_degrades_on_header_mismatch():
    result = parse_events_csv("bad,header\nMidwest,Chicago\n")
    assert result.rows == []


def test_parse_events_csv_coerces_numeric_columns_to_zero():
    text = (
        "region,chapter,year,month,event_name,events,new_teens,avg_attendance,retention_contacts,notes\n"
        'Midwest,Chicago,2024,3,"Shabbaton, Winter",2,abc,,4,"said ""hi"""\n'
        "Midwest,Chicago,2024,3,,1,1,1,1,missing name\n"
    )
    result = parse_events_csv(text)
    assert result.discarded_count == 1
    row = result.rows[0]
    assert row.event_name == "Shabbaton, Winter"
    assert row.events == 2.0
    assert row.new_teens == 0.0
    assert row.avg_attendance == 0.0
    assert row.notes == 'said "hi"'


def test_decode_history_fields_collects_every_problem():
    with pytest.raises(RowDecodeError) as excinfo:
        decode_history_fields(["", "Chicago", "nope", "2024.5", "0", "x"])
    assert len(excinfo.value.messages) == 5


def test_lenient_and_strict_policies_share_the_decoder():
    lines = ["Midwest,Chicago,events,2024,3,7", "Midwest,Chicago,events,2024,0,7"]
    lenient = decode_lenient(lines, decode_history_fields)
    strict = decode_strict(lines, decode_history_fields)
    assert len(lenient.rows) == len(strict.rows) == 1
    assert lenient.discarded_count == 1
    assert strict.errors == ["Line 3: month must be an integer 1-12."]
    assert not strict.ok


def test_history_frame_has_fixed_columns_even_when_empty():
    df = history_frame([])
    assert list(df.columns) == ["region", "chapter", "metric_key", "year", "month", "value"]
    assert df.empty
