import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError

from mixing import summary
from mixing.exceptions import RecordSourceError
from mixing.query import fetch_filter_records, fetch_summary_inputs
from mixing.request import parse_summary_request
from mixing.summary import build_summary, run_summary


@pytest.fixture
def engine(seed):
    return seed(
        issues=[
            {"unit": "1", "line": "A", "cotton": "25_31_V1", "mixing_no": "10", "issue_date": datetime.date(2024, 1, 1)},
            {"unit": "1", "line": "A", "cotton": "25_31_V1", "mixing_no": "11", "issue_date": datetime.date(2024, 1, 3)},
            {"unit": "2", "line": "B", "cotton": "SHANKAR", "mixing_no": "20", "issue_date": datetime.date(2024, 2, 1)},
        ],
        charts=[
            {"mixing_no": "10", "unit": "1", "line": "A", "cotton": "25_31_V1", "lot_no": "L1", "issue_bale": 100},
            {"mixing_no": "10", "unit": "1", "line": "A", "cotton": "25_31_V1", "lot_no": "L2", "issue_bale": 50},
            {"mixing_no": "11", "unit": "1", "line": "A", "cotton": "25_31_V1", "lot_no": "L1", "issue_bale": 120},
            {"mixing_no": "20", "unit": "2", "line": "B", "cotton": "SHANKAR", "lot_no": "L3", "issue_bale": 40},
        ],
        lots=[
            {"lot_no": "L1", "variety": "V-DCH", "mic": 4.0, "str": 30.0, "min_mic": 3.6},
            {"lot_no": "L2", "variety": "V-MCU", "mic": 5.0, "str": 27.0, "min_mic": 3.9},
            {"lot_no": "L3", "variety": "V-SHK", "mic": 3.8},
        ],
        codes=[
            {"variety": "V-DCH", "cotton_name": "DCH", "weight": 1.0},
            {"variety": "V-MCU", "cotton_name": "MCU5", "weight": 1.0},
            {"variety": "V-OTHER", "cotton_name": "Other", "weight": 1.0},
        ],
    )


def test_fetch_reads_window_and_related_records(engine):
    request = parse_summary_request({"from_date": "2024-01-01", "to_date": "2024-01-31"})
    inputs = fetch_summary_inputs(request, engine=engine)

    assert sorted(issue.mixing_no for issue in inputs.issues) == ["10", "11"]
    assert inputs.issues[0].blend_code == "25_31_V1"
    assert len(inputs.rows) == 3
    assert sorted(lot.lot_no for lot in inputs.lots) == ["L1", "L2"]
    assert sorted(v.cotton_name for v in inputs.varieties) == ["DCH", "MCU5"]


def test_fetched_records_summarise(engine):
    request = parse_summary_request({"to_date": "2024-01-31"})
    entries = build_summary(fetch_summary_inputs(request, engine=engine), request)
    mixing_ten = next(e for e in entries if e.mixing_range == "10")
    assert mixing_ten.total_bales == 150
    assert mixing_ten.weighted_metrics["mic"] == 4.33
    assert mixing_ten.mixing == "DCH+MCU5"


def test_unit_filter_is_applied_in_sql(engine):
    request = parse_summary_request({"unit": '["2"]'})
    inputs = fetch_summary_inputs(request, engine=engine)
    assert [issue.mixing_no for issue in inputs.issues] == ["20"]
    assert [row.lot_no for row in inputs.rows] == ["L3"]
    assert inputs.varieties == ()


def test_empty_window_reads_nothing_else(engine):
    request = parse_summary_request({"from_date": "2030-01-01"})
    inputs = fetch_summary_inputs(request, engine=engine)
    assert inputs.issues == () and inputs.rows == () and inputs.lots == ()


def test_filter_records_ignore_key_filters(engine):
    request = parse_summary_request({"unit": '["2"]', "to_date": "2024-01-31"})
    issues, rows = fetch_filter_records(request, engine=engine)
    assert sorted(issue.unit for issue in issues) == ["1", "1"]
    assert len(rows) == 3


def test_database_errors_become_record_source_errors(engine, mocker):
    mocker.patch("mixing.query.pd.read_sql", side_effect=SQLAlchemyError("connection lost"))
    with pytest.raises(RecordSourceError) as excinfo:
        fetch_summary_inputs(parse_summary_request({}), engine=engine)
    assert "connection lost" in excinfo.value.message
    assert isinstance(excinfo.value.__cause__, SQLAlchemyError)


def test_missing_tables_raise_record_source_error():
    bare = create_engine("sqlite://", future=True)
    with pytest.raises(RecordSourceError) as excinfo:
        fetch_summary_inputs(parse_summary_request({}), engine=bare)
    assert "mixing_issue" in excinfo.value.message
    assert excinfo.value.__cause__ is not None
    bare.dispose()


def test_missing_tables_fail_filter_reads_too():
    bare = create_engine("sqlite://", future=True)
    with pytest.raises(RecordSourceError) as excinfo:
        fetch_filter_records(parse_summary_request({}), engine=bare)
    assert excinfo.value.message.startswith("Failed to read filter options")
    bare.dispose()


def test_run_summary_reads_and_summarises(engine, mocker):
    read = mocker.spy(summary, "fetch_summary_inputs")
    entries = run_summary(parse_summary_request({"unit": '["2"]'}), engine=engine)
    assert read.call_count == 1
    assert [entry.mixing_range for entry in entries] == ["20"]
    assert entries[0].total_bales == 40
