import datetime

import pytest

from mixing.periods import EMPTY_PERIOD, build_period_descriptor, week_of_month


def test_daily_period_uses_calendar_date():
    period = build_period_descriptor("2024-01-31", "daily")
    assert period.label == "2024-01-31"
    assert period.sort_key == "2024-01-31"
    assert period.sort_value == 1706659200000


def test_daily_period_drops_time_of_day():
    period = build_period_descriptor("2024-01-31 17:45:00", "daily")
    assert period.label == "2024-01-31"
    assert period.sort_value == 1706659200000


def test_weekly_period_end_of_month_is_fifth_week():
    period = build_period_descriptor("2024-01-31", "weekly")
    assert period.label == "2024-01-W5"
    assert period.sort_key == "2024-01-05"
    assert period.sort_value == 20240105


def test_monthly_period():
    period = build_period_descriptor(datetime.date(2024, 1, 31), "monthly")
    assert period == ("2024-01", "2024-01", 202401)


@pytest.mark.parametrize("day,week", [(1, 1), (7, 1), (8, 2), (14, 2), (15, 3), (28, 4), (29, 5)])
def test_week_of_month(day, week):
    assert week_of_month(day) == week


@pytest.mark.parametrize("value", [None, "", "   ", "not a date", "2024-13-45"])
def test_missing_or_bad_dates_give_empty_period(value):
    assert build_period_descriptor(value, "weekly") == EMPTY_PERIOD


def test_unknown_report_type_falls_back_to_daily():
    assert build_period_descriptor("2024-03-02", "quarterly").label == "2024-03-02"


def test_timezone_aware_dates_are_bucketed_in_utc():
    period = build_period_descriptor("2024-02-01T02:00:00+05:30", "monthly")
    assert period.label == "2024-01"
