import math
from typing import NamedTuple, Optional

from mixing.records import epoch_millis, parse_timestamp

REPORT_TYPES = ("daily", "weekly", "monthly")


class PeriodDescriptor(NamedTuple):
    label: Optional[str]
    sort_key: Optional[str]
    sort_value: Optional[int]


EMPTY_PERIOD = PeriodDescriptor(None, None, None)


def week_of_month(day: int) -> int:
    return math.ceil(day / 7)


def build_period_descriptor(issue_date, report_type: str = "daily") -> PeriodDescriptor:
    """
    Bucket an issue date into a reporting period.

    daily   -> 2024-01-31 / 2024-01-31 / epoch millis of that day
    weekly  -> 2024-01-W5 / 2024-01-05 / 20240105
    monthly -> 2024-01    / 2024-01    / 202401

    Unknown report types are bucketed as daily. Absent or unparseable dates
    give an all-None descriptor.
    """
    ts = parse_timestamp(issue_date)
    if ts is None:
        return EMPTY_PERIOD

    year = f"{ts.year:04d}"
    month = f"{ts.month:02d}"

    if report_type == "weekly":
        week = f"{week_of_month(ts.day):02d}"
        return PeriodDescriptor(
            label=f"{year}-{month}-W{week_of_month(ts.day)}",
            sort_key=f"{year}-{month}-{week}",
            sort_value=int(f"{year}{month}{week}"),
        )

    if report_type == "monthly":
        label = f"{year}-{month}"
        return PeriodDescriptor(label=label, sort_key=label, sort_value=int(f"{year}{month}"))

    day = ts.normalize()
    label = day.strftime("%Y-%m-%d")
    return PeriodDescriptor(label=label, sort_key=label, sort_value=epoch_millis(day))
