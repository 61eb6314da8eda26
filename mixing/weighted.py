"""
Bale-weighted quality metrics for one group of mixing rows.

Every metric is averaged with the issued bales as weights:

    weighted = round(sum(bales_i * value_i) / total_bales, 2)

A lot with a missing or non-numeric value contributes 0 to the numerator
while its bales stay in ``total_bales``. Rows whose lot has no test result
behave the same way. The denominator is always the full bale count, so
missing values dilute the average.
"""
from dataclasses import dataclass, field
from typing import Iterable, Optional

from mixing.records import (
    METRIC_KEYS,
    LotResult,
    format_number,
    parse_timestamp,
    round_half_up,
    to_number,
)


@dataclass
class WeightedResult:
    total_bales: float = 0.0
    no_of_lots: int = 0
    metrics: dict = field(default_factory=lambda: {key: 0 for key in METRIC_KEYS})
    min_mic: Optional[str] = None
    min_mic_percent: float = 0
    lot_bales: dict = field(default_factory=dict)
    mixing_numbers: list = field(default_factory=list)
    mixing_range: str = ""
    mixing_start: Optional[float] = None
    mixing_end: Optional[float] = None


def build_lot_lookup(lots: Iterable[LotResult]) -> dict:
    """Map lot_no -> first LotResult seen for it."""
    lookup = {}
    for lot in lots:
        if lot.lot_no and lot.lot_no not in lookup:
            lookup[lot.lot_no] = lot
    return lookup


def describe_mixing_range(mixing_values: list):
    """
    Returns (range_label, numbers, start, end) for a list of raw mixing numbers.

    Non-numeric values are ignored for the range; if nothing is numeric the
    first raw value is used as the label.
    """
    numbers = sorted({n for n in (to_number(v) for v in mixing_values) if n is not None})
    if not numbers:
        first = mixing_values[0] if mixing_values else ""
        return ("" if first is None else str(first)), [], None, None
    start, end = numbers[0], numbers[-1]
    if start == end:
        return format_number(start), numbers, start, end
    return f"{format_number(start)}-{format_number(end)}", numbers, start, end


def earliest_issue_date(issue_dates: list):
    """Earliest parseable date; input order breaks ties. Unparseable values are skipped."""
    best = None
    best_ts = None
    for raw in issue_dates:
        ts = parse_timestamp(raw)
        if ts is None:
            continue
        if best_ts is None or ts < best_ts:
            best, best_ts = raw, ts
    return best


def weighted_metrics(rows: list, lot_lookup: dict, mixing_values: Optional[list] = None) -> WeightedResult:
    """
    Aggregate the rows of one group.

    Args:
        rows: MixingRow records contributing to the group.
        lot_lookup: lot_no -> LotResult, see build_lot_lookup.
        mixing_values: raw mixing numbers for the range label; defaults to the
            rows' own mixing numbers.
    """
    result = WeightedResult()
    if mixing_values is None:
        mixing_values = [row.mixing_no for row in rows]
    (
        result.mixing_range,
        result.mixing_numbers,
        result.mixing_start,
        result.mixing_end,
    ) = describe_mixing_range(list(dict.fromkeys(mixing_values)))

    result.total_bales = sum(row.bales for row in rows)
    result.no_of_lots = len({row.lot_no for row in rows if row.lot_no})

    sums = {key: 0.0 for key in METRIC_KEYS}
    min_mic_numerator = 0.0
    min_mic_values = []

    for row in rows:
        lot = lot_lookup.get(row.lot_no)
        if lot is None:
            continue

        bales = row.bales
        if row.lot_no:
            result.lot_bales[row.lot_no] = result.lot_bales.get(row.lot_no, 0.0) + bales

        for key in METRIC_KEYS:
            sums[key] += (lot.value(key) or 0.0) * bales

        min_mic_bales = lot.value("min_mic_bale_per_lot")
        lot_total_bales = lot.value("no_of_bale")
        if min_mic_bales is not None and lot_total_bales is not None and lot_total_bales > 0:
            min_mic_numerator += bales * (min_mic_bales * 100 / lot_total_bales)

        lot_min_mic = lot.value("min_mic")
        if lot_min_mic is not None:
            min_mic_values.append(lot_min_mic)

    if result.total_bales > 0:
        result.metrics = {
            key: round_half_up(sums[key] / result.total_bales, 2) for key in METRIC_KEYS
        }
        result.min_mic_percent = round_half_up(min_mic_numerator / result.total_bales, 2)

    if min_mic_values and result.total_bales > 0:
        result.min_mic = f"{round_half_up(min(min_mic_values), 2):.2f}"

    return result