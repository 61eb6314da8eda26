"""
Change tracking across successive entries of the same blend recipe.

Entries are partitioned by (unit, line, blend signature) and ordered by
issue time, then blend revision, then the highest mixing number in the
entry. Each entry is compared with its immediate predecessor:

    bale change% = sum(|cur_bales(lot) - prev_bales(lot)|) / prev.total_bales * 100
    lot change%  = (new lots + removed lots) / prev.no_of_lots * 100

Weekly and monthly entries first get a period-local figure: the same two
percentages computed between consecutive mixings inside the period and
averaged. The cross-period comparison only fills what that left empty.
"""
import math
from dataclasses import dataclass, field
from typing import Callable, Optional

from mixing.records import SummaryEntry, epoch_millis, parse_timestamp, round_half_up, to_number


def signature_of(entry: SummaryEntry) -> tuple:
    return (entry.unit, entry.line, entry.group_key)


def _max_mixing(entry: SummaryEntry) -> Optional[float]:
    if entry.mixing_numbers:
        return max(entry.mixing_numbers)
    return entry.mixing_end if entry.mixing_end is not None else entry.mixing_start


def continuity_order_key(entry: SummaryEntry) -> tuple:
    def last_if_none(value):
        return math.inf if value is None else value

    return (
        last_if_none(entry.issue_timestamp),
        last_if_none(entry.version_number),
        last_if_none(_max_mixing(entry)),
    )


def change_between(previous_lots: dict, current_lots: dict, previous_total: float, previous_lot_count: int):
    """Returns (bale_change_percent, lot_change_percent); None where the base is 0."""
    absolute_difference = 0.0
    new_lots = 0
    removed_lots = 0
    for lot_no in set(previous_lots) | set(current_lots):
        prev_bales = previous_lots.get(lot_no, 0.0)
        cur_bales = current_lots.get(lot_no, 0.0)
        absolute_difference += abs(cur_bales - prev_bales)
        if prev_bales == 0 and cur_bales > 0:
            new_lots += 1
        if cur_bales == 0 and prev_bales > 0:
            removed_lots += 1

    bale_change = (
        round_half_up(absolute_difference / previous_total * 100, 2) if previous_total > 0 else None
    )
    lot_change = (
        round_half_up((new_lots + removed_lots) / previous_lot_count * 100, 2)
        if previous_lot_count > 0
        else None
    )
    return bale_change, lot_change


def annotate_continuity(entries: list, keep_period_values: bool = False) -> None:
    """
    Fill bale/lot change% and previous_mixing_ref in place.

    With ``keep_period_values`` (weekly/monthly), change values already set
    on an entry are left alone and only previous_mixing_ref is filled.
    """
    partitions = {}
    for entry in entries:
        partitions.setdefault(signature_of(entry), []).append(entry)

    for records in partitions.values():
        records.sort(key=continuity_order_key)
        last_version = None
        last_timestamp = None

        for index, entry in enumerate(records):
            linked = last_version is not None and last_timestamp is not None

            if index == 0 or not linked:
                if not keep_period_values:
                    entry.bale_change_over_percent = None
                    entry.lot_change_over_percent = None
                    entry.previous_mixing_ref = None
            else:
                previous = records[index - 1]
                has_period_values = (
                    entry.bale_change_over_percent is not None
                    or entry.lot_change_over_percent is not None
                )
                if keep_period_values and has_period_values:
                    if entry.previous_mixing_ref is None:
                        entry.previous_mixing_ref = previous.mixing_range
                else:
                    (
                        entry.bale_change_over_percent,
                        entry.lot_change_over_percent,
                    ) = change_between(
                        previous.lot_bales,
                        entry.lot_bales,
                        previous.total_bales,
                        previous.no_of_lots,
                    )
                    entry.previous_mixing_ref = previous.mixing_range

            last_version = entry.version_number
            last_timestamp = entry.issue_timestamp


# --------------------------------------------------------------------------- #
# Period-local change (weekly / monthly)                                      #
# --------------------------------------------------------------------------- #
@dataclass
class MixingSnapshot:
    mixing_no: str
    total_bales: float = 0.0
    lot_bales: dict = field(default_factory=dict)
    issue_timestamp: Optional[int] = None


def build_mixing_snapshots(rows: list, issue_date_for: Callable) -> list:
    """One snapshot per distinct mixing number, in chronological order."""
    snapshots = {}
    for row in rows:
        if not row.mixing_no:
            continue
        snapshot = snapshots.get(row.mixing_no)
        if snapshot is None:
            ts = parse_timestamp(issue_date_for(row))
            snapshot = MixingSnapshot(mixing_no=row.mixing_no, issue_timestamp=epoch_millis(ts))
            snapshots[row.mixing_no] = snapshot
        bales = row.bales
        snapshot.total_bales += bales
        if row.lot_no:
            snapshot.lot_bales[row.lot_no] = snapshot.lot_bales.get(row.lot_no, 0.0) + bales

    def order(snapshot: MixingSnapshot):
        number = to_number(snapshot.mixing_no)
        ts = math.inf if snapshot.issue_timestamp is None else snapshot.issue_timestamp
        if number is None:
            return (ts, 1, 0.0, snapshot.mixing_no)
        return (ts, 0, number, "")

    return sorted(snapshots.values(), key=order)


def period_change(snapshots: list):
    """Mean bale/lot change% over consecutive mixings of one period, or (None, None)."""
    bale_changes = []
    lot_changes = []

    for prev, curr in zip(snapshots, snapshots[1:]):
        lot_set = set(prev.lot_bales) | set(curr.lot_bales)
        absolute_difference = sum(
            abs(curr.lot_bales.get(lot, 0.0) - prev.lot_bales.get(lot, 0.0)) for lot in lot_set
        )

        if prev.total_bales > 0:
            bale_changes.append(absolute_difference / prev.total_bales * 100)
        elif prev.lot_bales:
            # lots present but no bales recorded against them
            bale_changes.append(0.0 if absolute_difference == 0 else 100.0)

        prev_lot_count = len(prev.lot_bales)
        if prev_lot_count > 0:
            new_lots = sum(
                1 for lot in lot_set
                if prev.lot_bales.get(lot, 0.0) <= 0 < curr.lot_bales.get(lot, 0.0)
            )
            removed_lots = sum(
                1 for lot in lot_set
                if curr.lot_bales.get(lot, 0.0) <= 0 < prev.lot_bales.get(lot, 0.0)
            )
            lot_changes.append((new_lots + removed_lots) / prev_lot_count * 100)

    bale_average = round_half_up(sum(bale_changes) / len(bale_changes), 2) if bale_changes else None
    lot_average = round_half_up(sum(lot_changes) / len(lot_changes), 2) if lot_changes else None
    return bale_average, lot_average
