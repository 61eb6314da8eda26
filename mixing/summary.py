"""
Cotton mixing summary: groups issued mixings into daily, weekly or monthly
entries and annotates each with weighted quality, blend composition and
change against the previous entry of the same blend.

``build_summary`` is pure: it works only on the records it is given.
``run_summary`` fetches those records first.
"""
import logging
import os
import re

import pandas as pd

from mixing.blend import build_variety_map, normalize_mixing_signature, resolve_daily_blend, resolve_period_blend
from mixing.continuity import annotate_continuity, build_mixing_snapshots, period_change
from mixing.periods import build_period_descriptor
from mixing.query import fetch_summary_inputs
from mixing.records import SummaryEntry, epoch_millis, parse_timestamp, to_number
from mixing.request import SummaryRequest
from mixing.versions import parse_blend_version
from mixing.weighted import build_lot_lookup, earliest_issue_date, weighted_metrics

logger = logging.getLogger(__name__)


def _debug_enabled() -> bool:
    return os.getenv("SUMMARY_DEBUG", "").strip().lower() == "true"


# --------------------------------------------------------------------------- #
# Blend code filters                                                          #
# --------------------------------------------------------------------------- #
def sanitize_blend_code(value: str) -> str:
    """'25-31 v2' -> '25_31_V2'"""
    if not value:
        return ""
    value = re.sub(r"[^A-Z0-9V_]+", "_", value.upper())
    value = re.sub(r"_{2,}", "_", value)
    return value.strip("_")


def build_blend_lookup(issues) -> dict:
    """Upper-cased blend code -> blend code as stored."""
    return {issue.blend_code.upper(): issue.blend_code for issue in issues if issue.blend_code}


def normalize_blend_filter(value, lookup: dict) -> str:
    """Resolve a user-typed blend code against the codes present in the data."""
    trimmed = str(value).strip() if value is not None else ""
    if not trimmed:
        return ""
    upper = trimmed.upper()
    sanitized = sanitize_blend_code(upper)
    candidates = [upper]
    if sanitized and sanitized != upper:
        candidates.append(sanitized)
    raw = parse_blend_version(trimmed).normalized_raw
    if raw:
        candidates.extend([raw, sanitize_blend_code(raw)])

    for candidate in candidates:
        if candidate and candidate.upper() in lookup:
            return lookup[candidate.upper()]
    return sanitized or upper


# --------------------------------------------------------------------------- #
# Record selection                                                            #
# --------------------------------------------------------------------------- #
def _in_date_window(issue_date, request: SummaryRequest) -> bool:
    if not request.from_date and not request.to_date:
        return True
    ts = parse_timestamp(issue_date)
    if ts is None:
        return False
    day = ts.normalize()
    if request.from_date and day < pd.Timestamp(request.from_date):
        return False
    if request.to_date and day > pd.Timestamp(request.to_date):
        return False
    return True


def _in_mixing_range(mixing_no, request: SummaryRequest) -> bool:
    if request.mixing_from is None and request.mixing_to is None:
        return True
    number = to_number(mixing_no)
    if number is None:
        return False
    if request.mixing_from is not None and number < request.mixing_from:
        return False
    if request.mixing_to is not None and number > request.mixing_to:
        return False
    return True


def select_issues(issues, request: SummaryRequest, blend_filters: tuple = ()) -> list:
    """Issue records inside the request window that pass every key filter."""
    blend_set = {code.upper() for code in blend_filters}
    selected = []
    for issue in issues:
        if not _in_date_window(issue.issue_date, request):
            continue
        if not _in_mixing_range(issue.mixing_no, request):
            continue
        if request.unit and issue.unit not in request.unit:
            continue
        if request.line and issue.line not in request.line:
            continue
        if request.mixing and not request.is_period_report and issue.mixing_no not in request.mixing:
            continue
        if blend_set and issue.blend_code.upper() not in blend_set:
            continue
        selected.append(issue)
    return selected


def select_rows(rows, issues, request: SummaryRequest, blend_filters: tuple = ()) -> list:
    """Mixing rows that belong to one of ``issues`` and pass the key filters."""
    mixing_nos = {issue.mixing_no for issue in issues if issue.mixing_no}
    blend_set = {code.upper() for code in blend_filters}
    return [
        row for row in rows
        if row.mixing_no in mixing_nos
        and (not request.unit or row.unit in request.unit)
        and (not request.line or row.line in request.line)
        and (not blend_set or row.blend_code.upper() in blend_set)
    ]


class IssueDateIndex:
    """
    Issue date lookup for mixing rows.

    A row is matched on (unit, line, mixing_no, blend_code); when that key
    has no issue, the first dated issue with the same mixing number is used.
    """

    def __init__(self, issues):
        self._by_key = {}
        self._by_mixing = {}
        for issue in issues:
            if issue.issue_date is None or parse_timestamp(issue.issue_date) is None:
                continue
            self._by_key.setdefault(issue.key, issue.issue_date)
            self._by_mixing.setdefault(issue.mixing_no, issue.issue_date)

    def lookup(self, row):
        if row.key in self._by_key:
            return self._by_key[row.key]
        return self._by_mixing.get(row.mixing_no)


# --------------------------------------------------------------------------- #
# Grouping                                                                    #
# --------------------------------------------------------------------------- #
def _new_entry(period, unit, line, blend_code, weighted, issue_date) -> SummaryEntry:
    version = parse_blend_version(blend_code)
    ts = parse_timestamp(issue_date)
    return SummaryEntry(
        period_label=period.label,
        period_sort_key=period.sort_key,
        unit=unit,
        line=line,
        blend_code=blend_code,
        mixing_range=weighted.mixing_range,
        total_bales=weighted.total_bales,
        no_of_lots=weighted.no_of_lots,
        weighted_metrics=weighted.metrics,
        min_mic=weighted.min_mic,
        min_mic_percent=weighted.min_mic_percent,
        issue_date=issue_date,
        mixing_start=weighted.mixing_start,
        mixing_end=weighted.mixing_end,
        group_key=version.group_key,
        version_number=version.version_number,
        issue_timestamp=epoch_millis(ts),
        mixing_numbers=weighted.mixing_numbers,
        lot_bales=weighted.lot_bales,
    )


def daily_entries(rows, issue_index: IssueDateIndex, lot_lookup: dict, variety_map: dict) -> list:
    groups = {}
    for row in rows:
        groups.setdefault(row.key, []).append(row)

    entries = []
    for group_rows in groups.values():
        first = group_rows[0]
        issue_date = earliest_issue_date([issue_index.lookup(row) for row in group_rows])
        weighted = weighted_metrics(group_rows, lot_lookup)
        entry = _new_entry(
            build_period_descriptor(issue_date, "daily"),
            first.unit, first.line, first.blend_code, weighted, issue_date,
        )
        blend = resolve_daily_blend(group_rows, lot_lookup, variety_map)
        entry.mixing, entry.blend_percent = blend.mixing, blend.blend_percent
        entries.append(entry)

    logger.debug(f"Built {len(entries)} daily entries from {len(rows)} mixing rows")
    return entries


def period_entries(issues, rows, issue_index: IssueDateIndex, lot_lookup: dict,
                   variety_map: dict, report_type: str) -> list:
    groups = {}
    for issue in issues:
        period = build_period_descriptor(issue.issue_date, report_type)
        if period.label is None:
            continue
        key = (period.label, issue.unit, issue.line, issue.blend_code)
        group = groups.setdefault(key, {"period": period, "mixing_nos": [], "issue_dates": []})
        group["mixing_nos"].append(issue.mixing_no)
        group["issue_dates"].append(issue.issue_date)

    entries = []
    for (label, unit, line, blend_code), group in groups.items():
        mixing_nos = {value for value in group["mixing_nos"] if value}
        blend_upper = blend_code.upper()
        group_rows = [
            row for row in rows
            if row.mixing_no in mixing_nos
            and row.unit == unit
            and row.line == line
            and row.blend_code.upper() == blend_upper
        ]
        if not group_rows:
            if _debug_enabled():
                logger.warning(f"No mixing rows for {report_type} group {label} {unit}/{line}/{blend_code}")
            continue

        issue_date = earliest_issue_date(group["issue_dates"])
        weighted = weighted_metrics(group_rows, lot_lookup, mixing_values=group["mixing_nos"])
        entry = _new_entry(group["period"], unit, line, blend_code, weighted, issue_date)
        blend = resolve_period_blend(group_rows, lot_lookup, variety_map)
        entry.mixing, entry.blend_percent = blend.mixing, blend.blend_percent

        snapshots = build_mixing_snapshots(group_rows, issue_index.lookup)
        entry.bale_change_over_percent, entry.lot_change_over_percent = period_change(snapshots)
        entries.append(entry)

    logger.debug(f"Built {len(entries)} {report_type} entries from {len(groups)} issue groups")
    return entries


def _matches_mixing(entry: SummaryEntry, filters: tuple) -> bool:
    if not entry.mixing:
        return False
    if normalize_mixing_signature(entry.mixing) in filters:
        return True
    return any(name.strip() in filters for name in entry.mixing.split("+"))


def _sort_output(entries: list, report_type: str) -> list:
    if report_type == "daily":
        dated = [e for e in entries if e.issue_timestamp is not None]
        undated = [e for e in entries if e.issue_timestamp is None]
        return sorted(dated, key=lambda e: e.issue_timestamp, reverse=True) + undated
    keyed = [e for e in entries if e.period_sort_key]
    unkeyed = [e for e in entries if not e.period_sort_key]
    return sorted(keyed, key=lambda e: e.period_sort_key, reverse=True) + unkeyed


# --------------------------------------------------------------------------- #
# Entry points                                                                #
# --------------------------------------------------------------------------- #
def build_summary(inputs, request: SummaryRequest) -> list:
    """
    Summarise ``inputs`` (a SummaryInputs bundle) for ``request``.

    Returns SummaryEntry objects, newest first. Entries without a date go
    last in input order.
    """
    blend_lookup = build_blend_lookup(inputs.issues)
    blend_filters = tuple(
        dict.fromkeys(
            code for code in (normalize_blend_filter(v, blend_lookup) for v in request.blend_code) if code
        )
    )
    issues = select_issues(inputs.issues, request, blend_filters)
    if not issues:
        logger.info("No issue records in the requested window")
        return []

    rows = select_rows(inputs.rows, issues, request, blend_filters)
    if not rows:
        logger.info("No mixing rows for the selected issues")
        return []

    lot_lookup = build_lot_lookup(inputs.lots)
    variety_map = build_variety_map(inputs.varieties)
    issue_index = IssueDateIndex(issues)

    if _debug_enabled():
        unmatched = sorted({row.lot_no for row in rows if row.lot_no not in lot_lookup})
        if unmatched:
            logger.warning(f"{len(unmatched)} lots have no test result: {unmatched[:20]}")

    if request.is_period_report:
        entries = period_entries(issues, rows, issue_index, lot_lookup, variety_map, request.report_type)
        annotate_continuity(entries, keep_period_values=True)
    else:
        entries = daily_entries(rows, issue_index, lot_lookup, variety_map)
        annotate_continuity(entries)

    entries = _sort_output(entries, request.report_type)
    if request.mixing and request.is_period_report:
        entries = [entry for entry in entries if _matches_mixing(entry, request.mixing)]

    logger.info(f"{request.report_type} summary: {len(entries)} entries from {len(rows)} mixing rows")
    return entries


def summary_frame(entries: list) -> pd.DataFrame:
    return pd.DataFrame([entry.to_dict() for entry in entries])


def run_summary(request: SummaryRequest, engine=None) -> list:
    """Fetch the records for ``request`` and summarise them."""
    inputs = fetch_summary_inputs(request, engine=engine)
    return build_summary(inputs, request)


# --------------------------------------------------------------------------- #
# Filter options                                                              #
# --------------------------------------------------------------------------- #
def _option_sort_key(value: str):
    number = to_number(value)
    if number is not None:
        return (0, number, ())
    parts = tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part.casefold())
        for part in re.split(r"(\d+)", value) if part
    )
    return (1, 0, parts)


def _options(values, selected=()) -> list:
    distinct = {value for value in values if value}
    distinct.update(value for value in selected if value)
    return sorted(distinct, key=_option_sort_key)


def build_filter_options(issues, rows, request: SummaryRequest) -> dict:
    """
    Option lists for the unit / line / blend code / mixing selectors.

    Each list is narrowed by the selections to its left (unit, then line,
    then blend code) and always contains the current selections.
    """
    windowed = [
        issue for issue in issues
        if _in_date_window(issue.issue_date, request) and _in_mixing_range(issue.mixing_no, request)
    ]
    window_mixings = {issue.mixing_no for issue in windowed}
    window_rows = [row for row in rows if row.mixing_no in window_mixings]
    combined = windowed + window_rows

    by_unit = [r for r in combined if not request.unit or r.unit in request.unit]
    by_line = [r for r in by_unit if not request.line or r.line in request.line]
    blend_set = {code.upper() for code in request.blend_code}
    by_blend = [
        issue for issue in windowed
        if (not request.unit or issue.unit in request.unit)
        and (not request.line or issue.line in request.line)
        and (not blend_set or issue.blend_code.upper() in blend_set)
    ]

    return {
        "units": _options((r.unit for r in combined), request.unit),
        "lines": _options((r.line for r in by_unit), request.line),
        "blend_codes": _options((r.blend_code for r in by_line), request.blend_code),
        "mixings": _options((issue.mixing_no for issue in by_blend), request.mixing),
    }
