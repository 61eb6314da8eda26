import logging

import pandas as pd
from sqlalchemy import bindparam, text
from sqlalchemy.exc import SQLAlchemyError

from db import get_engine
from mixing.exceptions import RecordSourceError
from mixing.records import IssueRecord, MixingRow, SummaryInputs, as_text
from mixing.request import SummaryRequest

logger = logging.getLogger(__name__)

MIXING_COLUMNS = ["mixing_no", "unit", "line", "blend_code", "lot_no", "issue_bale"]
LOT_COLUMNS = [
    "lot_no", "variety", "uhml", "str", "mic", "rd", "plus_b", "sf", "ui", "elong",
    "trash", "moist", "min_mic", "min_mic_bale_per_lot", "no_of_bale",
]
VARIETY_COLUMNS = ["variety", "cotton_name", "weight"]


def _read(conn, sql: str, params: dict, expanding=()) -> pd.DataFrame:
    statement = text(sql)
    if expanding:
        statement = statement.bindparams(*(bindparam(name, expanding=True) for name in expanding))
    return pd.read_sql(statement, conn, params=params)


def _distinct(series) -> list:
    values = (as_text(value) for value in series)
    return list(dict.fromkeys(value for value in values if value))


def read_issue_records(conn, request: SummaryRequest, apply_key_filters: bool = True) -> pd.DataFrame:
    """mixing_issue rows in the request window."""
    clauses = []
    params = {}
    expanding = []
    if request.from_date:
        clauses.append("issue_date >= :from_date")
        params["from_date"] = request.from_date
    if request.to_date:
        clauses.append("issue_date <= :to_date")
        params["to_date"] = request.to_date
    if apply_key_filters:
        if request.unit:
            clauses.append("unit IN :units")
            params["units"] = list(request.unit)
            expanding.append("units")
        if request.line:
            clauses.append("line IN :lines")
            params["lines"] = list(request.line)
            expanding.append("lines")
        # weekly/monthly mixing filters match blend names, applied after grouping
        if request.mixing and not request.is_period_report:
            clauses.append("mixing_no IN :mixings")
            params["mixings"] = list(request.mixing)
            expanding.append("mixings")

    sql = "SELECT unit, line, cotton AS blend_code, mixing_no, issue_date FROM mixing_issue"
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    return _read(conn, sql, params, expanding)


def read_mixing_rows(conn, mixing_nos: list) -> pd.DataFrame:
    if not mixing_nos:
        return pd.DataFrame(columns=MIXING_COLUMNS)
    sql = """
        SELECT mixing_no, unit, line, cotton AS blend_code, lot_no, issue_bale
        FROM mixing_chart
        WHERE mixing_no IN :mixing_nos
    """
    return _read(conn, sql, {"mixing_nos": mixing_nos}, ["mixing_nos"])


def read_lot_results(conn, lot_nos: list) -> pd.DataFrame:
    if not lot_nos:
        return pd.DataFrame(columns=LOT_COLUMNS)
    sql = f"""
        SELECT {", ".join(LOT_COLUMNS)}
        FROM lot_results
        WHERE lot_no IN :lot_nos
    """
    return _read(conn, sql, {"lot_nos": lot_nos}, ["lot_nos"])


def read_variety_weights(conn, varieties: list) -> pd.DataFrame:
    if not varieties:
        return pd.DataFrame(columns=VARIETY_COLUMNS)
    sql = """
        SELECT variety, cotton_name, weight
        FROM mixing_code
        WHERE variety IN :varieties
    """
    return _read(conn, sql, {"varieties": varieties}, ["varieties"])


def fetch_summary_inputs(request: SummaryRequest, engine=None) -> SummaryInputs:
    """
    Read everything a summary run needs: issues, then the mixing rows of
    those issues, then their lot results, then the variety weights.

    Raises:
        RecordSourceError: any database failure; nothing partial is returned.
    """
    engine = engine or get_engine()
    try:
        with engine.connect() as conn:
            issue_df = read_issue_records(conn, request)
            mixing_df = read_mixing_rows(conn, _distinct(issue_df["mixing_no"]) if not issue_df.empty else [])
            lot_df = read_lot_results(conn, _distinct(mixing_df["lot_no"]) if not mixing_df.empty else [])
            variety_df = read_variety_weights(conn, _distinct(lot_df["variety"]) if not lot_df.empty else [])
    except (SQLAlchemyError, pd.errors.DatabaseError) as exc:
        logger.error(f"Reading mixing records failed: {exc}")
        raise RecordSourceError(f"Failed to read mixing records: {exc}") from exc

    logger.info(
        f"Fetched {len(issue_df)} issues, {len(mixing_df)} mixing rows, "
        f"{len(lot_df)} lot results, {len(variety_df)} variety weights"
    )
    return SummaryInputs.from_frames(issue_df, mixing_df, lot_df, variety_df)


def fetch_filter_records(request: SummaryRequest, engine=None):
    """Issue records and mixing rows of the request window, without key filters."""
    engine = engine or get_engine()
    try:
        with engine.connect() as conn:
            issue_df = read_issue_records(conn, request, apply_key_filters=False)
            mixing_df = read_mixing_rows(conn, _distinct(issue_df["mixing_no"]) if not issue_df.empty else [])
    except (SQLAlchemyError, pd.errors.DatabaseError) as exc:
        logger.error(f"Reading filter options failed: {exc}")
        raise RecordSourceError(f"Failed to read filter options: {exc}") from exc
    return IssueRecord.from_frame(issue_df), MixingRow.from_frame(mixing_df)
