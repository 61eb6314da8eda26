import datetime

import pandas as pd
import plotly.express as px
import streamlit as st

from mixing.exceptions import RecordSourceError, ValidationError
from mixing.query import fetch_filter_records
from mixing.records import METRIC_KEYS
from mixing.request import parse_summary_request
from mixing.summary import build_filter_options, run_summary, summary_frame

METRIC_LABELS = {
    "uhml": "UHML",
    "str": "STR",
    "mic": "MIC",
    "rd": "RD",
    "plus_b": "+B",
    "sf": "SF",
    "ui": "UI",
    "elong": "ELONG",
    "trash": "TRASH",
    "moist": "MOIST",
    "min_mic": "MIN MIC",
    "min_mic_percent": "MIN MIC %",
}

COLUMN_DECIMALS = {key: 1 for key in METRIC_KEYS}
COLUMN_DECIMALS.update({
    "mic": 2,
    "min_mic": 2,
    "min_mic_percent": 1,
    "total_bales": 0,
    "no_of_lots": 0,
    "bale_change_over_percent": 2,
    "lot_change_over_percent": 2,
})


def _format_table(df: pd.DataFrame, report_type: str) -> pd.DataFrame:
    shown = df.drop(columns=["period_sort_key"], errors="ignore")
    if report_type == "daily":
        shown = shown.drop(columns=["period"], errors="ignore")
    else:
        shown = shown.drop(columns=["issue_date"], errors="ignore")
    shown["min_mic"] = pd.to_numeric(shown["min_mic"], errors="coerce")
    for column, decimals in COLUMN_DECIMALS.items():
        if column in shown.columns:
            shown[column] = pd.to_numeric(shown[column], errors="coerce").round(decimals)
    return shown.rename(columns=METRIC_LABELS)


def mixing_summary_report():
    st.title("Cotton Mixing Summary")

    today = datetime.date.today()
    col_date1, col_date2, col_type = st.columns([1, 1, 2])
    with col_date1:
        from_date = st.date_input("From Date", value=today - datetime.timedelta(days=30), max_value=today, key="mix_from_date")
    with col_date2:
        to_date = st.date_input("To Date", value=today, min_value=from_date, max_value=today, key="mix_to_date")
    with col_type:
        report_type = st.radio("Report Type", ["daily", "weekly", "monthly"], horizontal=True, key="mix_report_type")

    params = {
        "from_date": from_date,
        "to_date": to_date,
        "report_type": report_type,
        "unit": st.session_state.get("mix_unit", []),
        "line": st.session_state.get("mix_line", []),
        "blend_code": st.session_state.get("mix_blend", []),
        "mixing": st.session_state.get("mix_mixing", []),
    }

    try:
        request = parse_summary_request(params)
        issues, rows = fetch_filter_records(request)
        options = build_filter_options(issues, rows, request)
    except ValidationError as e:
        st.error(e.message)
        return
    except RecordSourceError as e:
        st.error(f"Could not load filter options: {e.message}")
        return

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.multiselect("Unit", options["units"], key="mix_unit")
    with col2:
        st.multiselect("Line", options["lines"], key="mix_line")
    with col3:
        st.multiselect("Blend Code", options["blend_codes"], key="mix_blend")
    with col4:
        if report_type == "daily":
            st.multiselect("Mixing No", options["mixings"], key="mix_mixing")
        else:
            st.text_input("Cotton (e.g. DCH+MCU5)", key="mix_mixing_names")
            typed = st.session_state.get("mix_mixing_names", "")
            params["mixing"] = [typed] if typed else []

    try:
        request = parse_summary_request(params)
        entries = run_summary(request)
    except ValidationError as e:
        st.error(e.message)
        return
    except RecordSourceError as e:
        st.error(f"Error loading mixing summary: {e.message}")
        return

    if not entries:
        st.warning("No mixing data found for the selected filters.")
        return

    df = summary_frame(entries)
    st.subheader(f"{report_type.capitalize()} Summary ({len(df)} rows)")
    st.dataframe(_format_table(df, report_type), use_container_width=True, hide_index=True)

    st.download_button(
        label="Download CSV",
        data=df.to_csv(index=False).encode("utf-8"),
        file_name=f"mixing_summary_{report_type}_{request.from_date}_{request.to_date}.csv",
        mime="text/csv",
    )

    st.subheader("Metric Trend")
    metric = st.selectbox(
        "Metric", list(METRIC_KEYS) + ["min_mic_percent"],
        format_func=lambda key: METRIC_LABELS.get(key, key), key="mix_trend_metric",
    )
    x_column = "issue_date" if report_type == "daily" else "period"
    chart_df = df.dropna(subset=[x_column]).copy()
    if chart_df.empty:
        st.info("No dated rows to chart.")
        return
    if report_type == "daily":
        chart_df[x_column] = pd.to_datetime(chart_df[x_column], errors="coerce")
    chart_df = chart_df.sort_values(by="period_sort_key" if report_type != "daily" else x_column)
    fig = px.line(
        chart_df,
        x=x_column,
        y=metric,
        color="blend_code",
        markers=True,
        hover_data=["unit", "line", "mixing_no", "total_bales"],
        title=f"{METRIC_LABELS.get(metric, metric)} by {x_column.replace('_', ' ')}",
    )
    st.plotly_chart(fig, use_container_width=True)
