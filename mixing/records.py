import math
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

import pandas as pd

METRIC_KEYS = ("mic", "str", "uhml", "rd", "plus_b", "sf", "ui", "elong", "trash", "moist")
LOT_VALUE_KEYS = METRIC_KEYS + ("min_mic", "min_mic_bale_per_lot", "no_of_bale")


# --------------------------------------------------------------------------- #
# Coercion helpers                                                            #
# --------------------------------------------------------------------------- #
def to_number(value) -> Optional[float]:
    """Return ``value`` as a finite float, or None for blanks and junk."""
    if value is None or value is pd.NA or value is pd.NaT:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def as_text(value) -> str:
    """Normalise a key value (unit, line, mixing no, lot no) to a trimmed string."""
    if value is None or value is pd.NA or value is pd.NaT:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).strip()


def format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def round_half_up(value: float, places: int = 2):
    """Round like ``Number.toFixed``: exact binary value, ties away from zero."""
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if places == 0 else float(rounded)


def parse_timestamp(value) -> Optional[pd.Timestamp]:
    """Parse a date-like value into a naive UTC Timestamp; None when unparseable."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        ts = pd.to_datetime(value, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if not isinstance(ts, pd.Timestamp) or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_convert("UTC").tz_localize(None)
    return ts


def epoch_millis(ts: Optional[pd.Timestamp]) -> Optional[int]:
    if ts is None:
        return None
    return int(ts.value // 1_000_000)


def _records(df: pd.DataFrame) -> list:
    if df is None or df.empty:
        return []
    return df.to_dict(orient="records")


# --------------------------------------------------------------------------- #
# Input records                                                               #
# --------------------------------------------------------------------------- #
@dataclass(frozen=True)
class IssueRecord:
    unit: str
    line: str
    blend_code: str
    mixing_no: str
    issue_date: object = None

    @classmethod
    def from_mapping(cls, row: dict) -> "IssueRecord":
        return cls(
            unit=as_text(row.get("unit")),
            line=as_text(row.get("line")),
            blend_code=as_text(row.get("blend_code")),
            mixing_no=as_text(row.get("mixing_no")),
            issue_date=row.get("issue_date"),
        )

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> list:
        return [cls.from_mapping(row) for row in _records(df)]

    @property
    def key(self) -> tuple:
        return (self.unit, self.line, self.mixing_no, self.blend_code)


@dataclass(frozen=True)
class MixingRow:
    mixing_no: str
    unit: str
    line: str
    blend_code: str
    lot_no: str
    issue_bale: object = None

    @classmethod
    def from_mapping(cls, row: dict) -> "MixingRow":
        return cls(
            mixing_no=as_text(row.get("mixing_no")),
            unit=as_text(row.get("unit")),
            line=as_text(row.get("line")),
            blend_code=as_text(row.get("blend_code")),
            lot_no=as_text(row.get("lot_no")),
            issue_bale=row.get("issue_bale"),
        )

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> list:
        return [cls.from_mapping(row) for row in _records(df)]

    @property
    def bales(self) -> float:
        return to_number(self.issue_bale) or 0.0

    @property
    def key(self) -> tuple:
        return (self.unit, self.line, self.mixing_no, self.blend_code)


@dataclass(frozen=True)
class LotResult:
    lot_no: str
    variety: str
    metrics: dict = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, row: dict) -> "LotResult":
        return cls(
            lot_no=as_text(row.get("lot_no")),
            variety=as_text(row.get("variety")),
            metrics={key: row.get(key) for key in LOT_VALUE_KEYS},
        )

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> list:
        return [cls.from_mapping(row) for row in _records(df)]

    def value(self, key: str) -> Optional[float]:
        return to_number(self.metrics.get(key))


@dataclass(frozen=True)
class VarietyWeight:
    variety: str
    cotton_name: str
    weight: float = 0.0

    @classmethod
    def from_mapping(cls, row: dict) -> "VarietyWeight":
        return cls(
            variety=as_text(row.get("variety")),
            cotton_name=as_text(row.get("cotton_name")),
            weight=to_number(row.get("weight")) or 0.0,
        )

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> list:
        return [cls.from_mapping(row) for row in _records(df)]


@dataclass(frozen=True)
class SummaryInputs:
    """Everything one summary run reads, assembled before aggregation starts."""
    issues: tuple = ()
    rows: tuple = ()
    lots: tuple = ()
    varieties: tuple = ()

    @classmethod
    def from_frames(cls, issue_df, mixing_df, lot_df, variety_df) -> "SummaryInputs":
        return cls(
            issues=tuple(IssueRecord.from_frame(issue_df)),
            rows=tuple(MixingRow.from_frame(mixing_df)),
            lots=tuple(LotResult.from_frame(lot_df)),
            varieties=tuple(VarietyWeight.from_frame(variety_df)),
        )


# --------------------------------------------------------------------------- #
# Output record                                                               #
# --------------------------------------------------------------------------- #
@dataclass
class SummaryEntry:
    """One summary row: a mixing (daily) or a period group (weekly/monthly)."""
    period_label: Optional[str]
    period_sort_key: Optional[str]
    unit: str
    line: str
    blend_code: str
    mixing_range: str = ""
    total_bales: float = 0.0
    no_of_lots: int = 0
    weighted_metrics: dict = field(default_factory=dict)
    min_mic: Optional[str] = None
    min_mic_percent: float = 0
    mixing: str = ""
    blend_percent: str = ""
    bale_change_over_percent: Optional[float] = None
    lot_change_over_percent: Optional[float] = None
    previous_mixing_ref: Optional[str] = None
    issue_date: object = None
    mixing_start: Optional[float] = None
    mixing_end: Optional[float] = None
    # continuity bookkeeping, not part of the rendered row
    group_key: str = ""
    version_number: Optional[int] = None
    issue_timestamp: Optional[int] = None
    mixing_numbers: list = field(default_factory=list)
    lot_bales: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        row = {
            "period": self.period_label,
            "period_sort_key": self.period_sort_key,
            "issue_date": None if self.issue_date is None else str(self.issue_date),
            "unit": self.unit,
            "line": self.line,
            "blend_code": self.blend_code,
            "mixing_no": self.mixing_range,
            "total_bales": self.total_bales,
            "no_of_lots": self.no_of_lots,
        }
        row.update({key: self.weighted_metrics.get(key, 0) for key in METRIC_KEYS})
        row.update({
            "min_mic": self.min_mic,
            "min_mic_percent": self.min_mic_percent,
            "mixing": self.mixing,
            "blend_percent": self.blend_percent,
            "bale_change_over_percent": self.bale_change_over_percent,
            "lot_change_over_percent": self.lot_change_over_percent,
            "previous_mixing_no": self.previous_mixing_ref,
        })
        return row
