import datetime
import json
import logging
from dataclasses import dataclass
from typing import Optional

from mixing.blend import normalize_mixing_signature
from mixing.exceptions import ValidationError
from mixing.periods import REPORT_TYPES
from mixing.records import as_text, parse_timestamp, to_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SummaryRequest:
    from_date: Optional[str] = None
    to_date: Optional[str] = None
    report_type: str = "daily"
    unit: tuple = ()
    line: tuple = ()
    blend_code: tuple = ()
    mixing: tuple = ()
    mixing_from: Optional[float] = None
    mixing_to: Optional[float] = None

    @property
    def is_period_report(self) -> bool:
        return self.report_type in ("weekly", "monthly")


def normalize_query_value(value):
    """First element of a list value, trimmed, with a trailing ';' removed."""
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        while value.endswith(";"):
            value = value[:-1].rstrip()
    return value


def _unique_text(values) -> tuple:
    cleaned = (as_text(v) for v in values)
    return tuple(dict.fromkeys(v for v in cleaned if v))


def _reject_constant(token):
    # NaN / Infinity / -Infinity are not JSON
    raise ValueError(f"non-standard JSON constant {token}")


def parse_filter_values(value) -> tuple:
    """
    Decode a filter selection into a tuple of distinct, trimmed strings.

    Accepts a list, a JSON array string ('["A","B"]'), or a single scalar.
    A string that is not valid JSON is taken as one literal value.
    """
    if value is None:
        return ()
    if isinstance(value, (list, tuple, set)):
        values = []
        for item in value:
            values.extend(parse_filter_values(item) if isinstance(item, str) else [item])
        return _unique_text(values)
    if not isinstance(value, str):
        return _unique_text([value])

    raw = normalize_query_value(value)
    if not raw:
        return ()
    try:
        decoded = json.loads(raw, parse_constant=_reject_constant)
    except ValueError:
        return _unique_text([raw])

    if isinstance(decoded, list):
        return _unique_text(decoded)
    if decoded is None or isinstance(decoded, dict):
        return _unique_text([raw])
    return _unique_text([decoded])


def _parse_date(value, name: str) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.strftime("%Y-%m-%d")
    ts = parse_timestamp(value)
    if ts is None:
        raise ValidationError(f"{name} must be a valid ISO date")
    return ts.strftime("%Y-%m-%d")


def _parse_bound(value, name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    number = to_number(value)
    if number is None:
        raise ValidationError(f"{name} must be a number")
    return number


def parse_summary_request(params: dict) -> SummaryRequest:
    """
    Build a validated SummaryRequest from raw parameters.

    Raises:
        ValidationError: unknown report type, malformed or inverted date
            range, non-numeric or inverted mixing range.
    """
    report_type = normalize_query_value(params.get("report_type")) or "daily"
    if report_type not in REPORT_TYPES:
        raise ValidationError("Invalid report_type. Must be 'daily', 'weekly', or 'monthly'.")

    from_date = _parse_date(normalize_query_value(params.get("from_date")), "from_date")
    to_date = _parse_date(normalize_query_value(params.get("to_date")), "to_date")
    if from_date and to_date and from_date > to_date:
        raise ValidationError("from_date cannot be after to_date")

    mixing_from = _parse_bound(normalize_query_value(params.get("mixing_from")), "mixing_from")
    mixing_to = _parse_bound(normalize_query_value(params.get("mixing_to")), "mixing_to")
    if mixing_from is not None and mixing_to is not None and mixing_from > mixing_to:
        raise ValidationError("mixing_from cannot be greater than mixing_to")

    mixing = parse_filter_values(params.get("mixing"))
    if report_type != "daily":
        mixing = tuple(dict.fromkeys(normalize_mixing_signature(v) for v in mixing))

    request = SummaryRequest(
        from_date=from_date,
        to_date=to_date,
        report_type=report_type,
        unit=parse_filter_values(params.get("unit")),
        line=parse_filter_values(params.get("line")),
        blend_code=parse_filter_values(params.get("blend_code", params.get("cotton"))),
        mixing=mixing,
        mixing_from=mixing_from,
        mixing_to=mixing_to,
    )
    logger.debug(f"Parsed summary request: {request}")
    return request
