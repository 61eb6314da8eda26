import re
from typing import NamedTuple, Optional

NO_VERSION = "__NO_VERSION__"

# YY_UL_VN, e.g. 25_31_V1
_YEAR_UNIT_VERSION = re.compile(r"^(\d{2})_(\d{2})_V(\d+)$", re.IGNORECASE)
# Older free-form codes ending in a version marker, e.g. "ABC-V10", "MCU 5 V2"
_TRAILING_VERSION = re.compile(r"^(.*?)[\s\-_/]*(V\d+)$", re.IGNORECASE)
_TRAILING_SEPARATORS = re.compile(r"[\s\-_/]+$")


class BlendVersion(NamedTuple):
    group_key: str
    version_number: Optional[int]
    normalized_raw: Optional[str]


def parse_blend_version(blend_code) -> BlendVersion:
    """Split a blend code into the recipe signature and its revision number."""
    if blend_code is None:
        return BlendVersion(NO_VERSION, None, None)

    trimmed = str(blend_code).strip().upper()
    if not trimmed:
        return BlendVersion(NO_VERSION, None, None)

    match = _YEAR_UNIT_VERSION.match(trimmed)
    if match:
        year, unit, version = match.groups()
        return BlendVersion(f"{year}_{unit}", int(version), trimmed)

    match = _TRAILING_VERSION.match(trimmed)
    if match:
        base = _TRAILING_SEPARATORS.sub("", match.group(1)).strip()
        if not base:
            base = re.sub(r"[\s\-_/]*V\d+$", "", trimmed, flags=re.IGNORECASE).strip()
        return BlendVersion(base or trimmed, int(match.group(2)[1:]), trimmed)

    return BlendVersion(trimmed, None, trimmed)
