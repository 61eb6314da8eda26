from dataclasses import dataclass
from typing import Iterable

from mixing.records import VarietyWeight, round_half_up


@dataclass
class BlendComposition:
    mixing: str = ""
    blend_percent: str = ""
    shares: tuple = ()


def _casefold_key(name: str):
    return (name.casefold(), name)


def normalize_mixing_signature(value) -> str:
    """'Shankar+ MCU5 +DCH' -> 'DCH+MCU5+Shankar' (case-insensitive sort, deduplicated)."""
    if value is None:
        return ""
    parts = [part.strip() for part in str(value).split("+")]
    parts = [part for part in dict.fromkeys(parts) if part]
    if len(parts) <= 1:
        return parts[0] if parts else ""
    return "+".join(sorted(parts, key=_casefold_key))


def build_variety_map(varieties: Iterable[VarietyWeight]) -> dict:
    """variety -> VarietyWeight; entries without a cotton name are not mapped."""
    variety_map = {}
    for item in varieties:
        if item.variety and item.cotton_name:
            variety_map[item.variety] = item
    return variety_map


def _contributions(rows, lot_lookup, variety_map):
    contributions = {}
    mapped_bales = 0.0
    for row in rows:
        lot = lot_lookup.get(row.lot_no)
        if lot is None or not lot.variety:
            continue
        info = variety_map.get(lot.variety)
        if info is None:
            continue
        bales = row.bales
        mapped_bales += bales
        contributions[info.cotton_name] = contributions.get(info.cotton_name, 0.0) + bales * info.weight
    return contributions, mapped_bales


def _group_varieties(rows, lot_lookup) -> list:
    varieties = []
    for row in rows:
        lot = lot_lookup.get(row.lot_no)
        if lot is not None and lot.variety and lot.variety not in varieties:
            varieties.append(lot.variety)
    return varieties


def resolve_daily_blend(rows, lot_lookup: dict, variety_map: dict) -> BlendComposition:
    """
    Composition of one mixing as 'A+B+C' with integer shares '50+30+20'.

    Names are sorted case-insensitively. When nothing contributes a positive
    weighted amount, every mapped cotton name of the group's varieties is
    listed with a 0 share.
    """
    mapped = [variety_map[v] for v in _group_varieties(rows, lot_lookup) if v in variety_map]
    if not mapped:
        return BlendComposition()

    contributions, _ = _contributions(rows, lot_lookup, variety_map)
    total = sum(contributions.values())

    names = sorted((name for name, value in contributions.items() if value > 0), key=_casefold_key)
    if not names:
        names = sorted({item.cotton_name for item in mapped}, key=_casefold_key)

    percentages = []
    for name in names:
        value = contributions.get(name, 0.0)
        percentages.append(round_half_up(value / total * 100, 0) if total > 0 and value else 0)

    return BlendComposition(
        mixing="+".join(names),
        blend_percent="+".join(str(p) for p in percentages),
        shares=tuple(zip(names, percentages)),
    )


def resolve_period_blend(rows, lot_lookup: dict, variety_map: dict, top: int = 3) -> BlendComposition:
    """
    Composition of a week or month: top ``top`` cottons as 'A 52.1%, B 30.0%'.

    ``mixing`` is the normalised signature of every contributing cotton name,
    not only the ones shown.
    """
    contributions, mapped_bales = _contributions(rows, lot_lookup, variety_map)
    if mapped_bales <= 0:
        return BlendComposition()

    ordered = sorted(contributions.items(), key=lambda item: item[1], reverse=True)
    total = sum(value for _, value in ordered)

    shares = []
    for name, value in ordered:
        share = round_half_up(value / total * 100, 1) if total > 0 else 0.0
        shares.append((name, share))

    rendered = [f"{name} {share:.1f}%" for name, share in shares[:top]]
    return BlendComposition(
        mixing=normalize_mixing_signature("+".join(name for name, _ in ordered)),
        blend_percent=", ".join(rendered),
        shares=tuple(shares),
    )
