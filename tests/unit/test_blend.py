import pytest

from mixing.blend import (
    build_variety_map,
    normalize_mixing_signature,
    resolve_daily_blend,
    resolve_period_blend,
)
from mixing.records import VarietyWeight
from mixing.weighted import build_lot_lookup


@pytest.fixture
def variety_map(varieties):
    return build_variety_map(varieties + [VarietyWeight("V-BUN", "Bunny", 1.0), VarietyWeight("V-ZERO", "Zero", 0.0)])


def test_variety_without_cotton_name_is_not_mapped(variety_map):
    assert "V-UNNAMED" not in variety_map
    assert variety_map["V-DCH"].cotton_name == "DCH"


def test_daily_blend_shares(row_factory, lot_factory, variety_map):
    rows = [row_factory("10", "L1", 60), row_factory("10", "L2", 40)]
    lots = build_lot_lookup([lot_factory("L1", "V-MCU"), lot_factory("L2", "V-DCH")])
    blend = resolve_daily_blend(rows, lots, variety_map)
    assert blend.mixing == "DCH+MCU5"
    assert blend.blend_percent == "40+60"


def test_daily_blend_sorts_names_case_insensitively(row_factory, lot_factory, variety_map):
    rows = [row_factory("10", "L1", 10), row_factory("10", "L2", 10), row_factory("10", "L3", 10)]
    lots = build_lot_lookup([lot_factory("L1", "V-SHK"), lot_factory("L2", "V-BUN"), lot_factory("L3", "V-MCU")])
    blend = resolve_daily_blend(rows, lots, variety_map)
    assert blend.mixing == "Bunny+MCU5+Shankar"
    percentages = [int(p) for p in blend.blend_percent.split("+")]
    assert abs(sum(percentages) - 100) <= 1


def test_daily_blend_falls_back_to_zero_shares(row_factory, lot_factory, variety_map):
    rows = [row_factory("10", "L1", 25)]
    lots = build_lot_lookup([lot_factory("L1", "V-ZERO")])
    blend = resolve_daily_blend(rows, lots, variety_map)
    assert (blend.mixing, blend.blend_percent) == ("Zero", "0")


def test_daily_blend_empty_when_nothing_is_mapped(row_factory, lot_factory, variety_map):
    rows = [row_factory("10", "L1", 25), row_factory("10", "L2", 25)]
    lots = build_lot_lookup([lot_factory("L1", "UNKNOWN"), lot_factory("L2", "V-UNNAMED")])
    blend = resolve_daily_blend(rows, lots, variety_map)
    assert (blend.mixing, blend.blend_percent) == ("", "")


def test_period_blend_shows_top_three(row_factory, lot_factory, variety_map):
    rows = [
        row_factory("10", "L1", 50),
        row_factory("10", "L2", 30),
        row_factory("11", "L3", 15),
        row_factory("11", "L4", 5),
    ]
    lots = build_lot_lookup([
        lot_factory("L1", "V-DCH"),
        lot_factory("L2", "V-MCU"),
        lot_factory("L3", "V-SHK"),
        lot_factory("L4", "V-BUN"),
    ])
    blend = resolve_period_blend(rows, lots, variety_map)
    assert blend.blend_percent == "DCH 50.0%, MCU5 30.0%, Shankar 15.0%"
    assert blend.mixing == "Bunny+DCH+MCU5+Shankar"


def test_period_blend_needs_mapped_bales(row_factory, lot_factory, variety_map):
    rows = [row_factory("10", "L1", 0)]
    lots = build_lot_lookup([lot_factory("L1", "V-DCH")])
    blend = resolve_period_blend(rows, lots, variety_map)
    assert (blend.mixing, blend.blend_percent) == ("", "")


@pytest.mark.parametrize(
    "value,expected",
    [
        ("Shankar+ MCU5 +DCH+MCU5", "DCH+MCU5+Shankar"),
        ("dch+Bunny", "Bunny+dch"),
        ("MCU5", "MCU5"),
        ("+", ""),
        (None, ""),
    ],
)
def test_normalize_mixing_signature(value, expected):
    assert normalize_mixing_signature(value) == expected
