import pytest

from mixing.versions import NO_VERSION, parse_blend_version


@pytest.mark.parametrize(
    "code,group_key,version",
    [
        ("25_31_V2", "25_31", 2),
        ("25_31_v12", "25_31", 12),
        ("ABC-V10", "ABC", 10),
        ("mcu 5 v2", "MCU 5", 2),
        ("DCH/V3", "DCH", 3),
        ("V7", "V7", 7),
        ("SHANKAR", "SHANKAR", None),
        ("  shankar  ", "SHANKAR", None),
    ],
)
def test_parse_blend_version(code, group_key, version):
    parsed = parse_blend_version(code)
    assert parsed.group_key == group_key
    assert parsed.version_number == version


@pytest.mark.parametrize("code", [None, "", "   "])
def test_empty_codes_have_no_version(code):
    assert parse_blend_version(code) == (NO_VERSION, None, None)


def test_normalized_raw_is_upper_trimmed():
    assert parse_blend_version(" abc-v10 ").normalized_raw == "ABC-V10"


def test_versions_of_same_recipe_share_group_key():
    assert parse_blend_version("25_31_V1").group_key == parse_blend_version("25_31_V2").group_key
