import pytest

from yt_collect.duration import parse_duration


@pytest.mark.parametrize(
    "token, expected",
    [
        ("PT4M30S", 270),
        ("PT1H2M3S", 3723),
        ("PT2H", 7200),
        ("PT15M", 900),
        ("PT45S", 45),
        ("PT1H30S", 3630),
        ("PT0S", 0),
        ("PT10H0M1S", 36001),
    ],
)
def test_parses_any_subset_of_components(token, expected):
    assert parse_duration(token) == expected


@pytest.mark.parametrize("token", ["", None, "garbage", "P1D", "P1DT2H", "4:30", "PT-5S", "PTxM"])
def test_absent_or_unparseable_tokens_are_zero(token):
    assert parse_duration(token) == 0


def test_fractional_seconds_are_truncated():
    assert parse_duration("PT1M2.5S") == 62


def test_surrounding_whitespace_is_ignored():
    assert parse_duration(" PT1M ") == 60
