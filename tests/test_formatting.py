"""
Tests for log formatting helpers.
"""

import math

import pytest

from claimbot.utils.formatting import format_amount, parse_remaining_time


@pytest.mark.parametrize("value, expected", [
    (90198.5, "90,199"),
    (1234567.4, "1,234,567"),
    (0, "0"),
    (math.nan, "NaN"),
])
def test_format_amount(value, expected):
    assert format_amount(value) == expected


@pytest.mark.parametrize("seconds, expected", [
    (900, "15 minutes"),
    (3725, "01 hours, 02 minutes, 05 seconds"),
    (3600, "01 hours"),
    (59, "59 seconds"),
])
def test_parse_remaining_time(seconds, expected):
    assert parse_remaining_time(seconds) == expected
