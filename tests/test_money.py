"""
Number parsing and currency display tests.
"""

import pytest

from quote_engine.exceptions import ReconciliationBlocked
from quote_engine.money import format_brl, parse_decimal


@pytest.mark.parametrize("raw,expected", [
    ("12,5", 12.5),
    ("1000,00", 1000.0),
    ("3", 3.0),
    ("3.75", 3.75),
    (" 2,00 un", 2.0),
    ("-4", -4.0),
    (7, 7.0),
])
def test_parse_decimal(raw, expected):
    assert parse_decimal(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", [None, "", "abc", "un 2"])
def test_parse_decimal_falls_back_to_default(raw):
    assert parse_decimal(raw) == 0.0
    assert parse_decimal(raw, default=1.0) == 1.0


@pytest.mark.parametrize("value,expected", [
    (1500.5, "R$ 1.500,50"),
    (0, "R$ 0,00"),
    (None, "R$ 0,00"),
    (1234567.891, "R$ 1.234.567,89"),
    (-75.1, "-R$ 75,10"),
])
def test_format_brl(value, expected):
    assert format_brl(value) == expected


def test_blocked_message_shows_currency():
    message = str(ReconciliationBlocked(2000.0, 1.0))
    assert "R$ 2.000,00" in message
    assert "R$ 1,00" in message
