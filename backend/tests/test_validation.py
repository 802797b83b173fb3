from datetime import datetime
from decimal import Decimal

import pytest

from marketstall.validation import (
    MAX_PRICE_CENTS,
    ValidationError,
    cents_to_amount,
    parse_flag,
    parse_id,
    parse_money_cents,
    parse_timestamp,
)


@pytest.mark.parametrize("value, cents", [
    (15, 1500),
    (15.5, 1550),
    ("12.50", 1250),
    ("12,50", 1250),
    (" 1 250,00 ", 125000),
    (Decimal("0.005"), 1),
    ("0.004", 0),
    (0, 0),
])
def test_parse_money_cents(value, cents):
    assert parse_money_cents(value, "price") == cents


@pytest.mark.parametrize("value", [True, "abc", "1e3", "-0.01", [], float("nan"), MAX_PRICE_CENTS, "1" * 40, "-" + "9" * 40])
def test_parse_money_cents_rejects(value):
    with pytest.raises(ValidationError):
        parse_money_cents(value, "price")


def test_optional_money():
    assert parse_money_cents(None, "cost", required=False) is None
    assert parse_money_cents("  ", "cost", required=False) is None
    with pytest.raises(ValidationError):
        parse_money_cents(None, "cost")


def test_cents_to_amount():
    assert cents_to_amount(1550) == 15.5
    assert cents_to_amount(None) is None


def test_parse_flag():
    assert parse_flag("pin", "is_pin") is True
    assert parse_flag("cash", "is_pin") is False
    assert parse_flag(1, "is_pin") is True
    assert parse_flag(None, "is_pin") is False
    with pytest.raises(ValidationError):
        parse_flag("maybe", "is_pin")


def test_parse_id():
    assert parse_id("7", "id") == 7
    assert parse_id(None, "id", required=False) is None
    for bad in (0, -1, "x", True, 1.5):
        with pytest.raises(ValidationError):
            parse_id(bad, "id")


def test_parse_timestamp_normalizes_to_utc():
    assert parse_timestamp("2024-06-10T12:00:00+02:00", "sold_at") == datetime(2024, 6, 10, 10, 0)
    assert parse_timestamp("2024-06-10 12:00:00", "sold_at") == datetime(2024, 6, 10, 12, 0)
    with pytest.raises(ValidationError):
        parse_timestamp("yesterday", "sold_at")
