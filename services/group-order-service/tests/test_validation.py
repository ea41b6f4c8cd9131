from __future__ import annotations

from decimal import Decimal

import pytest

from group_order_service.errors import InputValidationError, OrderLineFormatError, PriceFormatError
from group_order_service.validation import (
    MAX_PRICE_CENTS,
    MAX_QUANTITY,
    RequestedLine,
    format_money,
    merge_lines,
    parse_order_lines,
    parse_price,
    split_menu_item_input,
    validate_phone,
)


@pytest.mark.parametrize("value, cents", [("12.50", 1250), ("0", 0), (" 3 ", 300), (Decimal("7.25"), 725)])
def test_parse_price_accepts_decimals(value, cents):
    assert parse_price(value) == cents


def test_parse_price_distinguishes_non_numeric_and_negative():
    with pytest.raises(PriceFormatError) as non_numeric:
        parse_price("abc")
    with pytest.raises(PriceFormatError) as negative:
        parse_price("-1")
    assert "number" in non_numeric.value.message
    assert "negative" in negative.value.message


@pytest.mark.parametrize("value", ["1.234", "NaN", "Infinity", ""])
def test_parse_price_rejects_unusable_values(value):
    with pytest.raises(PriceFormatError):
        parse_price(value)


@pytest.mark.parametrize("phone", ["+1234567890", "+1", "+123456789012345"])
def test_validate_phone_accepts_international_numbers(phone):
    assert validate_phone(phone) == phone


@pytest.mark.parametrize("phone", ["1234567890", "+", "+1234567890123456", "+12 34", "+12a4", ""])
def test_validate_phone_rejects_other_formats(phone):
    with pytest.raises(InputValidationError):
        validate_phone(phone)


def test_split_menu_item_input_uses_last_comma():
    assert split_menu_item_input("Mac, and cheese, 9.90") == ("Mac, and cheese", "9.90")


def test_split_menu_item_input_requires_price():
    with pytest.raises(InputValidationError):
        split_menu_item_input("Pasta")


def test_parse_order_lines():
    assert parse_order_lines("1:2, 3:1", menu_size=3) == [
        RequestedLine(index=1, quantity=2),
        RequestedLine(index=3, quantity=1),
    ]


@pytest.mark.parametrize("text", ["", "1:2, 4:1", "0:1", "1:0", "1-2", "1:2:3", "a:1", "1:²", "1:2,"])
def test_parse_order_lines_rejects_whole_input(text):
    with pytest.raises(OrderLineFormatError) as exc:
        parse_order_lines(text, menu_size=3)
    assert "ItemNumber1:Quantity1" in exc.value.message


def test_merge_lines_combines_repeated_items():
    merged = merge_lines([RequestedLine(1, 2), RequestedLine(2, 1), RequestedLine(1, 3)])
    assert merged == [RequestedLine(1, 5), RequestedLine(2, 1)]


def test_format_money():
    assert format_money(2500) == "$25.00"
    assert format_money(5) == "$0.05"


@pytest.mark.parametrize("value", ["1e30", "99999999999999999999", "1000000.01"])
def test_parse_price_rejects_amounts_above_limit(value):
    with pytest.raises(PriceFormatError) as exc:
        parse_price(value)
    assert "cannot exceed $1000000.00" in exc.value.message


def test_parse_price_accepts_the_limit():
    assert parse_price("1000000") == MAX_PRICE_CENTS


def test_parse_order_lines_rejects_quantity_above_limit():
    with pytest.raises(OrderLineFormatError):
        parse_order_lines("1:99999999999999999999", menu_size=3)
    assert parse_order_lines(f"1:{MAX_QUANTITY}", menu_size=3) == [RequestedLine(1, MAX_QUANTITY)]


def test_merge_lines_rejects_combined_quantity_above_limit():
    with pytest.raises(OrderLineFormatError):
        merge_lines([RequestedLine(1, MAX_QUANTITY), RequestedLine(1, 1)])
