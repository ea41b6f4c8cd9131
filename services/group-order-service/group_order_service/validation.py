from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import List, Sequence, Tuple

from .errors import InputValidationError, OrderLineFormatError, PriceFormatError

# International format: a leading "+" followed by 1 to 15 digits.
PHONE_PATTERN = re.compile(r"^\+\d{1,15}$")

ORDER_LINE_SYNTAX = "ItemNumber1:Quantity1, ItemNumber2:Quantity2"
ORDER_LINE_EXAMPLE = "1:2, 3:1 (2 of item 1, 1 of item 3)"

_CENT = Decimal("0.01")

# Upper bounds keep values inside the store columns and every total inside BIGINT.
MAX_PRICE_CENTS = 100_000_000
MAX_QUANTITY = 9_999


def require_text(value: str | None, field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise InputValidationError(f"{field} cannot be empty.")
    return text


def validate_phone(value: str | None) -> str:
    phone = (value or "").strip()
    if not PHONE_PATTERN.match(phone):
        raise InputValidationError(
            "Invalid phone number format. Please use international format (e.g., +1234567890)."
        )
    return phone


def parse_price(value: str | Decimal | int | float) -> int:
    """Parse a price into integer cents.

    Non-numeric and negative input are rejected with different messages;
    both are ``PriceFormatError``.
    """
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise PriceFormatError(f"Price must be a number, got {value!r}.") from None
    if not amount.is_finite():
        raise PriceFormatError(f"Price must be a number, got {value!r}.")
    if amount < 0:
        raise PriceFormatError("Price cannot be negative.")
    if amount * 100 > MAX_PRICE_CENTS:
        raise PriceFormatError(f"Price cannot exceed {format_money(MAX_PRICE_CENTS)}.")
    try:
        cents = amount.quantize(_CENT)
    except InvalidOperation:
        raise PriceFormatError(f"Price must be a number, got {value!r}.") from None
    if amount != cents:
        raise PriceFormatError("Price can have at most two decimal places.")
    return int(cents * 100)


def split_menu_item_input(text: str | None) -> Tuple[str, str]:
    """Split ``"Name, Price"`` on the last comma."""
    raw = (text or "").strip()
    if "," not in raw:
        raise InputValidationError(
            "Use format: Item Name, Price (e.g., Pasta, 12.50)"
        )
    name, price = raw.rsplit(",", 1)
    return require_text(name, "Item name"), price.strip()


@dataclass(frozen=True)
class RequestedLine:
    index: int
    quantity: int


def parse_order_lines(text: str | None, menu_size: int) -> List[RequestedLine]:
    """Parse ``index:quantity`` pairs separated by commas.

    Indices are 1-based positions in a menu of ``menu_size`` entries. A
    single bad pair rejects the whole input.
    """
    raw = (text or "").strip()
    if not raw:
        raise OrderLineFormatError(_order_format_message("The order is empty."))

    requested: List[RequestedLine] = []
    for chunk in raw.split(","):
        pair = chunk.strip()
        parts = [part.strip() for part in pair.split(":")]
        if len(parts) != 2 or not all(part.isdecimal() for part in parts):
            raise OrderLineFormatError(_order_format_message(f"Could not read {pair!r}."))
        index, quantity = int(parts[0]), int(parts[1])
        if not 1 <= index <= menu_size:
            raise OrderLineFormatError(
                _order_format_message(f"Item number {index} is not between 1 and {menu_size}.")
            )
        if quantity <= 0:
            raise OrderLineFormatError(
                _order_format_message(f"Quantity for item {index} must be at least 1.")
            )
        _check_quantity_limit(index, quantity)
        requested.append(RequestedLine(index=index, quantity=quantity))
    return requested


def merge_lines(requested: Sequence[RequestedLine]) -> List[RequestedLine]:
    """Combine repeated indices so each menu item yields one line."""
    totals: dict[int, int] = {}
    for line in requested:
        totals[line.index] = totals.get(line.index, 0) + line.quantity
    for index, quantity in totals.items():
        _check_quantity_limit(index, quantity)
    return [RequestedLine(index=index, quantity=quantity) for index, quantity in totals.items()]


def _check_quantity_limit(index: int, quantity: int) -> None:
    if quantity > MAX_QUANTITY:
        raise OrderLineFormatError(
            _order_format_message(f"Quantity for item {index} cannot exceed {MAX_QUANTITY}.")
        )


def format_money(cents: int) -> str:
    return f"${(Decimal(cents) / 100).quantize(_CENT)}"


def _order_format_message(problem: str) -> str:
    return (
        f"{problem}\nEnter your order in the format:\n{ORDER_LINE_SYNTAX}\n"
        f"Example: {ORDER_LINE_EXAMPLE}"
    )
