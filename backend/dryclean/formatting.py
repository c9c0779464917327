# Overview: Human-readable number, currency and quantity formatting for messages and CLI output.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def format_number(value: Any, decimals: int = 2) -> str:
    """
    Whole numbers get thousands separators ("12,000"); fractional numbers
    show up to `decimals` places with trailing zeros removed ("2.5").
    None or non-numeric input renders as "0".
    """
    number = _to_decimal(value)
    if number is None:
        return "0"

    if number == number.to_integral_value():
        return f"{int(number):,}"

    quantum = Decimal(1).scaleb(-decimals)
    rounded = number.quantize(quantum, rounding=ROUND_HALF_UP)
    text = f"{rounded:,.{decimals}f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_currency(amount: Any, currency: str = "TSh") -> str:
    return f"{currency} {format_number(amount)}"


def format_quantity(quantity: Any, unit: str = "", decimals: int = 3) -> str:
    formatted = format_number(quantity, decimals)
    return f"{formatted} {unit}" if unit else formatted
