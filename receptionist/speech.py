"""Formatting helpers for replies that may be read aloud."""

from datetime import date
from decimal import Decimal

_MONTHS = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]


def spoken_date(value: str | date) -> str:
    """'2025-03-25' -> '25 March 2025'.  Unparseable input is returned unchanged."""
    if isinstance(value, str):
        try:
            value = date.fromisoformat(value)
        except ValueError:
            return value
    return f"{value.day} {_MONTHS[value.month - 1]} {value.year}"


def join_naturally(items: list[str]) -> str:
    """['a'] -> 'a', ['a', 'b'] -> 'a and b', ['a', 'b', 'c'] -> 'a, b, and c'."""
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    if len(items) == 2:
        return f"{items[0]} and {items[1]}"
    return f"{', '.join(items[:-1])}, and {items[-1]}"


def plural(count: int, word: str, suffix: str = "s") -> str:
    return f"{count} {word if count == 1 else word + suffix}"


def money(amount: Decimal) -> str:
    """Decimal('200') -> '$200', Decimal('187.5') -> '$187.50'."""
    if amount == amount.to_integral_value():
        return f"${amount.to_integral_value()}"
    return f"${amount.quantize(Decimal('0.01'))}"
