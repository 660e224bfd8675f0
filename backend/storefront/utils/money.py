from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable


def to_decimal(value: Any) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value if value is not None else 0))


def line_sum(lines: Iterable[Any]) -> Decimal:
    """sum(price * quantity) over cart lines (models or dicts)."""
    total = Decimal("0")
    for it in lines:
        if isinstance(it, dict):
            price, qty = it.get("price", 0), it.get("quantity", 0)
        else:
            price, qty = it.price, it.quantity
        total += to_decimal(price) * int(qty)
    return total


def to_minor_units(amount: Any) -> int:
    """Major -> minor units (cents), rounded half-up."""
    return int((to_decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def round_whole(amount: Any) -> Decimal:
    return to_decimal(amount).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
