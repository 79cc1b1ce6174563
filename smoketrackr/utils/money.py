"""
Rounding helpers for the presentation boundary.

All ledger math runs on unrounded Decimal values; rounding to 2 places
happens only when a result leaves the aggregator.

Usage:
    from smoketrackr.utils.money import round_money, to_decimal

    round_money(Decimal("16.666"))   -> Decimal("16.67")
    to_decimal("0,5")                -> Decimal("0.5")
"""
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

ZERO = Decimal("0")
_CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """
    Привести число / строку к Decimal без потери точности.

    float переводится через str(), чтобы 0.1 не превратилось в
    0.1000000000000000055511151231257827.

    Raises:
        ValueError: если значение не число
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, int):
        return Decimal(value)
    try:
        text = str(value) if isinstance(value, float) else str(value).strip().replace(",", ".")
        result = Decimal(text)
    except (InvalidOperation, ValueError):
        raise ValueError(f"Not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a number: {value!r}")
    return result


def round_money(amount) -> Decimal:
    """Округлить сумму до 2 знаков (half-up)."""
    return to_decimal(amount).quantize(_CENT, rounding=ROUND_HALF_UP)


def round_qty(quantity) -> Decimal:
    """Округлить количество до 2 знаков (для отображения остатков)."""
    return to_decimal(quantity).quantize(_CENT, rounding=ROUND_HALF_UP)
