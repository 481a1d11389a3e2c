"""Decimal money helpers.  Amounts are never floats."""

from decimal import ROUND_HALF_UP, Decimal

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def round_money(value: Decimal | int | str, places: int = 2) -> Decimal:
    """Round an amount half-up to ``places`` decimals."""
    quantum = Decimal(1).scaleb(-places)
    return Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)


def to_decimal(value: Decimal | int | str | None, default: Decimal = ZERO) -> Decimal:
    """Coerce caller input to Decimal; floats are rejected."""
    if value is None:
        return default
    if isinstance(value, float):
        raise TypeError("monetary values must not be floats")
    return Decimal(value)
