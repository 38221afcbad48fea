"""
Decimal helpers for amount/price/fee/pnl arithmetic.

The API ships every monetary and quantity field as a decimal string. All
arithmetic stays in Decimal; values are quantized only when a record is built.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

ZERO = Decimal("0")

AMOUNT_PLACES = 8
FEE_PLACES = 8
PRICE_PLACES = 6
PNL_PLACES = 6
VALUE_PLACES = 2
PERCENT_PLACES = 2


def to_decimal(value: str | int | float | Decimal | None) -> Decimal:
    """Parse an API decimal field. Missing or empty values count as zero."""
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # go through repr so 0.1 stays 0.1
        value = repr(value)
    try:
        return Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"not a decimal value: {value!r}") from exc


def quantize(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def fmt(value: Decimal, places: int) -> str:
    """Fixed-point string with exactly *places* decimals."""
    return f"{quantize(value, places):.{places}f}"


def weighted_average(pairs: list[tuple[Decimal, Decimal]]) -> tuple[Decimal, Decimal, Decimal]:
    """Volume-weighted average over (amount, price) pairs.

    Returns (total_amount, total_value, average_price); the average is zero
    unless the amounts sum to a positive total.
    """
    total_amount = ZERO
    total_value = ZERO
    for amount, price in pairs:
        total_amount += amount
        total_value += amount * price
    average = total_value / total_amount if total_amount > ZERO else ZERO
    return total_amount, total_value, average
