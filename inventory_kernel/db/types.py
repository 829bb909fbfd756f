"""
Module: inventory_kernel.db.types
Responsibility: Rounding and coercion helpers for monetary values.
    Centralizes precision so that every engine and service rounds the same
    way.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/, selectors/ and inventory_engines.  MUST NOT import from any
    of those layers.

Invariants enforced:
    - No floats for money.  Unit costs, prices, discounts and totals are
      Decimal with explicit precision.
    - round_money() is the ONLY sanctioned rounding function for prices.
"""

from decimal import Decimal, ROUND_HALF_UP


MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """
    Round a monetary value to specified decimal places.

    Preconditions: value is a Decimal.
    Postconditions: Returns value quantized to the specified decimal places
        using the specified rounding mode.
    """
    quantize_str = "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=rounding)


def to_decimal(value: Decimal | int | str) -> Decimal:
    """
    Coerce a caller-supplied amount to Decimal.

    Floats are rejected: binary floating point cannot represent prices
    exactly, and a silent conversion would hide that.

    Raises:
        TypeError: If value is a float or bool.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Monetary values must be Decimal, int or str, got {type(value).__name__}")
    if isinstance(value, Decimal):
        return value
    return Decimal(value)
