"""
Module: inventory_engines.line_split
Responsibility:
    Spread one requested sale line's caller-supplied pricing over the
    allocation lines it was split into, so that each persisted SaleItem is
    bound to exactly one lot.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - unit_price is copied unchanged to every part.
    - discount and total are prorated by quantity share, rounded to cents
      (ROUND_HALF_UP); the last part absorbs the rounding remainder, so the
      parts always sum exactly to the caller's figures.
    - An unsplit line keeps the caller's values untouched.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from inventory_engines.tracer import traced_engine
from inventory_kernel.db.types import round_money


@dataclass(frozen=True, slots=True)
class PricedLine:
    quantity: int
    unit_price: Decimal
    discount: Decimal
    total: Decimal


def _prorate(amount: Decimal, quantities: Sequence[int], whole: int) -> list[Decimal]:
    parts: list[Decimal] = []
    for qty in quantities[:-1]:
        parts.append(round_money(amount * qty / whole))
    parts.append(amount - sum(parts, Decimal("0")))
    return parts


@traced_engine("line_split", "1.0", fingerprint_fields=("total", "discount", "quantities"))
def split_line_pricing(
    *,
    unit_price: Decimal,
    discount: Decimal,
    total: Decimal,
    quantities: Sequence[int],
) -> tuple[PricedLine, ...]:
    """
    Split a priced line across allocation quantities.

    Args:
        unit_price: Caller unit price, copied to each part.
        discount: Caller line discount, prorated.
        total: Caller line total, prorated.
        quantities: Allocated quantity per part, in allocation order.

    Returns:
        One PricedLine per quantity.

    Raises:
        ValueError: If quantities is empty or contains a non-positive value.
    """
    if not quantities:
        raise ValueError("quantities must not be empty")
    if any(qty <= 0 for qty in quantities):
        raise ValueError(f"quantities must be positive, got {list(quantities)}")

    if len(quantities) == 1:
        return (PricedLine(quantities[0], unit_price, discount, total),)

    whole = sum(quantities)
    totals = _prorate(total, quantities, whole)
    discounts = _prorate(discount, quantities, whole)
    return tuple(
        PricedLine(qty, unit_price, part_discount, part_total)
        for qty, part_discount, part_total in zip(quantities, discounts, totals)
    )
