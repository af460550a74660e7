"""
Cost helpers.

There are two cost bases and they are kept apart:
- avg_cost: unweighted mean of purchase unit costs over the ingredient ledger
  (computed by the aggregation query, see services.ingredient_ledger);
- the reference cost_per_unit stored on an ingredient, a batch or a product
  stock row, used to value stock on hand and outgoing product movements.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

Number = Union[int, float, Decimal]

CENT = Decimal("0.01")


def to_decimal(x: Optional[Number]) -> Optional[Decimal]:
    if x is None:
        return None
    if isinstance(x, Decimal):
        return x
    return Decimal(str(x))


def money(x: Optional[Number]) -> float:
    """Round to 2 decimals for responses; None counts as 0."""
    d = to_decimal(x) or Decimal("0")
    return float(d.quantize(CENT, rounding=ROUND_HALF_UP))


def as_float(x: Optional[Number]) -> Optional[float]:
    return float(x) if x is not None else None


def movement_total_cost(
    quantity: Decimal,
    cost_per_unit: Optional[Decimal],
    total_cost: Optional[Decimal] = None,
) -> Optional[Decimal]:
    """
    Explicit total wins; otherwise quantity x unit cost when a cost is known.
    The sign follows the quantity, so a negative adjustment reduces value.
    """
    if total_cost is not None:
        return total_cost
    if cost_per_unit is None:
        return None
    return quantity * cost_per_unit


def resolve_avg_cost(purchase_avg: Optional[Number], reference_cost: Optional[Number]) -> Decimal:
    # No costed purchase yet: fall back to the ingredient's reference cost.
    if purchase_avg is not None:
        return to_decimal(purchase_avg)
    return to_decimal(reference_cost) or Decimal("0")


def stock_value(quantity: Optional[Number], cost_per_unit: Optional[Number]) -> Decimal:
    return (to_decimal(quantity) or Decimal("0")) * (to_decimal(cost_per_unit) or Decimal("0"))
