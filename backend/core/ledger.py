"""
Movement types and the signed-contribution rules of both ledgers.

The ingredient ledger stores quantities as entered and derives the sign from
the movement type at read time. The product ledger stores positive
quantities and turns them into deltas when the materialized stock row is
updated.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional

from core.errors import ValidationError

# Ingredient ledger
PURCHASE = "purchase"
SALE = "sale"
WASTE = "waste"
ADJUSTMENT = "adjustment"
TRANSFER = "transfer"
PRODUCTION = "production"

INGREDIENT_MOVEMENT_TYPES = (PURCHASE, SALE, WASTE, ADJUSTMENT, TRANSFER, PRODUCTION)
CONSUMING_TYPES = (SALE, WASTE, PRODUCTION)

# Product ledger
IN = "in"
OUT = "out"

PRODUCT_MOVEMENT_TYPES = (IN, OUT, ADJUSTMENT)
PRODUCT_REFERENCE_TYPES = ("order", "manual", "supplier")

ZERO = Decimal("0")

# Ledger quantities are stored as Numeric(12, 3)
QUANTITY_STEP = Decimal("0.001")
QUANTITY_LIMIT = Decimal("1000000000")


def parse_quantity(value, *, field: str = "quantity") -> Decimal:
    """
    Coerce to Decimal at the stored scale (3 places, half up).

    Raises ValidationError for anything that would not be stored as a
    non-zero quantity.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    try:
        q = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not q.is_finite():
        raise ValidationError(f"{field} must be a number")
    if abs(q) < QUANTITY_LIMIT:
        q = q.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)
    if abs(q) >= QUANTITY_LIMIT:
        raise ValidationError(f"{field} is too large")
    if q == 0:
        raise ValidationError(f"{field} must be a non-zero number")
    return q


def ingredient_contribution(movement_type: str, quantity: Decimal) -> Decimal:
    """Signed effect of one ingredient movement on the current quantity."""
    if movement_type == PURCHASE:
        return quantity
    if movement_type == ADJUSTMENT:
        # positive adjustments add, negative adjustments subtract
        return quantity
    if movement_type in CONSUMING_TYPES:
        return -quantity
    return ZERO


def product_delta(movement_type: str, quantity: Decimal) -> Decimal:
    if movement_type == IN:
        return abs(quantity)
    if movement_type == OUT:
        return -abs(quantity)
    if movement_type == ADJUSTMENT:
        return quantity
    raise ValidationError(f"Invalid movement type: {movement_type}")


def apply_clamped(existing: Decimal, delta: Decimal) -> Decimal:
    return max(ZERO, existing + delta)


def replay_product_deltas(deltas: Iterable[Decimal], start: Optional[Decimal] = None) -> Decimal:
    """Fold deltas in ledger order with the same clamp the upsert applies."""
    qty = start if start is not None else ZERO
    for d in deltas:
        qty = apply_clamped(qty, d)
    return qty
