"""
Stock alert classification.

Two views exist:
- the aggregate ingredient view, which uses fixed thresholds;
- the batch view (ingredient lots, product stock rows), which uses the
  thresholds and expiry date stored on each row.

Both are pure functions of their inputs; `today` is always passed in so the
result never depends on the wall clock.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Union

Number = Union[int, float, Decimal]

OUT_OF_STOCK = "out_of_stock"
CRITICAL = "critical"
LOW = "low"
EXPIRED = "expired"
EXPIRING = "expiring"
OK = "ok"

STATUS_TAGS = (OUT_OF_STOCK, CRITICAL, LOW, EXPIRED, EXPIRING, OK)
LOW_STOCK_TAGS = (OUT_OF_STOCK, CRITICAL, LOW)

# Aggregate (ingredient ledger) thresholds
CRITICAL_QUANTITY = Decimal("10")
LOW_QUANTITY = Decimal("50")

LOW_FACTOR = Decimal("1.5")
DEFAULT_HORIZON_DAYS = 30

# Sort ranks. Expired/expiring rank ahead of low in the batch view.
AGGREGATE_RANK = {OUT_OF_STOCK: 1, CRITICAL: 2, LOW: 3, OK: 4}
BATCH_RANK = {OUT_OF_STOCK: 1, CRITICAL: 2, EXPIRED: 3, EXPIRING: 4, LOW: 5, OK: 6}


def _dec(x: Optional[Number]) -> Decimal:
    if x is None:
        return Decimal("0")
    if isinstance(x, Decimal):
        return x
    return Decimal(str(x))


def classify_aggregate(quantity: Optional[Number]) -> str:
    q = _dec(quantity)
    if q <= 0:
        return OUT_OF_STOCK
    if q <= CRITICAL_QUANTITY:
        return CRITICAL
    if q <= LOW_QUANTITY:
        return LOW
    return OK


def classify_batch(
    quantity: Optional[Number],
    min_threshold: Optional[Number],
    expiry_date: Optional[date],
    today: date,
    horizon_days: int = DEFAULT_HORIZON_DAYS,
) -> str:
    q = _dec(quantity)
    minimum = _dec(min_threshold)
    if q <= 0:
        return OUT_OF_STOCK
    if q <= minimum:
        return CRITICAL
    if q <= minimum * LOW_FACTOR:
        return LOW
    if expiry_date is not None:
        if expiry_date <= today:
            return EXPIRED
        if expiry_date <= today + timedelta(days=horizon_days):
            return EXPIRING
    return OK


def days_to_expiry(expiry_date: Optional[date], today: date) -> Optional[int]:
    if expiry_date is None:
        return None
    return (expiry_date - today).days


def batch_sort_key(status: str, expiry_date: Optional[date], name: Optional[str]):
    """Severity, then expiry ascending with missing dates last, then name."""
    return (
        BATCH_RANK[status],
        expiry_date is None,
        expiry_date or date.max,
        (name or "").lower(),
    )


def aggregate_sort_key(status: str, name: Optional[str]):
    return (AGGREGATE_RANK[status], (name or "").lower())
