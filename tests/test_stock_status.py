from datetime import date, timedelta
from decimal import Decimal

import pytest

from core.stock_status import (
    AGGREGATE_RANK,
    BATCH_RANK,
    CRITICAL,
    EXPIRED,
    EXPIRING,
    LOW,
    OK,
    OUT_OF_STOCK,
    aggregate_sort_key,
    batch_sort_key,
    classify_aggregate,
    classify_batch,
    days_to_expiry,
)

TODAY = date(2026, 3, 1)


# ══════════════════════════════════════════════════════════════
# Aggregate view: fixed thresholds
# ══════════════════════════════════════════════════════════════

class TestClassifyAggregate:
    @pytest.mark.parametrize(
        "quantity,expected",
        [
            (-5, OUT_OF_STOCK),
            (0, OUT_OF_STOCK),
            (None, OUT_OF_STOCK),
            (Decimal("0.001"), CRITICAL),
            (10, CRITICAL),
            (Decimal("10.5"), LOW),
            (50, LOW),
            (51, OK),
            (1000, OK),
        ],
    )
    def test_thresholds(self, quantity, expected):
        assert classify_aggregate(quantity) == expected

    def test_more_stock_never_looks_worse(self):
        quantities = [Decimal(q) / 4 for q in range(-8, 400)]
        ranks = [AGGREGATE_RANK[classify_aggregate(q)] for q in quantities]
        assert ranks == sorted(ranks)


# ══════════════════════════════════════════════════════════════
# Batch view: per-row thresholds and expiry
# ══════════════════════════════════════════════════════════════

class TestClassifyBatch:
    def test_quantity_five_below_minimum_is_critical(self):
        assert classify_batch(5, 10, None, TODAY) == CRITICAL

    def test_zero_quantity_is_out_of_stock(self):
        assert classify_batch(0, 10, None, TODAY) == OUT_OF_STOCK

    def test_low_band_is_up_to_one_and_a_half_minimum(self):
        assert classify_batch(15, 10, None, TODAY) == LOW
        assert classify_batch(Decimal("15.01"), 10, None, TODAY) == OK

    def test_quantity_beats_expiry(self):
        assert classify_batch(5, 10, TODAY - timedelta(days=3), TODAY) == CRITICAL
        assert classify_batch(12, 10, TODAY - timedelta(days=3), TODAY) == LOW

    def test_expired_on_and_before_today(self):
        assert classify_batch(100, 10, TODAY, TODAY) == EXPIRED
        assert classify_batch(100, 10, TODAY - timedelta(days=1), TODAY) == EXPIRED

    def test_expiring_inside_horizon(self):
        assert classify_batch(100, 10, TODAY + timedelta(days=30), TODAY) == EXPIRING
        assert classify_batch(100, 10, TODAY + timedelta(days=31), TODAY) == OK

    def test_custom_horizon(self):
        soon = TODAY + timedelta(days=6)
        assert classify_batch(100, 10, soon, TODAY, horizon_days=7) == EXPIRING
        assert classify_batch(100, 10, soon, TODAY, horizon_days=5) == OK

    def test_zero_minimum_without_expiry_is_ok(self):
        assert classify_batch(1, 0, None, TODAY) == OK

    def test_more_stock_never_looks_worse(self):
        quantities = [Decimal(q) / 2 for q in range(0, 60)]
        ranks = [BATCH_RANK[classify_batch(q, 10, None, TODAY)] for q in quantities]
        assert ranks == sorted(ranks)

    def test_expiry_only_decides_above_the_low_band(self):
        expiry = TODAY + timedelta(days=10)
        tags = {classify_batch(Decimal(q) / 2, 10, expiry, TODAY) for q in range(31, 60)}
        assert tags == {EXPIRING}


class TestOrdering:
    def test_batch_order_severity_then_expiry_then_name(self):
        rows = [
            (OK, None, "apple"),
            (EXPIRING, TODAY + timedelta(days=3), "zucchini"),
            (CRITICAL, None, "basil"),
            (CRITICAL, TODAY + timedelta(days=1), "cream"),
            (OUT_OF_STOCK, None, "salt"),
            (EXPIRING, TODAY + timedelta(days=2), "milk"),
        ]
        ordered = sorted(rows, key=lambda r: batch_sort_key(*r))
        assert [r[2] for r in ordered] == ["salt", "cream", "basil", "milk", "zucchini", "apple"]

    def test_aggregate_order_is_case_insensitive(self):
        rows = [(OK, "beta"), (OK, "Alpha"), (LOW, "zeta")]
        ordered = sorted(rows, key=lambda r: aggregate_sort_key(*r))
        assert [r[1] for r in ordered] == ["zeta", "Alpha", "beta"]

    def test_days_to_expiry(self):
        assert days_to_expiry(None, TODAY) is None
        assert days_to_expiry(TODAY + timedelta(days=4), TODAY) == 4
        assert days_to_expiry(TODAY - timedelta(days=2), TODAY) == -2
