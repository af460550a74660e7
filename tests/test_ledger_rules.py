from datetime import date
from decimal import Decimal

import pytest

from core.costing import money, movement_total_cost, resolve_avg_cost, stock_value
from core.errors import ValidationError
from core.ledger import (
    ADJUSTMENT,
    IN,
    OUT,
    PRODUCTION,
    PURCHASE,
    SALE,
    TRANSFER,
    WASTE,
    apply_clamped,
    ingredient_contribution,
    parse_quantity,
    product_delta,
    replay_product_deltas,
)
from core.periods import inclusive_range, months_ago, period_start


class TestParseQuantity:
    @pytest.mark.parametrize("value", [None, "", "abc", 0, "0", "0.000", True, "nan", "inf"])
    def test_rejected(self, value):
        with pytest.raises(ValidationError):
            parse_quantity(value)

    def test_accepts_strings_and_numbers(self):
        assert parse_quantity("2.5") == Decimal("2.5")
        assert parse_quantity(3) == Decimal("3")
        assert parse_quantity(-4) == Decimal("-4")

    @pytest.mark.parametrize("value", ["0.0004", "-0.0004", "1000000000", "-1000000000", "999999999.9996", "1e30"])
    def test_rejects_values_the_column_cannot_hold(self, value):
        with pytest.raises(ValidationError):
            parse_quantity(value)

    def test_rounds_to_stored_scale(self):
        assert parse_quantity("0.0005") == Decimal("0.001")
        assert parse_quantity("1.23449") == Decimal("1.234")
        assert parse_quantity("999999999.999") == Decimal("999999999.999")
        assert str(parse_quantity("2")) == "2.000"


class TestContributions:
    def test_ingredient_signs(self):
        q = Decimal("5")
        assert ingredient_contribution(PURCHASE, q) == 5
        assert ingredient_contribution(SALE, q) == -5
        assert ingredient_contribution(WASTE, q) == -5
        assert ingredient_contribution(PRODUCTION, q) == -5
        assert ingredient_contribution(TRANSFER, q) == 0
        assert ingredient_contribution(ADJUSTMENT, Decimal("-3")) == -3

    def test_product_deltas(self):
        assert product_delta(IN, Decimal("4")) == 4
        assert product_delta(OUT, Decimal("4")) == -4
        assert product_delta(ADJUSTMENT, Decimal("-2")) == -2
        with pytest.raises(ValidationError):
            product_delta(PURCHASE, Decimal("1"))

    def test_clamp_is_applied_per_step(self):
        assert apply_clamped(Decimal("3"), Decimal("-5")) == 0
        # 5 -> 0 (clamped) -> 4, not 5 - 8 + 4 = 1
        assert replay_product_deltas([Decimal("5"), Decimal("-8"), Decimal("4")]) == 4
        assert replay_product_deltas([], start=Decimal("7")) == 7


class TestCosting:
    def test_money_rounds_half_up(self):
        assert money(Decimal("2.345")) == 2.35
        assert money(None) == 0.0
        assert money(140) == 140.0

    def test_total_cost(self):
        assert movement_total_cost(Decimal("30"), Decimal("2.00")) == Decimal("60.00")
        assert movement_total_cost(Decimal("-3"), Decimal("2")) == Decimal("-6")
        assert movement_total_cost(Decimal("3"), Decimal("2"), Decimal("5.5")) == Decimal("5.5")
        assert movement_total_cost(Decimal("3"), None) is None

    def test_avg_cost_falls_back_to_reference(self):
        assert resolve_avg_cost(2.5, Decimal("9")) == Decimal("2.5")
        assert resolve_avg_cost(None, Decimal("9")) == Decimal("9")
        assert resolve_avg_cost(None, None) == Decimal("0")

    def test_stock_value(self):
        assert stock_value(Decimal("4"), Decimal("2.5")) == Decimal("10.0")
        assert stock_value(None, Decimal("2.5")) == 0


class TestPeriods:
    def test_inclusive_range_covers_whole_end_day(self):
        start, end = inclusive_range(date(2026, 1, 1), date(2026, 1, 31))
        assert start.date() == date(2026, 1, 1)
        assert end.date() == date(2026, 2, 1)
        assert inclusive_range(None, None) == (None, None)

    def test_months_ago_clamps_day(self):
        assert months_ago(date(2026, 3, 31), 1) == date(2026, 2, 28)
        assert months_ago(date(2026, 1, 15), 1) == date(2025, 12, 15)

    def test_period_start(self):
        today = date(2026, 3, 10)
        assert period_start("week", today) == date(2026, 3, 3)
        assert period_start("month", today) == date(2026, 2, 10)
        assert period_start("all", today) is None
