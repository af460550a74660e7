"""
Ingredient ledger through the HTTP surface: appends, derived stock,
annotations and stats.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import update

from core.ledger import ingredient_contribution
from db.database import IngredientMovement


async def _append(client, ingredient, type_, quantity, **extra):
    body = {"ingredient_id": str(ingredient.id), "type": type_, "quantity": quantity, "unit": ingredient.unit}
    body.update(extra)
    return await client.post("/ingredient-movements/", json=body)


async def _set_created_at(maker, movement_id, when):
    async with maker() as s:
        await s.execute(
            update(IngredientMovement)
            .where(IngredientMovement.id == uuid.UUID(movement_id))
            .values(created_at=when)
        )
        await s.commit()


async def _stock_row(client, ingredient):
    resp = await client.get("/ingredient-movements/stock", params={"ingredient_id": str(ingredient.id)})
    assert resp.status_code == 200
    rows = resp.json()["stock"]
    assert len(rows) == 1
    return rows[0]


class TestDerivedStock:
    async def test_purchase_then_sale(self, client, make_ingredient):
        flour = await make_ingredient()
        r1 = await _append(client, flour, "purchase", 100, cost_per_unit="2.00")
        r2 = await _append(client, flour, "sale", 30, cost_per_unit="2.00")
        assert r1.status_code == 201 and r2.status_code == 201

        row = await _stock_row(client, flour)
        assert row["current_quantity"] == 70
        assert row["total_purchases"] == 100
        assert row["total_used"] == 30
        assert row["current_value"] == 140.0
        assert row["avg_cost"] == 2.0
        assert row["status"] == "ok"

    async def test_aggregation_is_idempotent(self, client, make_ingredient):
        flour = await make_ingredient()
        await _append(client, flour, "purchase", 12, cost_per_unit="1.25")
        await _append(client, flour, "waste", 2)

        first = await client.get("/ingredient-movements/stock")
        second = await client.get("/ingredient-movements/stock")
        assert first.json() == second.json()

    async def test_conservation_over_mixed_history(self, client, make_ingredient):
        sugar = await make_ingredient(name="Sugar")
        history = [
            ("purchase", "40"),
            ("sale", "7.5"),
            ("waste", "1.25"),
            ("production", "3"),
            ("transfer", "10"),
            ("adjustment", "-2"),
            ("adjustment", "4.5"),
        ]
        for type_, qty in history:
            assert (await _append(client, sugar, type_, qty)).status_code == 201

        expected = sum(ingredient_contribution(t, Decimal(q)) for t, q in history)
        row = await _stock_row(client, sugar)
        assert Decimal(str(row["current_quantity"])) == expected
        assert row["total_used"] == 11.75

    async def test_missing_cost_counts_as_zero_value(self, client, make_ingredient):
        salt = await make_ingredient(name="Salt", cost_per_unit="3.5")
        await _append(client, salt, "purchase", 60)

        row = await _stock_row(client, salt)
        assert row["current_value"] == 0.0
        # no costed purchase: avg cost falls back to the reference cost
        assert row["avg_cost"] == 3.5
        assert row["current_cost_per_unit"] == 3.5

    async def test_ingredient_without_movements(self, client, make_ingredient):
        yeast = await make_ingredient(name="Yeast")
        row = await _stock_row(client, yeast)
        assert row["current_quantity"] == 0
        assert row["status"] == "out_of_stock"
        assert row["last_movement_at"] is None

    async def test_low_stock_filter_and_ordering(self, client, make_ingredient):
        plenty = await make_ingredient(name="Rice")
        low = await make_ingredient(name="Basil")
        critical = await make_ingredient(name="Saffron")
        await _append(client, plenty, "purchase", 500)
        await _append(client, low, "purchase", 30)
        await _append(client, critical, "purchase", 5)

        resp = await client.get("/ingredient-movements/stock", params={"low_stock": "true"})
        names = [r["name"] for r in resp.json()["stock"]]
        assert names == ["Saffron", "Basil"]

        summary = (await client.get("/ingredient-movements/stock")).json()["summary"]
        assert summary["total"] == 3
        assert summary["critical"] == 1
        assert summary["low"] == 1
        assert summary["ok"] == 1

    async def test_inactive_ingredients_are_hidden(self, client, make_ingredient):
        await make_ingredient(name="Old stock", active=False)
        resp = await client.get("/ingredient-movements/stock")
        assert resp.json()["stock"] == []


class TestAppendValidation:
    async def test_rejected_payloads_write_nothing(self, client, make_ingredient):
        flour = await make_ingredient()
        bad = [
            {"ingredient_id": str(flour.id), "type": "purchase", "quantity": 0, "unit": "kg"},
            {"ingredient_id": str(flour.id), "type": "purchase", "quantity": "abc", "unit": "kg"},
            {"ingredient_id": str(flour.id), "type": "purchase", "quantity": "0.0004", "unit": "kg"},
            {"ingredient_id": str(flour.id), "type": "purchase", "quantity": "10000000000", "unit": "kg"},
            {"ingredient_id": str(flour.id), "type": "in", "quantity": 5, "unit": "kg"},
            {"ingredient_id": str(flour.id), "type": "purchase", "quantity": 5},
            {"type": "purchase", "quantity": 5, "unit": "kg"},
            {"ingredient_id": str(flour.id), "type": "purchase", "quantity": 5, "unit": "kg", "cost_per_unit": -1},
        ]
        for body in bad:
            resp = await client.post("/ingredient-movements/", json=body)
            assert resp.status_code == 400, body

        listing = (await client.get("/ingredient-movements/")).json()
        assert listing["pagination"]["total"] == 0

    async def test_unknown_ingredient(self, client):
        resp = await client.post(
            "/ingredient-movements/",
            json={
                "ingredient_id": "00000000-0000-0000-0000-000000000001",
                "type": "purchase",
                "quantity": 5,
                "unit": "kg",
            },
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Ingredient not found"


class TestRecords:
    async def test_listing_is_newest_first_and_paginated(self, client, make_ingredient):
        flour = await make_ingredient()
        for i in range(3):
            await _append(client, flour, "purchase", 1, reason=f"delivery {i}")

        resp = await client.get("/ingredient-movements/", params={"limit": 2})
        body = resp.json()
        assert body["pagination"] == {"page": 1, "limit": 2, "offset": 0, "total": 3}
        assert [m["reason"] for m in body["movements"]] == ["delivery 2", "delivery 1"]

        page2 = (await client.get("/ingredient-movements/", params={"limit": 2, "page": 2})).json()
        assert [m["reason"] for m in page2["movements"]] == ["delivery 0"]

    async def test_type_and_supplier_filters(self, client, make_ingredient):
        flour = await make_ingredient()
        await _append(client, flour, "purchase", 10, supplier="Mill Co")
        await _append(client, flour, "purchase", 5, supplier="Village Bakery Supply")
        await _append(client, flour, "sale", 3)

        sales = (await client.get("/ingredient-movements/", params={"type": "sale"})).json()
        assert [m["type"] for m in sales["movements"]] == ["sale"]
        assert sales["pagination"]["total"] == 1

        mill = (await client.get("/ingredient-movements/", params={"supplier": "mill"})).json()
        assert [m["supplier"] for m in mill["movements"]] == ["Mill Co"]
        supply = (await client.get("/ingredient-movements/", params={"supplier": "bakery sup"})).json()
        assert [m["supplier"] for m in supply["movements"]] == ["Village Bakery Supply"]

    async def test_date_range_includes_the_whole_end_day(self, client, maker, make_ingredient):
        flour = await make_ingredient()
        stamps = {
            "before": datetime(2026, 3, 8, 23, 59, tzinfo=timezone.utc),
            "first day": datetime(2026, 3, 9, 0, 0, tzinfo=timezone.utc),
            "late on end day": datetime(2026, 3, 10, 23, 30, tzinfo=timezone.utc),
            "after": datetime(2026, 3, 11, 0, 0, tzinfo=timezone.utc),
        }
        for reason, when in stamps.items():
            created = await _append(client, flour, "purchase", 1, reason=reason)
            await _set_created_at(maker, created.json()["id"], when)

        body = (
            await client.get(
                "/ingredient-movements/", params={"start_date": "2026-03-09", "end_date": "2026-03-10"}
            )
        ).json()
        assert [m["reason"] for m in body["movements"]] == ["late on end day", "first day"]
        assert body["pagination"]["total"] == 2

    async def test_identical_timestamps_are_ordered_by_id(self, client, maker, make_ingredient):
        flour = await make_ingredient()
        same = datetime(2026, 3, 9, 12, 0, tzinfo=timezone.utc)
        for i in range(4):
            created = await _append(client, flour, "purchase", 1, reason=f"delivery {i}")
            await _set_created_at(maker, created.json()["id"], same)

        ids = [m["id"] for m in (await client.get("/ingredient-movements/")).json()["movements"]]
        assert ids == sorted(ids, reverse=True)

        paged = []
        for page in (1, 2):
            resp = await client.get("/ingredient-movements/", params={"limit": 2, "page": page})
            paged += [m["id"] for m in resp.json()["movements"]]
        assert paged == ids

    async def test_record_keeps_user_and_cost(self, client, make_ingredient, user):
        flour = await make_ingredient()
        created = await _append(client, flour, "purchase", 4, cost_per_unit="2.5", supplier="Mill Co")
        mv = (await client.get(f"/ingredient-movements/{created.json()['id']}")).json()
        assert mv["total_cost"] == 10.0
        assert mv["user_id"] == str(user.id)
        assert mv["user_display_name"] == "manager@example.com"
        assert mv["reference"] == {"type": "manual", "id": None}

    async def test_unknown_record_is_404(self, client):
        resp = await client.get("/ingredient-movements/00000000-0000-0000-0000-000000000002")
        assert resp.status_code == 404

    async def test_only_annotations_can_change(self, client, make_ingredient):
        flour = await make_ingredient()
        created = await _append(client, flour, "purchase", 10, reason="delivery")
        mv_id = created.json()["id"]

        ok = await client.patch(f"/ingredient-movements/{mv_id}", json={"reason": "late delivery"})
        assert ok.status_code == 200
        assert ok.json()["reason"] == "late delivery"

        refused = await client.patch(f"/ingredient-movements/{mv_id}", json={"quantity": 12, "notes": "typo"})
        assert refused.status_code == 400

        mv = (await client.get(f"/ingredient-movements/{mv_id}")).json()
        assert mv["quantity"] == 10
        assert mv["notes"] is None

        refused = await client.patch(f"/ingredient-movements/{mv_id}", json={"type": "sale"})
        assert refused.status_code == 400

    async def test_stats_by_type(self, client, make_ingredient):
        flour = await make_ingredient()
        await _append(client, flour, "purchase", 100, cost_per_unit="2")
        await _append(client, flour, "purchase", 50, cost_per_unit="2")
        await _append(client, flour, "sale", 30)

        stats = (await client.get("/ingredient-movements/stats", params={"period": "all"})).json()
        assert stats["period"] == "all"
        by_type = {s["type"]: s for s in stats["stats_by_type"]}
        assert by_type["purchase"]["movement_count"] == 2
        assert by_type["purchase"]["total_cost"] == 300.0
        assert by_type["sale"]["total_cost"] == 0.0
        assert stats["summary"] == {"total_movements": 3, "total_value": 300.0, "types_count": 2}

    async def test_negative_costed_adjustment_reduces_value(self, client, make_ingredient):
        flour = await make_ingredient()
        await _append(client, flour, "purchase", 10, cost_per_unit="2")
        created = await _append(client, flour, "adjustment", -2, cost_per_unit="2")

        mv = (await client.get(f"/ingredient-movements/{created.json()['id']}")).json()
        assert mv["total_cost"] == -4.0
        stats = (await client.get("/ingredient-movements/stats", params={"period": "all"})).json()
        assert stats["summary"]["total_value"] == 16.0

    async def test_quantity_is_stored_at_three_decimals(self, client, make_ingredient):
        flour = await make_ingredient()
        created = await _append(client, flour, "purchase", "1.23456")
        assert created.status_code == 201
        mv = (await client.get(f"/ingredient-movements/{created.json()['id']}")).json()
        assert mv["quantity"] == 1.235
