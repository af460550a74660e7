"""
Ingredient batch registry: receipts, listing order and filters, whole-row
replace and hard delete.
"""

from datetime import date, timedelta

import pytest


def _in(days):
    return (date.today() + timedelta(days=days)).isoformat()


@pytest.fixture
def receive(client):
    async def _receive(ingredient, quantity, **extra):
        body = {"ingredient_id": str(ingredient.id), "quantity": quantity, "unit": ingredient.unit}
        body.update(extra)
        resp = await client.post("/ingredient-stock/", json=body)
        assert resp.status_code == 201, resp.text
        return resp.json()

    return _receive


class TestReceipt:
    async def test_defaults_and_status(self, receive, make_ingredient):
        flour = await make_ingredient()
        entry = await receive(flour, 25, batch_code="F-001")
        assert entry["cost_per_unit"] == 0
        assert entry["min_threshold"] == 0
        assert entry["reserved_quantity"] == 0
        assert entry["available_quantity"] == 25
        assert entry["status"] == "ok"
        assert entry["ingredient_name"] == "Flour"

    async def test_quantity_below_minimum(self, receive, make_ingredient):
        flour = await make_ingredient()
        critical = await receive(flour, 5, min_threshold=10)
        empty = await receive(flour, 0, min_threshold=10)
        assert critical["status"] == "critical"
        assert empty["status"] == "out_of_stock"

    async def test_required_fields_and_unknown_ingredient(self, client, make_ingredient):
        flour = await make_ingredient()
        missing_unit = await client.post("/ingredient-stock/", json={"ingredient_id": str(flour.id), "quantity": 1})
        assert missing_unit.status_code == 400
        unknown = await client.post(
            "/ingredient-stock/",
            json={"ingredient_id": "00000000-0000-0000-0000-000000000009", "quantity": 1, "unit": "kg"},
        )
        assert unknown.status_code == 400
        listing = (await client.get("/ingredient-stock/")).json()
        assert listing["stock"] == []


class TestListing:
    async def test_severity_then_expiry_then_name(self, client, receive, make_ingredient):
        flour = await make_ingredient(name="Flour")
        milk = await make_ingredient(name="Milk", unit="l")
        cream = await make_ingredient(name="Cream", unit="l")
        basil = await make_ingredient(name="Basil")

        await receive(flour, 100)
        await receive(milk, 40, expiry_date=_in(3))
        await receive(cream, 40, expiry_date=_in(1))
        await receive(basil, 2, min_threshold=5)
        await receive(flour, 0)
        await receive(milk, 40, expiry_date=_in(-1))

        body = (await client.get("/ingredient-stock/")).json()
        assert [(r["ingredient_name"], r["status"]) for r in body["stock"]] == [
            ("Flour", "out_of_stock"),
            ("Basil", "critical"),
            ("Milk", "expired"),
            ("Cream", "expiring"),
            ("Milk", "expiring"),
            ("Flour", "ok"),
        ]
        assert body["stock"][3]["days_to_expiry"] == 1
        summary = body["summary"]
        assert summary["total"] == 6
        assert summary["expiring"] == 2
        assert summary["expired"] == 1

    async def test_expiring_days_sets_the_horizon(self, client, receive, make_ingredient):
        milk = await make_ingredient(name="Milk", unit="l")
        await receive(milk, 40, expiry_date=_in(10))

        default = (await client.get("/ingredient-stock/")).json()["stock"][0]
        narrow = (await client.get("/ingredient-stock/", params={"expiring_days": 5})).json()["stock"][0]
        assert default["status"] == "expiring"
        assert narrow["status"] == "ok"

    async def test_filters(self, client, receive, make_ingredient):
        flour = await make_ingredient(name="Flour")
        sugar = await make_ingredient(name="Sugar")
        await receive(flour, 100, location="dry store", supplier="Mill Co", batch_code="MC-1")
        await receive(sugar, 8, min_threshold=10, location="dry store", supplier="Sweet Ltd")
        await receive(flour, 50, location="kitchen", supplier="Mill Co")

        async def names(**params):
            resp = await client.get("/ingredient-stock/", params=params)
            return sorted(r["ingredient_name"] for r in resp.json()["stock"])

        assert await names(location="dry store") == ["Flour", "Sugar"]
        assert await names(supplier="Sweet Ltd") == ["Sugar"]
        assert await names(search="mc-1") == ["Flour"]
        assert await names(search="sweet") == ["Sugar"]
        assert await names(status="critical") == ["Sugar"]
        assert await names(low_stock="true") == ["Sugar"]

    async def test_lookups_and_stats(self, client, receive, make_ingredient):
        flour = await make_ingredient(name="Flour")
        await receive(flour, 10, cost_per_unit="1.5", location="kitchen", supplier="Mill Co")
        await receive(flour, 4, cost_per_unit="2", min_threshold=5, location="cellar", expiry_date=_in(3))
        await receive(flour, 0, location="", supplier="", expiry_date=_in(-2))

        assert (await client.get("/ingredient-stock/locations")).json() == ["cellar", "kitchen"]
        assert (await client.get("/ingredient-stock/suppliers")).json() == ["Mill Co"]

        stats = (await client.get("/ingredient-stock/stats")).json()
        assert stats["total_items"] == 3
        assert stats["out_of_stock"] == 1
        assert stats["low_stock"] == 1
        assert stats["expired"] == 1
        assert stats["expiring_soon"] == 1
        assert stats["total_value"] == 23.0
        assert stats["suppliers_count"] == 1
        assert stats["locations_count"] == 2


class TestReplaceAndDelete:
    async def test_put_replaces_the_whole_entry(self, client, receive, make_ingredient):
        flour = await make_ingredient()
        entry = await receive(flour, 20, cost_per_unit="3", location="kitchen", notes="first pallet")

        resp = await client.put(f"/ingredient-stock/{entry['id']}", json={"quantity": 12, "min_threshold": 10})
        assert resp.status_code == 200
        body = resp.json()
        assert body["quantity"] == 12
        assert body["status"] == "low"
        # omitted fields are reset, not kept
        assert body["cost_per_unit"] == 0
        assert body["location"] is None
        assert body["notes"] is None

    async def test_status_uses_available_quantity(self, client, receive, make_ingredient):
        flour = await make_ingredient()
        entry = await receive(flour, 50)
        resp = await client.put(
            f"/ingredient-stock/{entry['id']}",
            json={"quantity": 50, "reserved_quantity": 45, "min_threshold": 10},
        )
        body = resp.json()
        assert body["available_quantity"] == 5
        assert body["status"] == "critical"

    async def test_unknown_entry_is_404(self, client):
        missing = "00000000-0000-0000-0000-00000000000a"
        assert (await client.put(f"/ingredient-stock/{missing}", json={"quantity": 1})).status_code == 404
        assert (await client.delete(f"/ingredient-stock/{missing}")).status_code == 404

    async def test_delete_is_permanent(self, client, receive, make_ingredient):
        flour = await make_ingredient()
        entry = await receive(flour, 20)
        assert (await client.delete(f"/ingredient-stock/{entry['id']}")).status_code == 204
        assert (await client.get(f"/ingredient-stock/{entry['id']}")).status_code == 404
        assert (await client.delete(f"/ingredient-stock/{entry['id']}")).status_code == 404
