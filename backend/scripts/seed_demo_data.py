"""
Seed a small demo kitchen: ingredients with an opening purchase, a few
batches, and two products with opening stock.

Run locally:
  PYTHONPATH=backend python backend/scripts/seed_demo_data.py

Idempotent: ingredients and products are matched by name and skipped when
they already exist. Uses the same DATABASE_URL as the backend.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select

from db.database import async_session_maker, create_db_and_tables, Ingredient, Product, ProductVariant
from schemas.inventory import IngredientMovementCreate, IngredientStockCreate, StockMovementCreate
from services import batch_stock, ingredient_ledger, product_ledger


@dataclass(frozen=True)
class SeedIngredient:
    name: str
    category: str
    unit: str
    cost: Decimal
    opening: Decimal
    supplier: Optional[str] = None
    location: Optional[str] = None
    shelf_life_days: Optional[int] = None


@dataclass(frozen=True)
class SeedProduct:
    name: str
    variants: list[tuple[str, str, Decimal]] = field(default_factory=list)  # (name, sku, opening stock)
    cost: Decimal = Decimal("0")


SEED_INGREDIENTS: list[SeedIngredient] = [
    SeedIngredient("Flour", "dry", "kg", Decimal("0.90"), Decimal("120"), "Mill Co", "dry store", 180),
    SeedIngredient("Tomato", "vegetables", "kg", Decimal("1.80"), Decimal("35"), "Fresh Produce", "cold room", 7),
    SeedIngredient("Mozzarella", "dairy", "kg", Decimal("7.50"), Decimal("8"), "Dairy Farm", "cold room", 14),
    SeedIngredient("Basil", "herbs", "g", Decimal("0.04"), Decimal("400"), "Fresh Produce", "cold room", 5),
    SeedIngredient("Olive oil", "oils", "l", Decimal("6.20"), Decimal("20"), "Mill Co", "dry store", 365),
]

SEED_PRODUCTS: list[SeedProduct] = [
    SeedProduct("Margherita", [("Small", "MRG-S", Decimal("12")), ("Large", "MRG-L", Decimal("6"))], Decimal("3.10")),
    SeedProduct("Lemonade", [("Bottle", "LMN-B", Decimal("48"))], Decimal("0.80")),
]


async def _seed_ingredients(today: date) -> int:
    created = 0
    for s in SEED_INGREDIENTS:
        async with async_session_maker() as db:
            res = await db.execute(select(Ingredient.id).where(func.lower(Ingredient.name) == s.name.lower()))
            if res.first():
                continue
            ing = Ingredient(
                name=s.name,
                category=s.category,
                unit=s.unit,
                cost_per_unit=s.cost,
                supplier=s.supplier,
                shelf_life_days=s.shelf_life_days,
            )
            db.add(ing)
            await db.commit()

            await ingredient_ledger.append_movement(
                db,
                IngredientMovementCreate(
                    ingredient_id=ing.id,
                    type="purchase",
                    quantity=s.opening,
                    unit=s.unit,
                    cost_per_unit=s.cost,
                    supplier=s.supplier,
                    reason="Opening stock",
                ),
            )
            await batch_stock.create_entry(
                db,
                IngredientStockCreate(
                    ingredient_id=ing.id,
                    quantity=s.opening,
                    unit=s.unit,
                    cost_per_unit=s.cost,
                    min_threshold=s.opening / 4,
                    supplier=s.supplier,
                    location=s.location,
                    purchase_date=today,
                    expiry_date=today + timedelta(days=s.shelf_life_days) if s.shelf_life_days else None,
                    batch_code=f"{s.name[:3].upper()}-{today:%y%m%d}",
                ),
            )
            created += 1
    return created


async def _seed_products() -> int:
    created = 0
    for s in SEED_PRODUCTS:
        async with async_session_maker() as db:
            res = await db.execute(select(Product.id).where(func.lower(Product.name) == s.name.lower()))
            if res.first():
                continue
            product = Product(name=s.name)
            product.variants = [ProductVariant(name=name, sku=sku) for (name, sku, _) in s.variants]
            db.add(product)
            await db.commit()

            for variant, (_, _, opening) in zip(product.variants, s.variants):
                await product_ledger.append_movement(
                    db,
                    StockMovementCreate(
                        product_variant_id=variant.id,
                        type="in",
                        quantity=opening,
                        cost_per_unit=s.cost,
                        reference_type="supplier",
                        reason="Opening stock",
                    ),
                )
            created += 1
    return created


async def main() -> None:
    await create_db_and_tables()
    ingredients_n = await _seed_ingredients(date.today())
    products_n = await _seed_products()
    print(f"Done. Ingredients created: {ingredients_n}. Products created: {products_n}.")


if __name__ == "__main__":
    asyncio.run(main())
