"""
Ingredient batch registry.

Batches are plain rows mutated in place: update replaces the whole entry and
delete removes it for good. Unlike the ledgers, nothing records their
history.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import and_, case, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.costing import as_float, money, stock_value, to_decimal
from core.errors import NotFoundError, ReferentialError, ValidationError
from core.stock_status import (
    CRITICAL,
    EXPIRED,
    EXPIRING,
    LOW,
    OK,
    OUT_OF_STOCK,
    batch_sort_key,
    classify_batch,
    days_to_expiry,
)
from db.database import Ingredient, IngredientStock, transaction
from schemas.inventory import IngredientStockCreate, IngredientStockReplace

logger = logging.getLogger(__name__)

STATS_EXPIRING_DAYS = 7


def batch_to_dict(st: IngredientStock, ingredient: Ingredient, today: date, horizon_days: int) -> Dict:
    available = st.available_quantity
    return {
        "id": st.id,
        "ingredient_id": st.ingredient_id,
        "ingredient_name": ingredient.name,
        "category": ingredient.category,
        "storage_type": ingredient.storage_type,
        "batch_code": st.batch_code,
        "quantity": as_float(st.quantity),
        "reserved_quantity": as_float(st.reserved_quantity),
        "available_quantity": as_float(available),
        "unit": st.unit,
        "min_threshold": as_float(st.min_threshold),
        "max_threshold": as_float(st.max_threshold),
        "cost_per_unit": as_float(st.cost_per_unit),
        "total_value": money(stock_value(st.quantity, st.cost_per_unit)),
        "supplier": st.supplier,
        "purchase_date": st.purchase_date.isoformat() if st.purchase_date else None,
        "expiry_date": st.expiry_date.isoformat() if st.expiry_date else None,
        "days_to_expiry": days_to_expiry(st.expiry_date, today),
        "location": st.location,
        "notes": st.notes,
        "status": classify_batch(available, st.min_threshold, st.expiry_date, today, horizon_days),
    }


async def create_entry(db: AsyncSession, payload: IngredientStockCreate) -> IngredientStock:
    if not payload.ingredient_id or payload.quantity is None or not payload.unit:
        raise ValidationError("ingredient_id, quantity and unit are required")
    if payload.quantity < 0:
        raise ValidationError("quantity cannot be negative")

    async with transaction(db, "batch create"):
        if await db.get(Ingredient, payload.ingredient_id) is None:
            raise ReferentialError("Ingredient not found")
        entry = IngredientStock(
            ingredient_id=payload.ingredient_id,
            batch_code=payload.batch_code,
            quantity=payload.quantity,
            reserved_quantity=Decimal("0"),
            unit=payload.unit,
            cost_per_unit=payload.cost_per_unit or Decimal("0"),
            min_threshold=payload.min_threshold or Decimal("0"),
            max_threshold=payload.max_threshold,
            supplier=payload.supplier,
            purchase_date=payload.purchase_date,
            expiry_date=payload.expiry_date,
            location=payload.location,
            notes=payload.notes,
        )
        db.add(entry)
        await db.flush()

    logger.info("Batch %s received for ingredient %s: %s %s", entry.id, entry.ingredient_id, entry.quantity, entry.unit)
    return entry


async def replace_entry(db: AsyncSession, entry_id: UUID, payload: IngredientStockReplace) -> IngredientStock:
    if payload.quantity < 0 or payload.reserved_quantity < 0:
        raise ValidationError("quantities cannot be negative")

    async with transaction(db, "batch update"):
        entry = await db.get(IngredientStock, entry_id)
        if entry is None:
            raise NotFoundError("Stock entry not found")
        # Whole-row replace: every field is taken from the payload
        for field, value in payload.model_dump().items():
            setattr(entry, field, value)
        await db.flush()

    logger.info("Batch %s replaced", entry_id)
    return entry


async def delete_entry(db: AsyncSession, entry_id: UUID) -> None:
    async with transaction(db, "batch delete"):
        res = await db.execute(delete(IngredientStock).where(IngredientStock.id == entry_id))
        if not res.rowcount:
            raise NotFoundError("Stock entry not found")
    logger.info("Batch %s deleted", entry_id)


async def get_entry(db: AsyncSession, entry_id: UUID, *, today: date, horizon_days: int) -> Dict:
    row = (
        await db.execute(
            select(IngredientStock, Ingredient)
            .join(Ingredient, IngredientStock.ingredient_id == Ingredient.id)
            .where(IngredientStock.id == entry_id)
        )
    ).first()
    if not row:
        raise NotFoundError("Stock entry not found")
    return batch_to_dict(*row, today, horizon_days)


async def list_entries(
    db: AsyncSession,
    *,
    today: date,
    horizon_days: int,
    search: Optional[str] = None,
    location: Optional[str] = None,
    supplier: Optional[str] = None,
    low_stock: bool = False,
    status: Optional[str] = None,
) -> List[Dict]:
    stmt = select(IngredientStock, Ingredient).join(Ingredient, IngredientStock.ingredient_id == Ingredient.id)
    if search:
        term = f"%{search}%"
        stmt = stmt.where(
            or_(
                Ingredient.name.ilike(term),
                IngredientStock.batch_code.ilike(term),
                IngredientStock.supplier.ilike(term),
            )
        )
    if location:
        stmt = stmt.where(IngredientStock.location == location)
    if supplier:
        stmt = stmt.where(IngredientStock.supplier == supplier)
    if low_stock:
        stmt = stmt.where(
            IngredientStock.quantity - IngredientStock.reserved_quantity <= IngredientStock.min_threshold
        )

    rows = (await db.execute(stmt)).all()
    out = [batch_to_dict(st, ing, today, horizon_days) for (st, ing) in rows]
    if status and status != "all":
        out = [r for r in out if r["status"] == status]
    out.sort(
        key=lambda r: batch_sort_key(
            r["status"],
            date.fromisoformat(r["expiry_date"]) if r["expiry_date"] else None,
            r["ingredient_name"],
        )
    )
    return out


def list_summary(stock: List[Dict]) -> Dict:
    counts = {
        tag: sum(1 for s in stock if s["status"] == tag)
        for tag in (OUT_OF_STOCK, CRITICAL, LOW, EXPIRED, EXPIRING, OK)
    }
    return {
        "total": len(stock),
        **counts,
        "total_value": money(sum(to_decimal(s["total_value"]) for s in stock)),
    }


async def stats(db: AsyncSession, *, today: date) -> Dict:
    S = IngredientStock
    available = S.quantity - S.reserved_quantity
    soon = today + timedelta(days=STATS_EXPIRING_DAYS)
    stmt = (
        select(
            func.count().label("total_items"),
            func.count(case((available <= 0, 1))).label("out_of_stock"),
            func.count(case((and_(available <= S.min_threshold, available > 0), 1))).label("low_stock"),
            func.count(case((S.expiry_date <= today, 1))).label("expired"),
            func.count(case((and_(S.expiry_date <= soon, S.expiry_date > today), 1))).label("expiring_soon"),
            func.coalesce(func.sum(S.quantity * S.cost_per_unit), 0).label("total_value"),
            func.count(func.distinct(S.supplier)).label("suppliers_count"),
            func.count(func.distinct(S.location)).label("locations_count"),
        )
        .select_from(S)
        .join(Ingredient, S.ingredient_id == Ingredient.id)
        .where(Ingredient.active == True)  # noqa: E712
    )
    r = (await db.execute(stmt)).one()
    return {
        "total_items": int(r.total_items or 0),
        "out_of_stock": int(r.out_of_stock or 0),
        "low_stock": int(r.low_stock or 0),
        "expired": int(r.expired or 0),
        "expiring_soon": int(r.expiring_soon or 0),
        "total_value": money(r.total_value),
        "suppliers_count": int(r.suppliers_count or 0),
        "locations_count": int(r.locations_count or 0),
    }


async def distinct_values(db: AsyncSession, column) -> List[str]:
    res = await db.execute(
        select(column).where(column.is_not(None)).where(column != "").distinct().order_by(column)
    )
    return [v for (v,) in res.all()]


async def locations(db: AsyncSession) -> List[str]:
    return await distinct_values(db, IngredientStock.location)


async def suppliers(db: AsyncSession) -> List[str]:
    return await distinct_values(db, IngredientStock.supplier)
