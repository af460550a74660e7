"""Read side of the materialized product stock, plus its non-quantity settings."""

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.costing import as_float, money, stock_value, to_decimal
from core.errors import NotFoundError
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
from db.database import Product, ProductStock, ProductVariant, transaction
from schemas.inventory import ProductStockSettingsUpdate

logger = logging.getLogger(__name__)


def _row_to_dict(st: ProductStock, variant: ProductVariant, product: Product, today: date, horizon_days: int) -> Dict:
    status = classify_batch(st.quantity, st.min_threshold, st.expiry_date, today, horizon_days)
    return {
        "id": st.id,
        "product_variant_id": st.product_variant_id,
        "variant_name": variant.name,
        "variant_sku": variant.sku,
        "product_id": product.id,
        "product_name": product.name,
        "quantity": as_float(st.quantity),
        "unit": st.unit,
        "min_threshold": as_float(st.min_threshold),
        "max_threshold": as_float(st.max_threshold),
        "cost_per_unit": as_float(st.cost_per_unit),
        "supplier": st.supplier,
        "expiry_date": st.expiry_date.isoformat() if st.expiry_date else None,
        "days_to_expiry": days_to_expiry(st.expiry_date, today),
        "total_value": money(stock_value(st.quantity, st.cost_per_unit)),
        "last_restock_at": st.last_restock_at.isoformat() if st.last_restock_at else None,
        "updated_at": st.updated_at.isoformat() if st.updated_at else None,
        "status": status,
    }


def _base_select():
    return (
        select(ProductStock, ProductVariant, Product)
        .join(ProductVariant, ProductStock.product_variant_id == ProductVariant.id)
        .join(Product, ProductVariant.product_id == Product.id)
        # the upsert bypasses the ORM, so never trust identity-mapped rows
        .execution_options(populate_existing=True)
    )


async def list_stock(
    db: AsyncSession,
    *,
    today: date,
    horizon_days: int,
    search: Optional[str] = None,
    supplier: Optional[str] = None,
    low_stock: bool = False,
    status: Optional[str] = None,
) -> List[Dict]:
    stmt = _base_select()
    if search:
        term = f"%{search}%"
        stmt = stmt.where(
            or_(
                Product.name.ilike(term),
                ProductVariant.name.ilike(term),
                ProductVariant.sku.ilike(term),
                ProductStock.supplier.ilike(term),
            )
        )
    if supplier:
        stmt = stmt.where(ProductStock.supplier == supplier)
    if low_stock:
        stmt = stmt.where(ProductStock.quantity <= ProductStock.min_threshold)

    rows = (await db.execute(stmt)).all()
    out = [_row_to_dict(st, v, p, today, horizon_days) for (st, v, p) in rows]
    if status and status != "all":
        out = [r for r in out if r["status"] == status]
    out.sort(
        key=lambda r: batch_sort_key(
            r["status"],
            date.fromisoformat(r["expiry_date"]) if r["expiry_date"] else None,
            f"{r['product_name']} {r['variant_name']}",
        )
    )
    return out


def stock_summary(stock: List[Dict]) -> Dict:
    counts = {
        tag: sum(1 for s in stock if s["status"] == tag)
        for tag in (OUT_OF_STOCK, CRITICAL, LOW, EXPIRED, EXPIRING, OK)
    }
    return {
        "total": len(stock),
        **counts,
        "total_value": money(sum(to_decimal(s["total_value"]) for s in stock)),
    }


async def get_stock(db: AsyncSession, product_variant_id: UUID, *, today: date, horizon_days: int) -> Dict:
    row = (
        await db.execute(_base_select().where(ProductStock.product_variant_id == product_variant_id))
    ).first()
    if not row:
        raise NotFoundError("Stock not found")
    return _row_to_dict(*row, today, horizon_days)


async def update_settings(
    db: AsyncSession,
    product_variant_id: UUID,
    payload: ProductStockSettingsUpdate,
    *,
    today: date,
    horizon_days: int,
) -> Dict:
    data = payload.model_dump(exclude_unset=True)
    async with transaction(db, "product stock settings update"):
        stmt = (
            select(ProductStock)
            .where(ProductStock.product_variant_id == product_variant_id)
            .execution_options(populate_existing=True)
        )
        st = (await db.execute(stmt)).scalar_one_or_none()
        if st is None:
            raise NotFoundError("Stock not found")
        for field, value in data.items():
            setattr(st, field, value)
        await db.flush()
    logger.info("Product stock %s settings updated: %s", product_variant_id, sorted(data))
    return await get_stock(db, product_variant_id, today=today, horizon_days=horizon_days)


async def stats(db: AsyncSession, *, today: date, horizon_days: int) -> Dict:
    """Counts and value over the stock rows of active products, in one query."""
    S = ProductStock
    soon = today + timedelta(days=horizon_days)
    stmt = (
        select(
            func.count().label("total_items"),
            func.count(case((S.quantity <= 0, 1))).label("out_of_stock"),
            func.count(case((and_(S.quantity <= S.min_threshold, S.quantity > 0), 1))).label("critical"),
            func.count(case((S.quantity > S.min_threshold, 1))).label("ok"),
            func.count(case((S.expiry_date <= today, 1))).label("expired"),
            func.count(case((and_(S.expiry_date <= soon, S.expiry_date > today), 1))).label("expiring_soon"),
            func.count(case((S.quantity >= S.max_threshold, 1))).label("overstocked"),
            func.coalesce(func.sum(S.quantity * S.cost_per_unit), 0).label("total_value"),
            func.count(func.distinct(S.supplier)).label("suppliers_count"),
            func.coalesce(func.avg(S.quantity), 0).label("avg_quantity"),
            func.coalesce(func.avg(S.cost_per_unit), 0).label("avg_cost_per_unit"),
        )
        .select_from(S)
        .join(ProductVariant, S.product_variant_id == ProductVariant.id)
        .join(Product, ProductVariant.product_id == Product.id)
        .where(Product.active == True)  # noqa: E712
    )
    r = (await db.execute(stmt)).one()
    return {
        "total_items": int(r.total_items or 0),
        "out_of_stock": int(r.out_of_stock or 0),
        "critical": int(r.critical or 0),
        "ok": int(r.ok or 0),
        "expired": int(r.expired or 0),
        "expiring_soon": int(r.expiring_soon or 0),
        "overstocked": int(r.overstocked or 0),
        "total_value": money(r.total_value),
        "suppliers_count": int(r.suppliers_count or 0),
        "avg_quantity": money(r.avg_quantity),
        "avg_cost_per_unit": money(r.avg_cost_per_unit),
    }


async def suppliers(db: AsyncSession) -> List[Dict]:
    S = ProductStock
    stmt = (
        select(
            S.supplier,
            func.count().label("products_count"),
            func.sum(S.quantity).label("total_quantity"),
            func.sum(S.quantity * S.cost_per_unit).label("total_value"),
        )
        .where(S.supplier.is_not(None))
        .where(S.supplier != "")
        .group_by(S.supplier)
        .order_by(S.supplier)
    )
    return [
        {
            "supplier": r.supplier,
            "products_count": int(r.products_count),
            "total_quantity": as_float(r.total_quantity),
            "total_value": money(r.total_value),
        }
        for r in (await db.execute(stmt)).all()
    ]


async def available_variants(db: AsyncSession) -> List[Dict]:
    """Active variants of active products, with their stock row when one exists."""
    stmt = (
        select(ProductVariant, Product, ProductStock)
        .join(Product, ProductVariant.product_id == Product.id)
        .outerjoin(ProductStock, ProductStock.product_variant_id == ProductVariant.id)
        .where(Product.active == True, ProductVariant.active == True)  # noqa: E712
        .order_by(Product.name, ProductVariant.name)
        .execution_options(populate_existing=True)
    )
    rows = (await db.execute(stmt)).all()
    return [
        {
            "id": v.id,
            "variant_name": v.name,
            "sku": v.sku,
            "price": as_float(v.price),
            "product_id": p.id,
            "product_name": p.name,
            "display_name": f"{p.name} - {v.name}",
            "has_stock": st is not None,
            "current_stock": as_float(st.quantity) if st is not None else None,
            "cost_per_unit": as_float(st.cost_per_unit) if st is not None else None,
        }
        for (v, p, st) in rows
    ]
