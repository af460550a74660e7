"""
Product ledger: append-only stock movements plus the materialized
`product_stock` row they keep current.

The ledger insert and the stock upsert share one transaction. The upsert is a
single INSERT ... ON CONFLICT DO UPDATE whose SET clause increments and
clamps at zero inside the database, so concurrent movements for the same
variant serialize on the row instead of racing through a read-then-write.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from core.costing import as_float, money, movement_total_cost
from core.errors import NotFoundError, ReferentialError, ValidationError
from core.ledger import (
    ADJUSTMENT,
    IN,
    OUT,
    PRODUCT_MOVEMENT_TYPES,
    PRODUCT_REFERENCE_TYPES,
    parse_quantity,
    product_delta,
    replay_product_deltas,
)
from core.periods import inclusive_range
from db.database import Product, ProductStock, ProductVariant, StockMovement, User, transaction, utcnow
from schemas.inventory import StockMovementCreate
from services.annotations import apply_annotations

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _upsert_insert(db: AsyncSession):
    dialect = db.get_bind().dialect.name
    try:
        return _DIALECT_INSERTS[dialect]
    except KeyError:
        raise RuntimeError(f"Atomic stock upsert is not supported on {dialect}")


def _validate(payload: StockMovementCreate) -> Decimal:
    if not payload.product_variant_id:
        raise ValidationError("product_variant_id is required")
    if not payload.type:
        raise ValidationError("type is required")
    if payload.type not in PRODUCT_MOVEMENT_TYPES:
        raise ValidationError(f"Invalid movement type. Valid: {', '.join(PRODUCT_MOVEMENT_TYPES)}")
    if payload.reference_type not in PRODUCT_REFERENCE_TYPES:
        raise ValidationError(f"Invalid reference type. Valid: {', '.join(PRODUCT_REFERENCE_TYPES)}")
    quantity = parse_quantity(payload.quantity)
    # Only adjustments carry their own sign
    if payload.type != ADJUSTMENT and quantity < 0:
        raise ValidationError("quantity must be positive")
    if payload.cost_per_unit is not None and payload.cost_per_unit < 0:
        raise ValidationError("cost_per_unit must be >= 0")
    return quantity


async def apply_to_stock(
    db: AsyncSession,
    product_variant_id: UUID,
    delta: Decimal,
    *,
    restock_cost: Optional[Decimal] = None,
    restocked: bool = False,
) -> Dict:
    """Atomic increment-and-clamp upsert of the materialized stock row."""
    now = utcnow()
    tbl = ProductStock.__table__
    new_quantity = tbl.c.quantity + delta

    set_ = {
        "quantity": case((new_quantity < 0, 0), else_=new_quantity),
        "updated_at": now,
    }
    if restock_cost is not None:
        set_["cost_per_unit"] = restock_cost
    if restocked:
        set_["last_restock_at"] = now

    insert = _upsert_insert(db)
    stmt = (
        insert(tbl)
        .values(
            id=uuid.uuid4(),
            product_variant_id=product_variant_id,
            quantity=max(Decimal("0"), delta),
            unit="pcs",
            min_threshold=10,
            max_threshold=100,
            cost_per_unit=restock_cost if restock_cost is not None else 0,
            last_restock_at=now if restocked else None,
            updated_at=now,
        )
        .on_conflict_do_update(index_elements=[tbl.c.product_variant_id], set_=set_)
        .returning(tbl.c.product_variant_id, tbl.c.quantity, tbl.c.cost_per_unit, tbl.c.updated_at)
    )
    row = (await db.execute(stmt)).first()
    return {
        "product_variant_id": row.product_variant_id,
        "quantity": as_float(row.quantity),
        "cost_per_unit": as_float(row.cost_per_unit),
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


async def append_movement(
    db: AsyncSession,
    payload: StockMovementCreate,
    user_id: Optional[UUID] = None,
) -> Dict:
    quantity = _validate(payload)
    delta = product_delta(payload.type, quantity)

    async with transaction(db, "stock movement append"):
        variant = await db.get(ProductVariant, payload.product_variant_id)
        if variant is None:
            raise ReferentialError("Product variant not found")

        cost = payload.cost_per_unit
        if cost is None and payload.type == OUT:
            # Outgoing movements are valued at the stock row's reference cost;
            # a zero there means none has been recorded yet
            cost = (
                await db.execute(
                    select(ProductStock.cost_per_unit).where(
                        ProductStock.product_variant_id == payload.product_variant_id
                    )
                )
            ).scalar_one_or_none() or None

        movement = StockMovement(
            product_variant_id=payload.product_variant_id,
            type=payload.type,
            quantity=quantity,
            reason=payload.reason,
            notes=payload.notes,
            reference_type=payload.reference_type,
            reference_id=payload.reference_id,
            cost_per_unit=cost,
            total_cost=movement_total_cost(quantity, cost),
            applied_to_stock=payload.update_stock,
            user_id=user_id,
        )
        db.add(movement)
        await db.flush()

        stock = None
        if payload.update_stock:
            stock = await apply_to_stock(
                db,
                payload.product_variant_id,
                delta,
                restock_cost=payload.cost_per_unit if payload.type == IN else None,
                restocked=payload.type == IN,
            )

    logger.info(
        "Stock movement %s recorded: %s %s %s (stock %s)",
        movement.id, payload.type, quantity, payload.product_variant_id,
        stock["quantity"] if stock else "not updated",
    )
    return {"id": movement.id, "stock": stock}


def movement_to_dict(mv: StockMovement, variant: Optional[ProductVariant], product: Optional[Product], user: Optional[User]) -> Dict:
    return {
        "id": mv.id,
        "product_variant_id": mv.product_variant_id,
        "variant_name": variant.name if variant else None,
        "product_id": product.id if product else None,
        "product_name": product.name if product else None,
        "type": mv.type,
        "quantity": as_float(mv.quantity),
        "reason": mv.reason,
        "notes": mv.notes,
        "reference": {"type": mv.reference_type, "id": mv.reference_id},
        "cost_per_unit": as_float(mv.cost_per_unit),
        "total_cost": as_float(mv.total_cost),
        "applied_to_stock": bool(mv.applied_to_stock),
        "user_id": mv.user_id,
        "user_name": user.email if user else None,
        "created_at": mv.created_at.isoformat() if mv.created_at else None,
    }


def _joined_select():
    return (
        select(StockMovement, ProductVariant, Product, User)
        .join(ProductVariant, StockMovement.product_variant_id == ProductVariant.id)
        .join(Product, ProductVariant.product_id == Product.id)
        .outerjoin(User, StockMovement.user_id == User.id)
    )


async def get_movement(db: AsyncSession, movement_id: UUID) -> Dict:
    row = (await db.execute(_joined_select().where(StockMovement.id == movement_id))).first()
    if not row:
        raise NotFoundError("Movement not found")
    return movement_to_dict(*row)


async def list_movements(
    db: AsyncSession,
    *,
    movement_type: Optional[str] = None,
    reference_type: Optional[str] = None,
    search: Optional[str] = None,
    product_id: Optional[UUID] = None,
    product_variant_id: Optional[UUID] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: int = 100,
    offset: int = 0,
) -> Tuple[List[Dict], int]:
    conditions = []
    if movement_type and movement_type != "all":
        conditions.append(StockMovement.type == movement_type)
    if reference_type and reference_type != "all":
        conditions.append(StockMovement.reference_type == reference_type)
    if search:
        term = f"%{search}%"
        conditions.append(
            or_(
                Product.name.ilike(term),
                ProductVariant.name.ilike(term),
                StockMovement.reason.ilike(term),
                StockMovement.notes.ilike(term),
            )
        )
    if product_id:
        conditions.append(Product.id == product_id)
    if product_variant_id:
        conditions.append(StockMovement.product_variant_id == product_variant_id)
    start_dt, end_excl = inclusive_range(date_from, date_to)
    if start_dt:
        conditions.append(StockMovement.created_at >= start_dt)
    if end_excl:
        conditions.append(StockMovement.created_at < end_excl)

    count_stmt = (
        select(func.count())
        .select_from(StockMovement)
        .join(ProductVariant, StockMovement.product_variant_id == ProductVariant.id)
        .join(Product, ProductVariant.product_id == Product.id)
        .where(*conditions)
    )
    total = (await db.execute(count_stmt)).scalar_one()

    stmt = (
        _joined_select()
        .where(*conditions)
        .order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
        .limit(limit)
        .offset(offset)
    )
    rows = (await db.execute(stmt)).all()
    return [movement_to_dict(*r) for r in rows], int(total)


async def update_annotations(db: AsyncSession, movement_id: UUID, changes: Dict) -> Dict:
    async with transaction(db, "stock movement annotation update"):
        mv = await db.get(StockMovement, movement_id)
        if mv is None:
            raise NotFoundError("Movement not found")
        changed = apply_annotations(mv, changes, subject_field="product_variant_id")
        await db.flush()
    if changed:
        logger.info("Stock movement %s annotations updated", movement_id)
    return await get_movement(db, movement_id)


async def movement_stats(
    db: AsyncSession,
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    movement_type: Optional[str] = None,
    reference_type: Optional[str] = None,
) -> Dict:
    M = StockMovement
    conditions = []
    start_dt, end_excl = inclusive_range(date_from, date_to)
    if start_dt:
        conditions.append(M.created_at >= start_dt)
    if end_excl:
        conditions.append(M.created_at < end_excl)
    if movement_type and movement_type != "all":
        conditions.append(M.type == movement_type)
    if reference_type and reference_type != "all":
        conditions.append(M.reference_type == reference_type)

    def _count(cond):
        return func.count(case((cond, 1)))

    def _sum(cond, col):
        return func.coalesce(func.sum(case((cond, col), else_=0)), 0)

    stmt = select(
        func.count().label("total_movements"),
        _count(M.type == IN).label("inbound_movements"),
        _count(M.type == OUT).label("outbound_movements"),
        _count(M.type == ADJUSTMENT).label("adjustment_movements"),
        _count(M.reference_type == "order").label("order_movements"),
        _count(M.reference_type == "manual").label("manual_movements"),
        _count(M.reference_type == "supplier").label("supplier_movements"),
        _sum(M.type == IN, M.quantity).label("total_inbound"),
        _sum(M.type == OUT, M.quantity).label("total_outbound"),
        _sum(M.type == IN, M.total_cost).label("total_inbound_value"),
        _sum(M.type == OUT, M.total_cost).label("total_outbound_value"),
    ).where(*conditions)
    r = (await db.execute(stmt)).one()
    return {
        "total_movements": int(r.total_movements or 0),
        "inbound_movements": int(r.inbound_movements or 0),
        "outbound_movements": int(r.outbound_movements or 0),
        "adjustment_movements": int(r.adjustment_movements or 0),
        "order_movements": int(r.order_movements or 0),
        "manual_movements": int(r.manual_movements or 0),
        "supplier_movements": int(r.supplier_movements or 0),
        "total_inbound": round(float(r.total_inbound or 0), 3),
        "total_outbound": round(float(r.total_outbound or 0), 3),
        "total_inbound_value": money(r.total_inbound_value),
        "total_outbound_value": money(r.total_outbound_value),
    }


async def replay_stock(db: AsyncSession, product_variant_id: UUID) -> Decimal:
    """Quantity the materialized row should hold, recomputed from the ledger."""
    res = await db.execute(
        select(StockMovement.type, StockMovement.quantity)
        .where(StockMovement.product_variant_id == product_variant_id)
        .where(StockMovement.applied_to_stock == True)  # noqa: E712
        .order_by(StockMovement.created_at.asc(), StockMovement.id.asc())
    )
    return replay_product_deltas(product_delta(t, Decimal(str(q))) for (t, q) in res.all())


async def reconcile_stock(db: AsyncSession, product_variant_id: UUID, repair: bool = False) -> Dict:
    async with transaction(db, "stock reconcile"):
        if await db.get(ProductVariant, product_variant_id) is None:
            raise NotFoundError("Product variant not found")
        expected = await replay_stock(db, product_variant_id)
        current = (
            await db.execute(
                select(ProductStock.quantity).where(ProductStock.product_variant_id == product_variant_id)
            )
        ).scalar_one_or_none()
        current_dec = Decimal(str(current)) if current is not None else None
        in_sync = current_dec == expected or (current_dec is None and expected == 0)
        repaired = False
        if repair and not in_sync and current_dec is not None:
            await db.execute(
                update(ProductStock)
                .where(ProductStock.product_variant_id == product_variant_id)
                .values(quantity=expected, updated_at=utcnow())
            )
            repaired = True
            logger.warning(
                "Product stock %s repaired: %s -> %s", product_variant_id, current_dec, expected
            )
    return {
        "product_variant_id": product_variant_id,
        "materialized_quantity": as_float(current_dec),
        "ledger_quantity": float(expected),
        "in_sync": in_sync,
        "repaired": repaired,
    }
