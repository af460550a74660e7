"""
Ingredient ledger: append-only movements and on-demand stock aggregation.

Current stock for an ingredient is never stored. It is recomputed from the
full movement history every time it is read, so reading twice over an
unchanged ledger always gives the same answer.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.costing import as_float, money, movement_total_cost, resolve_avg_cost, to_decimal
from core.errors import NotFoundError, ReferentialError, ValidationError
from core.ledger import ADJUSTMENT, CONSUMING_TYPES, INGREDIENT_MOVEMENT_TYPES, PURCHASE, parse_quantity
from core.periods import day_start, inclusive_range, period_start
from core.stock_status import (
    CRITICAL,
    LOW,
    LOW_STOCK_TAGS,
    OK,
    OUT_OF_STOCK,
    aggregate_sort_key,
    classify_aggregate,
)
from db.database import Ingredient, IngredientMovement, User, transaction
from schemas.inventory import IngredientMovementCreate
from services.annotations import apply_annotations

logger = logging.getLogger(__name__)


def _validate(payload: IngredientMovementCreate):
    if not payload.ingredient_id:
        raise ValidationError("ingredient_id is required")
    if not payload.type:
        raise ValidationError("type is required")
    if payload.type not in INGREDIENT_MOVEMENT_TYPES:
        raise ValidationError(
            f"Invalid movement type. Valid: {', '.join(INGREDIENT_MOVEMENT_TYPES)}"
        )
    quantity = parse_quantity(payload.quantity)
    if not payload.unit:
        raise ValidationError("unit is required")
    if payload.cost_per_unit is not None and payload.cost_per_unit < 0:
        raise ValidationError("cost_per_unit must be >= 0")
    return quantity


async def append_movement(
    db: AsyncSession,
    payload: IngredientMovementCreate,
    user_id: Optional[UUID] = None,
) -> IngredientMovement:
    quantity = _validate(payload)

    async with transaction(db, "ingredient movement append"):
        ingredient = await db.get(Ingredient, payload.ingredient_id)
        if ingredient is None:
            raise ReferentialError("Ingredient not found")

        movement = IngredientMovement(
            ingredient_id=payload.ingredient_id,
            batch_id=payload.batch_id,
            type=payload.type,
            quantity=quantity,
            unit=payload.unit,
            cost_per_unit=payload.cost_per_unit,
            total_cost=movement_total_cost(quantity, payload.cost_per_unit, payload.total_cost),
            reason=payload.reason,
            reference_type=payload.reference_type or "manual",
            reference_id=payload.reference_id,
            location_from=payload.location_from,
            location_to=payload.location_to,
            expiry_date=payload.expiry_date,
            batch_code=payload.batch_code,
            supplier=payload.supplier,
            invoice_number=payload.invoice_number,
            notes=payload.notes,
            user_id=user_id,
        )
        db.add(movement)
        await db.flush()

    logger.info(
        "Ingredient movement %s recorded: %s %s %s", movement.id, payload.type, quantity, payload.ingredient_id
    )
    return movement


def movement_to_dict(mv: IngredientMovement, ingredient: Optional[Ingredient], user: Optional[User]) -> Dict:
    return {
        "id": mv.id,
        "ingredient_id": mv.ingredient_id,
        "ingredient_name": ingredient.name if ingredient else None,
        "ingredient_unit": ingredient.unit if ingredient else None,
        "ingredient_category": ingredient.category if ingredient else None,
        "batch_id": mv.batch_id,
        "type": mv.type,
        "quantity": as_float(mv.quantity),
        "unit": mv.unit,
        "cost_per_unit": as_float(mv.cost_per_unit),
        "total_cost": as_float(mv.total_cost),
        "reason": mv.reason,
        "notes": mv.notes,
        "reference": {"type": mv.reference_type, "id": mv.reference_id},
        "location_from": mv.location_from,
        "location_to": mv.location_to,
        "batch_code": mv.batch_code,
        "expiry_date": mv.expiry_date.isoformat() if mv.expiry_date else None,
        "supplier": mv.supplier,
        "invoice_number": mv.invoice_number,
        "user_id": mv.user_id,
        "user_display_name": user.email if user else "System",
        "created_at": mv.created_at.isoformat() if mv.created_at else None,
    }


async def get_movement(db: AsyncSession, movement_id: UUID) -> Dict:
    res = await db.execute(
        select(IngredientMovement, Ingredient, User)
        .join(Ingredient, IngredientMovement.ingredient_id == Ingredient.id)
        .outerjoin(User, IngredientMovement.user_id == User.id)
        .where(IngredientMovement.id == movement_id)
    )
    row = res.first()
    if not row:
        raise NotFoundError("Movement not found")
    return movement_to_dict(*row)


async def list_movements(
    db: AsyncSession,
    *,
    ingredient_id: Optional[UUID] = None,
    movement_type: Optional[str] = None,
    supplier: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    limit: int = 50,
    offset: int = 0,
) -> Tuple[List[Dict], int]:
    conditions = []
    if ingredient_id:
        conditions.append(IngredientMovement.ingredient_id == ingredient_id)
    if movement_type:
        conditions.append(IngredientMovement.type == movement_type)
    if supplier:
        conditions.append(IngredientMovement.supplier.ilike(f"%{supplier}%"))
    start_dt, end_excl = inclusive_range(start_date, end_date)
    if start_dt:
        conditions.append(IngredientMovement.created_at >= start_dt)
    if end_excl:
        conditions.append(IngredientMovement.created_at < end_excl)

    total = (
        await db.execute(select(func.count()).select_from(IngredientMovement).where(*conditions))
    ).scalar_one()

    stmt = (
        select(IngredientMovement, Ingredient, User)
        .join(Ingredient, IngredientMovement.ingredient_id == Ingredient.id)
        .outerjoin(User, IngredientMovement.user_id == User.id)
        .where(*conditions)
        # id breaks ties between movements recorded at the same instant
        .order_by(IngredientMovement.created_at.desc(), IngredientMovement.id.desc())
        .limit(limit)
        .offset(offset)
    )
    rows = (await db.execute(stmt)).all()
    return [movement_to_dict(mv, ing, user) for (mv, ing, user) in rows], int(total)


async def update_annotations(db: AsyncSession, movement_id: UUID, changes: Dict) -> Dict:
    async with transaction(db, "ingredient movement annotation update"):
        mv = await db.get(IngredientMovement, movement_id)
        if mv is None:
            raise NotFoundError("Movement not found")
        changed = apply_annotations(mv, changes, subject_field="ingredient_id")
        await db.flush()
    if changed:
        logger.info("Ingredient movement %s annotations updated", movement_id)
    return await get_movement(db, movement_id)


# --- Projection -------------------------------------------------------------

def _aggregation_subquery():
    M = IngredientMovement
    inflow = or_(M.type == PURCHASE, and_(M.type == ADJUSTMENT, M.quantity > 0))
    consuming = M.type.in_(CONSUMING_TYPES)
    negative_adjustment = and_(M.type == ADJUSTMENT, M.quantity < 0)
    unit_cost = func.coalesce(M.cost_per_unit, 0)

    signed_quantity = case(
        (inflow, M.quantity),
        (consuming, -M.quantity),
        (negative_adjustment, M.quantity),
        else_=0,
    )
    signed_value = case(
        (inflow, M.quantity * unit_cost),
        (consuming, -(M.quantity * unit_cost)),
        (negative_adjustment, M.quantity * unit_cost),
        else_=0,
    )
    return (
        select(
            M.ingredient_id.label("ingredient_id"),
            func.sum(signed_quantity).label("current_quantity"),
            func.sum(case((M.type == PURCHASE, M.quantity), else_=0)).label("total_purchases"),
            func.sum(case((consuming, M.quantity), else_=0)).label("total_used"),
            # Unweighted mean of purchase unit costs; purchases without a cost are skipped
            func.avg(case((and_(M.type == PURCHASE, M.cost_per_unit.is_not(None)), M.cost_per_unit))).label("avg_cost"),
            func.max(M.created_at).label("last_movement_at"),
            func.sum(signed_value).label("current_value"),
        )
        .group_by(M.ingredient_id)
        .subquery()
    )


async def derived_stock(
    db: AsyncSession,
    *,
    ingredient_id: Optional[UUID] = None,
    category: Optional[str] = None,
    supplier: Optional[str] = None,
    low_stock_only: bool = False,
) -> List[Dict]:
    calc = _aggregation_subquery()
    stmt = (
        select(
            Ingredient,
            calc.c.current_quantity,
            calc.c.total_purchases,
            calc.c.total_used,
            calc.c.avg_cost,
            calc.c.last_movement_at,
            calc.c.current_value,
        )
        .outerjoin(calc, calc.c.ingredient_id == Ingredient.id)
        .where(Ingredient.active == True)  # noqa: E712
    )
    if ingredient_id:
        stmt = stmt.where(Ingredient.id == ingredient_id)
    if category:
        stmt = stmt.where(Ingredient.category == category)
    if supplier:
        stmt = stmt.where(Ingredient.supplier.ilike(f"%{supplier}%"))

    rows = (await db.execute(stmt)).all()
    out = []
    for (ing, current_quantity, total_purchases, total_used, avg_cost, last_movement_at, current_value) in rows:
        quantity = to_decimal(current_quantity) or 0
        status = classify_aggregate(quantity)
        if low_stock_only and status not in LOW_STOCK_TAGS:
            continue
        out.append(
            {
                "ingredient_id": ing.id,
                "name": ing.name,
                "category": ing.category,
                "unit": ing.unit,
                "storage_type": ing.storage_type,
                "supplier": ing.supplier,
                "current_cost_per_unit": money(ing.cost_per_unit),
                "current_quantity": round(float(quantity), 3),
                "total_purchases": round(float(total_purchases or 0), 3),
                "total_used": round(float(total_used or 0), 3),
                "avg_cost": round(float(resolve_avg_cost(avg_cost, ing.cost_per_unit)), 4),
                "current_value": money(current_value),
                "last_movement_at": last_movement_at.isoformat() if last_movement_at else None,
                "status": status,
            }
        )
    out.sort(key=lambda r: aggregate_sort_key(r["status"], r["name"]))
    return out


def stock_summary(stock: List[Dict]) -> Dict:
    return {
        "total": len(stock),
        "critical": sum(1 for s in stock if s["status"] == CRITICAL),
        "low": sum(1 for s in stock if s["status"] == LOW),
        "out_of_stock": sum(1 for s in stock if s["status"] == OUT_OF_STOCK),
        "ok": sum(1 for s in stock if s["status"] == OK),
        "total_value": money(sum(to_decimal(s["current_value"]) for s in stock)),
        "total_quantity": money(sum(to_decimal(s["current_quantity"]) for s in stock)),
    }


async def movement_stats(
    db: AsyncSession,
    *,
    period: str = "month",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    today: Optional[date] = None,
) -> Dict:
    M = IngredientMovement
    conditions = []
    if start_date and end_date:
        start_dt, end_excl = inclusive_range(start_date, end_date)
        conditions += [M.created_at >= start_dt, M.created_at < end_excl]
    else:
        since = period_start(period, today or date.today())
        if since:
            conditions.append(M.created_at >= day_start(since))

    movement_count = func.count().label("movement_count")
    stmt = (
        select(
            M.type,
            movement_count,
            func.sum(M.quantity).label("total_quantity"),
            func.avg(M.quantity).label("avg_quantity"),
            func.sum(func.coalesce(M.total_cost, 0)).label("total_cost"),
            func.avg(func.coalesce(M.total_cost, 0)).label("avg_cost"),
            func.count(func.distinct(M.ingredient_id)).label("ingredients_affected"),
        )
        .where(*conditions)
        .group_by(M.type)
        .order_by(movement_count.desc(), M.type)
    )
    rows = (await db.execute(stmt)).all()
    stats = [
        {
            "type": r.type,
            "movement_count": int(r.movement_count or 0),
            "total_quantity": round(float(r.total_quantity or 0), 3),
            "avg_quantity": round(float(r.avg_quantity or 0), 3),
            "total_cost": money(r.total_cost),
            "avg_cost": money(r.avg_cost),
            "ingredients_affected": int(r.ingredients_affected or 0),
        }
        for r in rows
    ]
    return {
        "period": period if not (start_date and end_date) else "custom",
        "stats_by_type": stats,
        "summary": {
            "total_movements": sum(s["movement_count"] for s in stats),
            "total_value": money(sum(to_decimal(s["total_cost"]) for s in stats)),
            "types_count": len(stats),
        },
    }
