from datetime import date
from typing import Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from db.database import get_async_session
from db.users import User
from schemas.inventory import MovementAnnotationUpdate, StockMovementCreate
from services import product_ledger

router = APIRouter()


@router.get("/", response_model=Dict)
async def list_movements(
    type: Optional[str] = None,
    reference_type: Optional[str] = None,
    search: Optional[str] = None,
    product_id: Optional[UUID] = None,
    product_variant_id: Optional[UUID] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(100, ge=1, le=1000),
    db: AsyncSession = Depends(get_async_session),
):
    offset = (page - 1) * limit
    movements, total = await product_ledger.list_movements(
        db,
        movement_type=type,
        reference_type=reference_type,
        search=search,
        product_id=product_id,
        product_variant_id=product_variant_id,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return {
        "movements": movements,
        "pagination": {"page": page, "limit": limit, "offset": offset, "total": total},
    }


@router.get("/stats", response_model=Dict)
async def get_stats(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    type: Optional[str] = None,
    reference_type: Optional[str] = None,
    db: AsyncSession = Depends(get_async_session),
):
    return await product_ledger.movement_stats(
        db, date_from=date_from, date_to=date_to, movement_type=type, reference_type=reference_type
    )


@router.get("/{movement_id}", response_model=Dict)
async def get_movement(movement_id: UUID, db: AsyncSession = Depends(get_async_session)):
    return await product_ledger.get_movement(db, movement_id)


@router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_movement(
    payload: StockMovementCreate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Append a movement and, unless update_stock is false, apply it to the
    variant's stock row in the same transaction.
    """
    return await product_ledger.append_movement(db, payload, user_id=user.id)


@router.patch("/{movement_id}", response_model=Dict)
async def update_movement(
    movement_id: UUID,
    payload: MovementAnnotationUpdate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await product_ledger.update_annotations(db, movement_id, payload.model_dump(exclude_unset=True))


@router.post("/reconcile/{product_variant_id}", response_model=Dict)
async def reconcile(
    product_variant_id: UUID,
    repair: bool = False,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Compare the stock row with a replay of the ledger; optionally overwrite it"""
    return await product_ledger.reconcile_stock(db, product_variant_id, repair=repair)
