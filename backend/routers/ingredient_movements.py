from datetime import date
from typing import Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from db.database import get_async_session
from db.users import User
from schemas.inventory import IngredientMovementCreate, MovementAnnotationUpdate, Period
from services import ingredient_ledger

router = APIRouter()


@router.get("/", response_model=Dict)
async def list_movements(
    ingredient_id: Optional[UUID] = None,
    type: Optional[str] = None,
    supplier: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_async_session),
):
    """Ledger records, newest first"""
    offset = (page - 1) * limit
    movements, total = await ingredient_ledger.list_movements(
        db,
        ingredient_id=ingredient_id,
        movement_type=type,
        supplier=supplier,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return {
        "movements": movements,
        "pagination": {"page": page, "limit": limit, "offset": offset, "total": total},
    }


@router.get("/stock", response_model=Dict)
async def get_stock(
    ingredient_id: Optional[UUID] = None,
    category: Optional[str] = None,
    supplier: Optional[str] = None,
    low_stock: bool = False,
    db: AsyncSession = Depends(get_async_session),
):
    """Current stock per ingredient, recomputed from the ledger"""
    stock = await ingredient_ledger.derived_stock(
        db,
        ingredient_id=ingredient_id,
        category=category,
        supplier=supplier,
        low_stock_only=low_stock,
    )
    return {"stock": stock, "summary": ingredient_ledger.stock_summary(stock)}


@router.get("/stats", response_model=Dict)
async def get_stats(
    period: Period = "month",
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: AsyncSession = Depends(get_async_session),
):
    return await ingredient_ledger.movement_stats(
        db, period=period, start_date=start_date, end_date=end_date
    )


@router.get("/{movement_id}", response_model=Dict)
async def get_movement(movement_id: UUID, db: AsyncSession = Depends(get_async_session)):
    return await ingredient_ledger.get_movement(db, movement_id)


@router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_movement(
    payload: IngredientMovementCreate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Append a movement to the ingredient ledger"""
    movement = await ingredient_ledger.append_movement(db, payload, user_id=user.id)
    return {"id": movement.id}


@router.patch("/{movement_id}", response_model=Dict)
async def update_movement(
    movement_id: UUID,
    payload: MovementAnnotationUpdate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Only reason and notes can change; quantity, type and ingredient are fixed"""
    return await ingredient_ledger.update_annotations(
        db, movement_id, payload.model_dump(exclude_unset=True)
    )
