from datetime import date
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from core.config import settings
from db.database import get_async_session
from db.users import User
from schemas.inventory import IngredientStockCreate, IngredientStockReplace
from services import batch_stock

router = APIRouter()


@router.get("/", response_model=Dict)
async def list_batches(
    search: Optional[str] = None,
    location: Optional[str] = None,
    supplier: Optional[str] = None,
    low_stock: bool = False,
    status: Optional[str] = None,
    expiring_days: Optional[int] = Query(None, ge=0),
    db: AsyncSession = Depends(get_async_session),
):
    stock = await batch_stock.list_entries(
        db,
        today=date.today(),
        horizon_days=settings.expiry_horizon_days if expiring_days is None else expiring_days,
        search=search,
        location=location,
        supplier=supplier,
        low_stock=low_stock,
        status=status,
    )
    return {"stock": stock, "summary": batch_stock.list_summary(stock)}


@router.get("/stats", response_model=Dict)
async def get_stats(db: AsyncSession = Depends(get_async_session)):
    return await batch_stock.stats(db, today=date.today())


@router.get("/locations", response_model=List[str])
async def get_locations(db: AsyncSession = Depends(get_async_session)):
    return await batch_stock.locations(db)


@router.get("/suppliers", response_model=List[str])
async def get_suppliers(db: AsyncSession = Depends(get_async_session)):
    return await batch_stock.suppliers(db)


@router.get("/{entry_id}", response_model=Dict)
async def get_batch(entry_id: UUID, db: AsyncSession = Depends(get_async_session)):
    return await batch_stock.get_entry(
        db, entry_id, today=date.today(), horizon_days=settings.expiry_horizon_days
    )


@router.post("/", response_model=Dict, status_code=status.HTTP_201_CREATED)
async def create_batch(
    payload: IngredientStockCreate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Goods receipt: register a new batch of an ingredient"""
    entry = await batch_stock.create_entry(db, payload)
    return await batch_stock.get_entry(
        db, entry.id, today=date.today(), horizon_days=settings.expiry_horizon_days
    )


@router.put("/{entry_id}", response_model=Dict)
async def replace_batch(
    entry_id: UUID,
    payload: IngredientStockReplace,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Replace the whole entry; fields left out fall back to their defaults"""
    await batch_stock.replace_entry(db, entry_id, payload)
    return await batch_stock.get_entry(
        db, entry_id, today=date.today(), horizon_days=settings.expiry_horizon_days
    )


@router.delete("/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_batch(
    entry_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    await batch_stock.delete_entry(db, entry_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
