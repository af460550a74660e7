from datetime import date
from typing import Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from core.config import settings
from db.database import get_async_session
from db.users import User
from schemas.inventory import ProductStockSettingsUpdate
from services import product_stock

router = APIRouter()


@router.get("/", response_model=Dict)
async def list_stock(
    search: Optional[str] = None,
    supplier: Optional[str] = None,
    low_stock: bool = False,
    status: Optional[str] = None,
    db: AsyncSession = Depends(get_async_session),
):
    """Materialized stock rows, most urgent first"""
    stock = await product_stock.list_stock(
        db,
        today=date.today(),
        horizon_days=settings.product_expiry_horizon_days,
        search=search,
        supplier=supplier,
        low_stock=low_stock,
        status=status,
    )
    return {"stock": stock, "summary": product_stock.stock_summary(stock)}


@router.get("/stats", response_model=Dict)
async def get_stock_stats(db: AsyncSession = Depends(get_async_session)):
    stats = await product_stock.stats(
        db, today=date.today(), horizon_days=settings.product_expiry_horizon_days
    )
    return {"stats": stats}


@router.get("/suppliers", response_model=Dict)
async def list_suppliers(db: AsyncSession = Depends(get_async_session)):
    """Quantity and value held per supplier"""
    return {"suppliers": await product_stock.suppliers(db)}


@router.get("/variants", response_model=Dict)
async def list_variants(db: AsyncSession = Depends(get_async_session)):
    """Active variants, flagged with whether a stock row exists yet"""
    return {"variants": await product_stock.available_variants(db)}


@router.get("/{product_variant_id}", response_model=Dict)
async def get_stock(product_variant_id: UUID, db: AsyncSession = Depends(get_async_session)):
    return await product_stock.get_stock(
        db, product_variant_id, today=date.today(), horizon_days=settings.product_expiry_horizon_days
    )


@router.patch("/{product_variant_id}", response_model=Dict)
async def update_stock_settings(
    product_variant_id: UUID,
    payload: ProductStockSettingsUpdate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Thresholds, unit, cost, supplier and expiry; quantity only moves through /stock-movements"""
    return await product_stock.update_settings(
        db,
        product_variant_id,
        payload,
        today=date.today(),
        horizon_days=settings.product_expiry_horizon_days,
    )
