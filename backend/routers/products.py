import logging
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from core.auth import current_active_user
from db.database import get_async_session, transaction, Product as ProductModel, ProductVariant as ProductVariantModel
from db.users import User
from schemas.products import ProductCreate, ProductRead, ProductVariantCreate, ProductVariantRead

logger = logging.getLogger(__name__)

router = APIRouter()


def _variant_read(v: ProductVariantModel) -> ProductVariantRead:
    return ProductVariantRead(
        id=v.id,
        product_id=v.product_id,
        name=v.name,
        sku=v.sku,
        price=float(v.price) if v.price is not None else None,
        active=bool(v.active),
    )


def _product_read(p: ProductModel) -> ProductRead:
    return ProductRead(
        id=p.id,
        name=p.name,
        description=p.description,
        active=bool(p.active),
        variants=[_variant_read(v) for v in p.variants],
    )


async def _load(db: AsyncSession, product_id: UUID) -> ProductModel:
    res = await db.execute(
        select(ProductModel)
        .options(selectinload(ProductModel.variants))
        .where(ProductModel.id == product_id)
        .execution_options(populate_existing=True)
    )
    product = res.scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return product


async def _check_skus(db: AsyncSession, variants: List[ProductVariantCreate]) -> None:
    skus = [v.sku for v in variants if v.sku]
    if len(skus) != len(set(skus)):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Duplicate sku in request")
    if skus:
        taken = await db.execute(select(ProductVariantModel.sku).where(ProductVariantModel.sku.in_(skus)))
        if taken.first():
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="sku already exists")


@router.get("/", response_model=List[ProductRead])
async def list_products(
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_async_session),
):
    stmt = select(ProductModel).options(selectinload(ProductModel.variants))
    if search:
        stmt = stmt.where(ProductModel.name.ilike(f"%{search}%"))
    res = await db.execute(stmt.order_by(func.lower(ProductModel.name).asc()))
    return [_product_read(p) for p in res.scalars().all()]


@router.get("/{product_id}", response_model=ProductRead)
async def get_product(product_id: UUID, db: AsyncSession = Depends(get_async_session)):
    return _product_read(await _load(db, product_id))


@router.post("/", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Create a product together with its sellable variants"""
    async with transaction(db, "product create"):
        await _check_skus(db, payload.variants)
        product = ProductModel(name=payload.name, description=payload.description)
        product.variants = [ProductVariantModel(name=v.name, sku=v.sku, price=v.price) for v in payload.variants]
        db.add(product)
        await db.flush()
        product_id = product.id
    logger.info("Product %s created with %d variants", product_id, len(payload.variants))
    return _product_read(await _load(db, product_id))


@router.post("/{product_id}/variants", response_model=ProductVariantRead, status_code=status.HTTP_201_CREATED)
async def add_variant(
    product_id: UUID,
    payload: ProductVariantCreate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    async with transaction(db, "variant create"):
        product = await db.get(ProductModel, product_id)
        if product is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
        await _check_skus(db, [payload])
        variant = ProductVariantModel(product_id=product_id, name=payload.name, sku=payload.sku, price=payload.price)
        db.add(variant)
        await db.flush()
    logger.info("Variant %s added to product %s", variant.id, product_id)
    return _variant_read(variant)
