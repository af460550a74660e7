import logging
from typing import Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from db.database import get_async_session, transaction, Ingredient as IngredientModel
from db.users import User
from schemas.ingredient import IngredientCreate, IngredientRead, IngredientUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


async def _get_or_404(db: AsyncSession, ingredient_id: UUID) -> IngredientModel:
    result = await db.execute(select(IngredientModel).where(IngredientModel.id == ingredient_id))
    ingredient = result.scalar_one_or_none()
    if not ingredient:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Ingredient with id {ingredient_id} not found"
        )
    return ingredient


async def _name_taken(db: AsyncSession, name: str, exclude_id: Optional[UUID] = None) -> bool:
    stmt = select(IngredientModel.id).where(func.lower(IngredientModel.name) == name.lower())
    if exclude_id:
        stmt = stmt.where(IngredientModel.id != exclude_id)
    return (await db.execute(stmt)).first() is not None


@router.get("/", response_model=List[IngredientRead])
async def get_ingredients(
    search: Optional[str] = None,
    category: Optional[str] = None,
    supplier: Optional[str] = None,
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_async_session),
):
    """Get ingredients, active only unless include_inactive is set"""
    stmt = select(IngredientModel)
    if not include_inactive:
        stmt = stmt.where(IngredientModel.active == True)  # noqa: E712
    if search:
        term = f"%{search}%"
        stmt = stmt.where(
            or_(
                IngredientModel.name.ilike(term),
                IngredientModel.description.ilike(term),
                IngredientModel.supplier_code.ilike(term),
                IngredientModel.barcode.ilike(term),
            )
        )
    if category:
        stmt = stmt.where(IngredientModel.category == category)
    if supplier:
        stmt = stmt.where(IngredientModel.supplier.ilike(f"%{supplier}%"))
    result = await db.execute(stmt.order_by(func.lower(IngredientModel.name).asc()))
    return [IngredientRead.from_model(i) for i in result.scalars().all()]


@router.get("/categories", response_model=List[str])
async def get_categories(db: AsyncSession = Depends(get_async_session)):
    result = await db.execute(
        select(IngredientModel.category)
        .where(IngredientModel.active == True)  # noqa: E712
        .distinct()
        .order_by(IngredientModel.category)
    )
    return [c for (c,) in result.all()]


@router.get("/{ingredient_id}", response_model=IngredientRead)
async def get_ingredient(ingredient_id: UUID, db: AsyncSession = Depends(get_async_session)):
    """Get an ingredient by ID"""
    return IngredientRead.from_model(await _get_or_404(db, ingredient_id))


@router.post("/", response_model=IngredientRead, status_code=status.HTTP_201_CREATED)
async def create_ingredient(
    ingredient: IngredientCreate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Create a new ingredient"""
    # Names are unique case-insensitively
    if await _name_taken(db, ingredient.name):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Ingredient already exists")

    data = ingredient.model_dump(exclude={"allergen_info", "nutritional_info"})
    async with transaction(db, "ingredient create"):
        ingredient_model = IngredientModel(
            **data,
            allergen_info=ingredient.allergen_info.model_dump() if ingredient.allergen_info else None,
            nutritional_info=ingredient.nutritional_info.model_dump() if ingredient.nutritional_info else None,
        )
        db.add(ingredient_model)
        await db.flush()
    logger.info("Ingredient %s created: %s", ingredient_model.id, ingredient_model.name)
    return IngredientRead.from_model(ingredient_model)


@router.patch("/{ingredient_id}", response_model=IngredientRead)
async def update_ingredient(
    ingredient_id: UUID,
    ingredient: IngredientUpdate,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """Update an existing ingredient"""
    data = ingredient.model_dump(exclude_unset=True)
    async with transaction(db, "ingredient update"):
        ingredient_model = await _get_or_404(db, ingredient_id)
        if data.get("name") and await _name_taken(db, data["name"], exclude_id=ingredient_id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Ingredient already exists")
        for field, value in data.items():
            setattr(ingredient_model, field, value)
        await db.flush()
        await db.refresh(ingredient_model)
    logger.info("Ingredient %s updated: %s", ingredient_id, sorted(data))
    return IngredientRead.from_model(ingredient_model)


@router.delete("/{ingredient_id}", response_model=IngredientRead)
async def deactivate_ingredient(
    ingredient_id: UUID,
    user: User = Depends(current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    """
    Deactivate an ingredient. Its ledger history stays; it just drops out of
    the derived stock and the batch stats.
    """
    if not user.is_superuser:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not allowed to delete this ingredient"
        )
    async with transaction(db, "ingredient deactivate"):
        ingredient_model = await _get_or_404(db, ingredient_id)
        ingredient_model.active = False
        await db.flush()
    logger.info("Ingredient %s deactivated", ingredient_id)
    return IngredientRead.from_model(ingredient_model)
