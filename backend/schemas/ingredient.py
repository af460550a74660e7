from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator


class AllergenInfo(BaseModel):
    """Allergens declared for an ingredient. Missing data is an empty declaration."""
    contains: List[str] = []
    may_contain: List[str] = []
    notes: Optional[str] = None

    @field_validator("contains", "may_contain")
    @classmethod
    def _normalize(cls, v: List[str]) -> List[str]:
        out = []
        for x in v or []:
            x = (x or "").strip().lower()
            if x and x not in out:
                out.append(x)
        return out


class NutritionalInfo(BaseModel):
    """Nutrition facts per 100 g / 100 ml; unknown values stay None."""
    model_config = ConfigDict(extra="ignore")

    energy_kcal: Optional[float] = None
    fat_g: Optional[float] = None
    saturated_fat_g: Optional[float] = None
    carbohydrates_g: Optional[float] = None
    sugars_g: Optional[float] = None
    fiber_g: Optional[float] = None
    protein_g: Optional[float] = None
    salt_g: Optional[float] = None


def load_allergen_info(raw) -> AllergenInfo:
    return AllergenInfo.model_validate(raw) if raw else AllergenInfo()


def load_nutritional_info(raw) -> NutritionalInfo:
    return NutritionalInfo.model_validate(raw) if raw else NutritionalInfo()


class IngredientCreate(BaseModel):
    name: str
    category: str
    unit: str
    description: Optional[str] = None
    density: Optional[Decimal] = None
    cost_per_unit: Optional[Decimal] = None
    supplier: Optional[str] = None
    supplier_code: Optional[str] = None
    barcode: Optional[str] = None
    shelf_life_days: Optional[int] = None
    storage_type: Optional[str] = None
    allergen_info: Optional[AllergenInfo] = None
    nutritional_info: Optional[NutritionalInfo] = None
    active: bool = True

    @field_validator("name", "category", "unit")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v


class IngredientUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[str] = None
    unit: Optional[str] = None
    description: Optional[str] = None
    density: Optional[Decimal] = None
    cost_per_unit: Optional[Decimal] = None
    supplier: Optional[str] = None
    supplier_code: Optional[str] = None
    barcode: Optional[str] = None
    shelf_life_days: Optional[int] = None
    storage_type: Optional[str] = None
    allergen_info: Optional[AllergenInfo] = None
    nutritional_info: Optional[NutritionalInfo] = None
    active: Optional[bool] = None

    @field_validator("name", "category", "unit")
    @classmethod
    def _strip_optional(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        if not v:
            raise ValueError("cannot be empty")
        return v


class IngredientRead(BaseModel):
    id: UUID
    name: str
    category: str
    unit: str
    description: Optional[str] = None
    density: Optional[float] = None
    cost_per_unit: Optional[float] = None
    supplier: Optional[str] = None
    supplier_code: Optional[str] = None
    barcode: Optional[str] = None
    shelf_life_days: Optional[int] = None
    storage_type: Optional[str] = None
    allergen_info: AllergenInfo
    nutritional_info: NutritionalInfo
    active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, m) -> "IngredientRead":
        return cls(
            id=m.id,
            name=m.name,
            category=m.category,
            unit=m.unit,
            description=m.description,
            density=float(m.density) if m.density is not None else None,
            cost_per_unit=float(m.cost_per_unit) if m.cost_per_unit is not None else None,
            supplier=m.supplier,
            supplier_code=m.supplier_code,
            barcode=m.barcode,
            shelf_life_days=m.shelf_life_days,
            storage_type=m.storage_type,
            allergen_info=load_allergen_info(m.allergen_info),
            nutritional_info=load_nutritional_info(m.nutritional_info),
            active=bool(m.active),
            created_at=m.created_at,
            updated_at=m.updated_at,
        )
