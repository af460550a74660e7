from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator


class ProductVariantCreate(BaseModel):
    name: str
    sku: Optional[str] = None
    price: Optional[Decimal] = None

    @field_validator("name")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v


class ProductCreate(BaseModel):
    name: str
    description: Optional[str] = None
    variants: List[ProductVariantCreate] = []

    @field_validator("name")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v


class ProductVariantRead(BaseModel):
    id: UUID
    product_id: UUID
    name: str
    sku: Optional[str] = None
    price: Optional[float] = None
    active: bool


class ProductRead(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    active: bool
    variants: List[ProductVariantRead]
