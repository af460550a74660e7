from datetime import date
from decimal import Decimal
from typing import Any, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, field_validator


Period = Literal["week", "month", "year", "all"]


def _strip_nullable(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = v.strip()
    return v or None


class IngredientMovementCreate(BaseModel):
    # Required fields are Optional here so the service reports them uniformly
    ingredient_id: Optional[UUID] = None
    type: Optional[str] = None
    quantity: Any = None
    unit: Optional[str] = None

    batch_id: Optional[UUID] = None
    cost_per_unit: Optional[Decimal] = None
    total_cost: Optional[Decimal] = None
    reason: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    location_from: Optional[str] = None
    location_to: Optional[str] = None
    expiry_date: Optional[date] = None
    batch_code: Optional[str] = None
    supplier: Optional[str] = None
    invoice_number: Optional[str] = None
    notes: Optional[str] = None

    @field_validator(
        "type", "unit", "reason", "reference_type", "reference_id", "location_from",
        "location_to", "batch_code", "supplier", "invoice_number", "notes",
    )
    @classmethod
    def _strip(cls, v: Optional[str]) -> Optional[str]:
        return _strip_nullable(v)


class StockMovementCreate(BaseModel):
    product_variant_id: Optional[UUID] = None
    type: Optional[str] = None
    quantity: Any = None
    reason: Optional[str] = None
    reference_id: Optional[str] = None
    reference_type: str = "manual"
    cost_per_unit: Optional[Decimal] = None
    notes: Optional[str] = None
    # Opt-out: record the movement without touching the materialized stock row
    update_stock: bool = True

    @field_validator("type", "reason", "reference_id", "reference_type", "notes")
    @classmethod
    def _strip(cls, v: Optional[str]) -> Optional[str]:
        return _strip_nullable(v)


class MovementAnnotationUpdate(BaseModel):
    """
    reason/notes are the only mutable fields of a ledger record. The protected
    fields are accepted here only so an attempt to change them can be refused.
    """
    reason: Optional[str] = None
    notes: Optional[str] = None

    quantity: Any = None
    type: Optional[str] = None
    ingredient_id: Optional[UUID] = None
    product_variant_id: Optional[UUID] = None


class IngredientStockCreate(BaseModel):
    ingredient_id: Optional[UUID] = None
    quantity: Optional[Decimal] = None
    unit: Optional[str] = None
    batch_code: Optional[str] = None
    cost_per_unit: Optional[Decimal] = None
    min_threshold: Optional[Decimal] = None
    max_threshold: Optional[Decimal] = None
    supplier: Optional[str] = None
    purchase_date: Optional[date] = None
    expiry_date: Optional[date] = None
    location: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("unit", "batch_code", "supplier", "location", "notes")
    @classmethod
    def _strip(cls, v: Optional[str]) -> Optional[str]:
        return _strip_nullable(v)


class IngredientStockReplace(BaseModel):
    """Full replacement of a batch; omitted fields are reset to their defaults."""
    quantity: Decimal
    reserved_quantity: Decimal = Decimal("0")
    min_threshold: Decimal = Decimal("0")
    max_threshold: Optional[Decimal] = None
    cost_per_unit: Decimal = Decimal("0")
    supplier: Optional[str] = None
    expiry_date: Optional[date] = None
    location: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("supplier", "location", "notes")
    @classmethod
    def _strip(cls, v: Optional[str]) -> Optional[str]:
        return _strip_nullable(v)


class ProductStockSettingsUpdate(BaseModel):
    """Everything on a product stock row except quantity, which only the ledger moves."""
    unit: Optional[str] = None
    min_threshold: Optional[Decimal] = None
    max_threshold: Optional[Decimal] = None
    cost_per_unit: Optional[Decimal] = None
    supplier: Optional[str] = None
    expiry_date: Optional[date] = None

    @field_validator("min_threshold", "cost_per_unit")
    @classmethod
    def _non_negative(cls, v: Optional[Decimal]) -> Optional[Decimal]:
        if v is not None and v < 0:
            raise ValueError("must be >= 0")
        return v
