import uuid
from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from .database import Base, utcnow


class Ingredient(Base):
    """Raw ingredient - subject of the ingredient ledger and of stock batches"""
    __tablename__ = "ingredients"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String, nullable=False, unique=True)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=False, index=True)
    unit = Column(String, nullable=False)
    density = Column(Numeric(8, 4), nullable=True)

    # Static reference cost; distinct from the ledger's average purchase cost
    cost_per_unit = Column(Numeric(12, 4), nullable=True)

    supplier = Column(String, nullable=True, index=True)
    supplier_code = Column(String, nullable=True)
    barcode = Column(String, nullable=True)
    shelf_life_days = Column(Integer, nullable=True)
    storage_type = Column(String, nullable=True)

    # Validated through schemas.ingredient.AllergenInfo / NutritionalInfo
    allergen_info = Column(JSON, nullable=True)
    nutritional_info = Column(JSON, nullable=True)

    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    movements = relationship("IngredientMovement", back_populates="ingredient")
    stock_batches = relationship("IngredientStock", back_populates="ingredient", cascade="all, delete-orphan")
