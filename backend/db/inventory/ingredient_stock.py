import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database import Base, utcnow


class IngredientStock(Base):
    """
    Ingredient lot (batch). Mutated in place; there is no ledger behind it.
    """
    __tablename__ = "ingredient_stock"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    ingredient_id = Column(
        UUID(as_uuid=True),
        ForeignKey("ingredients.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    batch_code = Column(String, nullable=True, index=True)

    quantity = Column(Numeric(12, 3), nullable=False)
    # Held for a future reservation flow; available = quantity - reserved
    reserved_quantity = Column(Numeric(12, 3), nullable=False, default=0)
    unit = Column(String(20), nullable=False)

    min_threshold = Column(Numeric(12, 3), nullable=False, default=0)
    max_threshold = Column(Numeric(12, 3), nullable=True)
    cost_per_unit = Column(Numeric(12, 4), nullable=False, default=0)

    supplier = Column(String, nullable=True)
    purchase_date = Column(Date, nullable=True)
    expiry_date = Column(Date, nullable=True)
    location = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    ingredient = relationship("Ingredient", back_populates="stock_batches")

    @property
    def available_quantity(self):
        return (self.quantity or 0) - (self.reserved_quantity or 0)
