import uuid

from fastapi_users_db_sqlalchemy.generics import GUID
from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database import Base, utcnow


class IngredientMovement(Base):
    __tablename__ = "ingredient_movements"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    ingredient_id = Column(
        UUID(as_uuid=True),
        ForeignKey("ingredients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    batch_id = Column(UUID(as_uuid=True), nullable=True)

    # purchase | sale | waste | adjustment | transfer | production
    type = Column(String(20), nullable=False, index=True)
    # Stored as entered; the sign is derived from `type` (adjustments keep their own sign)
    quantity = Column(Numeric(12, 3), nullable=False)
    unit = Column(String(20), nullable=False)
    cost_per_unit = Column(Numeric(12, 4), nullable=True)
    total_cost = Column(Numeric(14, 4), nullable=True)

    reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    reference_type = Column(String(30), nullable=False, default="manual")
    reference_id = Column(String(64), nullable=True)

    location_from = Column(String, nullable=True)
    location_to = Column(String, nullable=True)
    batch_code = Column(String, nullable=True)
    expiry_date = Column(Date, nullable=True)
    supplier = Column(String, nullable=True, index=True)
    invoice_number = Column(String, nullable=True)

    # Same column type as users.id so the key matches on every dialect
    user_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    ingredient = relationship("Ingredient", back_populates="movements")
    user = relationship("User")
