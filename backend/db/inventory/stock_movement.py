import uuid

from fastapi_users_db_sqlalchemy.generics import GUID
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database import Base, utcnow


class StockMovement(Base):
    __tablename__ = "stock_movements"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    product_variant_id = Column(
        UUID(as_uuid=True),
        ForeignKey("product_variants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    type = Column(String(20), nullable=False, index=True)  # 'in' | 'out' | 'adjustment'
    quantity = Column(Numeric(12, 3), nullable=False)
    reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    reference_type = Column(String(20), nullable=False, default="manual")  # 'order' | 'manual' | 'supplier'
    reference_id = Column(String(64), nullable=True)
    cost_per_unit = Column(Numeric(12, 4), nullable=True)
    total_cost = Column(Numeric(14, 4), nullable=True)
    # False when recorded with update_stock opted out; replay skips those
    applied_to_stock = Column(Boolean, nullable=False, default=True)

    # Same column type as users.id so the key matches on every dialect
    user_id = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    product_variant = relationship("ProductVariant")
    user = relationship("User")
