import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from ..database import Base, utcnow


class ProductStock(Base):
    """Materialized current stock per product variant, maintained by the product ledger."""
    __tablename__ = "product_stock"
    __table_args__ = (
        UniqueConstraint("product_variant_id", name="ux_product_stock_variant"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    product_variant_id = Column(
        UUID(as_uuid=True),
        ForeignKey("product_variants.id", ondelete="CASCADE"),
        nullable=False,
    )

    quantity = Column(Numeric(12, 3), nullable=False, default=0)
    unit = Column(String(20), nullable=False, default="pcs")
    min_threshold = Column(Numeric(12, 3), nullable=False, default=10)
    max_threshold = Column(Numeric(12, 3), nullable=True, default=100)
    # Reference cost, refreshed by costed 'in' movements
    cost_per_unit = Column(Numeric(12, 4), nullable=False, default=0)
    supplier = Column(String, nullable=True)
    expiry_date = Column(Date, nullable=True)

    last_restock_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    product_variant = relationship("ProductVariant", back_populates="stock")
