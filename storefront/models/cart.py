from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Float, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from storefront.db.base_class import Base


class CartItem(Base):
    """One cart line, owned by an anonymous cart session."""
    __tablename__ = "cart_items"
    __table_args__ = (
        UniqueConstraint("session_id", "product_id", "variant_id", name="uq_cart_session_line"),
    )

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(64), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False)

    quantity = Column(Integer, default=1, nullable=False)

    # Snapshot captured when the line was added
    product_name = Column(String(255), nullable=False)
    product_slug = Column(String(255), nullable=False)
    product_quality = Column(String(20), nullable=False)
    product_volume = Column(Integer, nullable=True)
    product_sku = Column(String(100), nullable=False)
    unit_price = Column(Float, nullable=False)
    unit_mrp = Column(Float, nullable=False)
    image_url = Column(String(500), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    product = relationship("Product")
    variant = relationship("ProductVariant")
