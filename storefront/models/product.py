from sqlalchemy import (
    Column, Integer, String, Float, Boolean, ForeignKey, DateTime, Text, Enum, Index,
    CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from storefront.db.base_class import Base


class ProductCategory(str, enum.Enum):
    PERFUME = "perfume"
    ATTAR = "attar"


class ProductQuality(str, enum.Enum):
    STANDARD = "Standard"
    PREMIUM = "Premium"
    LUXURY = "Luxury"


class ImageContext(str, enum.Enum):
    PRODUCT = "product"
    VARIANT = "variant"
    BOTH = "both"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    slug = Column(String(255), unique=True, nullable=False, index=True)
    category = Column(Enum(ProductCategory), nullable=False, index=True)

    # Fragrance profile
    fragrance_family = Column(String(100), nullable=True)
    description = Column(Text, nullable=True)
    top_notes = Column(Text, nullable=True)
    middle_notes = Column(Text, nullable=True)
    base_notes = Column(Text, nullable=True)
    additional_notes = Column(Text, nullable=True)

    is_featured = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    variants = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductVariant.id",
    )
    images = relationship("ProductImage", back_populates="product", cascade="all, delete-orphan")

Index('idx_product_category_featured', Product.category, Product.is_featured)


class ProductVariant(Base):
    """One quality tier / volume / price combination of a product"""
    __tablename__ = "product_variants"
    __table_args__ = (
        UniqueConstraint("product_id", "product_quality", name="uq_variant_product_quality"),
        CheckConstraint("price <= mrp", name="ck_variant_price_not_above_mrp"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    product_quality = Column(Enum(ProductQuality), nullable=False)
    price = Column(Float, nullable=False)
    mrp = Column(Float, nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    volume = Column(Integer, nullable=True)  # ml
    sku = Column(String(100), unique=True, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    product = relationship("Product", back_populates="variants")
    images = relationship("VariantImage", back_populates="variant", cascade="all, delete-orphan")


class Image(Base):
    __tablename__ = "images"

    id = Column(Integer, primary_key=True, index=True)
    url = Column(String(500), unique=True, nullable=False, index=True)
    filename = Column(String(255), nullable=True)
    alt_text = Column(String(255), nullable=True)
    file_size = Column(Integer, nullable=True)
    mime_type = Column(String(50), default="image/jpeg")
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    context = Column(Enum(ImageContext), default=ImageContext.BOTH, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class ProductImage(Base):
    __tablename__ = "product_images"
    __table_args__ = (UniqueConstraint("product_id", "image_id", name="uq_product_image"),)

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    image_id = Column(Integer, ForeignKey("images.id", ondelete="CASCADE"), nullable=False)
    display_order = Column(Integer, default=0, nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    product = relationship("Product", back_populates="images")
    image = relationship("Image")


class VariantImage(Base):
    __tablename__ = "variant_images"
    __table_args__ = (UniqueConstraint("variant_id", "image_id", name="uq_variant_image"),)

    id = Column(Integer, primary_key=True, index=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False, index=True)
    image_id = Column(Integer, ForeignKey("images.id", ondelete="CASCADE"), nullable=False)
    display_order = Column(Integer, default=0, nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    variant = relationship("ProductVariant", back_populates="images")
    image = relationship("Image")
