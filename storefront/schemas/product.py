from pydantic import BaseModel, Field, field_validator, model_validator
from typing import List, Optional

from storefront.models.product import ImageContext, ProductCategory, ProductQuality


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: ProductCategory
    fragrance_family: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    top_notes: Optional[str] = None
    middle_notes: Optional[str] = None
    base_notes: Optional[str] = None
    additional_notes: Optional[str] = None
    is_featured: bool = False

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Product name is required")
        return v


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    category: Optional[ProductCategory] = None
    fragrance_family: Optional[str] = Field(None, max_length=100)
    description: Optional[str] = None
    top_notes: Optional[str] = None
    middle_notes: Optional[str] = None
    base_notes: Optional[str] = None
    additional_notes: Optional[str] = None
    is_featured: Optional[bool] = None


class VariantInput(BaseModel):
    id: Optional[int] = None
    product_quality: ProductQuality
    price: float = Field(..., ge=1)
    mrp: float = Field(..., ge=1)
    stock: int = Field(0, ge=0)
    volume: Optional[int] = Field(None, ge=1)
    sku: str = Field(..., min_length=1, max_length=100)

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v):
        v = v.strip().upper()
        if not v:
            raise ValueError("SKU is required")
        return v

    @model_validator(mode="after")
    def validate_price_not_above_mrp(self):
        if self.price > self.mrp:
            raise ValueError("Price cannot be greater than MRP")
        return self


class VariantBulkUpsert(BaseModel):
    variants: List[VariantInput] = Field(..., min_length=1)

    @model_validator(mode="after")
    def validate_unique_variants(self):
        qualities = [variant.product_quality for variant in self.variants]
        if len(qualities) != len(set(qualities)):
            raise ValueError("Each quality can only be used once per product")
        skus = [variant.sku for variant in self.variants]
        if len(skus) != len(set(skus)):
            raise ValueError("SKUs must be unique")
        return self


class ImageCreate(BaseModel):
    url: str = Field(..., min_length=1, max_length=500)
    filename: Optional[str] = Field(None, max_length=255)
    alt_text: Optional[str] = Field(None, max_length=255)
    file_size: Optional[int] = Field(None, ge=0)
    mime_type: Optional[str] = Field(None, max_length=50)
    width: Optional[int] = Field(None, ge=1)
    height: Optional[int] = Field(None, ge=1)
    context: ImageContext = ImageContext.BOTH

    @field_validator("url")
    @classmethod
    def validate_url(cls, v):
        v = v.strip()
        if not (v.startswith("https://") or v.startswith("http://") or v.startswith("/")):
            raise ValueError("Image url must be an absolute URL or a path")
        return v


class ImageAttach(BaseModel):
    image_id: int = Field(..., gt=0)
    display_order: int = Field(0, ge=0)
    is_primary: bool = False
