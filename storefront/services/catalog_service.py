from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload

from storefront.core.exceptions import ProductNotFound
from storefront.models.hero_slide import HeroSlide
from storefront.models.product import (
    Image,
    Product,
    ProductCategory,
    ProductImage,
    ProductVariant,
    VariantImage,
)
from storefront.utils.pricing import image_sort_key, least_price_option


SORT_OPTIONS = (
    "featured",
    "name-asc",
    "name-desc",
    "date-old-new",
    "date-new-old",
    "price-low-high",
    "price-high-low",
)
DEFAULT_SORT = "featured"

ADMIN_SORT_FIELDS = {
    "name": Product.name,
    "created_at": Product.created_at,
    "updated_at": Product.updated_at,
}


def _catalog_query(db: Session):
    return db.query(Product).options(
        selectinload(Product.images).selectinload(ProductImage.image),
        selectinload(Product.variants).selectinload(ProductVariant.images).selectinload(VariantImage.image),
    )


# --------------------------------------------------
# Serializers
# --------------------------------------------------

def serialize_image(link) -> dict:
    return {
        "id": link.image.id,
        "url": link.image.url,
        "alt_text": link.image.alt_text,
        "width": link.image.width,
        "height": link.image.height,
        "display_order": link.display_order,
        "is_primary": link.is_primary,
    }


def serialize_image_record(image: Image) -> dict:
    return {
        "id": image.id,
        "url": image.url,
        "filename": image.filename,
        "alt_text": image.alt_text,
        "file_size": image.file_size,
        "mime_type": image.mime_type,
        "width": image.width,
        "height": image.height,
        "context": image.context.value if image.context else None,
        "created_at": image.created_at,
    }


def serialize_variant(variant: ProductVariant) -> dict:
    return {
        "id": variant.id,
        "product_id": variant.product_id,
        "product_quality": variant.product_quality.value,
        "price": variant.price,
        "mrp": variant.mrp,
        "stock": variant.stock,
        "in_stock": variant.stock > 0,
        "volume": variant.volume,
        "sku": variant.sku,
        "images": [serialize_image(link) for link in sorted(variant.images, key=image_sort_key)],
    }


def _product_fields(product: Product) -> dict:
    images = [serialize_image(link) for link in sorted(product.images, key=image_sort_key)]
    return {
        "id": product.id,
        "name": product.name,
        "slug": product.slug,
        "category": product.category.value,
        "fragrance_family": product.fragrance_family,
        "description": product.description,
        "top_notes": product.top_notes,
        "middle_notes": product.middle_notes,
        "base_notes": product.base_notes,
        "additional_notes": product.additional_notes,
        "is_featured": product.is_featured,
        "images": images,
        "primary_image": images[0]["url"] if images else None,
        "created_at": product.created_at,
        "updated_at": product.updated_at,
    }


def serialize_product_listing(product: Product) -> dict:
    """Listing shape: the product with only its cheapest variant."""
    data = _product_fields(product)
    cheapest = least_price_option(product.variants)
    data["variant"] = serialize_variant(cheapest) if cheapest else None
    return data


def serialize_product_detail(product: Product) -> dict:
    data = _product_fields(product)
    data["variants"] = [serialize_variant(variant) for variant in product.variants]
    return data


def serialize_hero_slide(slide: HeroSlide) -> dict:
    return {
        "id": slide.id,
        "image_id": slide.image_id,
        "image_url": slide.resolved_image_url,
        "title": slide.title,
        "subtitle": slide.subtitle,
        "button_text": slide.button_text,
        "link_url": slide.link_url,
        "is_internal_link": slide.is_internal_link,
        "is_landscape_image": slide.is_landscape_image,
        "display_order": slide.display_order,
        "is_active": slide.is_active,
    }


# --------------------------------------------------
# Sorting
# --------------------------------------------------

def _cheapest_price(product: Product) -> float:
    cheapest = least_price_option(product.variants)
    return (cheapest.price or 0) if cheapest else 0


def _created(product: Product) -> datetime:
    return product.created_at or datetime.min


def sort_products(products: List[Product], sort: str = DEFAULT_SORT) -> List[Product]:
    """
    Sort products for storefront listings.

    Price sorts use each product's cheapest variant; products without
    variants price as 0. Unknown sort values fall back to featured.
    """
    if sort == "name-asc":
        return sorted(products, key=lambda p: p.name.lower())
    if sort == "name-desc":
        return sorted(products, key=lambda p: p.name.lower(), reverse=True)
    if sort == "date-old-new":
        return sorted(products, key=_created)
    if sort == "date-new-old":
        return sorted(products, key=_created, reverse=True)
    if sort == "price-low-high":
        return sorted(products, key=_cheapest_price)
    if sort == "price-high-low":
        return sorted(products, key=_cheapest_price, reverse=True)
    return sorted(products, key=lambda p: (not p.is_featured, p.name.lower()))


# --------------------------------------------------
# Queries
# --------------------------------------------------

def list_products_by_category(db: Session, category: ProductCategory, sort: str = DEFAULT_SORT) -> List[Product]:
    products = _catalog_query(db).filter(Product.category == category).all()
    return sort_products(products, sort)


def list_featured_products(db: Session, sort: str = DEFAULT_SORT) -> List[Product]:
    products = _catalog_query(db).filter(Product.is_featured == True).all()
    return sort_products(products, sort)


def get_product_by_slug(db: Session, slug: str) -> Product:
    product = _catalog_query(db).filter(Product.slug == slug).first()
    if not product:
        raise ProductNotFound()
    return product


def get_product(db: Session, product_id: int) -> Product:
    product = _catalog_query(db).filter(Product.id == product_id).first()
    if not product:
        raise ProductNotFound()
    return product


def search_products(db: Session, term: str, limit: int = 10) -> List[Product]:
    term = (term or "").strip()
    if not term:
        return []
    pattern = f"%{term}%"
    return (
        _catalog_query(db)
        .filter(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
        .order_by(Product.name.asc())
        .limit(limit)
        .all()
    )


def query_products(
    db: Session,
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    category: Optional[ProductCategory] = None,
    is_featured: Optional[bool] = None,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    updated_from: Optional[datetime] = None,
    updated_to: Optional[datetime] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
) -> Tuple[List[Product], int]:
    """Filtered, sorted and paginated product listing for the admin panel."""
    query = _catalog_query(db)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
    if category is not None:
        query = query.filter(Product.category == category)
    if is_featured is not None:
        query = query.filter(Product.is_featured == is_featured)
    if created_from:
        query = query.filter(Product.created_at >= created_from)
    if created_to:
        query = query.filter(Product.created_at <= created_to)
    if updated_from:
        query = query.filter(Product.updated_at >= updated_from)
    if updated_to:
        query = query.filter(Product.updated_at <= updated_to)

    column = ADMIN_SORT_FIELDS.get(sort_by, Product.created_at)
    ordering = column.asc() if sort_order == "asc" else column.desc()
    query = query.order_by(ordering, Product.id.asc())

    total = query.count()
    products = query.offset((page - 1) * limit).limit(limit).all()
    return products, total


def list_active_hero_slides(db: Session) -> List[HeroSlide]:
    return (
        db.query(HeroSlide)
        .options(selectinload(HeroSlide.image))
        .filter(HeroSlide.is_active == True)
        .order_by(HeroSlide.display_order.asc(), HeroSlide.id.asc())
        .all()
    )
