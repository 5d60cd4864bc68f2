from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from storefront.db.session import get_db
from storefront.models.product import ProductCategory
from storefront.services import catalog_service
from storefront.services.catalog_service import SORT_OPTIONS
from storefront.utils.response import success
from storefront.core.rate_limiter import limiter

router = APIRouter()
SORT_PATTERN = "^(" + "|".join(SORT_OPTIONS) + ")$"


@router.get("/featured", response_model=dict)
@limiter.limit("100/minute")
def get_featured_products(
    request: Request,
    sort: str = Query(catalog_service.DEFAULT_SORT, pattern=SORT_PATTERN),
    db: Session = Depends(get_db),
):
    """Featured products, each with its cheapest variant"""
    products = catalog_service.list_featured_products(db, sort)
    return success(
        data=[catalog_service.serialize_product_listing(product) for product in products],
        message="Featured products retrieved",
    )


@router.get("/search", response_model=dict)
@limiter.limit("60/minute")
def search_products(
    request: Request,
    q: str = Query(..., min_length=1, max_length=100),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    products = catalog_service.search_products(db, q, limit)
    return success(
        data=[catalog_service.serialize_product_listing(product) for product in products],
        message="Search results retrieved",
    )


@router.get("/category/{category}", response_model=dict)
@limiter.limit("100/minute")
def get_products_by_category(
    request: Request,
    category: ProductCategory,
    sort: str = Query(catalog_service.DEFAULT_SORT, pattern=SORT_PATTERN),
    db: Session = Depends(get_db),
):
    """Products of one category (perfume or attar), each with its cheapest variant"""
    products = catalog_service.list_products_by_category(db, category, sort)
    return success(
        data=[catalog_service.serialize_product_listing(product) for product in products],
        message="Products retrieved",
    )


@router.get("/{slug}", response_model=dict)
@limiter.limit("100/minute")
def get_product_detail(request: Request, slug: str, db: Session = Depends(get_db)):
    """Get product details by slug."""
    product = catalog_service.get_product_by_slug(db, slug)
    return success(data=catalog_service.serialize_product_detail(product), message="Product retrieved")
