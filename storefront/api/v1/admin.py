from datetime import datetime, timedelta
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from storefront.db.session import get_db
from storefront.api.deps import require_admin_session
from storefront.core.config import settings
from storefront.core.rate_limiter import limiter
from storefront.core.security import create_admin_session_token, verify_admin_password
from storefront.models.cart import CartItem
from storefront.models.hero_slide import HeroSlide
from storefront.models.order import OrderItem, OrderStatus, PaymentMethod, PaymentStatus
from storefront.models.product import (
    Image,
    Product,
    ProductCategory,
    ProductImage,
    ProductVariant,
    VariantImage,
)
from storefront.schemas.hero_slide import HeroSlideCreate, HeroSlideReorder, HeroSlideUpdate
from storefront.schemas.order import OrderStatusUpdate
from storefront.schemas.product import ImageAttach, ImageCreate, ProductCreate, ProductUpdate, VariantBulkUpsert
from storefront.services import catalog_service, dashboard_service, order_service
from storefront.services.payment_service import set_payment_status_by_admin
from storefront.utils.pricing import create_product_slug
from storefront.utils.response import paginated_response, success

router = APIRouter()
logger = structlog.get_logger()


def _unique_slug(db: Session, name: str, exclude_product_id: Optional[int] = None) -> str:
    base_slug = create_product_slug(name)
    if not base_slug:
        raise HTTPException(status_code=400, detail="Slug cannot be empty")

    slug = base_slug
    suffix = 2
    while True:
        query = db.query(Product.id).filter(Product.slug == slug)
        if exclude_product_id is not None:
            query = query.filter(Product.id != exclude_product_id)
        if query.first() is None:
            return slug
        slug = f"{base_slug}-{suffix}"
        suffix += 1


def _get_product_or_404(db: Session, product_id: int) -> Product:
    product = db.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


def _get_variant_or_404(db: Session, variant_id: int) -> ProductVariant:
    variant = db.query(ProductVariant).filter(ProductVariant.id == variant_id).first()
    if not variant:
        raise HTTPException(status_code=404, detail="Product variant not found")
    return variant


def _get_image_or_404(db: Session, image_id: int) -> Image:
    image = db.query(Image).filter(Image.id == image_id).first()
    if not image:
        raise HTTPException(status_code=404, detail="Image not found")
    return image


def _get_slide_or_404(db: Session, slide_id: int) -> HeroSlide:
    slide = db.query(HeroSlide).filter(HeroSlide.id == slide_id).first()
    if not slide:
        raise HTTPException(status_code=404, detail="Hero slide not found")
    return slide


def _detach_variant_references(db: Session, variant_ids) -> None:
    """Drop cart lines and unlink order items before variants are deleted."""
    variant_ids = list(variant_ids)
    if not variant_ids:
        return
    db.query(CartItem).filter(CartItem.variant_id.in_(variant_ids)).delete(synchronize_session=False)
    db.query(OrderItem).filter(OrderItem.variant_id.in_(variant_ids)).update(
        {OrderItem.variant_id: None}, synchronize_session=False
    )


# ============= SESSION =============

@router.post("/login")
@limiter.limit("10/minute")
def admin_login(
    request: Request,
    response: Response,
    password: str = Form(...),
):
    """Admin: Exchange the admin password for a session cookie"""
    if not verify_admin_password(password):
        logger.warning(
            "admin_login_failed",
            client_ip=request.client.host if request.client else None,
        )
        raise HTTPException(status_code=401, detail="Invalid password")

    expires_delta = timedelta(hours=settings.ADMIN_SESSION_EXPIRE_HOURS)
    token = create_admin_session_token(expires_delta)
    response.set_cookie(
        key=settings.ADMIN_SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=settings.ENVIRONMENT == "production",
        samesite="lax",
        max_age=int(expires_delta.total_seconds()),
        path="/",
    )
    logger.info("admin_login_succeeded")
    return success(
        data={"expires_at": f"{(datetime.utcnow() + expires_delta).isoformat()}Z"},
        message="Login successful",
    )


@router.post("/logout")
@limiter.limit("30/minute")
def admin_logout(request: Request, response: Response):
    response.delete_cookie(key=settings.ADMIN_SESSION_COOKIE, path="/")
    return success(message="Logged out")


@router.get("/session")
@limiter.limit("60/minute")
def admin_session(request: Request, session: dict = Depends(require_admin_session)):
    return success(
        data={
            "authenticated": True,
            "expires_at": f"{datetime.utcfromtimestamp(session['exp']).isoformat()}Z",
        },
        message="Session active",
    )


# ============= DASHBOARD =============

@router.get("/dashboard")
@limiter.limit("60/minute")
def get_dashboard(
    request: Request,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    """Admin: Headline numbers and recent activity"""
    return success(data=dashboard_service.dashboard_data(db), message="Dashboard retrieved")


@router.post("/maintenance/cleanup-expired-orders")
@limiter.limit("10/minute")
def cleanup_expired_orders_admin(
    request: Request,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    cleaned = order_service.expire_unpaid_orders(db)
    return success(
        data={"cleaned_orders": cleaned},
        message="Expired pending orders cleaned",
    )


# ============= PRODUCT MANAGEMENT =============

@router.get("/products")
@limiter.limit("60/minute")
def list_products(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, max_length=100),
    category: Optional[ProductCategory] = None,
    is_featured: Optional[bool] = None,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    updated_from: Optional[datetime] = None,
    updated_to: Optional[datetime] = None,
    sort_by: str = Query("created_at", pattern="^(name|created_at|updated_at)$"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    """Admin: Search, filter, sort and paginate products"""
    products, total = catalog_service.query_products(
        db,
        page=page,
        limit=limit,
        search=search,
        category=category,
        is_featured=is_featured,
        created_from=created_from,
        created_to=created_to,
        updated_from=updated_from,
        updated_to=updated_to,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return paginated_response(
        items=[catalog_service.serialize_product_detail(product) for product in products],
        total=total,
        page=page,
        limit=limit,
        message="Products retrieved",
    )


@router.get("/products/{product_id}")
@limiter.limit("60/minute")
def get_product(
    request: Request,
    product_id: int,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    product = catalog_service.get_product(db, product_id)
    return success(data=catalog_service.serialize_product_detail(product), message="Product retrieved")


@router.post("/products", status_code=201)
@limiter.limit("30/minute")
def create_product(
    request: Request,
    payload: ProductCreate,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    """Admin: Create new product"""
    product = Product(slug=_unique_slug(db, payload.name), **payload.model_dump())
    db.add(product)
    db.commit()
    db.refresh(product)

    logger.info("product_created", product_id=product.id, slug=product.slug)
    return success(data={"id": product.id, "slug": product.slug}, message="Product created")


@router.put("/products/{product_id}")
@limiter.limit("30/minute")
def update_product(
    request: Request,
    product_id: int,
    payload: ProductUpdate,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    """Admin: Update product"""
    product = _get_product_or_404(db, product_id)
    changes = payload.model_dump(exclude_unset=True)

    if "name" in changes and changes["name"] is None:
        raise HTTPException(status_code=400, detail="Product name is required")
    if "category" in changes and changes["category"] is None:
        raise HTTPException(status_code=400, detail="Product category is required")

    if changes.get("name") and changes["name"] != product.name:
        product.slug = _unique_slug(db, changes["name"], exclude_product_id=product.id)

    for field, value in changes.items():
        setattr(product, field, value)

    db.commit()
    db.refresh(product)
    return success(data={"id": product.id, "slug": product.slug}, message="Product updated")


@router.delete("/products/{product_id}")
@limiter.limit("30/minute")
def delete_product(
    request: Request,
    product_id: int,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    """Admin: Delete product with its variants and image links"""
    product = _get_product_or_404(db, product_id)

    _detach_variant_references(db, (variant.id for variant in product.variants))
    db.query(CartItem).filter(CartItem.product_id == product.id).delete(synchronize_session=False)
    db.query(OrderItem).filter(OrderItem.product_id == product.id).update(
        {OrderItem.product_id: None}, synchronize_session=False
    )
    db.delete(product)
    db.commit()

    logger.info("product_deleted", product_id=product_id)
    return success(message="Product deleted")


# ============= VARIANT MANAGEMENT =============

@router.get("/products/{product_id}/variants")
@limiter.limit("60/minute")
def list_variants(
    request: Request,
    product_id: int,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    product = catalog_service.get_product(db, product_id)
    return success(
        data=[catalog_service.serialize_variant(variant) for variant in product.variants],
        message="Variants retrieved",
    )


@router.put("/products/{product_id}/variants")
@limiter.limit("30/minute")
def upsert_variants(
    request: Request,
    product_id: int,
    payload: VariantBulkUpsert,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    """
    Admin: Create or update a product's variants in one transaction.

    Entries with an id update that variant; entries without one create a new
    variant. Variants not mentioned are left as they are.
    """
    product = _get_product_or_404(db, product_id)
    existing = {variant.id: variant for variant in product.variants}
    payload_ids = {item.id for item in payload.variants if item.id is not None}

    unknown_ids = payload_ids - set(existing)
    if unknown_ids:
        raise HTTPException(status_code=404, detail=f"Variant {min(unknown_ids)} not found for this product")

    untouched_qualities = {
        variant.product_quality for variant_id, variant in existing.items() if variant_id not in payload_ids
    }
    for item in payload.variants:
        if item.product_quality in untouched_qualities:
            raise HTTPException(
                status_code=409,
                detail=f"A {item.product_quality.value} variant already exists for this product",
            )

    skus = [item.sku for item in payload.variants]
    sku_query = db.query(ProductVariant.sku).filter(ProductVariant.sku.in_(skus))
    if payload_ids:
        sku_query = sku_query.filter(ProductVariant.id.notin_(payload_ids))
    taken = [row.sku for row in sku_query.all()]
    if taken:
        raise HTTPException(status_code=409, detail=f"SKU {taken[0]} is already in use")

    try:
        for item in payload.variants:
            values = item.model_dump(exclude={"id"})
            if item.id is not None:
                variant = existing[item.id]
                for field, value in values.items():
                    setattr(variant, field, value)
            else:
                db.add(ProductVariant(product_id=product.id, **values))
        product.updated_at = datetime.utcnow()
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("variant_upsert_failed", product_id=product.id)
        raise

    product = catalog_service.get_product(db, product.id)
    return success(
        data=[catalog_service.serialize_variant(variant) for variant in product.variants],
        message="Variants saved",
    )


@router.delete("/variants/{variant_id}")
@limiter.limit("30/minute")
def delete_variant(
    request: Request,
    variant_id: int,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    variant = _get_variant_or_404(db, variant_id)
    _detach_variant_references(db, [variant.id])
    db.delete(variant)
    db.commit()
    return success(message="Variant deleted")


# ============= IMAGE MANAGEMENT =============

@router.get("/images")
@limiter.limit("60/minute")
def list_images(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    query = db.query(Image).order_by(Image.created_at.desc(), Image.id.desc())
    total = query.count()
    images = query.offset((page - 1) * limit).limit(limit).all()
    return paginated_response(
        items=[catalog_service.serialize_image_record(image) for image in images],
        total=total,
        page=page,
        limit=limit,
        message="Images retrieved",
    )


@router.post("/images", status_code=201)
@limiter.limit("60/minute")
def register_image(
    request: Request,
    payload: ImageCreate,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    """Admin: Register an already uploaded image by URL"""
    if db.query(Image.id).filter(Image.url == payload.url).first():
        raise HTTPException(status_code=409, detail="Image already registered")

    image = Image(**payload.model_dump(exclude_none=True))
    db.add(image)
    db.commit()
    db.refresh(image)
    return success(data=catalog_service.serialize_image_record(image), message="Image registered")


def _attach(db: Session, links, link, make_primary: bool) -> None:
    if make_primary:
        for other in links:
            other.is_primary = False
    db.add(link)


@router.post("/products/{product_id}/images", status_code=201)
@limiter.limit("60/minute")
def attach_product_image(
    request: Request,
    product_id: int,
    payload: ImageAttach,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    product = _get_product_or_404(db, product_id)
    _get_image_or_404(db, payload.image_id)
    if any(link.image_id == payload.image_id for link in product.images):
        raise HTTPException(status_code=409, detail="Image already attached to this product")

    link = ProductImage(
        product_id=product.id,
        image_id=payload.image_id,
        display_order=payload.display_order,
        is_primary=payload.is_primary,
    )
    _attach(db, product.images, link, payload.is_primary)
    db.commit()
    return success(data={"id": link.id}, message="Image attached")


@router.delete("/products/{product_id}/images/{image_id}")
@limiter.limit("60/minute")
def detach_product_image(
    request: Request,
    product_id: int,
    image_id: int,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    link = (
        db.query(ProductImage)
        .filter(ProductImage.product_id == product_id, ProductImage.image_id == image_id)
        .first()
    )
    if not link:
        raise HTTPException(status_code=404, detail="Image is not attached to this product")
    db.delete(link)
    db.commit()
    return success(message="Image detached")


@router.post("/variants/{variant_id}/images", status_code=201)
@limiter.limit("60/minute")
def attach_variant_image(
    request: Request,
    variant_id: int,
    payload: ImageAttach,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    variant = _get_variant_or_404(db, variant_id)
    _get_image_or_404(db, payload.image_id)
    if any(link.image_id == payload.image_id for link in variant.images):
        raise HTTPException(status_code=409, detail="Image already attached to this variant")

    link = VariantImage(
        variant_id=variant.id,
        image_id=payload.image_id,
        display_order=payload.display_order,
        is_primary=payload.is_primary,
    )
    _attach(db, variant.images, link, payload.is_primary)
    db.commit()
    return success(data={"id": link.id}, message="Image attached")


@router.delete("/variants/{variant_id}/images/{image_id}")
@limiter.limit("60/minute")
def detach_variant_image(
    request: Request,
    variant_id: int,
    image_id: int,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    link = (
        db.query(VariantImage)
        .filter(VariantImage.variant_id == variant_id, VariantImage.image_id == image_id)
        .first()
    )
    if not link:
        raise HTTPException(status_code=404, detail="Image is not attached to this variant")
    db.delete(link)
    db.commit()
    return success(message="Image detached")


# ============= HERO SLIDES =============

@router.get("/hero-slides")
@limiter.limit("60/minute")
def list_hero_slides(
    request: Request,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    """Admin: All slides, active and inactive"""
    slides = db.query(HeroSlide).order_by(HeroSlide.display_order.asc(), HeroSlide.id.asc()).all()
    return success(
        data=[catalog_service.serialize_hero_slide(slide) for slide in slides],
        message="Hero slides retrieved",
    )


@router.post("/hero-slides", status_code=201)
@limiter.limit("30/minute")
def create_hero_slide(
    request: Request,
    payload: HeroSlideCreate,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    if payload.image_id is not None:
        _get_image_or_404(db, payload.image_id)

    slide = HeroSlide(**payload.model_dump())
    db.add(slide)
    db.commit()
    db.refresh(slide)
    return success(data=catalog_service.serialize_hero_slide(slide), message="Hero slide created")


# Declared before /hero-slides/{slide_id} so "reorder" is not read as an id.
@router.put("/hero-slides/reorder")
@limiter.limit("30/minute")
def reorder_hero_slides(
    request: Request,
    payload: HeroSlideReorder,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    slides = {slide.id: slide for slide in db.query(HeroSlide).filter(HeroSlide.id.in_(payload.slide_ids)).all()}
    missing = [slide_id for slide_id in payload.slide_ids if slide_id not in slides]
    if missing:
        raise HTTPException(status_code=404, detail=f"Hero slide {missing[0]} not found")

    for position, slide_id in enumerate(payload.slide_ids):
        slides[slide_id].display_order = position
    db.commit()
    return success(data={"slide_ids": payload.slide_ids}, message="Hero slides reordered")


@router.put("/hero-slides/{slide_id}")
@limiter.limit("30/minute")
def update_hero_slide(
    request: Request,
    slide_id: int,
    payload: HeroSlideUpdate,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    slide = _get_slide_or_404(db, slide_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("image_id") is not None:
        _get_image_or_404(db, changes["image_id"])

    for field, value in changes.items():
        setattr(slide, field, value)

    if slide.image_id is None and not slide.image_url:
        db.rollback()
        raise HTTPException(status_code=400, detail="Either image_id or image_url is required")

    db.commit()
    db.refresh(slide)
    return success(data=catalog_service.serialize_hero_slide(slide), message="Hero slide updated")


@router.delete("/hero-slides/{slide_id}")
@limiter.limit("30/minute")
def delete_hero_slide(
    request: Request,
    slide_id: int,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    slide = _get_slide_or_404(db, slide_id)
    db.delete(slide)
    db.commit()
    return success(message="Hero slide deleted")


# ============= ORDER MANAGEMENT =============

@router.get("/orders")
@limiter.limit("60/minute")
def get_all_orders(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[OrderStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    search: Optional[str] = Query(None, max_length=100),
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    """Admin: Get all orders"""
    orders, total = order_service.list_orders(
        db,
        page=page,
        limit=limit,
        status=status,
        payment_status=payment_status,
        search=search,
    )
    return paginated_response(
        items=[order_service.serialize_order(order, include_items=False) for order in orders],
        total=total,
        page=page,
        limit=limit,
        message="Orders retrieved successfully",
    )


# Declared before /orders/{order_id} so "stats" is not read as an id.
@router.get("/orders/stats")
@limiter.limit("60/minute")
def get_order_stats(
    request: Request,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    return success(data=order_service.order_statistics(db), message="Order statistics retrieved")


@router.get("/orders/{order_id}")
@limiter.limit("60/minute")
def get_order_detail_admin(
    request: Request,
    order_id: int,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    order = order_service.get_order(db, order_id)
    return success(
        data=order_service.serialize_admin_order(order),
        message="Order details retrieved successfully",
    )


@router.put(
    "/orders/{order_id}/status",
    summary="Update order status (admin)",
    description="""
Updates order status, payment status and admin notes.

Behavior:
1. Validates order exists
2. Cancelling restores stock that was already deducted
3. Moving a pending order forward deducts stock once
4. Payment status changes are recorded as admin payment events
5. Commits changes in one transaction
""",
    responses={
        200: {"description": "Order status updated successfully"},
        400: {"description": "Invalid transition"},
        401: {"description": "Admin session required"},
        404: {"description": "Order not found"},
    },
    tags=["Admin"],
)
@limiter.limit("30/minute")
def update_order_status(
    request: Request,
    order_id: int,
    payload: OrderStatusUpdate,
    session: dict = Depends(require_admin_session),
    db: Session = Depends(get_db),
):
    """Admin: Update order status"""
    order = order_service.get_order(db, order_id)

    newly_paid = False
    try:
        order_service.update_order_status(db, order, payload.status, payload.admin_notes)
        if payload.payment_status is not None:
            changed = set_payment_status_by_admin(db, order, payload.payment_status)
            newly_paid = changed and payload.payment_status == PaymentStatus.PAID
        db.commit()
    except Exception:
        db.rollback()
        raise

    order = order_service.get_order(db, order_id)
    # COD orders were announced when they were placed
    if newly_paid and order.payment_method == PaymentMethod.ONLINE and order.status != OrderStatus.CANCELLED:
        order_service.dispatch_order_notifications(order)
    return success(
        data=order_service.serialize_admin_order(order),
        message="Order status updated successfully",
    )
