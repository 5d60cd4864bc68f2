"""
Session-scoped shopping cart.

A Cart is built for one cart session, mutated through its methods and then
written back. Derived values are recomputed from the lines on every read.
"""
from dataclasses import dataclass, field, replace
from typing import Dict, Iterator, List, Optional, Tuple

import structlog
from sqlalchemy.orm import Session, selectinload

from storefront.core.config import settings
from storefront.core.exceptions import ProductNotFound, VariantNotFound
from storefront.models.cart import CartItem
from storefront.models.product import Product, ProductVariant
from storefront.utils.pricing import (
    CartMeta,
    calculate_cart_meta,
    calculate_shipping,
    image_sort_key,
    round_money,
    shipping_tier_description,
)

logger = structlog.get_logger()

MAX_CART_ITEMS = 10

CartKey = Tuple[int, int]


@dataclass
class CartLine:
    product_id: int
    variant_id: int
    quantity: int
    product_name: str
    product_slug: str
    product_quality: str
    product_sku: str
    unit_price: float
    unit_mrp: float
    product_volume: Optional[int] = None
    image_url: Optional[str] = None

    @property
    def key(self) -> CartKey:
        return (self.product_id, self.variant_id)

    @property
    def total_price(self) -> float:
        return round_money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class AddResult:
    success: bool
    added: int
    discarded: int


@dataclass(frozen=True)
class UpdateResult:
    success: bool
    actual_quantity: int


@dataclass
class Cart:
    max_items: int = MAX_CART_ITEMS
    _lines: Dict[CartKey, CartLine] = field(default_factory=dict)

    @classmethod
    def from_lines(cls, lines, max_items: int = MAX_CART_ITEMS) -> "Cart":
        cart = cls(max_items=max_items)
        for line in lines:
            cart._lines[line.key] = line
        return cart

    def __iter__(self) -> Iterator[CartLine]:
        return iter(self._lines.values())

    def __len__(self) -> int:
        return len(self._lines)

    @property
    def lines(self) -> List[CartLine]:
        return list(self._lines.values())

    def get(self, product_id: int, variant_id: int) -> Optional[CartLine]:
        return self._lines.get((product_id, variant_id))

    @property
    def meta(self) -> CartMeta:
        return calculate_cart_meta(self._lines.values(), self.max_items)

    @property
    def total_items(self) -> int:
        return self.meta.total_items

    @property
    def total_price(self) -> float:
        return self.meta.total_price

    @property
    def available_space(self) -> int:
        return self.meta.available_space

    def add(self, line: CartLine, quantity: int = 1) -> AddResult:
        """Add up to `quantity` units, truncated to the space left in the cart."""
        if quantity < 1:
            raise ValueError("quantity must be at least 1")

        added = min(quantity, self.available_space)
        discarded = quantity - added
        if added > 0:
            existing = self._lines.get(line.key)
            if existing:
                existing.quantity += added
            else:
                self._lines[line.key] = replace(line, quantity=added)

        return AddResult(success=added > 0, added=added, discarded=discarded)

    def remove(self, product_id: int, variant_id: int) -> bool:
        return self._lines.pop((product_id, variant_id), None) is not None

    def update_quantity(self, product_id: int, variant_id: int, quantity: int) -> UpdateResult:
        """Set a line's quantity, clamped to [1, what fits beside the other lines]."""
        line = self._lines.get((product_id, variant_id))
        if line is None:
            return UpdateResult(success=False, actual_quantity=0)

        upper_bound = line.quantity + self.available_space
        line.quantity = max(1, min(quantity, upper_bound))
        return UpdateResult(success=True, actual_quantity=line.quantity)

    def clear(self) -> None:
        self._lines.clear()


# --------------------------------------------------
# Persistence
# --------------------------------------------------

def _line_from_row(row: CartItem) -> CartLine:
    return CartLine(
        product_id=row.product_id,
        variant_id=row.variant_id,
        quantity=row.quantity,
        product_name=row.product_name,
        product_slug=row.product_slug,
        product_quality=row.product_quality,
        product_volume=row.product_volume,
        product_sku=row.product_sku,
        unit_price=row.unit_price,
        unit_mrp=row.unit_mrp,
        image_url=row.image_url,
    )


def load_cart(db: Session, session_id: str) -> Cart:
    rows = (
        db.query(CartItem)
        .filter(CartItem.session_id == session_id)
        .order_by(CartItem.id.asc())
        .all()
    )
    return Cart.from_lines((_line_from_row(row) for row in rows), max_items=settings.MAX_CART_ITEMS)


def save_cart(db: Session, session_id: str, cart: Cart) -> None:
    """Write the cart's lines back to its session rows (caller commits)."""
    rows = {
        (row.product_id, row.variant_id): row
        for row in db.query(CartItem).filter(CartItem.session_id == session_id).all()
    }

    for key, row in rows.items():
        if cart.get(*key) is None:
            db.delete(row)

    for line in cart:
        row = rows.get(line.key)
        if row is None:
            row = CartItem(session_id=session_id, product_id=line.product_id, variant_id=line.variant_id)
            db.add(row)
        row.quantity = line.quantity
        row.product_name = line.product_name
        row.product_slug = line.product_slug
        row.product_quality = line.product_quality
        row.product_volume = line.product_volume
        row.product_sku = line.product_sku
        row.unit_price = line.unit_price
        row.unit_mrp = line.unit_mrp
        row.image_url = line.image_url


def snapshot_line(db: Session, product_id: int, variant_id: int) -> CartLine:
    """Capture the catalog data a new cart line carries (quantity is set by Cart.add)."""
    product = (
        db.query(Product)
        .options(selectinload(Product.images))
        .filter(Product.id == product_id)
        .first()
    )
    if not product:
        raise ProductNotFound()

    variant = (
        db.query(ProductVariant)
        .options(selectinload(ProductVariant.images))
        .filter(ProductVariant.id == variant_id, ProductVariant.product_id == product_id)
        .first()
    )
    if not variant:
        raise VariantNotFound()

    image_links = sorted(variant.images, key=image_sort_key) or sorted(product.images, key=image_sort_key)
    image_url = image_links[0].image.url if image_links else None

    return CartLine(
        product_id=product.id,
        variant_id=variant.id,
        quantity=0,
        product_name=product.name,
        product_slug=product.slug,
        product_quality=variant.product_quality.value,
        product_volume=variant.volume,
        product_sku=variant.sku,
        unit_price=variant.price,
        unit_mrp=variant.mrp,
        image_url=image_url,
    )


def serialize_cart(cart: Cart) -> dict:
    meta = cart.meta
    shipping = calculate_shipping(meta.total_price, meta.total_items, settings.FREE_SHIPPING_THRESHOLD)
    return {
        "items": [
            {
                "key": f"{line.product_id}:{line.variant_id}",
                "product_id": line.product_id,
                "variant_id": line.variant_id,
                "product_name": line.product_name,
                "product_slug": line.product_slug,
                "product_quality": line.product_quality,
                "product_volume": line.product_volume,
                "product_sku": line.product_sku,
                "image_url": line.image_url,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "unit_mrp": line.unit_mrp,
                "total_price": line.total_price,
            }
            for line in cart
        ],
        "total_items": meta.total_items,
        "total_price": meta.total_price,
        "available_space": meta.available_space,
        "max_items": cart.max_items,
        "shipping_quote": {
            "shipping_amount": shipping.shipping_amount,
            "is_free_shipping": shipping.is_free_shipping,
            "free_shipping_threshold": shipping.free_shipping_threshold,
            "tier": shipping_tier_description(meta.total_items),
            "applied": settings.SHIPPING_CHARGES_ENABLED,
        },
    }
