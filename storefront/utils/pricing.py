"""Pricing, shipping and catalog helpers shared by the cart, checkout and catalog."""
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, Sequence, TypeVar

from slugify import slugify

T = TypeVar("T")

DEFAULT_FREE_SHIPPING_THRESHOLD = 2000.0

# (max quantity in tier, charge, description)
SHIPPING_TIERS = (
    (2, 60.0, "Standard (1-2 items)"),
    (3, 80.0, "Medium (3 items)"),
    (5, 120.0, "Large (4-5 items)"),
)
EXTRA_LARGE_SHIPPING_CHARGE = 150.0
EXTRA_LARGE_SHIPPING_DESCRIPTION = "Extra Large (6+ items)"


@dataclass(frozen=True)
class CartMeta:
    total_items: int
    total_price: float
    available_space: int


@dataclass(frozen=True)
class ShippingCalculation:
    shipping_amount: float
    is_free_shipping: bool
    free_shipping_threshold: float
    total_before_shipping: float


def round_money(amount: float) -> float:
    return round(float(amount), 2)


def calculate_cart_meta(lines: Iterable[Any], max_items: int) -> CartMeta:
    """Totals are always recomputed from the lines, never tracked incrementally."""
    lines = list(lines)
    total_items = sum(line.quantity for line in lines)
    total_price = round_money(sum(line.total_price for line in lines))
    return CartMeta(
        total_items=total_items,
        total_price=total_price,
        available_space=max(0, max_items - total_items),
    )


def calculate_shipping(
    total_amount: float,
    total_quantity: int,
    free_shipping_threshold: float = DEFAULT_FREE_SHIPPING_THRESHOLD,
) -> ShippingCalculation:
    is_free_shipping = total_amount >= free_shipping_threshold

    shipping_amount = 0.0
    if not is_free_shipping:
        shipping_amount = EXTRA_LARGE_SHIPPING_CHARGE
        for max_quantity, charge, _ in SHIPPING_TIERS:
            if total_quantity <= max_quantity:
                shipping_amount = charge
                break

    return ShippingCalculation(
        shipping_amount=shipping_amount,
        is_free_shipping=is_free_shipping,
        free_shipping_threshold=free_shipping_threshold,
        total_before_shipping=round_money(total_amount),
    )


def shipping_tier_description(quantity: int) -> str:
    for max_quantity, _, description in SHIPPING_TIERS:
        if quantity <= max_quantity:
            return description
    return EXTRA_LARGE_SHIPPING_DESCRIPTION


def calculate_total_with_shipping(
    subtotal: float,
    shipping_amount: float,
    tax_amount: float = 0.0,
    discount_amount: float = 0.0,
) -> float:
    return round_money(subtotal + shipping_amount + tax_amount - discount_amount)


def least_price_option(options: Sequence[T], price: Callable[[T], Optional[float]] = None) -> Optional[T]:
    """Cheapest option; a missing price counts as 0. First one wins on ties."""
    if not options:
        return None
    price = price or (lambda option: getattr(option, "price", None))
    return min(options, key=lambda option: price(option) or 0)


def image_sort_key(image) -> tuple:
    """Primary image first, then ascending display order."""
    return (0 if image.is_primary else 1, image.display_order or 0)


def create_product_slug(product_name: str) -> str:
    """e.g. ZAR@ MAN SILVER -> zar-man-silver"""
    return slugify(product_name)


def to_paise(amount: float) -> int:
    return int(round(amount * 100))
