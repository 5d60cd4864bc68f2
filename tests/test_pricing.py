from types import SimpleNamespace

from storefront.utils.pricing import (
    calculate_cart_meta,
    calculate_shipping,
    calculate_total_with_shipping,
    create_product_slug,
    image_sort_key,
    least_price_option,
    shipping_tier_description,
    to_paise,
)


def test_shipping_is_free_at_threshold():
    result = calculate_shipping(2000.0, 3)
    assert result.is_free_shipping is True
    assert result.shipping_amount == 0.0
    assert result.free_shipping_threshold == 2000.0


def test_shipping_tiers_by_quantity():
    assert calculate_shipping(500.0, 1).shipping_amount == 60.0
    assert calculate_shipping(500.0, 2).shipping_amount == 60.0
    assert calculate_shipping(500.0, 3).shipping_amount == 80.0
    assert calculate_shipping(500.0, 5).shipping_amount == 120.0
    assert calculate_shipping(500.0, 6).shipping_amount == 150.0
    assert shipping_tier_description(4) == "Large (4-5 items)"
    assert shipping_tier_description(9) == "Extra Large (6+ items)"


def test_total_with_shipping_adds_charges():
    assert calculate_total_with_shipping(1099.5, 60.0) == 1159.5
    assert calculate_total_with_shipping(1000.0, 0.0, tax_amount=10.5, discount_amount=0.5) == 1010.0


def test_cart_meta_recomputes_from_lines():
    lines = [
        SimpleNamespace(quantity=2, total_price=2200.0),
        SimpleNamespace(quantity=3, total_price=1500.0),
    ]
    meta = calculate_cart_meta(lines, max_items=10)
    assert meta.total_items == 5
    assert meta.total_price == 3700.0
    assert meta.available_space == 5

    full = calculate_cart_meta(lines + [SimpleNamespace(quantity=7, total_price=700.0)], max_items=10)
    assert full.available_space == 0


def test_least_price_option_prefers_first_on_ties():
    first = SimpleNamespace(name="first", price=900.0)
    second = SimpleNamespace(name="second", price=900.0)
    cheap = SimpleNamespace(name="unpriced", price=None)

    assert least_price_option([]) is None
    assert least_price_option([first, second]) is first
    assert least_price_option([first, cheap]) is cheap


def test_image_sort_key_puts_primary_first():
    images = [
        SimpleNamespace(url="b", is_primary=False, display_order=0),
        SimpleNamespace(url="c", is_primary=True, display_order=5),
        SimpleNamespace(url="a", is_primary=False, display_order=None),
    ]
    ordered = [image.url for image in sorted(images, key=image_sort_key)]
    assert ordered == ["c", "b", "a"]


def test_slug_and_paise_helpers():
    assert create_product_slug("ZAR@ MAN SILVER") == "zar-man-silver"
    assert to_paise(2200.0) == 220000
    assert to_paise(1499.99) == 149999
