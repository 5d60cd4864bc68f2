from storefront.models.product import (
    Product, ProductVariant, Image, ProductImage, VariantImage,
    ProductCategory, ProductQuality, ImageContext,
)
from storefront.models.hero_slide import HeroSlide
from storefront.models.cart import CartItem
from storefront.models.order import Order, OrderItem, OrderStatus, PaymentStatus, PaymentMethod
from storefront.models.payment import PaymentEvent, PaymentSource
