from storefront.db.base_class import Base


# IMPORT ALL MODELS HERE (THIS REGISTERS THEM WITH Base.metadata)
from storefront.models.product import Product, ProductVariant, Image, ProductImage, VariantImage
from storefront.models.hero_slide import HeroSlide
from storefront.models.cart import CartItem
from storefront.models.order import Order, OrderItem
from storefront.models.payment import PaymentEvent
