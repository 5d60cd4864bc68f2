"""Initial storefront schema

Revision ID: 3b7e1c2a9f40
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b7e1c2a9f40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


product_category = sa.Enum("PERFUME", "ATTAR", name="productcategory")
product_quality = sa.Enum("STANDARD", "PREMIUM", "LUXURY", name="productquality")
image_context = sa.Enum("PRODUCT", "VARIANT", "BOTH", name="imagecontext")
order_status = sa.Enum(
    "PENDING", "CONFIRMED", "PROCESSING", "SHIPPED", "DELIVERED", "CANCELLED",
    name="orderstatus",
)
payment_status = sa.Enum("PENDING", "PAID", "FAILED", "REFUNDED", name="paymentstatus")
payment_method = sa.Enum("COD", "ONLINE", name="paymentmethod")
payment_source = sa.Enum("CLIENT", "WEBHOOK", "ADMIN", name="paymentsource")


def upgrade() -> None:
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("category", product_category, nullable=False),
        sa.Column("fragrance_family", sa.String(length=100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("top_notes", sa.Text(), nullable=True),
        sa.Column("middle_notes", sa.Text(), nullable=True),
        sa.Column("base_notes", sa.Text(), nullable=True),
        sa.Column("additional_notes", sa.Text(), nullable=True),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_products_id", "products", ["id"], unique=False)
    op.create_index("ix_products_name", "products", ["name"], unique=False)
    op.create_index("ix_products_slug", "products", ["slug"], unique=True)
    op.create_index("ix_products_category", "products", ["category"], unique=False)
    op.create_index("idx_product_category_featured", "products", ["category", "is_featured"], unique=False)

    op.create_table(
        "product_variants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_quality", product_quality, nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("mrp", sa.Float(), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("volume", sa.Integer(), nullable=True),
        sa.Column("sku", sa.String(length=100), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("product_id", "product_quality", name="uq_variant_product_quality"),
        sa.CheckConstraint("price <= mrp", name="ck_variant_price_not_above_mrp"),
    )
    op.create_index("ix_product_variants_id", "product_variants", ["id"], unique=False)
    op.create_index("ix_product_variants_product_id", "product_variants", ["product_id"], unique=False)
    op.create_index("ix_product_variants_sku", "product_variants", ["sku"], unique=True)

    op.create_table(
        "images",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("url", sa.String(length=500), nullable=False),
        sa.Column("filename", sa.String(length=255), nullable=True),
        sa.Column("alt_text", sa.String(length=255), nullable=True),
        sa.Column("file_size", sa.Integer(), nullable=True),
        sa.Column("mime_type", sa.String(length=50), nullable=True),
        sa.Column("width", sa.Integer(), nullable=True),
        sa.Column("height", sa.Integer(), nullable=True),
        sa.Column("context", image_context, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_images_id", "images", ["id"], unique=False)
    op.create_index("ix_images_url", "images", ["url"], unique=True)

    for table, owner, owner_table, constraint in (
        ("product_images", "product_id", "products", "uq_product_image"),
        ("variant_images", "variant_id", "product_variants", "uq_variant_image"),
    ):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(owner, sa.Integer(), sa.ForeignKey(f"{owner_table}.id", ondelete="CASCADE"), nullable=False),
            sa.Column("image_id", sa.Integer(), sa.ForeignKey("images.id", ondelete="CASCADE"), nullable=False),
            sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.UniqueConstraint(owner, "image_id", name=constraint),
        )
        op.create_index(f"ix_{table}_id", table, ["id"], unique=False)
        op.create_index(f"ix_{table}_{owner}", table, [owner], unique=False)

    op.create_table(
        "hero_slides",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("image_id", sa.Integer(), sa.ForeignKey("images.id", ondelete="SET NULL"), nullable=True),
        sa.Column("image_url", sa.String(length=500), nullable=True),
        sa.Column("title", sa.String(length=200), nullable=True),
        sa.Column("subtitle", sa.String(length=300), nullable=True),
        sa.Column("button_text", sa.String(length=50), nullable=True),
        sa.Column("link_url", sa.String(length=500), nullable=True),
        sa.Column("is_internal_link", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_landscape_image", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("display_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_hero_slides_id", "hero_slides", ["id"], unique=False)
    op.create_index("ix_hero_slides_display_order", "hero_slides", ["display_order"], unique=False)

    op.create_table(
        "cart_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("session_id", sa.String(length=64), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "variant_id", sa.Integer(), sa.ForeignKey("product_variants.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("product_slug", sa.String(length=255), nullable=False),
        sa.Column("product_quality", sa.String(length=20), nullable=False),
        sa.Column("product_volume", sa.Integer(), nullable=True),
        sa.Column("product_sku", sa.String(length=100), nullable=False),
        sa.Column("unit_price", sa.Float(), nullable=False),
        sa.Column("unit_mrp", sa.Float(), nullable=False),
        sa.Column("image_url", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("session_id", "product_id", "variant_id", name="uq_cart_session_line"),
    )
    op.create_index("ix_cart_items_id", "cart_items", ["id"], unique=False)
    op.create_index("ix_cart_items_session_id", "cart_items", ["session_id"], unique=False)

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_number", sa.String(length=50), nullable=False),
        sa.Column("cart_session_id", sa.String(length=64), nullable=True),
        sa.Column("idempotency_key", sa.String(length=64), nullable=True),
        sa.Column("customer_name", sa.String(length=110), nullable=False),
        sa.Column("customer_email", sa.String(length=255), nullable=False),
        sa.Column("customer_phone", sa.String(length=15), nullable=False),
        sa.Column("customer_address", sa.String(length=255), nullable=False),
        sa.Column("customer_city", sa.String(length=50), nullable=False),
        sa.Column("customer_state", sa.String(length=50), nullable=False),
        sa.Column("customer_pincode", sa.String(length=6), nullable=False),
        sa.Column("subtotal", sa.Float(), nullable=False),
        sa.Column("tax_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("shipping_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("discount_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Float(), nullable=False),
        sa.Column("payment_method", payment_method, nullable=False),
        sa.Column("payment_status", payment_status, nullable=False),
        sa.Column("razorpay_order_id", sa.String(length=100), nullable=True),
        sa.Column("razorpay_payment_id", sa.String(length=100), nullable=True),
        sa.Column("payment_confirmed_by", sa.String(length=20), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("status", order_status, nullable=False),
        sa.Column("stock_deducted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint("idempotency_key", name="uq_orders_idempotency_key"),
    )
    op.create_index("ix_orders_id", "orders", ["id"], unique=False)
    op.create_index("ix_orders_order_number", "orders", ["order_number"], unique=True)
    op.create_index("ix_orders_cart_session_id", "orders", ["cart_session_id"], unique=False)
    op.create_index("ix_orders_customer_phone", "orders", ["customer_phone"], unique=False)
    op.create_index("ix_orders_payment_status", "orders", ["payment_status"], unique=False)
    op.create_index("ix_orders_razorpay_order_id", "orders", ["razorpay_order_id"], unique=False)
    op.create_index("ix_orders_razorpay_payment_id", "orders", ["razorpay_payment_id"], unique=False)
    op.create_index("ix_orders_status", "orders", ["status"], unique=False)
    op.create_index("ix_orders_created_at", "orders", ["created_at"], unique=False)

    op.create_table(
        "order_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "variant_id", sa.Integer(), sa.ForeignKey("product_variants.id", ondelete="SET NULL"), nullable=True
        ),
        sa.Column("product_name", sa.String(length=255), nullable=False),
        sa.Column("product_quality", sa.String(length=20), nullable=False),
        sa.Column("product_volume", sa.Integer(), nullable=True),
        sa.Column("product_sku", sa.String(length=100), nullable=False),
        sa.Column("unit_price", sa.Float(), nullable=False),
        sa.Column("unit_mrp", sa.Float(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("total_price", sa.Float(), nullable=False),
        sa.Column("product_snapshot", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_order_items_id", "order_items", ["id"], unique=False)
    op.create_index("ix_order_items_order_id", "order_items", ["order_id"], unique=False)

    op.create_table(
        "payment_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("source", payment_source, nullable=False),
        sa.Column("event", sa.String(length=50), nullable=False),
        sa.Column("gateway_event_id", sa.String(length=100), nullable=True),
        sa.Column("razorpay_order_id", sa.String(length=100), nullable=True),
        sa.Column("razorpay_payment_id", sa.String(length=100), nullable=True),
        sa.Column("previous_status", sa.String(length=20), nullable=False),
        sa.Column("resulting_status", sa.String(length=20), nullable=False),
        sa.Column("applied", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_payment_events_id", "payment_events", ["id"], unique=False)
    op.create_index("ix_payment_events_order_id", "payment_events", ["order_id"], unique=False)
    op.create_index("ix_payment_events_gateway_event_id", "payment_events", ["gateway_event_id"], unique=True)


def downgrade() -> None:
    op.drop_table("payment_events")
    op.drop_table("order_items")
    op.drop_table("orders")
    op.drop_table("cart_items")
    op.drop_table("hero_slides")
    op.drop_table("variant_images")
    op.drop_table("product_images")
    op.drop_table("images")
    op.drop_table("product_variants")
    op.drop_table("products")

    bind = op.get_bind()
    for enum_type in (
        payment_source, payment_method, payment_status, order_status,
        image_context, product_quality, product_category,
    ):
        enum_type.drop(bind, checkfirst=True)
