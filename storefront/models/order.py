from sqlalchemy import Column, Integer, String, Float, ForeignKey, DateTime, Enum, Text, Boolean, JSON
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from storefront.db.base_class import Base


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    COD = "cod"  # Cash on Delivery
    ONLINE = "online"  # Razorpay


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(50), unique=True, nullable=False, index=True)
    cart_session_id = Column(String(64), nullable=True, index=True)
    idempotency_key = Column(String(64), unique=True, nullable=True)

    # Customer (no accounts: contact details live on the order)
    customer_name = Column(String(110), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(15), nullable=False, index=True)
    customer_address = Column(String(255), nullable=False)
    customer_city = Column(String(50), nullable=False)
    customer_state = Column(String(50), nullable=False)
    customer_pincode = Column(String(6), nullable=False)

    # Pricing
    subtotal = Column(Float, nullable=False)
    tax_amount = Column(Float, default=0.0, nullable=False)
    shipping_amount = Column(Float, default=0.0, nullable=False)
    discount_amount = Column(Float, default=0.0, nullable=False)
    total_amount = Column(Float, nullable=False)

    # Payment
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    payment_status = Column(Enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False, index=True)
    razorpay_order_id = Column(String(100), nullable=True, index=True)
    razorpay_payment_id = Column(String(100), nullable=True, index=True)
    payment_confirmed_by = Column(String(20), nullable=True)  # client / webhook / admin
    paid_at = Column(DateTime, nullable=True)

    # Status
    status = Column(Enum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True)
    stock_deducted = Column(Boolean, default=False, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    # Notes
    notes = Column(Text, nullable=True)
    admin_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    payment_events = relationship(
        "PaymentEvent",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="PaymentEvent.created_at",
    )

    @property
    def payment_stage(self) -> str:
        """created -> awaiting_gateway_confirmation -> paid | failed"""
        if self.payment_status == PaymentStatus.PENDING:
            if self.payment_method == PaymentMethod.ONLINE and self.razorpay_order_id:
                return "awaiting_gateway_confirmation"
            return "created"
        return self.payment_status.value


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    variant_id = Column(Integer, ForeignKey("product_variants.id", ondelete="SET NULL"), nullable=True)

    # Snapshot at order time
    product_name = Column(String(255), nullable=False)
    product_quality = Column(String(20), nullable=False)
    product_volume = Column(Integer, nullable=True)
    product_sku = Column(String(100), nullable=False)

    unit_price = Column(Float, nullable=False)
    unit_mrp = Column(Float, nullable=False)
    quantity = Column(Integer, nullable=False)
    total_price = Column(Float, nullable=False)

    product_snapshot = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    order = relationship("Order", back_populates="items")
    variant = relationship("ProductVariant")
