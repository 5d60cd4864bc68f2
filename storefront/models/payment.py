from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Enum, Boolean
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from storefront.db.base_class import Base


class PaymentSource(str, enum.Enum):
    CLIENT = "client"  # checkout success callback + signature verification
    WEBHOOK = "webhook"  # server-to-server gateway notification
    ADMIN = "admin"  # manual change from the admin panel


class PaymentEvent(Base):
    """Audit trail of payment signals applied to (or ignored for) an order"""
    __tablename__ = "payment_events"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    source = Column(Enum(PaymentSource), nullable=False)
    event = Column(String(50), nullable=False)  # payment.captured / payment.failed / ...
    gateway_event_id = Column(String(100), unique=True, nullable=True, index=True)

    razorpay_order_id = Column(String(100), nullable=True)
    razorpay_payment_id = Column(String(100), nullable=True)

    previous_status = Column(String(20), nullable=False)
    resulting_status = Column(String(20), nullable=False)
    applied = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    order = relationship("Order", back_populates="payment_events")
