from pydantic import BaseModel, Field, model_validator
from typing import Optional

from storefront.models.order import OrderStatus, PaymentStatus


class OrderStatusUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    admin_notes: Optional[str] = Field(None, max_length=1000)

    @model_validator(mode="after")
    def validate_has_change(self):
        if self.status is None and self.payment_status is None and self.admin_notes is None:
            raise ValueError("Nothing to update")
        return self
