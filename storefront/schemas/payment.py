from pydantic import BaseModel, Field


class CreatePaymentOrderRequest(BaseModel):
    amount: int = Field(..., gt=0)  # paise
    receipt: str = Field(..., min_length=1, max_length=50)


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
