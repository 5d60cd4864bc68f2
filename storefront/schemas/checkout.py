from typing import Literal, Optional
import re
import uuid

import bleach
from pydantic import BaseModel, EmailStr, Field, field_validator


INDIAN_STATES = (
    "Andhra Pradesh",
    "Arunachal Pradesh",
    "Assam",
    "Bihar",
    "Chhattisgarh",
    "Goa",
    "Gujarat",
    "Haryana",
    "Himachal Pradesh",
    "Jharkhand",
    "Karnataka",
    "Kerala",
    "Madhya Pradesh",
    "Maharashtra",
    "Manipur",
    "Meghalaya",
    "Mizoram",
    "Nagaland",
    "Odisha",
    "Punjab",
    "Rajasthan",
    "Sikkim",
    "Tamil Nadu",
    "Telangana",
    "Tripura",
    "Uttar Pradesh",
    "Uttarakhand",
    "West Bengal",
    "Andaman and Nicobar Islands",
    "Chandigarh",
    "Dadra and Nagar Haveli and Daman and Diu",
    "Delhi",
    "Jammu and Kashmir",
    "Ladakh",
    "Lakshadweep",
    "Puducherry",
)


class CheckoutForm(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    phone: str
    address: str = Field(..., min_length=10, max_length=200)
    city: str = Field(..., min_length=1, max_length=50)
    state: str
    pincode: str
    payment_method: Literal["cod", "online"]
    notes: Optional[str] = None
    expected_total: Optional[float] = Field(default=None, ge=0)
    idempotency_key: Optional[str] = None

    @field_validator("first_name", "last_name", "address", "city", mode="before")
    @classmethod
    def strip_text(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v):
        if not re.match(r"^\d{10}$", v):
            raise ValueError("Phone number must be 10 digits")
        return v

    @field_validator("pincode")
    @classmethod
    def validate_pincode(cls, v):
        if not re.match(r"^\d{6}$", v):
            raise ValueError("Pincode must be 6 digits")
        return v

    @field_validator("state")
    @classmethod
    def validate_state(cls, v):
        if v not in INDIAN_STATES:
            raise ValueError("Please select a valid state")
        return v

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        sanitized = bleach.clean(value, tags=[], attributes={}, strip=True).strip()
        if len(sanitized) > 500:
            raise ValueError("Notes too long (max 500 chars)")
        return sanitized or None

    @field_validator("idempotency_key")
    @classmethod
    def validate_idempotency_key(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        parsed = uuid.UUID(value)
        return str(parsed)

    @property
    def customer_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
