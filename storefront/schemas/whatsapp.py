from pydantic import BaseModel, Field
from typing import Literal, Optional


class WhatsAppSendRequest(BaseModel):
    phone: str = Field(..., min_length=1, max_length=20)
    message: str = Field(..., min_length=1, max_length=4096)
    type: Optional[Literal["business", "customer"]] = None
