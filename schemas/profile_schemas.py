from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, field_validator

from schemas.order_schemas import normalize_phone


class ProfileRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    cedula: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    address_line1: Optional[str] = None

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, value):
        return normalize_phone(value)


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    cedula: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    address_line1: Optional[str] = None


class OrderItemSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    product_name: str
    product_sku: Optional[str] = None
    product_price: float
    quantity: int
    subtotal: float


class OrderHistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tracking_code: str
    status: str
    created_at: datetime
    subtotal: float
    shipping_cost: float
    total_amount: float
    payment_proof_url: Optional[str] = None
    items: list[OrderItemSnapshot]
