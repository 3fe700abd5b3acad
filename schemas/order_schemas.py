from datetime import datetime
from decimal import Decimal
from typing import Annotated, Optional
from pydantic import BaseModel, EmailStr, Field, PlainSerializer, field_validator
import phonenumbers

from core.config import settings

# Decimal internally, plain number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class Identity(BaseModel):
    """Caller identity resolved from a bearer token."""
    id: str
    email: Optional[str] = None


class CartItemRequest(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)


def normalize_phone(value: Optional[str]) -> Optional[str]:
    """
    Validates a phone number with Google's phonenumbers library and returns
    it in E.164. Numbers without a country code are read in the storefront's
    default region.
    """
    if value is None or not value.strip():
        return None

    try:
        parsed = phonenumbers.parse(value, settings.DEFAULT_PHONE_REGION)
    except phonenumbers.NumberParseException:
        raise ValueError('Invalid phone number')

    if not phonenumbers.is_valid_number(parsed):
        raise ValueError('Invalid phone number')

    return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)


class CreateOrderRequest(BaseModel):
    # Presence of the customer fields is checked by OrderService so the
    # validation steps run in a fixed order with distinct errors.
    customer_name: Optional[str] = None
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = None
    country: Optional[str] = None
    state: Optional[str] = None
    city: Optional[str] = None
    address: Optional[str] = None
    cedula: Optional[str] = None
    items: list[CartItemRequest] = []
    payment_proof_url: Optional[str] = None

    @field_validator('customer_name', 'country', 'state', 'city', 'address', 'cedula', 'payment_proof_url')
    @classmethod
    def strip_blank(cls, value):
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator('customer_email', mode='before')
    @classmethod
    def blank_email_is_missing(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value.strip() if isinstance(value, str) else value

    @field_validator('customer_phone')
    @classmethod
    def validate_phone(cls, value):
        return normalize_phone(value)


class CreateOrderResponse(BaseModel):
    success: bool = True
    order_id: str
    tracking_code: str
    subtotal: float
    shipping_cost: float
    total_amount: float
    message: str = "Order created successfully"


class UploadProofRequest(BaseModel):
    """
    Either ``file_name`` + ``file_data`` (base64) for a server-side upload,
    or ``payment_proof_url`` when the client already put the file in the
    blob store.
    """
    order_id: str
    file_name: Optional[str] = None
    file_data: Optional[str] = None
    payment_proof_url: Optional[str] = None

    @field_validator('order_id')
    @classmethod
    def validate_order_id(cls, value):
        if not value or not value.strip():
            raise ValueError('order_id cannot be empty')
        return value.strip()


class UploadProofResponse(BaseModel):
    success: bool = True
    payment_proof_url: str
    message: str = "Payment proof updated successfully"


class CancelOrderRequest(BaseModel):
    order_id: str

    @field_validator('order_id')
    @classmethod
    def validate_order_id(cls, value):
        if not value or not value.strip():
            raise ValueError('order_id cannot be empty')
        return value.strip()


class CancelOrderResponse(BaseModel):
    success: bool = True
    message: str = "Order cancelled successfully and stock restored"


class TrackOrderRequest(BaseModel):
    tracking_code: str

    @field_validator('tracking_code')
    @classmethod
    def validate_tracking_code(cls, value):
        if not value or not value.strip():
            raise ValueError('tracking_code is required')
        return value


class TrackedItem(BaseModel):
    name: str
    quantity: int
    price: float


class TrackOrderResponse(BaseModel):
    tracking_code: str
    status: str
    created_at: datetime
    total_amount: float
    items: list[TrackedItem]


class ShippingQuote(BaseModel):
    is_free: bool
    cost: Money
    message: str
    confirmed: bool
