"""
ShopVault — Order schemas
"""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, EmailStr, Field

from shopvault.models.order import OrderStatus


class Address(BaseModel):
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)


class CustomerInfo(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: EmailStr
    phone: str = ""


class OrderItemRequest(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    price: Decimal | None = Field(None, ge=0, description="Overrides the catalogue price")
    discount: Decimal = Field(Decimal("0"), ge=0, description="Per-unit discount")
    variant: dict | None = None


class PaymentInfo(BaseModel):
    method: str = Field(..., min_length=1, examples=["CARD"])


class ShippingInfo(BaseModel):
    method: str | None = None
    carrier: str | None = None


class PricingInput(BaseModel):
    discount: Decimal = Field(Decimal("0"), ge=0)
    tax: Decimal | None = Field(None, ge=0, description="Defaults to the configured tax rate")
    shipping: Decimal = Field(Decimal("0"), ge=0)


class OrderCreate(BaseModel):
    user_id: str = Field(..., min_length=1)
    customer: CustomerInfo | None = Field(None, description="Defaults to the user's profile")
    items: list[OrderItemRequest] = Field(..., min_length=1)
    shipping_address: Address | None = None
    billing_address: Address | None = None
    payment: PaymentInfo
    shipping: ShippingInfo = Field(default_factory=ShippingInfo)
    pricing: PricingInput = Field(default_factory=PricingInput)
    customer_notes: str = ""
    internal_notes: str = ""


class OrderItemResponse(BaseModel):
    product_id: str
    name: str
    sku: str
    price: Decimal
    discount: Decimal
    quantity: int
    subtotal: Decimal
    variant: dict | None = None

    model_config = {"from_attributes": True}


class StatusEntryResponse(BaseModel):
    status: str
    timestamp: datetime
    note: str
    updated_by: str

    model_config = {"from_attributes": True}


class Pricing(BaseModel):
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal


class OrderResponse(BaseModel):
    id: str
    order_number: str
    user_id: str
    customer: dict
    items: list[OrderItemResponse]
    pricing: Pricing
    status: str
    status_history: list[StatusEntryResponse]
    payment_method: str
    payment_status: str
    shipping_method: str
    shipping_carrier: str | None
    tracking_number: str | None
    shipped_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime | None

    model_config = {"from_attributes": True}


class StatusUpdateRequest(BaseModel):
    status: OrderStatus
    note: str = Field("", max_length=500)
    updated_by: str = Field("ADMIN", max_length=64)


class CancelRequest(BaseModel):
    reason: str = Field("", max_length=500)
    cancelled_by: str = Field("CUSTOMER", max_length=64)


class OrderSearch(BaseModel):
    user_id: str | None = None
    status: OrderStatus | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    min_total: Decimal | None = None
    max_total: Decimal | None = None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)


class OrderPage(BaseModel):
    orders: list[OrderResponse]
    page: int
    limit: int
    total: int
    pages: int
