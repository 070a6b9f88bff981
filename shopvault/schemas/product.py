"""
ShopVault — Product schemas
"""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from shopvault.models.inventory import TransactionType
from shopvault.models.product import ProductStatus


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10, max_length=2000)
    sku: str = Field(..., pattern=r"^[A-Z0-9-]+$", max_length=64, examples=["TSHIRT-RED-L"])
    price: Decimal = Field(..., ge=Decimal("0.01"), le=Decimal("999999.99"), decimal_places=2)
    cost: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    brand: str | None = Field(None, max_length=120)
    quantity: int = Field(0, ge=0)
    reorder_point: int | None = Field(None, ge=0)
    reorder_quantity: int | None = Field(None, ge=1)
    status: ProductStatus | None = None

    @field_validator("name", "description", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("sku", mode="before")
    @classmethod
    def _normalize_sku(cls, value):
        return value.strip().upper() if isinstance(value, str) else value


class ProductResponse(BaseModel):
    id: str
    name: str
    description: str
    sku: str
    price: Decimal
    brand: str | None
    quantity: int
    reserved: int
    available: int
    reorder_point: int
    reorder_quantity: int
    status: str
    total_sold: int
    revenue: Decimal
    last_sold_at: datetime | None
    created_at: datetime | None
    updated_at: datetime | None

    model_config = {"from_attributes": True}


class StockLevels(BaseModel):
    product_id: str
    quantity: int
    reserved: int
    available: int
    status: str
    version_id: int


class StockAdjustRequest(BaseModel):
    delta: int = Field(..., description="Signed change to quantity; positive restocks")
    type: TransactionType | None = None
    notes: str = Field("", max_length=500)
    performed_by: str = Field("SYSTEM", max_length=64)

    @field_validator("delta")
    @classmethod
    def _non_zero(cls, value):
        if value == 0:
            raise ValueError("delta must be non-zero")
        return value


class ProductStatusUpdate(BaseModel):
    status: ProductStatus


class StockMoveRequest(BaseModel):
    quantity: int = Field(..., ge=1)
    order_id: str | None = None
    notes: str = Field("", max_length=500)
    performed_by: str = Field("SYSTEM", max_length=64)
