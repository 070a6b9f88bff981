"""
ShopVault — User schemas
"""
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, EmailStr, Field

from shopvault.models.user import UserRole


class UserCreate(BaseModel):
    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=120)
    last_name: str = Field(..., min_length=1, max_length=120)
    phone: str = Field("", max_length=40)
    role: UserRole = UserRole.CUSTOMER


class UserResponse(BaseModel):
    id: str
    email: str
    first_name: str
    last_name: str
    phone: str
    role: str
    total_orders: int
    total_spent: Decimal
    last_order_date: datetime | None

    model_config = {"from_attributes": True}
