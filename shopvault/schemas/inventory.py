"""
ShopVault — Inventory transaction schemas
"""
from datetime import datetime

from pydantic import BaseModel


class TransactionResponse(BaseModel):
    id: str
    product_id: str
    type: str
    quantity: int
    quantity_before: int
    quantity_after: int
    order_id: str | None
    notes: str
    performed_by: str
    created_at: datetime | None

    model_config = {"from_attributes": True}


class TransactionSummary(BaseModel):
    type: str
    count: int
    total_quantity: int
