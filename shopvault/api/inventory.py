"""
ShopVault — Inventory transaction log routes
"""
from datetime import datetime

from fastapi import APIRouter, Depends, Query

from shopvault.api.deps import get_vault
from shopvault.core.errors import ValidationFailed
from shopvault.db.container import ShopVault
from shopvault.models.inventory import TransactionType
from shopvault.schemas.inventory import TransactionResponse, TransactionSummary

router = APIRouter(prefix="/inventory", tags=["inventory"])


@router.get("/transactions", response_model=list[TransactionResponse])
async def list_transactions(
    product_id: str | None = None,
    order_id: str | None = None,
    type: TransactionType | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = Query(50, ge=1, le=500),
    vault: ShopVault = Depends(get_vault),
):
    """Exactly one filter: product, order, type, or a start/end date range."""
    journal = vault.journal
    if product_id:
        return await journal.by_product(product_id, limit)
    if order_id:
        return await journal.by_order(order_id)
    if type is not None:
        return await journal.by_type(type, limit)
    if start is not None and end is not None:
        return await journal.by_date_range(start, end, limit)
    raise ValidationFailed("Provide product_id, order_id, type, or both start and end")


@router.get("/summary", response_model=list[TransactionSummary])
async def transaction_summary(vault: ShopVault = Depends(get_vault)):
    return await vault.journal.summary()
