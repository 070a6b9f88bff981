"""
ShopVault — Stock routes

Thin wrappers over the stock ledger. Every mutation is a single conditional
UPDATE; a failed predicate comes back as 409 INSUFFICIENT_STOCK (or 400 for
an over-release) with nothing written.
"""
from fastapi import APIRouter, Depends

from shopvault.api.deps import get_vault
from shopvault.db.container import ShopVault
from shopvault.db.journal import JournalEntry
from shopvault.models.inventory import TransactionType
from shopvault.models.product import Product
from shopvault.schemas.product import StockAdjustRequest, StockLevels, StockMoveRequest

router = APIRouter(prefix="/stock", tags=["stock"])


def _levels(product: Product) -> StockLevels:
    return StockLevels(
        product_id=product.id,
        quantity=product.quantity,
        reserved=product.reserved,
        available=product.available,
        status=product.status,
        version_id=product.version_id,
    )


@router.get("/{product_id}", response_model=StockLevels)
async def get_stock(product_id: str, vault: ShopVault = Depends(get_vault)):
    """Current stock levels for a product. Also warms the stock cache."""
    return _levels(await vault.ledger.get_levels(product_id))


@router.post("/{product_id}/adjust", response_model=StockLevels)
async def adjust_stock(product_id: str, payload: StockAdjustRequest, vault: ShopVault = Depends(get_vault)):
    type_ = payload.type or (TransactionType.RESTOCK if payload.delta > 0 else TransactionType.ADJUSTMENT)
    entry = JournalEntry(type_, notes=payload.notes, performed_by=payload.performed_by)
    return _levels(await vault.ledger.adjust(product_id, payload.delta, entry=entry))


@router.post("/{product_id}/reserve", response_model=StockLevels)
async def reserve_stock(product_id: str, payload: StockMoveRequest, vault: ShopVault = Depends(get_vault)):
    entry = JournalEntry(
        TransactionType.SALE, order_id=payload.order_id, notes=payload.notes, performed_by=payload.performed_by
    )
    return _levels(await vault.ledger.reserve(product_id, payload.quantity, entry=entry))


@router.post("/{product_id}/release", response_model=StockLevels)
async def release_stock(product_id: str, payload: StockMoveRequest, vault: ShopVault = Depends(get_vault)):
    entry = JournalEntry(
        TransactionType.RETURN, order_id=payload.order_id, notes=payload.notes, performed_by=payload.performed_by
    )
    return _levels(await vault.ledger.release(product_id, payload.quantity, entry=entry))
