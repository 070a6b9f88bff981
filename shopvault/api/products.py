"""
ShopVault — Product routes
"""
from fastapi import APIRouter, Depends, Query, status

from shopvault.api.deps import get_vault
from shopvault.db.container import ShopVault
from shopvault.schemas.product import ProductCreate, ProductResponse, ProductStatusUpdate

router = APIRouter(prefix="/products", tags=["products"])


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(payload: ProductCreate, vault: ShopVault = Depends(get_vault)):
    product = await vault.products.create(payload)
    await vault.ledger.publish(product)
    return product


@router.get("/low-stock", response_model=list[ProductResponse])
async def low_stock(threshold: int | None = Query(None, ge=0), vault: ShopVault = Depends(get_vault)):
    """Products still on sale whose available count is at or below the threshold."""
    return await vault.products.list_low_stock(threshold)


@router.get("/out-of-stock", response_model=list[ProductResponse])
async def out_of_stock(vault: ShopVault = Depends(get_vault)):
    return await vault.products.list_out_of_stock()


@router.get("/top-sellers", response_model=list[ProductResponse])
async def top_sellers(limit: int = Query(10, ge=1, le=100), vault: ShopVault = Depends(get_vault)):
    return await vault.products.top_sellers(limit)


@router.get("/sku/{sku}", response_model=ProductResponse)
async def get_product_by_sku(sku: str, vault: ShopVault = Depends(get_vault)):
    return await vault.products.get_by_sku(sku)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str, vault: ShopVault = Depends(get_vault)):
    return await vault.products.get(product_id)


@router.patch("/{product_id}/status", response_model=ProductResponse)
async def set_product_status(
    product_id: str, payload: ProductStatusUpdate, vault: ShopVault = Depends(get_vault)
):
    return await vault.products.set_status(product_id, payload.status)
