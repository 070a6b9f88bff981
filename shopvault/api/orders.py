"""
ShopVault — Order routes

Creation reserves stock line by line and releases it again if the order
cannot be completed. Status changes go through the order state machine;
illegal edges come back as 422 INVALID_TRANSITION.
"""
from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status

from shopvault.api.deps import get_vault
from shopvault.db.container import ShopVault
from shopvault.db.order_status import valid_next_statuses
from shopvault.models.order import OrderStatus
from shopvault.schemas.order import (
    CancelRequest,
    OrderCreate,
    OrderPage,
    OrderResponse,
    OrderSearch,
    StatusUpdateRequest,
)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(payload: OrderCreate, vault: ShopVault = Depends(get_vault)):
    return await vault.orchestrator.create_order(payload)


@router.get("", response_model=OrderPage)
async def search_orders(
    user_id: str | None = None,
    order_status: OrderStatus | None = Query(None, alias="status"),
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    min_total: Decimal | None = None,
    max_total: Decimal | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    vault: ShopVault = Depends(get_vault),
):
    criteria = OrderSearch(
        user_id=user_id,
        status=order_status,
        start_date=start_date,
        end_date=end_date,
        min_total=min_total,
        max_total=max_total,
        page=page,
        limit=limit,
    )
    return await vault.orders.search(criteria)


@router.get("/stats")
async def order_stats(vault: ShopVault = Depends(get_vault)):
    return await vault.orders.stats()


@router.get("/revenue")
async def revenue_by_date(start: datetime, end: datetime, vault: ShopVault = Depends(get_vault)):
    return await vault.orders.revenue_by_date_range(start, end)


@router.get("/number/{order_number}", response_model=OrderResponse)
async def get_order_by_number(order_number: str, vault: ShopVault = Depends(get_vault)):
    return await vault.orders.get_by_number(order_number)


@router.get("/user/{user_id}", response_model=list[OrderResponse])
async def list_user_orders(
    user_id: str,
    limit: int = Query(20, ge=1, le=100),
    skip: int = Query(0, ge=0),
    vault: ShopVault = Depends(get_vault),
):
    return await vault.orders.list_by_user(user_id, limit=limit, skip=skip)


@router.get("/status/{order_status}", response_model=list[OrderResponse])
async def list_orders_by_status(
    order_status: OrderStatus,
    limit: int = Query(50, ge=1, le=200),
    vault: ShopVault = Depends(get_vault),
):
    return await vault.orders.list_by_status(order_status, limit=limit)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, vault: ShopVault = Depends(get_vault)):
    return await vault.orders.get(order_id)


@router.get("/{order_id}/next-statuses", response_model=list[OrderStatus])
async def next_statuses(order_id: str, vault: ShopVault = Depends(get_vault)):
    order = await vault.orders.get(order_id)
    return valid_next_statuses(order.status)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str, payload: StatusUpdateRequest, vault: ShopVault = Depends(get_vault)
):
    return await vault.state_machine.transition(
        order_id, payload.status, note=payload.note, updated_by=payload.updated_by
    )


@router.post("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(order_id: str, payload: CancelRequest, vault: ShopVault = Depends(get_vault)):
    return await vault.state_machine.cancel_order(
        order_id, reason=payload.reason, cancelled_by=payload.cancelled_by
    )
