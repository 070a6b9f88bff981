"""
ShopVault — Order reads and reporting
"""
import logging
import math
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopvault.core.errors import NotFound
from shopvault.models.order import Order, OrderStatus
from shopvault.schemas.order import OrderSearch

logger = logging.getLogger(__name__)

# Orders that never turned into revenue
NON_REVENUE_STATUSES = (OrderStatus.CANCELLED.value, OrderStatus.REFUNDED.value)


class OrderStore:
    def __init__(self, sessions: async_sessionmaker):
        self._sessions = sessions

    async def get(self, order_id: str, db: AsyncSession | None = None) -> Order:
        stmt = select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        if db is not None:
            order = (await db.execute(stmt)).scalar_one_or_none()
        else:
            async with self._sessions() as db:
                order = (await db.execute(stmt)).scalar_one_or_none()
        if order is None:
            raise NotFound("Order", order_id)
        return order

    async def get_by_number(self, order_number: str) -> Order:
        order_number = order_number.strip().upper()
        async with self._sessions() as db:
            result = await db.execute(select(Order).where(Order.order_number == order_number))
            order = result.scalar_one_or_none()
        if order is None:
            raise NotFound("Order", order_number)
        return order

    async def list_by_user(self, user_id: str, limit: int = 20, skip: int = 0) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.order_number.desc())
            .offset(skip)
            .limit(limit)
        )
        return await self._fetch(stmt)

    async def list_by_status(self, status: OrderStatus | str, limit: int = 50) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.status == OrderStatus(status).value)
            .order_by(Order.created_at.desc(), Order.order_number.desc())
            .limit(limit)
        )
        return await self._fetch(stmt)

    async def search(self, criteria: OrderSearch) -> dict:
        filters = []
        if criteria.user_id:
            filters.append(Order.user_id == criteria.user_id)
        if criteria.status is not None:
            filters.append(Order.status == criteria.status.value)
        if criteria.start_date is not None:
            filters.append(Order.created_at >= criteria.start_date)
        if criteria.end_date is not None:
            filters.append(Order.created_at <= criteria.end_date)
        if criteria.min_total is not None:
            filters.append(Order.total >= criteria.min_total)
        if criteria.max_total is not None:
            filters.append(Order.total <= criteria.max_total)

        stmt = (
            select(Order)
            .where(*filters)
            .order_by(Order.created_at.desc(), Order.order_number.desc())
            .offset((criteria.page - 1) * criteria.limit)
            .limit(criteria.limit)
        )
        async with self._sessions() as db:
            total = (await db.execute(select(func.count(Order.id)).where(*filters))).scalar_one()
            orders = list((await db.execute(stmt)).scalars().all())
        return {
            "orders": orders,
            "page": criteria.page,
            "limit": criteria.limit,
            "total": total,
            "pages": math.ceil(total / criteria.limit) if total else 0,
        }

    async def stats(self) -> dict:
        """Order counts per status plus revenue over orders that were not cancelled or refunded."""
        async with self._sessions() as db:
            rows = (
                await db.execute(
                    select(Order.status, func.count(Order.id), func.coalesce(func.sum(Order.total), 0))
                    .group_by(Order.status)
                )
            ).all()

        by_status = {status.value: 0 for status in OrderStatus}
        total_orders = 0
        revenue = Decimal("0")
        revenue_orders = 0
        for status, count, amount in rows:
            by_status[status] = count
            total_orders += count
            if status not in NON_REVENUE_STATUSES:
                revenue += Decimal(str(amount))
                revenue_orders += count

        average = (revenue / revenue_orders).quantize(Decimal("0.01")) if revenue_orders else Decimal("0.00")
        return {
            "total_orders": total_orders,
            "total_revenue": revenue.quantize(Decimal("0.01")),
            "average_order_value": average,
            "by_status": by_status,
        }

    async def revenue_by_date_range(self, start: datetime, end: datetime) -> list[dict]:
        """Revenue and order count per UTC day, oldest first."""
        stmt = (
            select(Order.created_at, Order.total)
            .where(
                Order.created_at >= start,
                Order.created_at <= end,
                Order.status.not_in(NON_REVENUE_STATUSES),
            )
            .order_by(Order.created_at)
        )
        async with self._sessions() as db:
            rows = (await db.execute(stmt)).all()

        days: dict[str, dict] = {}
        for created_at, total in rows:
            key = created_at.date().isoformat()
            bucket = days.setdefault(key, {"date": key, "revenue": Decimal("0"), "order_count": 0})
            bucket["revenue"] += total
            bucket["order_count"] += 1
        return list(days.values())

    async def _fetch(self, stmt) -> list[Order]:
        async with self._sessions() as db:
            return list((await db.execute(stmt)).scalars().all())
