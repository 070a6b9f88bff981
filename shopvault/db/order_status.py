"""
ShopVault — Order status state machine

  PENDING    -> CONFIRMED | CANCELLED
  CONFIRMED  -> PROCESSING | CANCELLED
  PROCESSING -> SHIPPED | CANCELLED
  SHIPPED    -> DELIVERED | CANCELLED
  DELIVERED  -> REFUNDED
  CANCELLED, REFUNDED are terminal

A transition is one transaction: the status write is guarded by the order's
version_id, and its side effects (stock release on cancel, sales and
customer statistics on delivery, timestamps, the history entry) commit or
roll back with it. A concurrent writer bumps version_id first, the guarded
UPDATE matches no row and the whole attempt is retried on a fresh read.
"""
import logging

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopvault.core.clock import Clock, utc_now
from shopvault.core.config import Settings
from shopvault.core.errors import InvalidTransition, StaleDataError, translate_db_errors
from shopvault.core.optimistic_lock import with_optimistic_retry
from shopvault.db.journal import JournalEntry
from shopvault.db.orders import OrderStore
from shopvault.db.products import ProductStore
from shopvault.db.stock_ops import StockLedger
from shopvault.db.users import UserStore
from shopvault.models.inventory import TransactionType
from shopvault.models.order import Order, OrderStatus, OrderStatusEntry
from shopvault.models.product import Product

logger = logging.getLogger(__name__)

TRANSITIONS: dict[OrderStatus, tuple[OrderStatus, ...]] = {
    OrderStatus.PENDING: (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    OrderStatus.CONFIRMED: (OrderStatus.PROCESSING, OrderStatus.CANCELLED),
    OrderStatus.PROCESSING: (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
    OrderStatus.SHIPPED: (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
    OrderStatus.DELIVERED: (OrderStatus.REFUNDED,),
    OrderStatus.CANCELLED: (),
    OrderStatus.REFUNDED: (),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


def valid_next_statuses(current: OrderStatus | str) -> list[OrderStatus]:
    return list(TRANSITIONS[OrderStatus(current)])


def can_transition(current: OrderStatus | str, requested: OrderStatus | str) -> bool:
    return OrderStatus(requested) in TRANSITIONS[OrderStatus(current)]


class OrderStateMachine:
    def __init__(
        self,
        sessions: async_sessionmaker,
        orders: OrderStore,
        ledger: StockLedger,
        products: ProductStore,
        users: UserStore,
        settings: Settings,
        clock: Clock = utc_now,
    ):
        self._sessions = sessions
        self._orders = orders
        self._ledger = ledger
        self._products = products
        self._users = users
        self._settings = settings
        self._clock = clock

    async def transition(
        self, order_id: str, new_status: OrderStatus | str, note: str = "", updated_by: str = "ADMIN"
    ) -> Order:
        return await self._apply(order_id, OrderStatus(new_status), note, updated_by)

    async def cancel_order(self, order_id: str, reason: str = "", cancelled_by: str = "CUSTOMER") -> Order:
        """
        Customer-facing cancellation. Stricter than the raw table: DELIVERED
        orders can never be cancelled this way, SHIPPED ones only when
        ALLOW_CANCEL_AFTER_SHIPMENT is set.
        """
        blocked = {OrderStatus.DELIVERED}
        if not self._settings.ALLOW_CANCEL_AFTER_SHIPMENT:
            blocked.add(OrderStatus.SHIPPED)
        return await self._apply(
            order_id,
            OrderStatus.CANCELLED,
            reason or "Order cancelled",
            cancelled_by,
            blocked_from=frozenset(blocked),
        )

    @with_optimistic_retry()
    async def _apply(
        self,
        order_id: str,
        target: OrderStatus,
        note: str,
        updated_by: str,
        blocked_from: frozenset = frozenset(),
    ) -> Order:
        touched: list[Product] = []
        with translate_db_errors("Order"):
            async with self._sessions.begin() as db:
                order = await self._orders.get(order_id, db=db)
                current = OrderStatus(order.status)
                if current in blocked_from:
                    raise InvalidTransition(
                        current.value, target.value,
                        f"Cannot cancel an order that is {current.value}",
                    )
                if not can_transition(current, target):
                    raise InvalidTransition(current.value, target.value)

                now = self._clock()
                values = {"status": target.value, "version_id": order.version_id + 1, "updated_at": now}
                if target is OrderStatus.SHIPPED:
                    values["shipped_at"] = now
                elif target is OrderStatus.DELIVERED:
                    values["completed_at"] = now
                elif target is OrderStatus.CANCELLED:
                    values["cancelled_at"] = now

                result = await db.execute(
                    update(Order)
                    .where(Order.id == order_id, Order.version_id == order.version_id)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 0:
                    raise StaleDataError(f"Order {order.order_number} changed while moving to {target.value}")

                db.add(
                    OrderStatusEntry(
                        order_id=order_id, status=target.value, timestamp=now, note=note, updated_by=updated_by
                    )
                )

                if target is OrderStatus.CANCELLED:
                    touched = await self._release_items(db, order, updated_by)
                elif target is OrderStatus.DELIVERED:
                    await self._record_delivery(db, order, now)

        await self._ledger.publish(*touched)
        logger.info("Order %s: %s -> %s by %s", order.order_number, current.value, target.value, updated_by)
        return await self._orders.get(order_id)

    async def _release_items(self, db: AsyncSession, order: Order, performed_by: str) -> list[Product]:
        entry = JournalEntry(
            TransactionType.RETURN,
            order_id=order.id,
            notes="Order cancelled - inventory released",
            performed_by=performed_by,
        )
        return [
            await self._ledger.release(item.product_id, item.quantity, entry=entry, db=db)
            for item in order.items
        ]

    async def _record_delivery(self, db: AsyncSession, order: Order, now):
        for item in order.items:
            await self._products.record_sale(db, item.product_id, item.quantity, item.subtotal, now)
        await self._users.record_order(db, order.user_id, order.total, now)
