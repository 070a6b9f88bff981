"""
ShopVault — Order creation

Turns a cart into a persisted PENDING order. Each line is reserved in cart
order through the stock ledger, one product per transaction. If anything
after the first reservation fails (a later line, pricing, numbering or the
order insert) every line reserved so far is released again before the error
reaches the caller, so a failed creation leaves stock as it found it.
"""
import asyncio
import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from shopvault.core.clock import Clock, utc_now
from shopvault.core.config import Settings
from shopvault.core.errors import (
    DuplicateKey,
    InsufficientStock,
    ShopVaultError,
    ValidationFailed,
    translate_db_errors,
)
from shopvault.db.journal import JournalEntry
from shopvault.db.order_numbers import OrderNumberGenerator
from shopvault.db.orders import OrderStore
from shopvault.db.products import ProductStore
from shopvault.db.stock_ops import StockLedger
from shopvault.db.users import UserStore
from shopvault.models.inventory import TransactionType
from shopvault.models.order import Order, OrderItem, OrderStatus, OrderStatusEntry
from shopvault.schemas.order import OrderCreate

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def money(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


class OrderOrchestrator:
    def __init__(
        self,
        sessions,
        ledger: StockLedger,
        products: ProductStore,
        users: UserStore,
        orders: OrderStore,
        numbers: OrderNumberGenerator,
        settings: Settings,
        clock: Clock = utc_now,
    ):
        self._sessions = sessions
        self._ledger = ledger
        self._products = products
        self._users = users
        self._orders = orders
        self._numbers = numbers
        self._settings = settings
        self._clock = clock

    async def create_order(self, data: OrderCreate | dict) -> Order:
        if not isinstance(data, OrderCreate):
            try:
                data = OrderCreate.model_validate(data)
            except ValidationError as exc:
                raise ValidationFailed.from_pydantic(exc) from exc

        user = await self._users.get(data.user_id)
        if data.customer is not None:
            customer = data.customer.model_dump()
        else:
            customer = {
                "first_name": user.first_name,
                "last_name": user.last_name,
                "email": user.email,
                "phone": user.phone,
            }

        order_id = str(uuid.uuid4())
        reserved: list[tuple[str, int]] = []
        try:
            lines = []
            for position, item in enumerate(data.items):
                product = await self._products.get(item.product_id)
                if product.available < item.quantity:
                    raise InsufficientStock(product.id, product.available, item.quantity, product.name)
                price = item.price if item.price is not None else product.price
                if item.discount > price:
                    raise ValidationFailed(f"Discount on '{product.name}' exceeds its unit price")

                product = await self._ledger.reserve(
                    product.id,
                    item.quantity,
                    entry=JournalEntry(TransactionType.SALE, order_id=order_id, notes="Reserved for order"),
                )
                reserved.append((product.id, item.quantity))
                lines.append(
                    {
                        "position": position,
                        "product_id": product.id,
                        "name": product.name,
                        "sku": product.sku,
                        "price": money(price),
                        "discount": money(item.discount),
                        "quantity": item.quantity,
                        "subtotal": money((price - item.discount) * item.quantity),
                        "variant": item.variant,
                    }
                )

            pricing = self.price(lines, data)
            order = await self._persist(order_id, data, customer, lines, pricing)
        except BaseException:
            # also on cancellation; a second cancel must not cut the releases short
            await asyncio.shield(self._compensate(order_id, reserved))
            raise

        logger.info(
            "Order %s created for user %s: %d line(s), total=%s",
            order.order_number, order.user_id, len(lines), order.total,
        )
        return await self._orders.get(order.id)

    def price(self, lines: list[dict], data: OrderCreate) -> dict:
        subtotal = sum((line["subtotal"] for line in lines), Decimal("0"))
        discount = money(data.pricing.discount)
        if discount > subtotal:
            raise ValidationFailed("Order discount exceeds the subtotal")
        if data.pricing.tax is not None:
            tax = money(data.pricing.tax)
        else:
            tax = money(subtotal * self._settings.DEFAULT_TAX_RATE)
        shipping = money(data.pricing.shipping)
        return {
            "subtotal": money(subtotal),
            "discount": discount,
            "tax": tax,
            "shipping_cost": shipping,
            "total": money(subtotal - discount + tax + shipping),
        }

    # ── Persistence ───────────────────────────────────────────

    async def _persist(self, order_id: str, data: OrderCreate, customer: dict, lines: list[dict], pricing: dict) -> Order:
        attempts = self._settings.ORDER_NUMBER_MAX_ATTEMPTS
        for attempt in range(1, attempts + 1):
            order_number = await self._numbers.next()
            now = self._clock()
            order = Order(
                id=order_id,
                order_number=order_number,
                user_id=data.user_id,
                customer_first_name=customer["first_name"],
                customer_last_name=customer["last_name"],
                customer_email=customer["email"].lower(),
                customer_phone=customer.get("phone") or "",
                shipping_address=data.shipping_address.model_dump() if data.shipping_address else None,
                billing_address=data.billing_address.model_dump() if data.billing_address else None,
                status=OrderStatus.PENDING.value,
                payment_method=data.payment.method,
                shipping_method=data.shipping.method or self._settings.DEFAULT_SHIPPING_METHOD,
                shipping_carrier=data.shipping.carrier,
                customer_notes=data.customer_notes,
                internal_notes=data.internal_notes,
                created_at=now,
                updated_at=now,
                items=[OrderItem(**line) for line in lines],
                status_history=[
                    OrderStatusEntry(
                        status=OrderStatus.PENDING.value, timestamp=now, note="Order created", updated_by="SYSTEM"
                    )
                ],
                **pricing,
            )
            try:
                async with self._sessions.begin() as db:
                    with translate_db_errors("Order", "order_number"):
                        db.add(order)
                        await db.flush()
                return order
            except DuplicateKey:
                if attempt == attempts:
                    raise
                logger.warning("Order number %s already taken (attempt %d/%d)", order_number, attempt, attempts)

    async def _compensate(self, order_id: str, reserved: list[tuple[str, int]]):
        """Release every reservation this attempt made, newest first."""
        entry = JournalEntry(
            TransactionType.RETURN, order_id=order_id, notes="Order creation failed - reservation released"
        )
        for product_id, quantity in reversed(reserved):
            try:
                await self._ledger.release(product_id, quantity, entry=entry)
            except (ShopVaultError, SQLAlchemyError) as exc:
                logger.error(
                    "Could not release %d of %s after failed order %s: %s",
                    quantity, product_id, order_id, exc,
                )
        if reserved:
            logger.warning("Order %s not created, released %d reservation(s)", order_id, len(reserved))
