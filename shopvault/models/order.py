"""
ShopVault — Order models

orders               the order document (customer snapshot, pricing, status)
order_items          frozen line-item snapshots, written once at creation
order_status_history append-only status trail
order_counters       one row per day holding the last issued order sequence
"""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import JSON, ForeignKey, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shopvault.db.database import Base
from shopvault.models.types import UTCDateTime


class OrderStatus(str, PyEnum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_number: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)

    # ── Customer snapshot ─────────────────────────────────────
    customer_first_name: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    customer_last_name: Mapped[str] = mapped_column(String(120), nullable=False, default="")
    customer_email: Mapped[str] = mapped_column(String(255), index=True, nullable=False, default="")
    customer_phone: Mapped[str] = mapped_column(String(40), nullable=False, default="")

    shipping_address: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    billing_address: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # ── Pricing ───────────────────────────────────────────────
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    tax: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), index=True, nullable=False, default=OrderStatus.PENDING.value
    )

    # ── Payment / shipping ────────────────────────────────────
    payment_method: Mapped[str] = mapped_column(String(40), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING")
    payment_transaction_id: Mapped[str | None] = mapped_column(String(120), nullable=True)
    shipping_method: Mapped[str] = mapped_column(String(40), nullable=False, default="STANDARD")
    shipping_carrier: Mapped[str | None] = mapped_column(String(80), nullable=True)
    tracking_number: Mapped[str | None] = mapped_column(String(120), nullable=True)
    shipped_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    estimated_delivery: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    customer_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    internal_notes: Mapped[str] = mapped_column(Text, nullable=False, default="")

    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)  # optimistic lock
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, index=True, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, server_default=func.now())

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", lazy="selectin", order_by="OrderItem.position",
        cascade="all, delete-orphan",
    )
    status_history: Mapped[list["OrderStatusEntry"]] = relationship(
        back_populates="order", lazy="selectin", order_by="OrderStatusEntry.id",
        cascade="all, delete-orphan",
    )

    @property
    def customer(self) -> dict:
        return {
            "first_name": self.customer_first_name,
            "last_name": self.customer_last_name,
            "email": self.customer_email,
            "phone": self.customer_phone,
        }

    @property
    def pricing(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "tax": self.tax,
            "shipping": self.shipping_cost,
            "total": self.total,
        }

    def __repr__(self) -> str:
        return f"<Order {self.order_number} status={self.status} total={self.total}>"


class OrderItem(Base):
    __tablename__ = "order_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), index=True, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    product_id: Mapped[str] = mapped_column(String(36), index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    sku: Mapped[str] = mapped_column(String(64), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    variant: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    order: Mapped[Order] = relationship(back_populates="items")


class OrderStatusEntry(Base):
    __tablename__ = "order_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id"), index=True, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    note: Mapped[str] = mapped_column(Text, nullable=False, default="")
    updated_by: Mapped[str] = mapped_column(String(64), nullable=False, default="SYSTEM")

    order: Mapped[Order] = relationship(back_populates="status_history")


class OrderCounter(Base):
    __tablename__ = "order_counters"

    day: Mapped[str] = mapped_column(String(8), primary_key=True)  # YYYYMMDD
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
