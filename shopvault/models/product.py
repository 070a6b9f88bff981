"""
ShopVault — Product model

One row is one product document: catalogue fields, the embedded inventory
counters and the denormalized sales statistics. The inventory columns are
only ever written through the stock ledger.
"""
import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum

from sqlalchemy import Boolean, CheckConstraint, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from shopvault.db.database import Base
from shopvault.models.types import UTCDateTime


class ProductStatus(str, PyEnum):
    AVAILABLE = "AVAILABLE"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    DISCONTINUED = "DISCONTINUED"
    COMING_SOON = "COMING_SOON"


# Set by operators; the ledger leaves these untouched when it recomputes status.
MANUAL_STATUSES = (ProductStatus.DISCONTINUED.value, ProductStatus.COMING_SOON.value)


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("reserved >= 0", name="ck_products_reserved_non_negative"),
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    sku: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    brand: Mapped[str | None] = mapped_column(String(120), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # ── Inventory ─────────────────────────────────────────────
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reserved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    available: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reorder_point: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    reorder_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    status: Mapped[str] = mapped_column(
        String(20), index=True, nullable=False, default=ProductStatus.AVAILABLE.value
    )
    version_id: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # ── Sales statistics ──────────────────────────────────────
    total_sold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    revenue: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    last_sold_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, server_default=func.now())

    def __repr__(self) -> str:
        return f"<Product sku={self.sku} q={self.quantity} r={self.reserved} a={self.available}>"
