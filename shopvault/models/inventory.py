"""
ShopVault — Inventory transaction model

[AUDIT DATA] inventory_transactions: one immutable row per ledger mutation.
Rows are inserted by the journal and never updated or deleted.
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from shopvault.db.database import Base
from shopvault.models.types import UTCDateTime


class TransactionType(str, PyEnum):
    PURCHASE = "PURCHASE"        # stock added via purchase
    SALE = "SALE"                # stock reserved for an order
    RETURN = "RETURN"            # reservation released back to stock
    ADJUSTMENT = "ADJUSTMENT"    # manual correction
    DAMAGED = "DAMAGED"          # stock removed due to damage
    RESTOCK = "RESTOCK"          # stock added via restock


class InventoryTransaction(Base):
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        Index("ix_inventory_transactions_product_date", "product_id", "created_at"),
        Index("ix_inventory_transactions_type_date", "type", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    product_id: Mapped[str] = mapped_column(String(36), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)  # signed delta
    quantity_before: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    quantity_after: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    order_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    performed_by: Mapped[str] = mapped_column(String(64), nullable=False, default="SYSTEM")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, server_default=func.now())

    def __repr__(self) -> str:
        return f"<InventoryTransaction {self.type} {self.quantity:+d} product={self.product_id}>"
