"""
ShopVault — Inventory transaction journal

Append-only audit trail of ledger mutations. Appends run inside the
ledger's transaction; the failure policy decides what a failed append
does to the stock mutation it records:

  fail-closed (default)  the append error propagates, the mutation rolls back
  best-effort            the append runs in a SAVEPOINT; on failure only the
                         savepoint rolls back and a warning is logged
"""
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopvault.core.clock import Clock, utc_now
from shopvault.core.errors import translate_db_errors
from shopvault.models.inventory import InventoryTransaction, TransactionType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JournalEntry:
    """What the caller knows about a mutation: why it happened and for whom."""

    type: TransactionType
    order_id: str | None = None
    notes: str = ""
    performed_by: str = "SYSTEM"


class InventoryJournal:
    def __init__(self, sessions: async_sessionmaker, clock: Clock = utc_now, fail_closed: bool = True):
        self._sessions = sessions
        self._clock = clock
        self.fail_closed = fail_closed

    async def append(
        self,
        db: AsyncSession,
        product_id: str,
        entry: JournalEntry,
        quantity: int,
        quantity_before: int,
        quantity_after: int,
    ) -> InventoryTransaction | None:
        row = InventoryTransaction(
            product_id=product_id,
            type=TransactionType(entry.type).value,
            quantity=quantity,
            quantity_before=quantity_before,
            quantity_after=quantity_after,
            order_id=entry.order_id,
            notes=entry.notes,
            performed_by=entry.performed_by,
            created_at=self._clock(),
        )
        if self.fail_closed:
            with translate_db_errors("Inventory transaction"):
                db.add(row)
                await db.flush()
            return row

        try:
            async with db.begin_nested():
                db.add(row)
        except SQLAlchemyError as exc:
            logger.warning(
                "Inventory transaction not recorded (%s %+d on %s): %s",
                entry.type, quantity, product_id, exc,
            )
            return None
        return row

    # ── Reporting reads ───────────────────────────────────────

    async def by_product(self, product_id: str, limit: int = 50) -> list[InventoryTransaction]:
        stmt = (
            select(InventoryTransaction)
            .where(InventoryTransaction.product_id == product_id)
            .order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id)
            .limit(limit)
        )
        return await self._fetch(stmt)

    async def by_type(self, type_: TransactionType | str, limit: int = 100) -> list[InventoryTransaction]:
        stmt = (
            select(InventoryTransaction)
            .where(InventoryTransaction.type == TransactionType(type_).value)
            .order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id)
            .limit(limit)
        )
        return await self._fetch(stmt)

    async def by_order(self, order_id: str) -> list[InventoryTransaction]:
        stmt = (
            select(InventoryTransaction)
            .where(InventoryTransaction.order_id == order_id)
            .order_by(InventoryTransaction.created_at, InventoryTransaction.id)
        )
        return await self._fetch(stmt)

    async def by_date_range(self, start: datetime, end: datetime, limit: int = 500) -> list[InventoryTransaction]:
        stmt = (
            select(InventoryTransaction)
            .where(InventoryTransaction.created_at >= start, InventoryTransaction.created_at <= end)
            .order_by(InventoryTransaction.created_at.desc(), InventoryTransaction.id)
            .limit(limit)
        )
        return await self._fetch(stmt)

    async def summary(self) -> list[dict]:
        """Count and net quantity per transaction type, busiest type first."""
        count = func.count(InventoryTransaction.id).label("count")
        stmt = (
            select(
                InventoryTransaction.type,
                count,
                func.coalesce(func.sum(InventoryTransaction.quantity), 0).label("total_quantity"),
            )
            .group_by(InventoryTransaction.type)
            .order_by(count.desc(), InventoryTransaction.type)
        )
        async with self._sessions() as db:
            rows = (await db.execute(stmt)).all()
        return [
            {"type": r.type, "count": r.count, "total_quantity": int(r.total_quantity)}
            for r in rows
        ]

    async def _fetch(self, stmt) -> list[InventoryTransaction]:
        async with self._sessions() as db:
            return list((await db.execute(stmt)).scalars().all())
