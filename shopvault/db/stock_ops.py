"""
ShopVault — Stock ledger

Each operation is a single UPDATE ... WHERE <predicate> RETURNING statement
against one product row, so the availability check and the mutation are the
same atomic step:

  adjust   quantity += delta                  WHERE quantity + delta >= reserved
  reserve  reserved += q, available -= q      WHERE available >= q
  release  reserved -= q, available += q      WHERE reserved >= q

A zero-row result means the predicate failed (or the product is missing);
nothing was written, and the current row is read only to report why.

Every successful mutation is journaled in the same transaction. Callers may
pass their own session (``db=``) to fold the mutation into a larger
transaction; otherwise the ledger opens and commits its own.
"""
import logging

from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopvault.core.clock import Clock, utc_now
from shopvault.core.errors import InsufficientStock, NotFound, ValidationFailed, translate_db_errors
from shopvault.core.redis_client import StockCache
from shopvault.db.journal import InventoryJournal, JournalEntry
from shopvault.models.inventory import TransactionType
from shopvault.models.product import MANUAL_STATUSES, Product, ProductStatus

logger = logging.getLogger(__name__)

# RETURNING rows overwrite any copy of the product already in the session
RETURNING_OPTIONS = {"synchronize_session": False, "populate_existing": True}


def derived_status(new_available):
    """SQL expression for the status a row should carry once ``available`` becomes ``new_available``."""
    return case(
        (Product.status.in_(MANUAL_STATUSES), Product.status),
        (new_available <= 0, ProductStatus.OUT_OF_STOCK.value),
        else_=ProductStatus.AVAILABLE.value,
    )


class StockLedger:
    def __init__(
        self,
        sessions: async_sessionmaker,
        journal: InventoryJournal,
        clock: Clock = utc_now,
        cache: StockCache | None = None,
    ):
        self._sessions = sessions
        self.journal = journal
        self._clock = clock
        self.cache = cache

    # ── Public operations ─────────────────────────────────────

    async def adjust(
        self, product_id: str, delta: int, *, entry: JournalEntry | None = None, db: AsyncSession | None = None
    ) -> Product:
        """Apply ``quantity += delta`` and recompute ``available`` and ``status``."""
        if not isinstance(delta, int) or isinstance(delta, bool) or delta == 0:
            raise ValidationFailed("Adjustment delta must be a non-zero integer")
        if entry is None:
            entry = JournalEntry(TransactionType.RESTOCK if delta > 0 else TransactionType.ADJUSTMENT)
        return await self._run(db, self._adjust, product_id, delta, entry)

    async def reserve(
        self, product_id: str, quantity: int, *, entry: JournalEntry | None = None, db: AsyncSession | None = None
    ) -> Product:
        """Move ``quantity`` units from available to reserved, only if that many are available."""
        self._check_quantity(quantity)
        return await self._run(db, self._reserve, product_id, quantity, entry or JournalEntry(TransactionType.SALE))

    async def release(
        self, product_id: str, quantity: int, *, entry: JournalEntry | None = None, db: AsyncSession | None = None
    ) -> Product:
        """Move ``quantity`` units from reserved back to available."""
        self._check_quantity(quantity)
        return await self._run(db, self._release, product_id, quantity, entry or JournalEntry(TransactionType.RETURN))

    async def get_levels(self, product_id: str) -> Product:
        with translate_db_errors("Product"):
            async with self._sessions() as db:
                product = await db.get(Product, product_id)
        if product is None:
            raise NotFound("Product", product_id)
        if self.cache is not None:
            await self.cache.put(product.id, product.available)
        return product

    async def publish(self, *products: Product):
        """Push committed ``available`` values to the stock cache."""
        if self.cache is None:
            return
        for product in products:
            await self.cache.put(product.id, product.available)

    # ── Statements ────────────────────────────────────────────

    async def _adjust(self, db: AsyncSession, product_id: str, delta: int, entry: JournalEntry) -> Product:
        new_quantity = Product.quantity + delta
        new_available = Product.quantity + delta - Product.reserved
        stmt = (
            update(Product)
            .where(Product.id == product_id, new_quantity >= Product.reserved)
            .values(
                quantity=new_quantity,
                available=new_available,
                status=derived_status(new_available),
                version_id=Product.version_id + 1,
                updated_at=self._clock(),
            )
            .returning(Product)
        )
        product = (await db.execute(stmt, execution_options=RETURNING_OPTIONS)).scalar_one_or_none()
        if product is None:
            current = await self._current(db, product_id)
            raise InsufficientStock(product_id, current.available, -delta, current.name)

        await self.journal.append(
            db, product_id, entry,
            quantity=delta,
            quantity_before=product.quantity - delta,
            quantity_after=product.quantity,
        )
        logger.info("Adjusted %s by %+d -> quantity=%d available=%d", product.sku, delta, product.quantity, product.available)
        return product

    async def _reserve(self, db: AsyncSession, product_id: str, quantity: int, entry: JournalEntry) -> Product:
        new_available = Product.available - quantity
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.available >= quantity)
            .values(
                reserved=Product.reserved + quantity,
                available=new_available,
                status=derived_status(new_available),
                version_id=Product.version_id + 1,
                updated_at=self._clock(),
            )
            .returning(Product)
        )
        product = (await db.execute(stmt, execution_options=RETURNING_OPTIONS)).scalar_one_or_none()
        if product is None:
            current = await self._current(db, product_id)
            raise InsufficientStock(product_id, current.available, quantity, current.name)

        await self.journal.append(
            db, product_id, entry,
            quantity=-quantity,
            quantity_before=product.available + quantity,
            quantity_after=product.available,
        )
        logger.info("Reserved %d of %s -> reserved=%d available=%d", quantity, product.sku, product.reserved, product.available)
        return product

    async def _release(self, db: AsyncSession, product_id: str, quantity: int, entry: JournalEntry) -> Product:
        new_available = Product.available + quantity
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.reserved >= quantity)
            .values(
                reserved=Product.reserved - quantity,
                available=new_available,
                status=derived_status(new_available),
                version_id=Product.version_id + 1,
                updated_at=self._clock(),
            )
            .returning(Product)
        )
        product = (await db.execute(stmt, execution_options=RETURNING_OPTIONS)).scalar_one_or_none()
        if product is None:
            current = await self._current(db, product_id)
            raise ValidationFailed(
                f"Cannot release {quantity} of '{current.name}': only {current.reserved} reserved"
            )

        await self.journal.append(
            db, product_id, entry,
            quantity=quantity,
            quantity_before=product.available - quantity,
            quantity_after=product.available,
        )
        logger.info("Released %d of %s -> reserved=%d available=%d", quantity, product.sku, product.reserved, product.available)
        return product

    # ── Helpers ───────────────────────────────────────────────

    async def _run(self, db: AsyncSession | None, op, product_id: str, amount: int, entry: JournalEntry) -> Product:
        with translate_db_errors("Product"):
            if db is not None:
                return await op(db, product_id, amount, entry)

            async with self._sessions.begin() as db:
                product = await op(db, product_id, amount, entry)
        await self.publish(product)
        return product

    async def _current(self, db: AsyncSession, product_id: str) -> Product:
        result = await db.execute(
            select(Product).where(Product.id == product_id).execution_options(populate_existing=True)
        )
        product = result.scalar_one_or_none()
        if product is None:
            raise NotFound("Product", product_id)
        return product

    @staticmethod
    def _check_quantity(quantity: int):
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationFailed("Quantity must be a positive integer")
