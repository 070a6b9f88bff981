"""
ShopVault — Product store

Catalogue CRUD around the product row. Inventory counters are set once
here at creation; afterwards only the stock ledger writes them.
"""
import logging
from datetime import datetime
from decimal import Decimal

from pydantic import ValidationError
from sqlalchemy import case, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopvault.core.clock import Clock, utc_now
from shopvault.core.config import Settings
from shopvault.core.errors import NotFound, ValidationFailed, translate_db_errors
from shopvault.db.stock_ops import RETURNING_OPTIONS
from shopvault.models.product import MANUAL_STATUSES, Product, ProductStatus
from shopvault.schemas.product import ProductCreate

logger = logging.getLogger(__name__)


class ProductStore:
    def __init__(self, sessions: async_sessionmaker, settings: Settings, clock: Clock = utc_now):
        self._sessions = sessions
        self._settings = settings
        self._clock = clock

    async def create(self, data: ProductCreate | dict) -> Product:
        if not isinstance(data, ProductCreate):
            try:
                data = ProductCreate.model_validate(data)
            except ValidationError as exc:
                raise ValidationFailed.from_pydantic(exc) from exc

        now = self._clock()
        if data.status is not None and data.status.value in MANUAL_STATUSES:
            status = data.status.value
        elif data.quantity <= 0:
            status = ProductStatus.OUT_OF_STOCK.value
        else:
            status = ProductStatus.AVAILABLE.value

        product = Product(
            name=data.name,
            description=data.description,
            sku=data.sku,
            price=data.price,
            cost=data.cost,
            brand=data.brand,
            quantity=data.quantity,
            reserved=0,
            available=data.quantity,
            reorder_point=(
                data.reorder_point if data.reorder_point is not None else self._settings.DEFAULT_REORDER_POINT
            ),
            reorder_quantity=(
                data.reorder_quantity
                if data.reorder_quantity is not None
                else self._settings.DEFAULT_REORDER_QUANTITY
            ),
            status=status,
            created_at=now,
            updated_at=now,
        )
        async with self._sessions.begin() as db:
            with translate_db_errors("Product", "sku"):
                db.add(product)
                await db.flush()
        logger.info("Product created: %s (%s)", product.sku, product.id)
        return product

    async def get(self, product_id: str) -> Product:
        async with self._sessions() as db:
            product = await db.get(Product, product_id)
        if product is None:
            raise NotFound("Product", product_id)
        return product

    async def get_by_sku(self, sku: str) -> Product:
        async with self._sessions() as db:
            result = await db.execute(select(Product).where(Product.sku == sku.strip().upper()))
            product = result.scalar_one_or_none()
        if product is None:
            raise NotFound("Product", sku)
        return product

    async def list_low_stock(self, threshold: int | None = None) -> list[Product]:
        threshold = self._settings.LOW_STOCK_THRESHOLD if threshold is None else threshold
        stmt = (
            select(Product)
            .where(
                Product.available <= threshold,
                Product.available > 0,
                Product.status == ProductStatus.AVAILABLE.value,
                Product.is_active.is_(True),
            )
            .order_by(Product.available, Product.sku)
        )
        async with self._sessions() as db:
            return list((await db.execute(stmt)).scalars().all())

    async def list_out_of_stock(self) -> list[Product]:
        stmt = (
            select(Product)
            .where(
                Product.available <= 0,
                Product.status != ProductStatus.DISCONTINUED.value,
                Product.is_active.is_(True),
            )
            .order_by(Product.sku)
        )
        async with self._sessions() as db:
            return list((await db.execute(stmt)).scalars().all())

    async def top_sellers(self, limit: int = 10) -> list[Product]:
        stmt = (
            select(Product)
            .where(Product.total_sold > 0, Product.is_active.is_(True))
            .order_by(Product.total_sold.desc(), Product.sku)
            .limit(limit)
        )
        async with self._sessions() as db:
            return list((await db.execute(stmt)).scalars().all())

    async def set_status(self, product_id: str, status: ProductStatus | str) -> Product:
        """
        DISCONTINUED and COMING_SOON are stored as given. Asking for
        AVAILABLE or OUT_OF_STOCK hands the status back to the ledger, which
        derives it from ``available``.
        """
        status = ProductStatus(status)
        if status.value in MANUAL_STATUSES:
            value = status.value
        else:
            value = case(
                (Product.available <= 0, ProductStatus.OUT_OF_STOCK.value),
                else_=ProductStatus.AVAILABLE.value,
            )
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(status=value, updated_at=self._clock())
            .returning(Product)
        )
        async with self._sessions.begin() as db:
            product = (await db.execute(stmt, execution_options=RETURNING_OPTIONS)).scalar_one_or_none()
        if product is None:
            raise NotFound("Product", product_id)
        return product

    async def record_sale(self, db: AsyncSession, product_id: str, quantity: int, revenue: Decimal, at: datetime):
        """Add a delivered line to the product's sales counters."""
        result = await db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(
                total_sold=Product.total_sold + quantity,
                revenue=Product.revenue + revenue,
                last_sold_at=at,
                updated_at=at,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFound("Product", product_id)
