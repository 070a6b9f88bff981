"""
ShopVault — Order number generator

Numbers look like ORD-YYYYMMDD-NNNN. The sequence comes from a per-day
counter row bumped with a single UPDATE ... RETURNING, so two concurrent
creations never read the same value. The first order of a day creates the
row, seeded from the orders already stored for that day.
"""
import logging
from datetime import datetime, time, timedelta, timezone

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopvault.core.clock import Clock, utc_now
from shopvault.core.errors import translate_db_errors
from shopvault.models.order import Order, OrderCounter

logger = logging.getLogger(__name__)


def day_bounds(moment: datetime) -> tuple[datetime, datetime]:
    """[start, end) of the UTC calendar day containing ``moment``."""
    start = datetime.combine(moment.astimezone(timezone.utc).date(), time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def format_order_number(prefix: str, moment: datetime, seq: int) -> str:
    return f"{prefix}-{moment.astimezone(timezone.utc):%Y%m%d}-{seq:04d}"


class OrderNumberGenerator:
    def __init__(self, sessions: async_sessionmaker, clock: Clock = utc_now, prefix: str = "ORD"):
        self._sessions = sessions
        self._clock = clock
        self.prefix = prefix

    async def next(self) -> str:
        now = self._clock()
        day = f"{now.astimezone(timezone.utc):%Y%m%d}"
        with translate_db_errors("Order counter"):
            try:
                async with self._sessions.begin() as db:
                    seq = await self._increment(db, day)
                    if seq is None:
                        seq = await self._count_for_day(db, now) + 1
                        db.add(OrderCounter(day=day, seq=seq))
            except IntegrityError:
                # another creation inserted today's counter first
                logger.debug("Counter for %s created concurrently, incrementing", day)
                async with self._sessions.begin() as db:
                    seq = await self._increment(db, day)
        return format_order_number(self.prefix, now, seq)

    @staticmethod
    async def _increment(db: AsyncSession, day: str) -> int | None:
        stmt = (
            update(OrderCounter)
            .where(OrderCounter.day == day)
            .values(seq=OrderCounter.seq + 1)
            .returning(OrderCounter.seq)
        )
        return (await db.execute(stmt)).scalar_one_or_none()

    @staticmethod
    async def _count_for_day(db: AsyncSession, moment: datetime) -> int:
        start, end = day_bounds(moment)
        stmt = select(func.count(Order.id)).where(Order.created_at >= start, Order.created_at < end)
        return (await db.execute(stmt)).scalar_one()
