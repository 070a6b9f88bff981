"""
ShopVault — Service container

Builds the engine, session factory, cache and every store once, wiring each
collaborator through constructors. The API keeps one on ``app.state``; each
CLI command builds its own and closes it when done.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from shopvault.core.clock import Clock, utc_now
from shopvault.core.config import Settings, get_settings
from shopvault.core.redis_client import StockCache, close_redis, create_redis
from shopvault.db.database import create_all, create_engine, create_session_factory
from shopvault.db.journal import InventoryJournal
from shopvault.db.order_numbers import OrderNumberGenerator
from shopvault.db.order_ops import OrderOrchestrator
from shopvault.db.order_status import OrderStateMachine
from shopvault.db.orders import OrderStore
from shopvault.db.products import ProductStore
from shopvault.db.stock_ops import StockLedger
from shopvault.db.users import UserStore

logger = logging.getLogger(__name__)


class ShopVault:
    def __init__(
        self,
        settings: Settings,
        engine: AsyncEngine,
        clock: Clock = utc_now,
        redis=None,
    ):
        self.settings = settings
        self.engine = engine
        self.clock = clock
        self.redis = redis
        self.sessions: async_sessionmaker = create_session_factory(engine)

        self.cache = StockCache(redis, settings.STOCK_CACHE_TTL_SECONDS) if redis is not None else None
        self.journal = InventoryJournal(self.sessions, clock, fail_closed=settings.AUDIT_FAIL_CLOSED)
        self.ledger = StockLedger(self.sessions, self.journal, clock, cache=self.cache)
        self.products = ProductStore(self.sessions, settings, clock)
        self.users = UserStore(self.sessions, clock)
        self.orders = OrderStore(self.sessions)
        self.order_numbers = OrderNumberGenerator(self.sessions, clock, prefix=settings.ORDER_NUMBER_PREFIX)
        self.orchestrator = OrderOrchestrator(
            self.sessions, self.ledger, self.products, self.users, self.orders,
            self.order_numbers, settings, clock,
        )
        self.state_machine = OrderStateMachine(
            self.sessions, self.orders, self.ledger, self.products, self.users, settings, clock,
        )

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        database_url: str | None = None,
        clock: Clock = utc_now,
        redis=None,
    ) -> "ShopVault":
        """
        Build a container from configuration. A Redis client is created from
        settings unless one is passed in or REDIS_ENABLED is off.
        """
        settings = settings or get_settings()
        engine = create_engine(settings, url=database_url)
        if redis is None:
            redis = create_redis(settings)
        return cls(settings, engine, clock=clock, redis=redis)

    async def init_db(self):
        await create_all(self.engine)
        logger.info("Database schema ready")

    async def close(self):
        await close_redis(self.redis)
        await self.engine.dispose()
