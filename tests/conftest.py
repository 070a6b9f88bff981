"""
ShopVault test fixtures

Every test gets its own SQLite file, a frozen clock and an in-memory Redis
double, wired into a real ShopVault container.
"""
import itertools
from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio

from shopvault.core.clock import FixedClock
from shopvault.core.config import Settings
from shopvault.db.container import ShopVault
from shopvault.db.database import create_engine

NOW = datetime(2024, 3, 15, 9, 30, tzinfo=timezone.utc)


class FakeRedis:
    """Holds the handful of redis.asyncio calls the stock cache and health check make."""

    def __init__(self):
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def setex(self, key, ttl, value):
        self.store[key] = str(value)
        self.ttls[key] = ttl

    async def ping(self):
        return True

    async def aclose(self):
        pass


# ─── Fixtures ──────────────────────────────────────────────────────────────────
@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        REDIS_ENABLED=False,
        METRICS_ENABLED=False,
        LOG_LEVEL="WARNING",
        OPT_LOCK_BASE_DELAY_MS=1,
        OPT_LOCK_JITTER_MS=1,
    )


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'shopvault.db'}"


@pytest_asyncio.fixture
async def vault(settings, clock, fake_redis, db_url):
    engine = create_engine(settings, url=db_url)
    container = ShopVault(settings, engine, clock=clock, redis=fake_redis)
    await container.init_db()
    yield container
    await container.close()


@pytest.fixture
def make_product(vault):
    counter = itertools.count(1)

    async def _make(quantity: int = 10, price: str = "25.00", **overrides):
        n = next(counter)
        data = {
            "name": f"Test Product {n}",
            "description": "A product created by the test suite",
            "sku": f"TEST-{n:04d}",
            "price": Decimal(price),
            "quantity": quantity,
        }
        data.update(overrides)
        return await vault.products.create(data)

    return _make


@pytest.fixture
def make_user(vault):
    counter = itertools.count(1)

    async def _make(**overrides):
        n = next(counter)
        data = {"email": f"customer{n}@example.com", "first_name": "Ada", "last_name": f"Tester{n}"}
        data.update(overrides)
        return await vault.users.create(data)

    return _make


@pytest.fixture
def make_order(vault):
    async def _make(user, lines, **overrides):
        data = {
            "user_id": user.id,
            "items": [{"product_id": product.id, "quantity": quantity} for product, quantity in lines],
            "payment": {"method": "CARD"},
        }
        data.update(overrides)
        return await vault.orchestrator.create_order(data)

    return _make
