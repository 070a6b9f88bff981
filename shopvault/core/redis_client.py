"""
ShopVault — Redis client and stock cache

The client is built by whoever owns the process (API lifespan, CLI) and
handed to the StockCache; nothing here is a module-level singleton.
"""
import logging

import redis.asyncio as aioredis

from shopvault.core.config import Settings

logger = logging.getLogger(__name__)

STOCK_CACHE_KEY = "stock:{product_id}"


def create_redis(settings: Settings) -> aioredis.Redis | None:
    if not settings.REDIS_ENABLED:
        return None
    return aioredis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_connect_timeout=settings.HEALTH_CHECK_TIMEOUT,
    )


async def close_redis(client: aioredis.Redis | None):
    if client is not None:
        await client.aclose()


class StockCache:
    """
    Write-through cache of each product's ``available`` counter. ShopVault
    only writes these keys; they are read by clients outside this service
    that want a cheap availability hint.

    The ledger stays authoritative; a cache failure never fails a stock
    mutation, it is logged and the stale key expires on its own TTL.
    """

    def __init__(self, client: aioredis.Redis | None, ttl_seconds: int):
        self.client = client
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def key(product_id: str) -> str:
        return STOCK_CACHE_KEY.format(product_id=product_id)

    async def put(self, product_id: str, available: int):
        if self.client is None:
            return
        try:
            await self.client.setex(self.key(product_id), self.ttl_seconds, available)
        except Exception as exc:
            logger.warning("Stock cache update failed for %s: %s", product_id, exc)

