"""
ShopVault — Optimistic locking retry decorator

Order rows carry a version_id. A write that finds the version moved on raises
StaleDataError, and the decorated call is run again from the top after an
exponential backoff with jitter.
"""
import asyncio
import functools
import logging
import random

from shopvault.core.config import Settings, get_settings
from shopvault.core.errors import StaleDataError

logger = logging.getLogger(__name__)


def backoff_delay(attempt: int, settings: Settings) -> float:
    """base * 2^attempt, capped, plus jitter. In seconds."""
    base = settings.OPT_LOCK_BASE_DELAY_MS / 1000.0
    cap = settings.OPT_LOCK_MAX_DELAY_MS / 1000.0
    return min(base * (2 ** attempt), cap) + random.uniform(0, settings.OPT_LOCK_JITTER_MS / 1000.0)


def _settings_for(args) -> Settings:
    # methods of the service objects use their own container's settings
    owner_settings = getattr(args[0], "_settings", None) if args else None
    return owner_settings if isinstance(owner_settings, Settings) else get_settings()


def with_optimistic_retry(max_retries: int | None = None):
    """
    Retry an async unit of work on StaleDataError.

    The wrapped call must re-read whatever it intends to update on every
    attempt; retrying a write built from a stale read only loses again.

    Usage:
        @with_optimistic_retry()
        async def _apply(self, order_id, target, ...):
            ...
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            settings = _settings_for(args)
            attempts = max_retries or settings.OPT_LOCK_MAX_RETRIES
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except StaleDataError:
                    if attempt >= attempts:
                        logger.error("Version conflict on %s not resolved after %d attempts", func.__qualname__, attempts)
                        raise
                delay = backoff_delay(attempt, settings)
                logger.warning("Version conflict on %s (attempt %d/%d), retrying in %.3fs",
                               func.__qualname__, attempt, attempts, delay)
                await asyncio.sleep(delay)
                attempt += 1
        return wrapper
    return decorator
