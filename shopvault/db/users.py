"""
ShopVault — User store
"""
import logging
from datetime import datetime
from decimal import Decimal

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shopvault.core.clock import Clock, utc_now
from shopvault.core.errors import NotFound, ValidationFailed, translate_db_errors
from shopvault.models.user import User
from shopvault.schemas.user import UserCreate

logger = logging.getLogger(__name__)


class UserStore:
    def __init__(self, sessions: async_sessionmaker, clock: Clock = utc_now):
        self._sessions = sessions
        self._clock = clock

    async def create(self, data: UserCreate | dict) -> User:
        if not isinstance(data, UserCreate):
            try:
                data = UserCreate.model_validate(data)
            except ValidationError as exc:
                raise ValidationFailed.from_pydantic(exc) from exc

        now = self._clock()
        user = User(
            email=data.email.lower(),
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip(),
            phone=data.phone,
            role=data.role.value,
            created_at=now,
            updated_at=now,
        )
        async with self._sessions.begin() as db:
            with translate_db_errors("User", "email"):
                db.add(user)
                await db.flush()
        logger.info("User created: %s", user.email)
        return user

    async def get(self, user_id: str, db: AsyncSession | None = None) -> User:
        if db is not None:
            user = await db.get(User, user_id)
        else:
            async with self._sessions() as db:
                user = await db.get(User, user_id)
        if user is None:
            raise NotFound("User", user_id)
        return user

    async def get_by_email(self, email: str) -> User:
        async with self._sessions() as db:
            result = await db.execute(select(User).where(User.email == email.strip().lower()))
            user = result.scalar_one_or_none()
        if user is None:
            raise NotFound("User", email)
        return user

    async def record_order(self, db: AsyncSession, user_id: str, amount: Decimal, at: datetime):
        """Increment the user's order statistics in place."""
        result = await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(
                total_orders=User.total_orders + 1,
                total_spent=User.total_spent + amount,
                last_order_date=at,
                updated_at=at,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFound("User", user_id)
