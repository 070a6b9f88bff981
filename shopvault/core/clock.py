"""
ShopVault — Wall clock

Every component that stamps a time takes a ``Clock``: a zero-argument
callable returning an aware UTC datetime. Tests pass a ``FixedClock``.
"""
from datetime import datetime, timedelta, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FixedClock:
    """Clock frozen at ``moment`` until advanced explicitly."""

    def __init__(self, moment: datetime):
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        self.moment = moment

    def __call__(self) -> datetime:
        return self.moment

    def advance(self, **delta) -> datetime:
        self.moment = self.moment + timedelta(**delta)
        return self.moment
