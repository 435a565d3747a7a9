"""Time source used by every "current week" / "is overdue" decision."""

from datetime import date, datetime, timedelta


class Clock:
    """System wall clock."""

    def now(self) -> datetime:
        return datetime.now()

    def today(self) -> date:
        return self.now().date()


class FixedClock(Clock):
    """Clock frozen at a given instant; advance it explicitly."""

    def __init__(self, now: datetime):
        self._now = now

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now

    def advance(self, **kwargs) -> None:
        self._now = self._now + timedelta(**kwargs)


system_clock = Clock()


def get_clock() -> Clock:
    """FastAPI dependency returning the process clock."""
    return system_clock
