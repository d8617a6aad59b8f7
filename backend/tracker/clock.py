from datetime import date, datetime, timedelta


class SystemClock:
    def today(self) -> date:
        return date.today()

    def now(self) -> datetime:
        return datetime.now()


class FixedClock:
    """Clock pinned to a given day, for tests and backfills."""

    def __init__(self, today: date, now: datetime = None):
        self._today = today
        self._now = now or datetime.combine(today, datetime.min.time())

    def today(self) -> date:
        return self._today

    def now(self) -> datetime:
        return self._now

    def advance(self, days: int = 1, seconds: int = 0):
        self._today = self._today + timedelta(days=days)
        self._now = self._now + timedelta(days=days, seconds=seconds)

    def tick(self, seconds: int = 1):
        # same day, later timestamp
        self._now = self._now + timedelta(seconds=seconds)
