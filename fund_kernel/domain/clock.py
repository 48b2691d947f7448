"""
Injectable time source.

Services never call ``datetime.now()`` or ``date.today()``.  Business dates
(allocation_date, transaction_date, paid_date) and stamps such as
``disbursed_at`` come from the clock handed to the service, so a test can
pin "today".
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timezone

DEFAULT_FIXED_TIME = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware current instant."""

    def today(self) -> date:
        return self.now().date()


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """Always reports the same instant."""

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or DEFAULT_FIXED_TIME

    def now(self) -> datetime:
        return self._fixed_time
