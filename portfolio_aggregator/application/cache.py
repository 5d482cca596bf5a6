import time
from enum import Enum
from typing import Optional, Protocol, Sequence, Tuple

from portfolio_aggregator.domain.models import CacheRecord, PortfolioEntry


class Clock(Protocol):
    def now_ms(self) -> float:
        ...


class SystemClock:
    """Monotonic wall-independent clock, in milliseconds."""

    def now_ms(self) -> float:
        return time.monotonic() * 1000


class CacheState(str, Enum):
    EMPTY = "empty"
    VALID = "valid"
    STALE = "stale"


class PortfolioCache:
    """
    In-memory, process-wide cache of the combined portfolio sequence.

    The record is only ever replaced as a whole, so readers observe either the
    previous complete sequence or the new one.
    """

    def __init__(self, ttl_ms: float, clock: Clock):
        self.ttl_ms = ttl_ms
        self.clock = clock
        self._record: Optional[CacheRecord] = None

    @property
    def record(self) -> Optional[CacheRecord]:
        return self._record

    @property
    def state(self) -> CacheState:
        record = self._record
        if record is None:
            return CacheState.EMPTY
        if self.clock.now_ms() - record.timestamp_ms < self.ttl_ms:
            return CacheState.VALID
        return CacheState.STALE

    def get(self) -> Optional[Tuple[PortfolioEntry, ...]]:
        """Returns the cached entries while they are valid, otherwise None."""
        record = self._record
        if record is None or self.clock.now_ms() - record.timestamp_ms >= self.ttl_ms:
            return None
        return record.entries

    def store(self, entries: Sequence[PortfolioEntry], timestamp_ms: float) -> CacheRecord:
        record = CacheRecord(entries=tuple(entries), timestamp_ms=timestamp_ms)
        self._record = record
        return record
