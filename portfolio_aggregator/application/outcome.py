import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Awaitable, Generic, Optional, TypeVar

from portfolio_aggregator.domain.exceptions import ProviderException, ResourceNotFoundException

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class FetchOutcome(Generic[T]):
    """
    Result of a best-effort provider call: either a value, or the error that
    made the caller fall back to a default.
    """
    value: Optional[T] = None
    error: Optional[Exception] = None

    @classmethod
    def ok(cls, value: T) -> "FetchOutcome[T]":
        return cls(value=value)

    @classmethod
    def degrade(cls, error: Exception) -> "FetchOutcome[T]":
        return cls(error=error)

    @property
    def degraded(self) -> bool:
        return self.error is not None

    def unwrap_or(self, default: T) -> T:
        return default if self.degraded else self.value


async def guarded_fetch(
    awaitable: Awaitable[T],
    timeout: float,
    label: str,
    slots: Optional[asyncio.Semaphore] = None,
) -> FetchOutcome[T]:
    """
    Awaits a provider call under a timeout.

    When `slots` is given the timeout only starts once a slot is free.
    Every failure becomes a degraded outcome. Cancellation still propagates.
    """
    async with slots if slots is not None else contextlib.nullcontext():
        return await _timed_fetch(awaitable, timeout, label)


async def _timed_fetch(awaitable: Awaitable[T], timeout: float, label: str) -> FetchOutcome[T]:
    try:
        return FetchOutcome.ok(await asyncio.wait_for(awaitable, timeout=timeout))
    except ResourceNotFoundException as e:
        logger.debug(f"{label}: not found.")
        return FetchOutcome.degrade(e)
    except asyncio.TimeoutError as e:
        logger.warning(f"{label}: timed out after {timeout}s.")
        return FetchOutcome.degrade(e)
    except ProviderException as e:
        logger.warning(f"{label}: {e}")
        return FetchOutcome.degrade(e)
    except Exception as e:
        logger.error(f"{label}: unexpected provider error {e!r}", exc_info=True)
        return FetchOutcome.degrade(e)
