"""
Bounded Polling

Fixed-interval polling against eventually consistent sources. The loop is
independent of any particular network call: callers pass the fetch
coroutine, the predicate that recognises a usable value and the policy.
The sleep function is injectable so tests can run on a fake clock.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Coroutine, Generic, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[Any]]


def _is_present(value: Any) -> bool:
    return value is not None


@dataclass(frozen=True)
class PollPolicy:
    """How many attempts to make and how long to wait between them."""

    max_attempts: int = 20
    interval_seconds: float = 3.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.interval_seconds < 0:
            raise ValueError("interval_seconds must be non-negative")


@dataclass(frozen=True)
class PollResult(Generic[T]):
    """Outcome of a polling run."""

    value: Optional[T]
    attempts: int
    found: bool

    @property
    def exhausted(self) -> bool:
        return not self.found


def _check_cancelled(cancel_event: Optional[asyncio.Event]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise asyncio.CancelledError("polling cancelled")


async def poll_until(
    fetch: Callable[[], Coroutine[Any, Any, T]],
    policy: PollPolicy,
    predicate: Callable[[T], bool] = _is_present,
    sleep: SleepFn = asyncio.sleep,
    cancel_event: Optional[asyncio.Event] = None,
    label: str = "poll",
) -> PollResult[T]:
    """
    Call ``fetch`` until ``predicate`` accepts its value or the budget runs out.

    Waits ``policy.interval_seconds`` between attempts (never after the last
    one). Errors raised by ``fetch`` propagate unchanged. When
    ``cancel_event`` is set the loop raises CancelledError before the next
    request or wait.
    """
    for attempt in range(1, policy.max_attempts + 1):
        _check_cancelled(cancel_event)
        value = await fetch()
        if predicate(value):
            logger.debug(f"{label}: ready after {attempt} attempt(s)")
            return PollResult(value=value, attempts=attempt, found=True)

        if attempt < policy.max_attempts:
            logger.debug(
                f"{label}: attempt {attempt}/{policy.max_attempts} not ready, "
                f"retrying in {policy.interval_seconds:.1f}s"
            )
            _check_cancelled(cancel_event)
            await sleep(policy.interval_seconds)

    logger.warning(f"{label}: not ready after {policy.max_attempts} attempts")
    return PollResult(value=None, attempts=policy.max_attempts, found=False)
