"""
Drift-Poll Waiter - Poll a remote object until a target state is observed.

A poll that raises NotFound is not a failure: it is turned into the
NOT_FOUND signal so predicates can wait for an object to disappear. Any
other poll failure aborts the wait immediately.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from errors import Cancelled, NotFound, PollError, Timeout

logger = logging.getLogger(__name__)


class _NotFoundSignal:
    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = _NotFoundSignal()


def is_not_found(result: Any) -> bool:
    """Predicate matching the NOT_FOUND signal."""
    return result is NOT_FOUND


@dataclass
class WaitResult:
    """Outcome of a successful wait."""

    value: Any
    polls: int
    elapsed: float


async def _sleep(delay: float, cancel_event: Optional[asyncio.Event]) -> bool:
    """Sleep for delay seconds; return True if cancel_event fired first."""
    if cancel_event is None:
        await asyncio.sleep(delay)
        return False
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
        return True
    except asyncio.TimeoutError:
        return False


async def wait_for(
    poll_fn: Callable[[], Awaitable[Any]],
    predicate: Callable[[Any], bool],
    interval: float,
    timeout: float,
    cancel_event: Optional[asyncio.Event] = None,
    description: str = "target state",
) -> WaitResult:
    """
    Poll until predicate holds for a poll result.

    Args:
        poll_fn: Coroutine function reading the remote object
        predicate: Called with each poll result (or NOT_FOUND)
        interval: Seconds between polls
        timeout: Seconds before giving up
        cancel_event: Optional event; once set the wait stops
        description: What is being waited for, used in messages

    Returns:
        WaitResult with the matching poll result.

    Raises:
        Timeout: If timeout elapses before predicate holds, including
            while a poll is still running.
        PollError: If poll_fn fails with anything other than NotFound.
        Cancelled: If cancel_event is set.
    """
    loop = asyncio.get_running_loop()
    start_time = loop.time()
    polls = 0

    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise Cancelled(f"wait for {description} cancelled after {polls} polls")

        polls += 1
        # Once the deadline has passed a poll is still bounded by the interval.
        remaining = timeout - (loop.time() - start_time)
        try:
            result = await asyncio.wait_for(
                poll_fn(), timeout=remaining if remaining > 0 else interval
            )
        except NotFound:
            result = NOT_FOUND
        except asyncio.TimeoutError:
            raise Timeout(
                f"{description} not reached after {timeout}s ({polls} polls)"
            ) from None
        except Exception as e:
            raise PollError(f"poll {polls} failed: {e}") from e

        elapsed = loop.time() - start_time
        if predicate(result):
            logger.debug(f"Reached {description} after {polls} polls ({elapsed:.1f}s)")
            return WaitResult(value=result, polls=polls, elapsed=elapsed)

        remaining = timeout - elapsed
        if remaining <= 0:
            raise Timeout(
                f"{description} not reached after {timeout}s ({polls} polls)"
            )

        logger.debug(
            f"Waiting for {description}: poll {polls}, next in {interval}s"
        )
        if await _sleep(min(interval, remaining), cancel_event):
            raise Cancelled(f"wait for {description} cancelled after {polls} polls")
