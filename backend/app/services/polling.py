"""Bounded poll-until-match primitive.

Runs an async predicate up to ``max_attempts`` times with a fixed pause
between attempts. The first ``True`` wins. Errors listed in ``retry_on`` count
as a miss for that attempt and the loop carries on. There is no pause after
the final attempt, so the worst case spends ``(max_attempts - 1) * interval``
seconds waiting.

Callers can stop a poll early with an ``asyncio.Event`` (the result is then
``CANCELLED``, even when the event fires mid-attempt or during the last one)
or bound it with a wall-clock ``deadline`` (the result is ``NOT_CONFIRMED``
once the budget cannot fit another attempt). A match wins over a cancel that
lands while the matching attempt is in flight.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)

Predicate = Callable[[], Awaitable[bool]]
Sleep = Callable[[float], Awaitable[None]]


class PollOutcome(str, Enum):
    """Terminal state of a poll."""

    CONFIRMED = "confirmed"
    NOT_CONFIRMED = "not_confirmed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class PollResult:
    outcome: PollOutcome
    attempts: int
    errors: int = 0

    @property
    def confirmed(self) -> bool:
        return self.outcome is PollOutcome.CONFIRMED

    @property
    def cancelled(self) -> bool:
        return self.outcome is PollOutcome.CANCELLED


async def _pause(delay: float, cancel_event: Optional[asyncio.Event], sleep: Sleep) -> bool:
    """Wait ``delay`` seconds. Returns True if ``cancel_event`` fired first."""
    if cancel_event is None:
        await sleep(delay)
        return False

    sleeper = asyncio.ensure_future(sleep(delay))
    watcher = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({sleeper, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (sleeper, watcher):
            if not task.done():
                task.cancel()
    return cancel_event.is_set()


async def _attempt(
    predicate: Predicate,
    retry_on: Tuple[Type[BaseException], ...],
    label: str,
    attempt: int,
    max_attempts: int,
) -> Tuple[bool, int]:
    """Run one predicate call. Returns (matched, 1 if it errored else 0)."""
    try:
        return bool(await predicate()), 0
    except retry_on as e:
        logger.warning(f"[{label}] Error on attempt {attempt}/{max_attempts}: {e}")
        return False, 1


async def _race(
    check: Awaitable[Tuple[bool, int]],
    cancel_event: Optional[asyncio.Event],
    timeout: Optional[float],
) -> Optional[Tuple[bool, int]]:
    """Await one attempt. Returns None if ``cancel_event`` fired or ``timeout`` ran out first."""
    attempt_task = asyncio.ensure_future(check)
    waiters = {attempt_task}
    if cancel_event is not None:
        waiters.add(asyncio.ensure_future(cancel_event.wait()))
    try:
        await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in waiters:
            if not task.done():
                task.cancel()
    if attempt_task.done():
        return attempt_task.result()
    return None


async def poll_until(
    predicate: Predicate,
    max_attempts: int,
    interval: float,
    *,
    cancel_event: Optional[asyncio.Event] = None,
    deadline: Optional[float] = None,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    label: str = "poll",
    sleep: Sleep = asyncio.sleep,
) -> PollResult:
    """
    Poll ``predicate`` until it returns True or the attempts run out.

    Args:
        predicate: Async callable returning True on a match
        max_attempts: Attempt ceiling, at least 1
        interval: Seconds to wait between attempts
        cancel_event: Setting this event stops the poll with CANCELLED
        deadline: Total wall-clock budget in seconds
        retry_on: Exception types treated as a miss instead of propagating
        label: Prefix for log lines
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        PollResult with the outcome, attempts made and errored attempts
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
    if interval < 0:
        raise ValueError(f"interval must not be negative, got {interval}")

    loop = asyncio.get_running_loop()
    deadline_at = loop.time() + deadline if deadline is not None else None
    errors = 0
    attempts = 0

    for attempt in range(1, max_attempts + 1):
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"[{label}] Cancelled before attempt {attempt}")
            return PollResult(PollOutcome.CANCELLED, attempts, errors)

        attempts = attempt
        logger.debug(f"[{label}] Attempt {attempt}/{max_attempts}")
        check = _attempt(predicate, retry_on, label, attempt, max_attempts)
        if cancel_event is None and deadline_at is None:
            checked = await check
        else:
            remaining = None if deadline_at is None else max(deadline_at - loop.time(), 0.0)
            checked = await _race(check, cancel_event, remaining)

        if checked is None:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"[{label}] Cancelled during attempt {attempt}")
                return PollResult(PollOutcome.CANCELLED, attempts, errors)
            logger.warning(f"[{label}] Deadline of {deadline}s hit during attempt {attempt}")
            return PollResult(PollOutcome.NOT_CONFIRMED, attempts, errors + 1)

        matched, failed = checked
        errors += failed

        if matched:
            logger.info(f"[{label}] Matched on attempt {attempt}/{max_attempts}")
            return PollResult(PollOutcome.CONFIRMED, attempts, errors)

        # A miss seen after the caller gave up is reported as a cancel
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"[{label}] Cancelled after attempt {attempt}")
            return PollResult(PollOutcome.CANCELLED, attempts, errors)

        if attempt == max_attempts:
            break

        if deadline_at is not None and loop.time() + interval >= deadline_at:
            logger.warning(f"[{label}] Deadline of {deadline}s leaves no room for attempt {attempt + 1}")
            return PollResult(PollOutcome.NOT_CONFIRMED, attempts, errors)

        logger.debug(f"[{label}] No match yet, waiting {interval}s before retry")
        if await _pause(interval, cancel_event, sleep):
            logger.info(f"[{label}] Cancelled while waiting after attempt {attempt}")
            return PollResult(PollOutcome.CANCELLED, attempts, errors)

    logger.warning(f"[{label}] No match after {attempts} attempts")
    return PollResult(PollOutcome.NOT_CONFIRMED, attempts, errors)
