"""Bounded waiting, single retry and best-effort helpers.

Every loop here has an explicit deadline and reports whether it finished in
time instead of spinning forever.
"""
from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Tuple, Type, TypeVar, Union

import anyio

logger = logging.getLogger(__name__)

T = TypeVar("T")

Fetch = Callable[[], Union[T, Awaitable[T]]]


@dataclass
class PollResult(Generic[T]):
    value: Optional[T]
    succeeded: bool
    attempts: int


async def poll_until(
    fetch: Fetch,
    accept: Callable[[T], bool],
    *,
    timeout: float,
    interval: float = 0.2,
    backoff: float = 1.0,
    max_interval: float | None = None,
    clock: Callable[[], float] = anyio.current_time,
    sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
) -> PollResult[T]:
    """Call ``fetch`` until ``accept`` approves its value or ``timeout`` elapses.

    ``fetch`` may be sync or async. The interval grows by ``backoff`` after
    every miss, capped at ``max_interval``. Sleeps never overshoot the
    deadline. The fetch is always attempted at least once.
    """
    if timeout < 0:
        raise ValueError("timeout must be non-negative")
    if backoff < 1.0:
        raise ValueError("backoff must be >= 1.0")

    deadline = clock() + timeout
    delay = interval
    attempts = 0
    value: Optional[T] = None
    while True:
        attempts += 1
        result = fetch()
        if inspect.isawaitable(result):
            result = await result
        value = result
        if accept(value):
            return PollResult(value=value, succeeded=True, attempts=attempts)

        remaining = deadline - clock()
        if remaining <= 0:
            return PollResult(value=value, succeeded=False, attempts=attempts)
        await sleep(min(delay, remaining))
        delay = delay * backoff
        if max_interval is not None:
            delay = min(delay, max_interval)


async def retry_once(
    action: Callable[[], Awaitable[T]],
    *,
    retry_on: Tuple[Type[BaseException], ...],
    label: str,
) -> T:
    """Run ``action``; on one of ``retry_on`` run it exactly once more.

    Reserved for steps where a server-side concurrency conflict is plausible
    (two workers writing the same row). Anything else propagates immediately.
    """
    try:
        return await action()
    except retry_on as exc:
        logger.warning("%s failed (%s); retrying once", label, exc)
    return await action()


async def best_effort(label: str, action: Callable[[], Awaitable[object]]) -> bool:
    """Run a cleanup step that must never fail the calling test.

    Returns True on success and False on any failure. The failure is only
    logged because the identity being cleaned up is never reused.
    """
    try:
        await action()
    except Exception as exc:
        logger.warning("Best-effort step '%s' did not complete: %s", label, exc)
        return False
    logger.debug("Best-effort step '%s' completed", label)
    return True
