"""Time-stepped one-time codes (RFC 6238) with a safe-submission window.

A code is only worth submitting when enough of its step is left for the
server round trip. ``generate_safe`` sleeps across the boundary when the
current step is about to expire.
"""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

import anyio
import pyotp

from auth_harness.waiting import poll_until

logger = logging.getLogger(__name__)

DEFAULT_STEP = 30
DEFAULT_DIGITS = 6
DEFAULT_MARGIN = 3.0
# Small pad so the sleep lands inside the next step, not on its edge.
_BOUNDARY_PAD = 0.05


@dataclass
class CodeWaitResult:
    code: str
    changed: bool


class OneTimeCodeGenerator:
    """Generate TOTP codes against an injectable wall clock.

    Args:
        step: Step length in seconds.
        digits: Code length.
        margin: Minimum seconds of validity ``generate_safe`` guarantees.
        clock: Wall-clock source in epoch seconds.
        sleep: Async sleep used while waiting for a new step.
    """

    def __init__(
        self,
        step: int = DEFAULT_STEP,
        digits: int = DEFAULT_DIGITS,
        margin: float = DEFAULT_MARGIN,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        if step <= 0:
            raise ValueError("step must be positive")
        if not 0 <= margin < step:
            raise ValueError("margin must be in [0, step)")
        self.step = step
        self.digits = digits
        self.margin = margin
        self._clock = clock
        self._sleep = sleep

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(secret, digits=self.digits, interval=self.step)

    def step_index(self, at: float | None = None) -> int:
        now = self._clock() if at is None else at
        return math.floor(now / self.step)

    def remaining(self, at: float | None = None) -> float:
        """Seconds left in the step containing ``at`` (default: now)."""
        now = self._clock() if at is None else at
        return self.step - (now % self.step)

    def generate(self, secret: str) -> str:
        """Code for the current step. Same step index, same code."""
        return self._totp(secret).generate_otp(self.step_index())

    def is_safe(self, at: float | None = None) -> bool:
        return self.remaining(at) > self.margin

    async def generate_safe(self, secret: str) -> str:
        """Like ``generate`` but never returns a code about to expire."""
        remaining = self.remaining()
        if remaining <= self.margin:
            logger.debug("Only %.2fs left in TOTP step; waiting for the next one", remaining)
            await self._sleep(remaining + _BOUNDARY_PAD)
        return self.generate(secret)

    async def await_different_code(
        self,
        secret: str,
        exclude_code: str,
        max_wait_steps: int = 2,
        poll_interval: float = 2.0,
    ) -> CodeWaitResult:
        """Poll until the code differs from ``exclude_code``.

        Servers reject reuse of a code within its step, so cleanup flows that
        must submit a second code call this first. ``changed=False`` means the
        budget ran out; callers treat that as "skip", not as a failure.
        """
        result = await poll_until(
            lambda: self.generate(secret),
            lambda code: code != exclude_code,
            timeout=max_wait_steps * self.step,
            interval=poll_interval,
            clock=self._clock,
            sleep=self._sleep,
        )
        if not result.succeeded:
            logger.info("TOTP code did not change within %d step(s)", max_wait_steps)
        return CodeWaitResult(code=result.value or exclude_code, changed=result.succeeded)
