"""Proof-of-work challenge widget driver.

The widget reports ``unverified -> verifying -> verified`` through an
attribute on an inner node. The solver reads that node, never assumes a
starting state and returns straight away if the widget is already verified.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, FrozenSet, Optional

from playwright.async_api import Locator, Page
from playwright.async_api import TimeoutError as PlaywrightTimeout

from auth_harness.config import HarnessConfig, settings
from auth_harness.errors import ChallengeInitError, ChallengeTimeoutError
from auth_harness.selectors import SELECTORS
from auth_harness.waiting import poll_until

logger = logging.getLogger(__name__)

# Per-read timeout while polling the state attribute.
_READ_TIMEOUT_MS = 1000


class ChallengeState(str, Enum):
    UNVERIFIED = "unverified"
    VERIFYING = "verifying"
    VERIFIED = "verified"

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["ChallengeState"]:
        """Map an attribute value to a state; unknown values (e.g. "error") give None."""
        if raw is None:
            return None
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return None


TRANSITIONS: Dict[ChallengeState, FrozenSet[ChallengeState]] = {
    ChallengeState.UNVERIFIED: frozenset({ChallengeState.VERIFYING}),
    # A failed computation resets the widget.
    ChallengeState.VERIFYING: frozenset({ChallengeState.VERIFIED, ChallengeState.UNVERIFIED}),
    ChallengeState.VERIFIED: frozenset(),
}


def can_transition(current: ChallengeState, target: ChallengeState) -> bool:
    return target in TRANSITIONS[current]


class ChallengeSolver:
    """Solve the proof-of-work widget on a page."""

    def __init__(self, config: HarnessConfig | None = None) -> None:
        self.config = config or settings

    @staticmethod
    async def read_state(widget: Locator) -> Optional[ChallengeState]:
        node = widget.locator(SELECTORS.challenge.state_node)
        try:
            raw = await node.first.get_attribute(SELECTORS.challenge.state_attribute, timeout=_READ_TIMEOUT_MS)
        except PlaywrightTimeout:
            return None
        return ChallengeState.parse(raw)

    async def is_present(self, page: Page, widget_selector: str = SELECTORS.challenge.widget) -> bool:
        return await page.locator(widget_selector).count() > 0

    async def solve(
        self,
        page: Page,
        *,
        widget_selector: str = SELECTORS.challenge.widget,
        init_timeout: float | None = None,
        solve_timeout: float | None = None,
    ) -> ChallengeState:
        """Drive the widget to ``verified``.

        Raises:
            ChallengeInitError: widget never attached or never showed
                ``unverified``/``verified`` within ``init_timeout``.
            ChallengeTimeoutError: computation did not reach ``verified``
                within ``solve_timeout``.
        """
        init_timeout = self.config.timeouts.challenge_init if init_timeout is None else init_timeout
        solve_timeout = self.config.timeouts.challenge_solve if solve_timeout is None else solve_timeout
        if solve_timeout <= init_timeout:
            raise ValueError("solve_timeout must be larger than init_timeout")

        widget = page.locator(widget_selector)
        try:
            await widget.wait_for(state="attached", timeout=init_timeout * 1000)
        except PlaywrightTimeout as exc:
            raise ChallengeInitError(
                f"[budget=challenge_init] widget '{widget_selector}' not attached after {init_timeout:g}s"
            ) from exc

        state = await self.read_state(widget)
        if state is ChallengeState.VERIFIED:
            logger.debug("Challenge already verified; nothing to do")
            return state

        ready = await poll_until(
            lambda: self.read_state(widget),
            lambda s: s in (ChallengeState.UNVERIFIED, ChallengeState.VERIFIED),
            timeout=init_timeout,
            interval=0.2,
        )
        if not ready.succeeded:
            raise ChallengeInitError(
                f"[budget=challenge_init] widget never became ready within {init_timeout:g}s "
                f"(last state: {ready.value.value if ready.value else 'unknown'})"
            )
        if ready.value is ChallengeState.VERIFIED:
            return ready.value

        logger.info("Starting proof-of-work challenge")
        await widget.locator(SELECTORS.challenge.checkbox).first.click()

        solved = await poll_until(
            lambda: self.read_state(widget),
            lambda s: s is ChallengeState.VERIFIED,
            timeout=solve_timeout,
            interval=0.25,
            backoff=1.5,
            max_interval=2.0,
        )
        if not solved.succeeded:
            raise ChallengeTimeoutError(
                f"[budget=challenge_solve] challenge not verified after {solve_timeout:g}s "
                f"(last state: {solved.value.value if solved.value else 'unknown'})"
            )
        logger.info("Proof-of-work challenge verified after %d checks", solved.attempts)
        return ChallengeState.VERIFIED
