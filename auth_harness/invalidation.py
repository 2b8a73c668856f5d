"""Observe how a state change in one session affects a sibling session.

Whether logging out (or logging in again) in one context revokes the whole
refresh-token family or only that device's token is server configuration.
Both outcomes are accepted; only a contradictory end state is a failure.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional, Tuple

from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeout

from auth_harness.config import HarnessConfig
from auth_harness.credentials import TestIdentity
from auth_harness.errors import AmbiguousStateError
from auth_harness.selectors import ROUTES, SELECTORS, is_unauthenticated_destination, on_route, path_of
from auth_harness.session_manager import AuthenticatedSession, SessionProvisioner
from auth_harness.waiting import poll_until
from auth_harness.workflows import navigate, wait_for_authenticated_marker

logger = logging.getLogger(__name__)

SessionAction = Callable[[AuthenticatedSession], Awaitable[object]]


class InvalidationOutcome(str, Enum):
    FAMILY_REVOKED = "family-revoked"
    INDEPENDENT_FAMILIES = "independent-families"


@dataclass(frozen=True)
class InvalidationReport:
    action: str
    username: str
    outcome: InvalidationOutcome
    observed_url: str
    marker_visible: bool

    @property
    def revoked(self) -> bool:
        return self.outcome is InvalidationOutcome.FAMILY_REVOKED


def classify(url: str, marker_visible: bool) -> Optional[InvalidationOutcome]:
    """Map an observed (url, marker) pair to an accepted outcome.

    Returns None when the pair is contradictory or still settling: the
    marker shown on the login page, or a protected page without the marker.
    """
    if marker_visible:
        if on_route(url, ROUTES.login):
            return None
        return InvalidationOutcome.INDEPENDENT_FAMILIES
    if is_unauthenticated_destination(url):
        return InvalidationOutcome.FAMILY_REVOKED
    return None


async def marker_visible(page: Page) -> bool:
    try:
        return await page.locator(SELECTORS.layout.user_menu).first.is_visible()
    except PlaywrightTimeout:
        return False


class CrossContextVerifier:
    """Runs an action in session A and classifies what session B sees."""

    def __init__(self, provisioner: SessionProvisioner, config: Optional[HarnessConfig] = None):
        self.provisioner = provisioner
        self.config = config or provisioner.config

    async def _observe(self, page: Page) -> Tuple[str, bool]:
        return page.url, await marker_visible(page)

    async def probe(self, session: AuthenticatedSession, probe_path: str = ROUTES.account) -> Tuple[InvalidationOutcome, str, bool]:
        """Request a protected page in ``session`` and classify the result.

        Raises:
            AmbiguousStateError: no consistent state within the auth budget,
                or the state flipped right after it was classified.
            BudgetExceededError: the protected page did not load within the
                navigation budget.
        """
        page = session.page
        limit = self.config.budget("auth")
        await navigate(page, self.config.url(probe_path), self.config)

        result = await poll_until(
            lambda: self._observe(page),
            lambda observed: classify(*observed) is not None,
            timeout=limit.seconds,
            interval=0.25,
            backoff=1.5,
            max_interval=1.0,
        )
        url, visible = result.value
        if not result.succeeded:
            raise AmbiguousStateError(
                f"[budget={limit.name}] session {session.session_id} stayed inconsistent after "
                f"{limit.seconds:g}s: url={path_of(url)} marker_visible={visible}"
            )
        outcome = classify(url, visible)

        # The classified state must hold on a second look.
        confirm_url, confirm_visible = await self._observe(page)
        if classify(confirm_url, confirm_visible) is not outcome:
            raise AmbiguousStateError(
                f"session {session.session_id} changed from {outcome.value} to "
                f"url={path_of(confirm_url)} marker_visible={confirm_visible}"
            )
        return outcome, confirm_url, confirm_visible

    async def verify(
        self,
        identity: TestIdentity,
        action: SessionAction,
        *,
        action_name: str = "action",
        probe_path: str = ROUTES.account,
    ) -> InvalidationReport:
        """
        Provision A and B as ``identity``, run ``action`` in A, probe B.

        Args:
            identity: Identity both sessions log in as (use a single-purpose one)
            action: State-changing step performed only in session A
            action_name: Label for logs and the report
            probe_path: Protected route requested in session B
        """
        session_a = await self.provisioner.provision_fresh(identity)
        session_b = await self.provisioner.provision_fresh(identity)
        await wait_for_authenticated_marker(session_a.page, self.config)
        await wait_for_authenticated_marker(session_b.page, self.config)

        await action(session_a)
        logger.info("Ran %s in %s; probing %s", action_name, session_a.session_id, session_b.session_id)

        outcome, url, visible = await self.probe(session_b, probe_path)
        report = InvalidationReport(
            action=action_name,
            username=identity.username,
            outcome=outcome,
            observed_url=url,
            marker_visible=visible,
        )
        logger.info("Cross-context %s for %s: %s", action_name, identity.username, outcome.value)
        return report

    async def verify_concurrent_login(
        self,
        identity: TestIdentity,
        *,
        probe_path: str = ROUTES.account,
    ) -> InvalidationReport:
        """Log in as A, then as B, and classify what A sees afterwards."""
        session_a = await self.provisioner.provision_fresh(identity)
        await self.provisioner.provision_fresh(identity)

        outcome, url, visible = await self.probe(session_a, probe_path)
        logger.info("Concurrent login for %s: %s", identity.username, outcome.value)
        return InvalidationReport(
            action="concurrent-login",
            username=identity.username,
            outcome=outcome,
            observed_url=url,
            marker_visible=visible,
        )
