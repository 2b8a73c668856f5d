"""
Session provisioning for authenticated UI testing.

Every session gets its own Playwright BrowserContext, providing:
- Isolated cookies and storage
- Independent authentication state
- An attached diagnostics sink
- Guaranteed teardown when the test ends

Two strategies are supported. ``provision_from_snapshot`` seeds the context
from a persisted per-role snapshot (fast, read-only paths only).
``provision_fresh`` drives the login form in an empty context and is the only
strategy allowed for destructive flows (logout, password change, MFA changes).
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

from playwright.async_api import BrowserContext, Page

from auth_harness.auth_state import snapshot_path
from auth_harness.challenge import ChallengeSolver
from auth_harness.config import HarnessConfig, settings
from auth_harness.credentials import Role, TestIdentity, lookup
from auth_harness.diagnostics import DiagnosticEntry, DiagnosticsCollector, DiagnosticsHandle
from auth_harness.errors import BudgetExceededError, ConfigError, SnapshotMissingError, StateLeakError
from auth_harness.playwright_client import PlaywrightClient
from auth_harness.selectors import ROUTES, on_route, path_of
from auth_harness.totp import OneTimeCodeGenerator
from auth_harness.waiting import poll_until
from auth_harness.workflows import (
    LoginOutcome,
    UrlPredicate,
    await_login_outcome,
    classify_login_url,
    navigate,
    submit_login,
    submit_mfa_code,
    wait_for_authenticated_marker,
)

logger = logging.getLogger(__name__)


class ProvisionStrategy(str, Enum):
    SNAPSHOT = "snapshot"
    FRESH = "fresh"
    BLANK = "blank"


@dataclass
class AuthenticatedSession:
    """Handle to one isolated, authenticated browser session."""
    session_id: str
    identity: TestIdentity
    context: BrowserContext
    page: Page
    diagnostics: DiagnosticsHandle
    strategy: ProvisionStrategy
    outcome: Optional[LoginOutcome] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def errors(self) -> List[DiagnosticEntry]:
        return self.diagnostics.errors

    def __repr__(self) -> str:
        return (
            f"AuthenticatedSession(id={self.session_id}, user={self.identity.username}, "
            f"strategy={self.strategy.value}, outcome={self.outcome.value if self.outcome else None})"
        )


class SessionProvisioner:
    """
    Creates and owns authenticated sessions for one test.

    Usage:
        async with SessionProvisioner(client) as provisioner:
            user = await provisioner.provision_from_snapshot(Role.STANDARD)
            other = await provisioner.provision_fresh(lookup(Role.STANDARD))

            await user.page.goto('/account')

    All sessions are closed on exit, including sessions whose provisioning
    failed part-way, so their diagnostics stay available until teardown.
    """

    def __init__(
        self,
        client: PlaywrightClient,
        config: Optional[HarnessConfig] = None,
        collector: Optional[DiagnosticsCollector] = None,
        solver: Optional[ChallengeSolver] = None,
        generator: Optional[OneTimeCodeGenerator] = None,
    ):
        """
        Initialize the provisioner.

        Args:
            client: Connected PlaywrightClient used to create contexts
            config: Harness configuration (defaults to module settings)
            collector: Diagnostics collector attached to every page
            solver: Proof-of-work solver used on the login form
            generator: One-time code generator for second-factor steps
        """
        self.client = client
        self.config = config or settings
        self.collector = collector or DiagnosticsCollector()
        self.solver = solver or ChallengeSolver(self.config)
        self.generator = generator or OneTimeCodeGenerator(margin=self.config.totp_margin)
        self.sessions: Dict[str, AuthenticatedSession] = {}
        self.closed_diagnostics: Dict[str, List[DiagnosticEntry]] = {}
        self._counter = 0

    async def __aenter__(self) -> "SessionProvisioner":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Tear down every session regardless of how the test ended."""
        await self.close_all()

    def _next_id(self, identity: TestIdentity, strategy: ProvisionStrategy) -> str:
        self._counter += 1
        return f"{identity.username}_{strategy.value}_{self._counter}"

    async def _open(
        self,
        identity: TestIdentity,
        strategy: ProvisionStrategy,
        storage_state: Optional[str] = None,
    ) -> AuthenticatedSession:
        context = await self.client.new_context(storage_state=storage_state)
        try:
            page = await context.new_page()
        except Exception:
            await context.close()
            raise
        session = AuthenticatedSession(
            session_id=self._next_id(identity, strategy),
            identity=identity,
            context=context,
            page=page,
            diagnostics=self.collector.attach(page),
            strategy=strategy,
        )
        self.sessions[session.session_id] = session
        logger.debug("Created session: %r", session)
        return session

    async def provision_from_snapshot(self, role: Role) -> AuthenticatedSession:
        """
        Open a session seeded from the persisted snapshot for ``role``.

        Raises:
            SnapshotMissingError: no snapshot file exists for the role
            BudgetExceededError: the authenticated marker never appeared
        """
        role = Role(role)
        path = snapshot_path(role, self.config)
        if not path.exists():
            raise SnapshotMissingError(
                f"No auth snapshot for role '{role.value}' at {path}; run auth-harness-snapshots first"
            )
        session = await self._open(lookup(role), ProvisionStrategy.SNAPSHOT, storage_state=str(path))
        await navigate(session.page, self.config.url(ROUTES.home), self.config)
        await wait_for_authenticated_marker(session.page, self.config)
        session.outcome = LoginOutcome.HOME
        logger.info("Provisioned %s from snapshot %s", session.session_id, path.name)
        return session

    async def open_blank(self, identity: TestIdentity) -> AuthenticatedSession:
        """Open an empty, logged-out context for flows that drive the form by hand.

        The session is registered like any other: diagnostics are collected
        and the context is closed with the provisioner.
        """
        session = await self._open(identity, ProvisionStrategy.BLANK)
        logger.info("Opened blank session %s", session.session_id)
        return session

    async def provision_fresh(
        self,
        identity: TestIdentity,
        *,
        expect: LoginOutcome = LoginOutcome.HOME,
        url_predicate: Optional[UrlPredicate] = None,
        complete_mfa: bool = False,
        use_backup_code: bool = False,
        backup_code: Optional[str] = None,
        trust_device: bool = False,
        remember_me: bool = False,
    ) -> AuthenticatedSession:
        """
        Open an empty context and log ``identity`` in through the form.

        Args:
            identity: Who to log in as
            expect: Where the login is expected to end up
            url_predicate: Extra accepted destination; a match always satisfies ``expect``
            complete_mfa: Answer the second-factor step instead of stopping on it
            use_backup_code: Answer with a backup code instead of a one-time code
            backup_code: Which backup code to use (first registered code by default)
            trust_device: Tick "trust this device" on the second-factor step
            remember_me: Tick "remember me" on the login form

        Raises:
            StateLeakError: the login landed on a step the caller did not ask for
            LoginRejectedError: the credentials were refused
            BudgetExceededError: a named budget ran out
        """
        session = await self._open(identity, ProvisionStrategy.FRESH)
        await self.login(
            session,
            expect=expect,
            url_predicate=url_predicate,
            complete_mfa=complete_mfa,
            use_backup_code=use_backup_code,
            backup_code=backup_code,
            trust_device=trust_device,
            remember_me=remember_me,
        )
        logger.info("Provisioned %s (outcome=%s)", session.session_id, session.outcome.value)
        return session

    async def login(
        self,
        session: AuthenticatedSession,
        *,
        expect: LoginOutcome = LoginOutcome.HOME,
        url_predicate: Optional[UrlPredicate] = None,
        complete_mfa: bool = False,
        use_backup_code: bool = False,
        backup_code: Optional[str] = None,
        trust_device: bool = False,
        remember_me: bool = False,
    ) -> LoginOutcome:
        """Log the session's identity in within its existing context."""
        identity = session.identity
        page = session.page
        await submit_login(
            page,
            identity.username,
            identity.password,
            remember_me=remember_me,
            solver=self.solver,
            config=self.config,
        )
        outcome = await await_login_outcome(
            page,
            predicate=url_predicate,
            allow_rejection=expect is LoginOutcome.REJECTED,
            config=self.config,
        )

        if outcome is LoginOutcome.MFA and complete_mfa and expect is not LoginOutcome.MFA:
            await self._complete_mfa(session, use_backup_code, backup_code, trust_device)
            outcome = await self._await_leaving_mfa(page, url_predicate)

        session.outcome = outcome
        if outcome is not expect and outcome is not LoginOutcome.CUSTOM:
            raise StateLeakError(identity.username, path_of(page.url), expect.value)

        if outcome in (LoginOutcome.HOME, LoginOutcome.CUSTOM):
            await wait_for_authenticated_marker(page, self.config)
        return outcome

    async def _complete_mfa(
        self,
        session: AuthenticatedSession,
        use_backup_code: bool,
        backup_code: Optional[str],
        trust_device: bool,
    ) -> None:
        identity = session.identity
        if use_backup_code:
            code = backup_code or (identity.backup_codes[0] if identity.backup_codes else None)
            if not code:
                raise ConfigError(f"Identity '{identity.username}' has no backup codes")
        else:
            if not identity.totp_secret:
                raise ConfigError(f"Identity '{identity.username}' has no TOTP secret")
            code = await self.generator.generate_safe(identity.totp_secret)
        session.metadata["mfa_code"] = code
        await submit_mfa_code(
            session.page,
            code,
            backup=use_backup_code,
            trust_device=trust_device,
            config=self.config,
        )

    async def _await_leaving_mfa(self, page: Page, url_predicate: Optional[UrlPredicate]) -> LoginOutcome:
        limit = self.config.budget("auth")
        result = await poll_until(
            lambda: page.url,
            lambda url: not on_route(url, ROUTES.mfa_verify),
            timeout=limit.seconds,
            interval=0.25,
        )
        if not result.succeeded:
            raise BudgetExceededError(limit.name, limit.seconds, "second-factor step did not complete")
        if url_predicate is not None and url_predicate(result.value):
            return LoginOutcome.CUSTOM
        return classify_login_url(result.value) or LoginOutcome.CUSTOM

    @asynccontextmanager
    async def session(self, role: Role) -> AsyncIterator[AuthenticatedSession]:
        """Scoped snapshot session; closed on every exit path."""
        handle: Optional[AuthenticatedSession] = None
        try:
            handle = await self.provision_from_snapshot(role)
            yield handle
        finally:
            if handle is not None:
                await self.close_session(handle.session_id)

    @asynccontextmanager
    async def fresh_session(self, identity: TestIdentity, **kwargs: Any) -> AsyncIterator[AuthenticatedSession]:
        """Scoped fresh session; closed on every exit path."""
        handle: Optional[AuthenticatedSession] = None
        try:
            handle = await self.provision_fresh(identity, **kwargs)
            yield handle
        finally:
            if handle is not None:
                await self.close_session(handle.session_id)

    def get_session(self, session_id: str) -> Optional[AuthenticatedSession]:
        return self.sessions.get(session_id)

    def collected_diagnostics(self) -> Dict[str, List[DiagnosticEntry]]:
        """Errors per session, including sessions already closed."""
        collected = dict(self.closed_diagnostics)
        for session_id, session in self.sessions.items():
            collected[session_id] = list(session.errors)
        return {label: errors for label, errors in collected.items() if errors}

    async def close_session(self, session_id: str) -> None:
        """Close and remove a session."""
        session = self.sessions.pop(session_id, None)
        if session is None:
            return
        self.collector.detach(session.diagnostics)
        self.closed_diagnostics[session_id] = list(session.errors)
        try:
            await session.context.close()
            logger.debug("Closed session: %r", session)
        except Exception as exc:
            logger.warning("Error closing session %s: %s", session_id, exc)

    async def close_all(self) -> None:
        """Close all sessions."""
        for session_id in list(self.sessions.keys()):
            await self.close_session(session_id)
