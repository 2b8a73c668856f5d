"""Reusable login/logout/second-factor workflows against the client app."""
from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

import httpx
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeout

from auth_harness.api_client import AuthApiClient
from auth_harness.challenge import ChallengeSolver
from auth_harness.config import HarnessConfig, settings
from auth_harness.credentials import TestIdentity
from auth_harness.errors import BudgetExceededError, LoginRejectedError, ToolError
from auth_harness.selectors import API, ROUTES, SELECTORS, on_route, path_of
from auth_harness.totp import OneTimeCodeGenerator
from auth_harness.waiting import best_effort, poll_until

logger = logging.getLogger(__name__)

UrlPredicate = Callable[[str], bool]


class LoginOutcome(str, Enum):
    HOME = "home"
    MFA = "mfa"
    PASSWORD_CHANGE = "password-change"
    CUSTOM = "custom"
    REJECTED = "rejected"


def classify_login_url(url: str) -> Optional[LoginOutcome]:
    """Outcome implied by a post-login URL, or None while still on the form."""
    if on_route(url, ROUTES.mfa_verify):
        return LoginOutcome.MFA
    if on_route(url, ROUTES.change_password):
        return LoginOutcome.PASSWORD_CHANGE
    if on_route(url, ROUTES.home):
        return LoginOutcome.HOME
    return None


async def _visible(page: Page, selector: str) -> bool:
    try:
        return await page.locator(selector).first.is_visible()
    except PlaywrightTimeout:
        return False


async def login_error_visible(page: Page) -> bool:
    return await _visible(page, f"{SELECTORS.notification.snackbar}, {SELECTORS.form.error}")


async def wait_visible(page: Page, selector: str, config: HarnessConfig, budget: str) -> None:
    limit = config.budget(budget)
    try:
        await page.locator(selector).first.wait_for(state="visible", timeout=limit.ms)
    except PlaywrightTimeout as exc:
        raise BudgetExceededError(limit.name, limit.seconds, f"'{selector}' not visible on {page.url}") from exc


async def wait_hidden(page: Page, selector: str, config: HarnessConfig, budget: str) -> None:
    limit = config.budget(budget)
    try:
        await page.locator(selector).first.wait_for(state="hidden", timeout=limit.ms)
    except PlaywrightTimeout as exc:
        raise BudgetExceededError(limit.name, limit.seconds, f"'{selector}' still visible on {page.url}") from exc


async def navigate(page: Page, url: str, config: HarnessConfig | None = None) -> None:
    """``page.goto`` bounded by the navigation budget."""
    limit = (config or settings).budget("navigation")
    try:
        await page.goto(url, wait_until="domcontentloaded", timeout=limit.ms)
    except PlaywrightTimeout as exc:
        raise BudgetExceededError(limit.name, limit.seconds, f"navigation to {path_of(url)} did not finish") from exc


async def click(page: Page, selector: str, config: HarnessConfig | None = None, budget: str = "element") -> None:
    limit = (config or settings).budget(budget)
    try:
        await page.click(selector, timeout=limit.ms)
    except PlaywrightTimeout as exc:
        raise BudgetExceededError(limit.name, limit.seconds, f"could not click '{selector}' on {page.url}") from exc


async def wait_for_authenticated_marker(page: Page, config: HarnessConfig | None = None) -> None:
    """The session is ready once the account menu shows (auth budget)."""
    await wait_visible(page, SELECTORS.layout.user_menu, config or settings, "auth")


async def open_login_form(page: Page, config: HarnessConfig | None = None) -> None:
    config = config or settings
    await navigate(page, config.url(ROUTES.login), config)
    await wait_visible(page, SELECTORS.form.username, config, "global_setup")


async def submit_login(
    page: Page,
    username: str,
    password: str,
    *,
    remember_me: bool = False,
    solver: ChallengeSolver | None = None,
    config: HarnessConfig | None = None,
    open_form: bool = True,
) -> None:
    """Fill the login form, solve the challenge if one is rendered, submit."""
    config = config or settings
    solver = solver or ChallengeSolver(config)
    if open_form:
        await open_login_form(page, config)
    try:
        await page.fill(SELECTORS.form.username, username)
        await page.fill(SELECTORS.form.password, password)
        if remember_me:
            await page.check(SELECTORS.form.remember_me)
    except PlaywrightTimeout as exc:
        raise ToolError(name="fill_login_form", payload={"username": username}, message=str(exc)) from exc

    if await solver.is_present(page):
        await solver.solve(page)

    await click(page, SELECTORS.form.submit, config)
    logger.debug("Submitted login form for %s", username)


async def await_login_outcome(
    page: Page,
    *,
    predicate: UrlPredicate | None = None,
    allow_rejection: bool = False,
    config: HarnessConfig | None = None,
) -> LoginOutcome:
    """Wait until the post-submit URL settles on a recognisable destination.

    Raises:
        LoginRejectedError: the form showed an error and ``allow_rejection`` is False.
        BudgetExceededError: nothing recognisable within the navigation budget.
    """
    config = config or settings
    limit = config.budget("navigation")

    async def observe() -> Optional[LoginOutcome]:
        url = page.url
        if predicate is not None and predicate(url):
            return LoginOutcome.CUSTOM
        outcome = classify_login_url(url)
        if outcome is None and on_route(url, ROUTES.login) and await login_error_visible(page):
            return LoginOutcome.REJECTED
        return outcome

    result = await poll_until(observe, lambda outcome: outcome is not None, timeout=limit.seconds, interval=0.25)
    if not result.succeeded:
        raise BudgetExceededError(limit.name, limit.seconds, f"login did not leave {path_of(page.url)}")
    if result.value is LoginOutcome.REJECTED and not allow_rejection:
        raise LoginRejectedError(f"Login rejected; page stayed on {path_of(page.url)}")
    return result.value


async def submit_mfa_code(
    page: Page,
    code: str,
    *,
    backup: bool = False,
    trust_device: bool = False,
    config: HarnessConfig | None = None,
) -> None:
    config = config or settings
    await wait_visible(page, SELECTORS.mfa_verify.code, config, "element")
    if backup:
        await click(page, SELECTORS.mfa_verify.use_backup_code, config)
    if trust_device:
        # Material checkbox: click, not check().
        await click(page, SELECTORS.mfa_verify.trust_device, config)
    await page.fill(SELECTORS.mfa_verify.code, code)
    await click(page, SELECTORS.form.submit, config)


async def logout(page: Page, config: HarnessConfig | None = None) -> None:
    """Log out through the user menu and wait for the marker to disappear."""
    config = config or settings
    await click(page, SELECTORS.layout.user_menu, config)
    await click(page, SELECTORS.layout.logout, config)
    await wait_hidden(page, SELECTORS.layout.user_menu, config, "navigation")


async def change_password(
    page: Page,
    current_password: str,
    new_password: str,
    config: HarnessConfig | None = None,
) -> None:
    """Submit the change-password form and wait for the redirect to login.

    The client signs the user out once the change is accepted, so the form
    only counts as done when the page lands on the login route.

    Raises:
        BudgetExceededError: still not on the login route within the auth budget.
    """
    config = config or settings
    await wait_visible(page, SELECTORS.change_password.current, config, "element")
    await page.fill(SELECTORS.change_password.current, current_password)
    await page.fill(SELECTORS.change_password.new, new_password)
    await page.fill(SELECTORS.change_password.confirm, new_password)
    await click(page, SELECTORS.change_password.submit, config)

    limit = config.budget("auth")
    result = await poll_until(
        lambda: page.url,
        lambda url: on_route(url, ROUTES.login),
        timeout=limit.seconds,
        interval=0.25,
    )
    if not result.succeeded:
        raise BudgetExceededError(
            limit.name, limit.seconds, f"password change did not redirect to login; still on {path_of(page.url)}"
        )
    logger.info("Password changed; signed out to %s", path_of(page.url))


async def capture_access_token(
    page: Page,
    action: Callable[[], Awaitable[object]],
    config: HarnessConfig | None = None,
) -> str:
    """Run ``action`` and return the access token from the login API response.

    The filter matches the API URL so the page's own HTML navigation
    response is never picked up.
    """
    config = config or settings
    async with page.expect_response(
        lambda response: API.login in response.url and response.status == 200,
        timeout=config.budget("navigation").ms,
    ) as response_info:
        await action()
    response = await response_info.value
    body = await response.json()
    token = body.get("accessToken")
    if not token:
        raise ToolError(name="capture_access_token", payload={"url": response.url}, message="no accessToken in body")
    return token


async def fail_login_attempts(
    page: Page,
    username: str,
    wrong_password: str,
    attempts: int,
    config: HarnessConfig | None = None,
) -> int:
    """Submit ``attempts`` wrong passwords; returns how many were rejected."""
    config = config or settings
    rejected = 0
    for attempt in range(1, attempts + 1):
        await submit_login(page, username, wrong_password, config=config)
        outcome = await await_login_outcome(page, allow_rejection=True, config=config)
        logger.debug("Failed-login attempt %d/%d for %s -> %s", attempt, attempts, username, outcome.value)
        if outcome is LoginOutcome.REJECTED:
            rejected += 1
    return rejected


async def extract_totp_secret(page: Page, config: HarnessConfig | None = None) -> str:
    """Switch the TOTP setup page to manual entry and read the Base32 secret."""
    config = config or settings
    await click(page, SELECTORS.totp_setup.cant_scan, config)
    await wait_visible(page, SELECTORS.totp_setup.secret, config, "api")
    secret = (await page.locator(SELECTORS.totp_setup.secret).first.text_content() or "").strip()
    if not secret:
        raise ToolError(name="extract_totp_secret", payload={"url": page.url}, message="secret element was empty")
    return secret.replace(" ", "")


async def disable_totp_via_api(
    identity: TestIdentity,
    secret: str,
    used_code: str,
    *,
    generator: OneTimeCodeGenerator | None = None,
    config: HarnessConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """Best-effort removal of an enrolled authenticator.

    Needs a code different from the one used at enrollment. If none shows up
    within the wait budget, cleanup is skipped: the identity is single-purpose
    and never reused by another test.
    """
    config = config or settings
    generator = generator or OneTimeCodeGenerator(margin=config.totp_margin)

    fresh = await generator.await_different_code(secret, used_code)
    if not fresh.changed:
        logger.warning("Skipping TOTP cleanup for %s: code never changed", identity.username)
        return False

    async def _disable() -> None:
        async with AuthApiClient(config, transport=transport) as api:
            result = await api.login(identity.username, identity.password)
            if result.requires_mfa and result.challenge_token:
                result = await api.verify_totp(result.challenge_token, fresh.code)
            if not result.access_token:
                raise ToolError(name="disable_totp", payload={"user": identity.username}, message="no access token")
            await api.disable_totp(result.access_token, identity.password)

    return await best_effort(f"disable TOTP for {identity.username}", _disable)
