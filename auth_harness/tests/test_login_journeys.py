"""Fresh and snapshot logins for every shared role."""
import pytest

from auth_harness.auth_state import find_cookie, has_snapshot, lifetime_days
from auth_harness.config import settings
from auth_harness.credentials import Role, lookup, non_mfa_users
from auth_harness.selectors import REFRESH_COOKIE, ROUTES, SELECTORS
from auth_harness.workflows import navigate, open_login_form

pytestmark = [pytest.mark.asyncio, pytest.mark.e2e]


def _identity_id(identity) -> str:
    return identity.role.value


class TestFreshLogin:
    @pytest.mark.parametrize("identity", non_mfa_users(), ids=_identity_id)
    async def test_fresh_login_shows_account_menu(self, provisioner, identity):
        session = await provisioner.provision_fresh(identity)

        assert await session.page.locator(SELECTORS.layout.user_menu).is_visible()

    async def test_login_page_renders_without_console_errors(self, provisioner):
        page = (await provisioner.open_blank(lookup(Role.STANDARD))).page
        errors = await provisioner.collector.capture_during(page, lambda: open_login_form(page, settings))

        assert errors == [], "\n".join(str(entry) for entry in errors)


class TestRememberMe:
    async def test_remember_me_extends_refresh_cookie(self, provisioner):
        identity = lookup(Role.STANDARD)

        remembered = await provisioner.provision_fresh(identity, remember_me=True)
        default = await provisioner.provision_fresh(identity)

        remembered_cookie = find_cookie(await remembered.context.cookies(), REFRESH_COOKIE)
        default_cookie = find_cookie(await default.context.cookies(), REFRESH_COOKIE)
        assert remembered_cookie is not None, "remember-me login set no refresh cookie"
        assert default_cookie is not None, "default login set no refresh cookie"

        assert lifetime_days(remembered_cookie) > 1
        assert lifetime_days(default_cookie) <= 2
        assert lifetime_days(remembered_cookie) > lifetime_days(default_cookie)


class TestSnapshotLogin:
    @pytest.mark.parametrize("identity", non_mfa_users(), ids=_identity_id)
    async def test_snapshot_session_is_authenticated(self, provisioner, identity):
        if not has_snapshot(identity.role, settings):
            pytest.skip(f"no snapshot for {identity.role.value}; run auth-harness-snapshots")

        async with provisioner.session(identity.role) as session:
            await navigate(session.page, settings.url(ROUTES.account), settings)
            assert await session.page.locator(SELECTORS.layout.user_menu).is_visible()
