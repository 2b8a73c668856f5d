"""Snapshot files and cookie lifetime inspection."""
from datetime import datetime, timedelta, timezone

import pytest

from auth_harness import auth_state
from auth_harness.credentials import Role
from auth_harness.selectors import REFRESH_COOKIE
from fakes import FakeClient

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _cookie(name: str, expires: float) -> dict:
    return {"name": name, "value": "x", "domain": "localhost", "path": "/", "expires": expires}


@pytest.mark.asyncio
class TestSnapshots:
    async def test_snapshot_path_is_per_role(self, fast_config):
        path = auth_state.snapshot_path(Role.ADMIN, fast_config)
        assert path == fast_config.auth_state_dir / "admin.json"
        assert auth_state.snapshot_path(Role.STANDARD, fast_config).name == "user.json"

    async def test_save_and_clear(self, fast_config):
        context = await FakeClient().new_context()

        path = await auth_state.save_snapshot(context, Role.STANDARD, fast_config)

        assert path.exists()
        assert auth_state.has_snapshot(Role.STANDARD, fast_config)
        assert not path.with_suffix(".tmp").exists()
        assert auth_state.clear_snapshot(Role.STANDARD, fast_config) is True
        assert auth_state.clear_snapshot(Role.STANDARD, fast_config) is False


class TestCookies:
    def test_find_cookie(self):
        cookies = [_cookie("other", -1), _cookie(REFRESH_COOKIE, -1)]
        assert auth_state.find_cookie(cookies, REFRESH_COOKIE)["name"] == REFRESH_COOKIE
        assert auth_state.find_cookie(cookies, "missing") is None

    def test_session_cookie_has_no_lifetime(self):
        cookie = _cookie(REFRESH_COOKIE, -1)
        assert auth_state.cookie_lifetime(cookie, NOW) is None
        assert auth_state.lifetime_days(cookie, NOW) == 0.0

    def test_remember_me_lifetime_in_days(self):
        remembered = _cookie(REFRESH_COOKIE, (NOW + timedelta(days=14)).timestamp())
        default = _cookie(REFRESH_COOKIE, (NOW + timedelta(days=1)).timestamp())

        assert auth_state.lifetime_days(remembered, NOW) == pytest.approx(14.0)
        assert auth_state.lifetime_days(default, NOW) == pytest.approx(1.0)
        assert auth_state.lifetime_days(remembered, NOW) > 1
        assert auth_state.lifetime_days(default, NOW) <= 2
