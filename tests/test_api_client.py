"""Auth API client against a scripted transport."""
import json

import httpx
import pytest

from auth_harness.api_client import AuthApiClient, AuthApiError, LoginResult
from auth_harness.selectors import API


def _transport(routes):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        status, body = routes[request.url.path]
        return httpx.Response(status, json=body)

    return httpx.MockTransport(handler), requests


class TestLoginResult:
    def test_from_json(self):
        result = LoginResult.from_json({"requiresMfa": True, "mfaChallengeToken": "chal"})
        assert result.requires_mfa
        assert result.challenge_token == "chal"
        assert result.access_token is None
        assert not result.requires_password_change


@pytest.mark.asyncio
class TestAuthApiClient:
    async def test_login_posts_expected_payload(self, fast_config):
        transport, requests = _transport({API.login: (200, {"accessToken": "tok"})})

        async with AuthApiClient(fast_config, transport=transport) as api:
            result = await api.login("e2e_user", "pw", remember_me=True, altcha_payload="solved")

        assert result.access_token == "tok"
        body = json.loads(requests[0].content)
        assert body == {
            "usernameOrEmail": "e2e_user",
            "password": "pw",
            "rememberMe": True,
            "altchaPayload": "solved",
        }
        assert str(requests[0].url).startswith(fast_config.api_base_url)

    async def test_login_failure_raises_with_problem_detail(self, fast_config):
        transport, _ = _transport({API.login: (401, {"title": "Unauthorized", "detail": "Invalid credentials"})})

        async with AuthApiClient(fast_config, transport=transport) as api:
            with pytest.raises(AuthApiError) as excinfo:
                await api.login("e2e_user", "wrong")

        assert excinfo.value.status == 401
        assert "Invalid credentials" in str(excinfo.value)

    async def test_verify_totp_sends_challenge_and_trust_flag(self, fast_config):
        transport, requests = _transport({API.verify_totp: (200, {"accessToken": "mfa-tok"})})

        async with AuthApiClient(fast_config, transport=transport) as api:
            result = await api.verify_totp("chal", "123456", trust_device=True)

        assert result.access_token == "mfa-tok"
        assert json.loads(requests[0].content) == {"challengeToken": "chal", "code": "123456", "trustDevice": True}

    async def test_verify_backup_code(self, fast_config):
        transport, requests = _transport({API.verify_backup: (200, {"accessToken": "b-tok"})})

        async with AuthApiClient(fast_config, transport=transport) as api:
            result = await api.verify_backup_code("chal", "E2EBAK01")

        assert result.access_token == "b-tok"
        assert requests[0].url.path == API.verify_backup

    @pytest.mark.parametrize("status", [200, 204])
    async def test_disable_totp_accepts_success_statuses(self, fast_config, status):
        transport, requests = _transport({API.disable_totp: (status, {})})

        async with AuthApiClient(fast_config, transport=transport) as api:
            await api.disable_totp("tok", "pw")

        assert requests[0].headers["Authorization"] == "Bearer tok"

    async def test_disable_totp_failure(self, fast_config):
        transport, _ = _transport({API.disable_totp: (400, {"detail": "Invalid password"})})

        async with AuthApiClient(fast_config, transport=transport) as api:
            with pytest.raises(AuthApiError):
                await api.disable_totp("tok", "wrong")

    async def test_protected_status_reports_forbidden(self, fast_config):
        transport, _ = _transport({API.trusted_devices: (403, {})})

        async with AuthApiClient(fast_config, transport=transport) as api:
            assert await api.protected_status(API.trusted_devices, "tok") == 403

    async def test_client_requires_context_manager(self, fast_config):
        with pytest.raises(RuntimeError):
            await AuthApiClient(fast_config).login("u", "p")
