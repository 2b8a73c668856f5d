"""Minimal async client for the auth server's HTTP contract.

Used where driving the UI would be slow or would itself mutate state: cleanup
of an enrolled second factor, and probing protected endpoints with a captured
access token.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from auth_harness.config import HarnessConfig, settings
from auth_harness.selectors import API

logger = logging.getLogger(__name__)


class AuthApiError(Exception):
    """Non-success response from the auth API."""

    def __init__(self, operation: str, status: int, detail: str = "") -> None:
        self.operation = operation
        self.status = status
        self.detail = detail
        super().__init__(f"{operation} returned HTTP {status}: {detail}".rstrip(": "))


@dataclass
class LoginResult:
    access_token: Optional[str] = None
    requires_mfa: bool = False
    challenge_token: Optional[str] = None
    requires_password_change: bool = False

    @classmethod
    def from_json(cls, body: Dict[str, Any]) -> "LoginResult":
        return cls(
            access_token=body.get("accessToken"),
            requires_mfa=bool(body.get("requiresMfa", False)),
            challenge_token=body.get("mfaChallengeToken") or body.get("challengeToken"),
            requires_password_change=bool(body.get("requiresPasswordChange", False)),
        )


def _problem_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("title") or "")
    return ""


class AuthApiClient:
    """Async context manager around ``httpx.AsyncClient``.

    Usage:
        async with AuthApiClient(config) as api:
            result = await api.login("e2e_user", "secret")
    """

    def __init__(
        self,
        config: HarnessConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "AuthApiClient":
        self._client = httpx.AsyncClient(
            base_url=self.config.api_base_url,
            timeout=self.config.timeouts.api,
            verify=not self.config.ignore_https_errors,
            follow_redirects=False,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError("Client not connected. Use 'async with AuthApiClient(...)'")
        return self._client

    async def _post_auth(self, operation: str, path: str, payload: Dict[str, Any]) -> LoginResult:
        response = await self.client.post(path, json=payload)
        if response.status_code != 200:
            raise AuthApiError(operation, response.status_code, _problem_detail(response))
        return LoginResult.from_json(response.json())

    async def login(
        self,
        username: str,
        password: str,
        *,
        remember_me: bool = False,
        altcha_payload: Optional[str] = None,
    ) -> LoginResult:
        payload: Dict[str, Any] = {
            "usernameOrEmail": username,
            "password": password,
            "rememberMe": remember_me,
        }
        if altcha_payload is not None:
            payload["altchaPayload"] = altcha_payload
        result = await self._post_auth("login", API.login, payload)
        logger.debug("API login for %s (mfa=%s)", username, result.requires_mfa)
        return result

    async def verify_totp(self, challenge_token: str, code: str, *, trust_device: bool = False) -> LoginResult:
        return await self._post_auth(
            "verify-totp",
            API.verify_totp,
            {"challengeToken": challenge_token, "code": code, "trustDevice": trust_device},
        )

    async def verify_backup_code(self, challenge_token: str, code: str, *, trust_device: bool = False) -> LoginResult:
        return await self._post_auth(
            "verify-backup",
            API.verify_backup,
            {"challengeToken": challenge_token, "code": code, "trustDevice": trust_device},
        )

    async def disable_totp(self, access_token: str, password: str) -> None:
        response = await self.client.post(
            API.disable_totp,
            json={"password": password},
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if response.status_code not in (200, 204):
            raise AuthApiError("totp-disable", response.status_code, _problem_detail(response))

    async def logout(self, access_token: str) -> int:
        response = await self.client.post(API.logout, headers={"Authorization": f"Bearer {access_token}"})
        return response.status_code

    async def protected_status(self, path: str, access_token: str) -> int:
        """HTTP status of a GET against ``path`` using a bearer token."""
        response = await self.client.get(path, headers={"Authorization": f"Bearer {access_token}"})
        return response.status_code
