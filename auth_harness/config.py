"""Shared configuration for the authenticated-session harness.

All values come from environment variables with local-stack defaults:

- E2E_BASE_URL / E2E_API_BASE_URL: client app and API origins
- PLAYWRIGHT_HEADLESS / PLAYWRIGHT_BROWSER: browser launch options
- E2E_AUTH_STATE_DIR: where per-role auth snapshots live
- E2E_TIMEOUT_<BUDGET>: override a named timeout budget (seconds)

Journey tests only run when E2E_BASE_URL is set explicitly.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Dict
from urllib.parse import urljoin

from auth_harness.errors import ConfigError

DEFAULT_BASE_URL = "https://localhost:4201"
DEFAULT_API_BASE_URL = "https://localhost:7174"
DEFAULT_AUTH_STATE_DIR = Path(__file__).resolve().parent.parent / "tmp" / "auth-states"


@dataclass(frozen=True)
class TimeoutBudget:
    """A named wait budget. Failures quote the name for triage."""

    name: str
    seconds: float

    @property
    def ms(self) -> float:
        """Budget in milliseconds, as Playwright expects."""
        return self.seconds * 1000


@dataclass(frozen=True)
class TimeoutBudgets:
    """Every suspension point draws its timeout from one of these."""

    element: float = 5.0
    api: float = 10.0
    navigation: float = 15.0
    # Bootstrap performs a token refresh round trip before the UI settles.
    auth: float = 20.0
    challenge_init: float = 10.0
    challenge_solve: float = 60.0
    global_setup: float = 30.0
    test: float = 120.0

    def budget(self, name: str) -> TimeoutBudget:
        if name not in self.names():
            raise ConfigError(f"Unknown timeout budget '{name}'")
        return TimeoutBudget(name=name, seconds=getattr(self, name))

    @classmethod
    def names(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    @classmethod
    def from_env(cls, environ: Dict[str, str] | None = None) -> "TimeoutBudgets":
        env = os.environ if environ is None else environ
        overrides: Dict[str, float] = {}
        for name in cls.names():
            raw = env.get(f"E2E_TIMEOUT_{name.upper()}")
            if raw is None or raw == "":
                continue
            try:
                overrides[name] = float(raw)
            except ValueError as exc:
                raise ConfigError(f"E2E_TIMEOUT_{name.upper()} must be a number, got '{raw}'") from exc
        budgets = cls(**overrides)
        budgets.validate()
        return budgets

    def validate(self) -> None:
        for name in self.names():
            if getattr(self, name) <= 0:
                raise ConfigError(f"Timeout budget '{name}' must be positive")
        if self.challenge_solve <= self.challenge_init:
            raise ConfigError(
                "challenge_solve must be larger than challenge_init "
                f"({self.challenge_solve}s <= {self.challenge_init}s)"
            )


def _env_flag(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class HarnessConfig:
    """Explicit configuration handed to every harness component."""

    base_url: str = DEFAULT_BASE_URL
    api_base_url: str = DEFAULT_API_BASE_URL
    headless: bool = True
    browser_type: str = "chromium"
    auth_state_dir: Path = DEFAULT_AUTH_STATE_DIR
    ignore_https_errors: bool = True
    lockout_attempts: int = 5
    totp_margin: float = 3.0
    timeouts: TimeoutBudgets = field(default_factory=TimeoutBudgets)
    enabled: bool = False

    @classmethod
    def from_env(cls, environ: Dict[str, str] | None = None) -> "HarnessConfig":
        env = os.environ if environ is None else environ
        base_url = env.get("E2E_BASE_URL") or ""
        browser_type = env.get("PLAYWRIGHT_BROWSER", "chromium")
        if browser_type not in {"chromium", "firefox", "webkit"}:
            raise ConfigError(f"Unsupported PLAYWRIGHT_BROWSER '{browser_type}'")
        try:
            lockout_attempts = int(env.get("E2E_LOCKOUT_ATTEMPTS", "5"))
            totp_margin = float(env.get("E2E_TOTP_MARGIN", "3"))
        except ValueError as exc:
            raise ConfigError(f"Invalid numeric setting: {exc}") from exc
        return cls(
            base_url=base_url or DEFAULT_BASE_URL,
            api_base_url=env.get("E2E_API_BASE_URL") or DEFAULT_API_BASE_URL,
            headless=_env_flag(env.get("PLAYWRIGHT_HEADLESS"), True),
            browser_type=browser_type,
            auth_state_dir=Path(env.get("E2E_AUTH_STATE_DIR") or DEFAULT_AUTH_STATE_DIR),
            ignore_https_errors=_env_flag(env.get("E2E_IGNORE_HTTPS_ERRORS"), True),
            lockout_attempts=lockout_attempts,
            totp_margin=totp_margin,
            timeouts=TimeoutBudgets.from_env(env),
            enabled=bool(base_url),
        )

    def budget(self, name: str) -> TimeoutBudget:
        return self.timeouts.budget(name)

    def url(self, path: str) -> str:
        """Return an absolute client URL for the provided path."""
        return urljoin(self.base_url.rstrip("/") + "/", path.lstrip("/"))

    def api_url(self, path: str) -> str:
        """Return an absolute API URL for the provided path."""
        return urljoin(self.api_base_url.rstrip("/") + "/", path.lstrip("/"))

    def with_overrides(self, **changes) -> "HarnessConfig":
        """Copy with some fields replaced; the shared instance is never mutated."""
        return replace(self, **changes)


# Singleton instance - initialized on first import
settings = HarnessConfig.from_env()
