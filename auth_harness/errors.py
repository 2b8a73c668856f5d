"""Exception hierarchy for the authenticated-session harness."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


class HarnessError(Exception):
    """Base class for all harness failures."""


class ConfigError(HarnessError):
    """Raised when the harness configuration is inconsistent."""


class NotFoundError(HarnessError):
    """Raised when a registry lookup has no match."""


class SnapshotMissingError(NotFoundError):
    """Raised when no persisted auth snapshot exists for a role."""


class ChallengeInitError(HarnessError):
    """The challenge widget never reached a usable starting state."""


class ChallengeTimeoutError(HarnessError):
    """The proof-of-work computation did not finish within its budget."""


class StateLeakError(HarnessError):
    """A fresh login landed somewhere the caller did not ask for.

    Usually means another flow mutated a shared identity (MFA toggled,
    password change flag set) while this test was running.
    """

    def __init__(self, username: str, landed_on: str, expected: str) -> None:
        self.username = username
        self.landed_on = landed_on
        self.expected = expected
        super().__init__(
            f"Login for '{username}' redirected to {landed_on} (expected {expected}). "
            f"Another test probably changed this identity's authentication state; "
            f"use a single-purpose identity or run the mutating tests serially."
        )


class LoginRejectedError(HarnessError):
    """The server refused the credentials and the page stayed on the login route."""


class AmbiguousStateError(HarnessError):
    """A session ended up in a state that matches none of the accepted outcomes."""


class BudgetExceededError(HarnessError):
    """A bounded wait ran out; the message names the budget that was exceeded."""

    def __init__(self, budget: str, seconds: float, detail: str) -> None:
        self.budget = budget
        self.seconds = seconds
        self.detail = detail
        super().__init__(f"[budget={budget}] timed out after {seconds:g}s: {detail}")


@dataclass
class ToolError(HarnessError):
    """Raised when a raw browser operation fails outside a budgeted wait."""

    name: str
    payload: Dict[str, Any]
    message: str

    def __str__(self) -> str:  # pragma: no cover - human readable helper
        return f"{self.name} failed ({self.message}) with payload={self.payload}"
