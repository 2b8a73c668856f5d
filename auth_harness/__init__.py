"""Authenticated-session harness for browser end-to-end tests."""

from auth_harness.config import HarnessConfig, settings
from auth_harness.credentials import Purpose, Role, TestIdentity, for_purpose, lookup
from auth_harness.errors import HarnessError

__all__ = [
    "HarnessConfig",
    "HarnessError",
    "Purpose",
    "Role",
    "TestIdentity",
    "for_purpose",
    "lookup",
    "settings",
]
