"""
Persisted authentication snapshots and cookie inspection.

A snapshot is Playwright's storage state (cookies + localStorage) for one
role, written by the setup phase and read by shared-session provisioning.
Snapshots are read-only seeds: tests never write back to them.
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from playwright.async_api import BrowserContext

from auth_harness.config import HarnessConfig, settings
from auth_harness.credentials import Role

logger = logging.getLogger(__name__)


def snapshot_path(role: Role, config: Optional[HarnessConfig] = None) -> Path:
    """Path of the snapshot file for ``role``.

    Args:
        role: Registry role the snapshot belongs to
        config: Harness config (for the snapshot directory)

    Returns:
        Path to ``<auth_state_dir>/<role>.json``
    """
    config = config or settings
    return Path(config.auth_state_dir) / f"{Role(role).value.lower()}.json"


def has_snapshot(role: Role, config: Optional[HarnessConfig] = None) -> bool:
    return snapshot_path(role, config).exists()


async def save_snapshot(
    context: BrowserContext,
    role: Role,
    config: Optional[HarnessConfig] = None,
) -> Path:
    """Save storage state of an authenticated context.

    The write goes to a temp file first and is then renamed, so a parallel
    reader never sees a half-written snapshot.
    """
    target = snapshot_path(role, config)
    target.parent.mkdir(parents=True, exist_ok=True)
    temp_file = target.with_suffix(".tmp")
    await context.storage_state(path=str(temp_file))
    temp_file.replace(target)
    logger.info("Saved auth snapshot for %s to %s", Role(role).value, target)
    return target


def clear_snapshot(role: Role, config: Optional[HarnessConfig] = None) -> bool:
    """Delete a saved snapshot. Returns True if a file was removed."""
    target = snapshot_path(role, config)
    if target.exists():
        target.unlink()
        logger.info("Cleared auth snapshot: %s", target)
        return True
    return False


def find_cookie(cookies: Iterable[Dict[str, Any]], name: str) -> Optional[Dict[str, Any]]:
    for cookie in cookies:
        if cookie.get("name") == name:
            return cookie
    return None


def cookie_lifetime(cookie: Dict[str, Any], now: Optional[datetime] = None) -> Optional[timedelta]:
    """Remaining lifetime of a cookie, or None for a session-scoped cookie.

    Playwright reports ``expires`` in epoch seconds and uses -1 for
    session cookies.
    """
    expires = cookie.get("expires")
    if expires is None or expires < 0 or math.isinf(expires):
        return None
    now = now or datetime.now(timezone.utc)
    return datetime.fromtimestamp(expires, tz=timezone.utc) - now


def lifetime_days(cookie: Dict[str, Any], now: Optional[datetime] = None) -> float:
    """Remaining lifetime in days; session cookies count as 0."""
    lifetime = cookie_lifetime(cookie, now)
    if lifetime is None:
        return 0.0
    return lifetime.total_seconds() / 86400
