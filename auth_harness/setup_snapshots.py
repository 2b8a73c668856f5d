"""Log each role in once and persist its auth snapshot.

Run before a journey suite so snapshot-based sessions skip the login form:

    auth-harness-snapshots                 # every non-MFA role
    auth-harness-snapshots --role Admin    # just one
"""
from __future__ import annotations

import argparse
import logging
from typing import Callable, List, Optional, Sequence

import anyio

from auth_harness.auth_state import save_snapshot
from auth_harness.config import HarnessConfig, settings
from auth_harness.credentials import Role, lookup, non_mfa_users
from auth_harness.errors import HarnessError
from auth_harness.playwright_client import PlaywrightClient
from auth_harness.session_manager import SessionProvisioner

logger = logging.getLogger(__name__)


def default_roles() -> List[Role]:
    return [identity.role for identity in non_mfa_users()]


async def create_snapshots(
    roles: Sequence[Role],
    config: HarnessConfig,
    client_factory: Optional[Callable[[HarnessConfig], PlaywrightClient]] = None,
) -> int:
    """Returns the number of roles that failed."""
    failures = 0
    async with (client_factory or PlaywrightClient)(config) as client:
        async with SessionProvisioner(client, config) as provisioner:
            for role in roles:
                identity = lookup(role)
                try:
                    async with provisioner.fresh_session(identity) as session:
                        path = await save_snapshot(session.context, role, config)
                except HarnessError as exc:
                    failures += 1
                    logger.error("Snapshot for %s failed: %s", role.value, exc)
                    continue
                logger.info("  %-10s -> %s", role.value, path)
    return failures


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create per-role authentication snapshots")
    parser.add_argument(
        "--role",
        action="append",
        choices=[role.value for role in Role],
        help="Role to snapshot (repeatable; defaults to every non-MFA role)",
    )
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    roles = [Role(value) for value in args.role] if args.role else default_roles()
    if Role.MFA in roles:
        raise SystemExit("MFA role snapshots are not supported: its sessions need a fresh second factor")

    config = settings.with_overrides(headless=False) if args.headed else settings
    logger.info("Snapshot directory: %s", config.auth_state_dir)
    failures = anyio.run(create_snapshots, roles, config)
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
