"""Seeded test identities.

The table mirrors the users the server-side E2E seeder creates. Records are
frozen: a test that needs to change an identity's authentication state
(password, MFA secret, lock counter, role grants) checks out one of the
single-purpose identities instead of touching a shared one.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Optional, Tuple

from auth_harness.errors import NotFoundError


class Role(str, Enum):
    STANDARD = "User"
    ADMIN = "Admin"
    DEVELOPER = "Developer"
    MFA = "MfaUser"


class Purpose(str, Enum):
    """Flows that mutate server-side auth state and so need their own identity."""

    FORCED_PASSWORD_CHANGE = "forced-password-change"
    FORCED_PASSWORD_CHANGE_LIFECYCLE = "forced-password-change-lifecycle"
    PASSWORD_CHANGE = "password-change"
    TOTP_ENROLL = "totp-enroll"
    TOTP_VIEWER = "totp-viewer"
    BACKUP_CODES = "backup-codes"
    FORGOT_PASSWORD = "forgot-password"
    LOCKOUT = "lockout"
    CONCURRENT = "concurrent"
    CROSS_TAB = "cross-tab"
    PERMISSION_APPROVE = "permission-approve"


@dataclass(frozen=True)
class TestIdentity:
    __test__ = False  # not a pytest test class

    role: Role
    username: str
    password: str
    email: str
    mfa_enabled: bool = False
    totp_secret: Optional[str] = None
    backup_codes: Tuple[str, ...] = ()
    purpose: Optional[Purpose] = None

    def with_password(self, password: str) -> "TestIdentity":
        """Copy carrying a different password (e.g. after a lifecycle change)."""
        return replace(self, password=password)

    def __repr__(self) -> str:
        return f"TestIdentity(role={self.role.value}, username={self.username})"


# Must match the server seeder constants.
MFA_TOTP_SECRET = "JBSWY3DPEHPK3PXP"
MFA_BACKUP_CODES: Tuple[str, ...] = ("E2EBAK01", "E2EBAK02", "E2EBAK03", "E2EBAK04", "E2EBAK05")


TEST_USERS: Tuple[TestIdentity, ...] = (
    TestIdentity(Role.STANDARD, "e2e_user", "E2E_User_Password_123!", "e2e_user@test.local"),
    TestIdentity(Role.ADMIN, "e2e_admin", "E2E_Admin_Password_123!", "e2e_admin@test.local"),
    TestIdentity(Role.DEVELOPER, "e2e_developer", "E2E_Developer_Password_123!", "e2e_developer@test.local"),
    TestIdentity(
        Role.MFA,
        "e2e_mfa_user",
        "E2E_Mfa_Password_123!",
        "e2e_mfa_user@test.local",
        mfa_enabled=True,
        totp_secret=MFA_TOTP_SECRET,
        backup_codes=MFA_BACKUP_CODES,
    ),
)


def _single(purpose: Purpose, username: str, password: str) -> TestIdentity:
    return TestIdentity(
        role=Role.STANDARD,
        username=username,
        password=password,
        email=f"{username}@test.local",
        purpose=purpose,
    )


SINGLE_PURPOSE_USERS: Dict[Purpose, TestIdentity] = {
    identity.purpose: identity
    for identity in (
        # Seeded with RequiresPasswordChange=true; re-armed on every server start.
        _single(Purpose.FORCED_PASSWORD_CHANGE, "e2e_force_pw", "E2E_ForcePw_Password_123!"),
        # Changes its password and back, so it must not share with the read-only forced tests.
        _single(Purpose.FORCED_PASSWORD_CHANGE_LIFECYCLE, "e2e_force_pw_lifecycle", "E2E_ForcePwLife_Password_123!"),
        _single(Purpose.PASSWORD_CHANGE, "e2e_pw_change", "E2E_PwChange_Password_123!"),
        _single(Purpose.TOTP_ENROLL, "e2e_totp_enroll", "E2E_TotpEnroll_Password_123!"),
        # Opening the setup page creates pending TOTP state.
        _single(Purpose.TOTP_VIEWER, "e2e_totp_viewer", "E2E_TotpViewer_Password_123!"),
        _single(Purpose.BACKUP_CODES, "e2e_backup_codes", "E2E_BackupCodes_Password_123!"),
        _single(Purpose.FORGOT_PASSWORD, "e2e_forgot_pw", "E2E_ForgotPw_Password_123!"),
        _single(Purpose.LOCKOUT, "e2e_lockout", "E2E_Lockout_Password_123!"),
        _single(Purpose.CONCURRENT, "e2e_concurrent", "E2E_Concurrent_Password_123!"),
        _single(Purpose.CROSS_TAB, "e2e_crosstab", "E2E_CrossTab_Password_123!"),
        # Approval permanently grants a role.
        _single(Purpose.PERMISSION_APPROVE, "e2e_perm_approve", "E2E_PermApprove_Password_123!"),
    )
}


def lookup(role: Role | str) -> TestIdentity:
    """Return the shared identity registered for ``role``.

    Raises:
        NotFoundError: if no identity has that role.
    """
    try:
        wanted = Role(role)
    except ValueError:
        raise NotFoundError(f"Test user with role '{role}' not found") from None
    for identity in TEST_USERS:
        if identity.role is wanted:
            return identity
    raise NotFoundError(f"Test user with role '{wanted.value}' not found")


def for_purpose(purpose: Purpose | str) -> TestIdentity:
    """Check out the dedicated identity for a state-mutating flow."""
    try:
        return SINGLE_PURPOSE_USERS[Purpose(purpose)]
    except (KeyError, ValueError):
        raise NotFoundError(f"No single-purpose identity for '{purpose}'") from None


def non_mfa_users() -> Tuple[TestIdentity, ...]:
    """Shared identities whose login lands directly on the home route."""
    return tuple(identity for identity in TEST_USERS if not identity.mfa_enabled)


def all_identities() -> Tuple[TestIdentity, ...]:
    return TEST_USERS + tuple(SINGLE_PURPOSE_USERS.values())
