"""Routes and selectors the harness relies on.

Only the auth-related surface of the client app lives here. Update these when
the components change; nothing else in the harness hard-codes a selector.
"""
from __future__ import annotations

from urllib.parse import urlparse


class ROUTES:
    home = "/"
    login = "/auth/login"
    mfa_verify = "/auth/mfa/verify"
    change_password = "/auth/change-password"
    totp_setup = "/auth/totp-setup"
    backup_codes = "/auth/backup-codes"
    account = "/account"
    admin_dashboard = "/admin/dashboard"
    developer_style_guide = "/developer/style-guide"

    # Destinations where an unauthenticated session ends up.
    UNAUTHENTICATED = (home, login)
    PROTECTED = (account, admin_dashboard, developer_style_guide)


class API:
    login = "/api/v1/auth/login"
    logout = "/api/v1/auth/logout"
    refresh = "/api/v1/auth/refresh"
    change_password = "/api/v1/auth/change-password"
    verify_totp = "/api/v1/auth/mfa/verify-totp"
    verify_backup = "/api/v1/auth/mfa/verify-backup"
    disable_totp = "/api/v1/auth/mfa/totp/disable"
    trusted_devices = "/api/v1/auth/trusted-devices"


REFRESH_COOKIE = "X-Refresh-Token"
TRUSTED_DEVICE_COOKIE = "__TD"


class SELECTORS:
    class form:
        submit = "button[type='submit']"
        username = "#usernameOrEmail"
        password = "#password"
        remember_me = "#rememberMe"
        error = "[role='alert'], .error-message, mat-error"

    class notification:
        snackbar = ".toast"

    class layout:
        page_heading = "h1"
        user_menu = "[data-testid='user-menu-button']"
        logout = "button:has-text('Logout')"

    class mfa_verify:
        code = "#code"
        trust_device = "[data-testid='trust-device-checkbox']"
        use_backup_code = "[data-testid='use-backup-code-button']"
        back_to_login = "[data-testid='back-to-login-button']"

    class change_password:
        current = "[data-testid='current-password-input']"
        new = "[data-testid='new-password-input']"
        confirm = "[data-testid='confirm-password-input']"
        submit = "[data-testid='change-password-submit']"
        required_notice = "[data-testid='required-notice']"

    class totp_setup:
        secret = "[data-testid='secret-code']"
        cant_scan = "button.link-button"
        verification_code = "#verificationCode"
        scanned_button_text = "I've Scanned the Code"
        verify_button_text = "Verify & Enable"

    class challenge:
        # The state attribute lives on an inner light-DOM node,
        # not on the custom element itself.
        widget = "altcha-widget"
        state_node = ".altcha[data-state]"
        state_attribute = "data-state"
        checkbox = "input[type='checkbox']"


def path_of(url: str) -> str:
    """Path component of ``url`` with a trailing slash trimmed (except root)."""
    path = urlparse(url).path or "/"
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def on_route(url: str, route: str) -> bool:
    """True if ``url`` is ``route`` or one of its sub-paths."""
    path = path_of(url)
    if route == ROUTES.home:
        return path == "/"
    return path == route or path.startswith(route.rstrip("/") + "/")


def is_unauthenticated_destination(url: str) -> bool:
    return any(on_route(url, route) for route in ROUTES.UNAUTHENTICATED)
