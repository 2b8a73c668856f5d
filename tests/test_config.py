"""Environment-driven configuration and named timeout budgets."""
from pathlib import Path

import pytest

from auth_harness.config import DEFAULT_BASE_URL, HarnessConfig, TimeoutBudgets
from auth_harness.errors import ConfigError


class TestHarnessConfig:
    def test_defaults_without_environment(self):
        config = HarnessConfig.from_env({})
        assert config.base_url == DEFAULT_BASE_URL
        assert config.enabled is False
        assert config.headless is True
        assert config.browser_type == "chromium"
        assert config.lockout_attempts == 5
        assert config.totp_margin == 3.0

    def test_base_url_enables_journeys(self):
        config = HarnessConfig.from_env({"E2E_BASE_URL": "https://app.example"})
        assert config.enabled is True
        assert config.url("/auth/login") == "https://app.example/auth/login"

    def test_environment_overrides(self, tmp_path):
        config = HarnessConfig.from_env(
            {
                "E2E_API_BASE_URL": "https://api.example/",
                "PLAYWRIGHT_HEADLESS": "false",
                "PLAYWRIGHT_BROWSER": "firefox",
                "E2E_AUTH_STATE_DIR": str(tmp_path),
                "E2E_LOCKOUT_ATTEMPTS": "3",
                "E2E_TOTP_MARGIN": "5",
            }
        )
        assert config.headless is False
        assert config.browser_type == "firefox"
        assert config.auth_state_dir == Path(tmp_path)
        assert config.lockout_attempts == 3
        assert config.totp_margin == 5.0
        assert config.api_url("api/v1/auth/login") == "https://api.example/api/v1/auth/login"

    def test_unsupported_browser_is_rejected(self):
        with pytest.raises(ConfigError):
            HarnessConfig.from_env({"PLAYWRIGHT_BROWSER": "netscape"})

    def test_non_numeric_setting_is_rejected(self):
        with pytest.raises(ConfigError):
            HarnessConfig.from_env({"E2E_LOCKOUT_ATTEMPTS": "five"})

    def test_with_overrides_leaves_original_untouched(self):
        config = HarnessConfig.from_env({})
        headed = config.with_overrides(headless=False)
        assert headed.headless is False
        assert config.headless is True


class TestTimeoutBudgets:
    def test_budget_carries_name_and_milliseconds(self):
        budget = TimeoutBudgets().budget("auth")
        assert budget.name == "auth"
        assert budget.ms == budget.seconds * 1000

    def test_auth_budget_exceeds_element_budget(self):
        budgets = TimeoutBudgets()
        assert budgets.auth > budgets.element

    def test_unknown_budget_is_rejected(self):
        with pytest.raises(ConfigError):
            TimeoutBudgets().budget("coffee")

    def test_env_override(self):
        budgets = TimeoutBudgets.from_env({"E2E_TIMEOUT_NAVIGATION": "42"})
        assert budgets.navigation == 42.0

    def test_solve_must_exceed_init(self):
        with pytest.raises(ConfigError):
            TimeoutBudgets.from_env({"E2E_TIMEOUT_CHALLENGE_SOLVE": "5", "E2E_TIMEOUT_CHALLENGE_INIT": "10"})

    def test_non_positive_budget_is_rejected(self):
        with pytest.raises(ConfigError):
            TimeoutBudgets.from_env({"E2E_TIMEOUT_ELEMENT": "0"})

    def test_garbage_budget_is_rejected(self):
        with pytest.raises(ConfigError):
            TimeoutBudgets.from_env({"E2E_TIMEOUT_API": "soon"})
