import pytest

from auth_harness.config import HarnessConfig, TimeoutBudgets


@pytest.fixture
def fast_config(tmp_path):
    """Config with sub-second budgets so failing waits end quickly."""
    return HarnessConfig(
        base_url="https://app.test",
        api_base_url="https://api.test",
        auth_state_dir=tmp_path / "auth-states",
        timeouts=TimeoutBudgets(
            element=0.2,
            api=0.5,
            navigation=0.5,
            auth=0.5,
            challenge_init=0.2,
            challenge_solve=0.6,
            global_setup=0.5,
            test=5.0,
        ),
        enabled=False,
    )
