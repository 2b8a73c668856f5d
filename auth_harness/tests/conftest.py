import os

import pytest
import pytest_asyncio

from auth_harness.config import settings
from auth_harness.diagnostics import attach_to_report
from auth_harness.invalidation import CrossContextVerifier
from auth_harness.playwright_client import PlaywrightClient
from auth_harness.session_manager import SessionProvisioner


def pytest_collection_modifyitems(config, items):
    """Skip browser journeys unless a client app is configured.

    The journey suite runs on a single worker; `serial` tests share server
    state and are refused under pytest-xdist.
    """
    if settings.enabled:
        if os.environ.get("PYTEST_XDIST_WORKER") and any("serial" in item.keywords for item in items):
            raise pytest.UsageError("`serial` journeys assume a single worker; run them without -n")
        return
    skip = pytest.mark.skip(reason="set E2E_BASE_URL to run browser journeys")
    for item in items:
        if "e2e" in item.keywords:
            item.add_marker(skip)


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    """Attach console errors from every session to a failing test's report."""
    outcome = yield
    report = outcome.get_result()
    if report.when != "call" or not report.failed:
        return
    provisioner = item.funcargs.get("provisioner") if hasattr(item, "funcargs") else None
    if provisioner is not None:
        attach_to_report(report, provisioner.collected_diagnostics())


@pytest_asyncio.fixture()
async def playwright_client():
    """Create a Playwright client instance."""
    async with PlaywrightClient(settings) as client:
        yield client


@pytest_asyncio.fixture()
async def provisioner(playwright_client):
    """Session provisioner for the test.

    Every session it hands out is closed after the test, pass or fail.

    Usage:
        async def test_multi_context(provisioner):
            a = await provisioner.provision_fresh(identity)
            b = await provisioner.provision_fresh(identity)
    """
    async with SessionProvisioner(playwright_client, settings) as manager:
        yield manager


@pytest.fixture()
def verifier(provisioner):
    return CrossContextVerifier(provisioner, settings)
