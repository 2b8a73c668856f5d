"""
Direct Playwright Client
========================

Launches one browser per test worker. Sessions never share a context: every
caller gets a fresh ``BrowserContext`` (its own cookie and storage jar),
optionally seeded from a persisted snapshot.

Usage:
    async with PlaywrightClient(config) as client:
        context = await client.new_context()
        page = await context.new_page()
"""

import logging
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright

from auth_harness.config import HarnessConfig, settings

logger = logging.getLogger(__name__)


class PlaywrightClient:
    """
    Thin owner of the Playwright driver and browser process.

    Example:
        async with PlaywrightClient() as client:
            context = await client.new_context(storage_state="tmp/auth-states/user.json")
    """

    def __init__(self, config: Optional[HarnessConfig] = None):
        """
        Initialize Playwright client.

        Args:
            config: Harness configuration (browser type, headless, timeouts)
        """
        self.config = config or settings
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def __aenter__(self):
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def connect(self):
        """Launch the configured browser."""
        self._playwright = await async_playwright().start()
        launcher = getattr(self._playwright, self.config.browser_type)
        self._browser = await launcher.launch(headless=self.config.headless)
        logger.debug("Launched %s (headless=%s)", self.config.browser_type, self.config.headless)

    async def new_context(self, storage_state: Optional[str] = None, **kwargs) -> BrowserContext:
        """
        Create an isolated browser context.

        Args:
            storage_state: Optional snapshot file to seed cookies/storage from
            **kwargs: Extra context options (viewport, locale, ...)

        Returns:
            BrowserContext with the element budget as default timeout
        """
        options = {
            "base_url": self.config.base_url,
            "ignore_https_errors": self.config.ignore_https_errors,
        }
        options.update(kwargs)
        if storage_state:
            options["storage_state"] = storage_state
        context = await self.browser.new_context(**options)
        context.set_default_timeout(self.config.budget("element").ms)
        context.set_default_navigation_timeout(self.config.budget("navigation").ms)
        return context

    async def close(self):
        """Close the browser and stop the driver."""
        if self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

    @property
    def browser(self) -> Browser:
        """Get the browser instance."""
        if not self._browser:
            raise RuntimeError("Client not connected. Use 'async with' or call connect()")
        return self._browser
