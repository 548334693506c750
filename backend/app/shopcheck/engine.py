"""
Browser Session

Owns the Playwright process, browser and context for a run and lends the
context to the page runner. Launch and teardown mirror each other so a
failed launch never leaves a browser behind.
"""

import logging
from typing import List, Optional, Sequence

from playwright.async_api import async_playwright, Browser, BrowserContext

from .config import ScanConfig
from .core.verdict import PageTestResult
from .runner import AUTO_PLATFORM, ProductPageRunner

# Configure logging
logger = logging.getLogger(__name__)


class BrowserSession:
    """
    Async context manager around one Chromium browser.

    Usage:
        async with BrowserSession(config) as session:
            results = await runner.run_batch(session.context, urls)
    """

    def __init__(self, config: Optional[ScanConfig] = None):
        self.config = config or ScanConfig()
        self._playwright = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None

    async def __aenter__(self) -> "BrowserSession":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.cleanup()

    async def initialize(self):
        """Start Playwright, launch Chromium and open a context"""
        browser_config = self.config.browser
        logger.info("Launching browser...")

        try:
            self._playwright = await async_playwright().start()
            self.browser = await self._playwright.chromium.launch(
                headless=browser_config.headless,
                args=browser_config.args
            )
            self.context = await self.browser.new_context(
                viewport={
                    "width": browser_config.viewport.width,
                    "height": browser_config.viewport.height
                }
            )
        except Exception as e:
            logger.error(f"Failed to launch browser: {e}")
            await self.cleanup()
            raise

        logger.info("Browser launched successfully")

    async def cleanup(self):
        """Close context, browser and Playwright, ignoring teardown errors"""
        steps = (
            ("context", self.context, "close"),
            ("browser", self.browser, "close"),
            ("playwright", self._playwright, "stop"),
        )
        self.context = None
        self.browser = None
        self._playwright = None

        # Each step runs even if an earlier one failed
        for name, target, method in steps:
            if not target:
                continue
            try:
                await getattr(target, method)()
            except Exception as e:
                logger.warning(f"Error closing {name}: {e}")

        logger.info("Browser closed")


async def run_checks(
    urls: Sequence[str],
    config: Optional[ScanConfig] = None,
    platform: str = AUTO_PLATFORM,
    runner: Optional[ProductPageRunner] = None
) -> List[PageTestResult]:
    """Launch a browser, check every URL in order and shut the browser down"""
    config = config or ScanConfig()
    runner = runner or ProductPageRunner(config)

    async with BrowserSession(config) as session:
        return await runner.run_batch(session.context, urls, platform)
