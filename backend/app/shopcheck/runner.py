"""
Product Page Runner

Drives one product page through the full pipeline:

    open page -> arm listeners -> navigate (with fallback) -> detect platform
    -> structural checks -> image audit -> finalize signals -> verdict

Pages in a batch run one after another, each on its own page handle with
its own listeners, so signals never leak between URLs. A fault anywhere in
a page's pipeline becomes a failing verdict for that page only.
"""

import asyncio
import logging
import time
from typing import Callable, List, Optional, Sequence

from .config import ScanConfig
from .core.image_auditor import ImageAuditor
from .core.platform_detector import detect_platform
from .core.signal_classifier import SignalClassifier
from .core.structural_validator import StructuralValidator
from .core.verdict import PageTestResult, aggregate, failed_result
from .errors import NavigationError
from .knowledge.selector_profiles import SelectorProfiles

# Configure logging
logger = logging.getLogger(__name__)


AUTO_PLATFORM = "auto"

# First attempt waits for the network to go quiet; fallbacks settle for DOM ready
PRIMARY_WAIT_UNTIL = "networkidle"
FALLBACK_WAIT_UNTIL = "domcontentloaded"


class ProductPageRunner:
    """
    Runs the readiness checks for product pages.

    The browser context is owned by the caller and lent to the runner; the
    runner owns, and always closes, the page it opens for each URL.
    """

    def __init__(
        self,
        config: Optional[ScanConfig] = None,
        profiles: Optional[SelectorProfiles] = None,
        on_result: Optional[Callable[[PageTestResult], None]] = None
    ):
        """
        Initialize runner.

        Args:
            config: Scan configuration
            profiles: Selector profiles; defaults merged with config.selectors
            on_result: Called with each page verdict as soon as it is final
        """
        self.config = config or ScanConfig()
        self.profiles = profiles or SelectorProfiles.from_overrides(self.config.selectors)
        self.on_result = on_result

    async def run_batch(
        self,
        context,
        urls: Sequence[str],
        platform: str = AUTO_PLATFORM
    ) -> List[PageTestResult]:
        """Check every URL in order; one result per URL"""
        results: List[PageTestResult] = []
        for index, url in enumerate(urls, 1):
            logger.info("=" * 60)
            logger.info(f"Testing [{index}/{len(urls)}]: {url}")
            logger.info("=" * 60)

            result = await self.run_page(context, url, platform)
            results.append(result)

            if self.on_result:
                self.on_result(result)

        return results

    async def run_page(self, context, url: str, platform: str = AUTO_PLATFORM) -> PageTestResult:
        """
        Run the full pipeline for one URL.

        Never raises for page-level faults: they are returned as a failing
        PageTestResult carrying the error message.
        """
        start = time.monotonic()
        platform = (platform or AUTO_PLATFORM).lower()
        page = None

        try:
            page = await context.new_page()

            classifier = SignalClassifier(self.config)
            classifier.attach(page)
            image_auditor = ImageAuditor(page, self.config)
            image_auditor.attach()

            await self.navigate(page, url)

            if platform == AUTO_PLATFORM:
                platform = await detect_platform(page)
                logger.info(f"Detected platform: {platform}")

            profile = self.profiles.get(platform)
            structural = await StructuralValidator(page, profile, self.config).validate()
            images = await image_auditor.audit()
            signals = await classifier.finalize()

            result = aggregate(
                url=url,
                platform=platform,
                structural=structural,
                images=images,
                signals=signals,
                duration_ms=_elapsed_ms(start)
            )

        except Exception as e:
            logger.error(f"Error testing {url}: {e}")
            result = failed_result(
                url=url,
                platform=platform,
                error=e,
                duration_ms=_elapsed_ms(start)
            )

        finally:
            if page is not None:
                try:
                    await page.close()
                except Exception as e:
                    logger.warning(f"Error closing page for {url}: {e}")

        if result.passed:
            logger.info(f"[PASS] {url}")
        else:
            logger.info(f"[FAIL] {url}")
        return result

    async def navigate(self, page, url: str):
        """
        Navigate with a degraded fallback.

        The first attempt waits for network idle. Each remaining retry
        attempt waits only for DOMContentLoaded.

        Raises:
            NavigationError: every attempt failed
        """
        attempts = self.config.retry.attempts
        timeout = self.config.timeouts.navigation_ms
        last_error = None

        for attempt in range(attempts):
            wait_until = PRIMARY_WAIT_UNTIL if attempt == 0 else FALLBACK_WAIT_UNTIL
            try:
                logger.info(f"Navigating to page (wait_until={wait_until})")
                await page.goto(url, wait_until=wait_until, timeout=timeout)
                return
            except Exception as e:
                last_error = str(e)
                logger.warning(f"Navigation issue ({wait_until}): {e}")

                # The first fallback follows immediately; later retries back off
                if 0 < attempt < attempts - 1 and self.config.retry.delay_ms > 0:
                    await asyncio.sleep(self.config.retry.delay_ms / 1000)

        raise NavigationError(url, attempts, last_error or "unknown error")


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
