"""
Tests for the product page pipeline and browser session.

End-to-end scenarios run the real checks against mock storefront pages.
"""

import pytest
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, Mock, patch
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "app"))

from shopcheck.config import merge_config
from shopcheck.core.platform_detector import detect_platform
from shopcheck.engine import BrowserSession, run_checks
from shopcheck.errors import NavigationError
from shopcheck.knowledge.selector_profiles import ADD_TO_CART, PRODUCT_DESCRIPTION
from shopcheck.runner import FALLBACK_WAIT_UNTIL, PRIMARY_WAIT_UNTIL, ProductPageRunner


URL = "https://shop.example.com/products/classic-tee"


def _context(*pages):
    context = AsyncMock()
    context.new_page = AsyncMock(side_effect=list(pages))
    return context


class TestEndToEnd:
    """Test whole-page verdicts."""

    @pytest.mark.asyncio
    async def test_healthy_page_without_description(self, page_factory, element_factory, image_factory, fast_config):
        """Test pass with exactly one warning for the missing description."""
        images = [image_factory(f"https://cdn.example.com/tee-{i}.jpg") for i in range(10)]
        page = page_factory(
            elements={
                'h1[class*="product"][class*="title"]': element_factory("Classic Tee"),
                '[class*="price"]': element_factory("$19.99"),
                'button[name*="add"]': element_factory("Add to cart"),
            },
            all_elements={'img[class*="product"]': [element_factory()] * 10},
            image_batches=[images],
        )

        result = await ProductPageRunner(fast_config).run_page(_context(page), URL, "shopify")

        assert result.passed is True
        assert result.structural.errors == []
        assert [w.element for w in result.structural.warnings] == [PRODUCT_DESCRIPTION]
        assert result.images.total_images == 10
        assert result.images.loaded_images == 10
        assert result.signals.total_critical == 0
        assert result.signals.total_warnings == 0
        page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_add_to_cart_fails(self, page_factory, element_factory, image_factory, fast_config):
        """Test one critical structural defect fails the page whatever images and signals say."""
        page = page_factory(
            elements={
                'h1[class*="product"][class*="title"]': element_factory("Classic Tee"),
                '[class*="price"]': element_factory("$19.99"),
                '[class*="description"]': element_factory("Soft cotton tee with a relaxed fit."),
            },
            all_elements={'img[class*="product"]': [element_factory()]},
            image_batches=[[image_factory("https://cdn.example.com/tee.jpg")]],
        )

        result = await ProductPageRunner(fast_config).run_page(_context(page), URL, "shopify")

        assert result.passed is False
        assert [e.element for e in result.structural.errors] == [ADD_TO_CART]
        assert result.images.passed is True
        assert result.signals.passed is True


class TestPipeline:
    """Test pipeline ordering and fault handling."""

    @pytest.mark.asyncio
    async def test_listeners_attached_before_navigation(self, mock_page, fast_config):
        """Test signals are armed before the first navigation."""
        order = []
        mock_page.on.side_effect = lambda event, handler: order.append(f"on:{event}")
        mock_page.goto.side_effect = lambda *args, **kwargs: order.append("goto")

        await ProductPageRunner(fast_config).run_page(_context(mock_page), URL, "shopify")

        assert order.index("goto") > order.index("on:response")
        assert order[:4] == ["on:console", "on:pageerror", "on:requestfailed", "on:response"]

    @pytest.mark.asyncio
    async def test_navigation_falls_back(self, mock_page, fast_config):
        """Test the degraded completion criterion after a failed first attempt."""
        mock_page.goto.side_effect = [Exception("Timeout 30000ms exceeded"), None]

        await ProductPageRunner(fast_config).navigate(mock_page, URL)

        wait_untils = [call.kwargs["wait_until"] for call in mock_page.goto.call_args_list]
        assert wait_untils == [PRIMARY_WAIT_UNTIL, FALLBACK_WAIT_UNTIL]

    @pytest.mark.asyncio
    async def test_navigation_uses_navigation_timeout(self, mock_page):
        """Test goto is bounded by the navigation timeout, not the load timeout."""
        config = merge_config({"timeouts": {"navigation_ms": 12000, "page_load_ms": 45000}})

        await ProductPageRunner(config).navigate(mock_page, URL)

        assert mock_page.goto.call_args.kwargs["timeout"] == 12000

    @pytest.mark.asyncio
    async def test_navigation_gives_up(self, mock_page, fast_config):
        """Test NavigationError after every attempt fails."""
        mock_page.goto.side_effect = Exception("net::ERR_NAME_NOT_RESOLVED")

        with pytest.raises(NavigationError) as exc_info:
            await ProductPageRunner(fast_config).navigate(mock_page, URL)

        assert exc_info.value.attempts == 3
        assert mock_page.goto.await_count == 3

    @pytest.mark.asyncio
    async def test_retry_delay_between_fallbacks(self, mock_page):
        """Test the back-off only applies between fallback attempts."""
        config = merge_config({"retry": {"attempts": 3, "delay_ms": 2000}})
        mock_page.goto.side_effect = Exception("net::ERR_CONNECTION_RESET")

        with patch("shopcheck.runner.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(NavigationError):
                await ProductPageRunner(config).navigate(mock_page, URL)

        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_navigation_fault_becomes_failing_verdict(self, mock_page, fast_config):
        """Test operational faults are caught at the page boundary."""
        mock_page.goto.side_effect = Exception("net::ERR_NAME_NOT_RESOLVED")

        result = await ProductPageRunner(fast_config).run_page(_context(mock_page), URL, "shopify")

        assert result.passed is False
        assert result.error_type == "NavigationError"
        mock_page.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_page_close_failure_does_not_mask_result(self, mock_page, fast_config):
        """Test close errors are only logged."""
        mock_page.close.side_effect = Exception("Target closed")

        result = await ProductPageRunner(fast_config).run_page(_context(mock_page), URL, "shopify")

        assert result.url == URL
        assert result.error is None

    @pytest.mark.asyncio
    async def test_new_page_failure(self, fast_config):
        """Test a context that cannot open a page."""
        context = AsyncMock()
        context.new_page = AsyncMock(side_effect=Exception("Browser has been closed"))

        result = await ProductPageRunner(fast_config).run_page(context, URL, "shopify")

        assert result.passed is False
        assert result.error == "Browser has been closed"

    @pytest.mark.asyncio
    async def test_auto_platform_detected_after_navigation(self, page_factory, fast_config):
        """Test platform detection for 'auto'."""
        page = page_factory(indicators={"shopify": False, "bigcommerce": True})

        result = await ProductPageRunner(fast_config).run_page(_context(page), URL, "auto")

        assert result.platform == "bigcommerce"


class TestBatch:
    """Test sequential batches."""

    @pytest.mark.asyncio
    async def test_fault_does_not_abort_batch(self, page_factory, shopify_storefront, fast_config):
        """Test one failing page does not stop the next."""
        broken = page_factory()
        broken.goto.side_effect = Exception("net::ERR_CONNECTION_REFUSED")
        healthy = page_factory(elements=shopify_storefront)
        seen = []

        runner = ProductPageRunner(fast_config, on_result=seen.append)
        results = await runner.run_batch(_context(broken, healthy), ["https://a.example.com/p", URL], "shopify")

        assert [r.url for r in results] == ["https://a.example.com/p", URL]
        assert [r.passed for r in results] == [False, True]
        assert seen == results

    @pytest.mark.asyncio
    async def test_each_page_gets_own_listeners(self, page_factory, fast_config):
        """Test signals never leak between pages."""
        first, second = page_factory(), page_factory()

        await ProductPageRunner(fast_config).run_batch(_context(first, second), [URL, URL], "shopify")

        assert first.on.call_count == 5
        assert second.on.call_count == 5
        assert first.remove_listener.call_count == 5


class TestPlatformDetection:
    """Test storefront platform detection."""

    @pytest.mark.asyncio
    async def test_shopify_indicators(self, page_factory):
        page = page_factory(indicators={"shopify": True, "bigcommerce": True})

        assert await detect_platform(page) == "shopify"

    @pytest.mark.asyncio
    async def test_url_hint(self, page_factory):
        page = page_factory(url="https://store-abc.mybigcommerce.com/tee/")

        assert await detect_platform(page) == "bigcommerce"

    @pytest.mark.asyncio
    async def test_defaults_to_shopify_on_error(self, mock_page):
        mock_page.evaluate.side_effect = Exception("Execution context was destroyed")

        assert await detect_platform(mock_page) == "shopify"


class TestBrowserSession:
    """Test browser lifecycle."""

    def _playwright(self):
        context = AsyncMock()
        browser = AsyncMock()
        browser.new_context = AsyncMock(return_value=context)
        playwright = MagicMock()
        playwright.chromium.launch = AsyncMock(return_value=browser)
        playwright.stop = AsyncMock()
        starter = Mock()
        starter.start = AsyncMock(return_value=playwright)
        return starter, playwright, browser, context

    @pytest.mark.asyncio
    async def test_launch_uses_config(self, fast_config):
        """Test headless, args and viewport reach Playwright."""
        starter, playwright, browser, context = self._playwright()

        with patch("shopcheck.engine.async_playwright", return_value=starter):
            async with BrowserSession(fast_config) as session:
                assert session.context is context

        playwright.chromium.launch.assert_awaited_once_with(headless=True, args=fast_config.browser.args)
        browser.new_context.assert_awaited_once_with(viewport={"width": 1920, "height": 1080})
        context.close.assert_awaited_once()
        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_launch_cleans_up(self, fast_config):
        """Test no Playwright process is left behind."""
        starter, playwright, _, _ = self._playwright()
        playwright.chromium.launch.side_effect = Exception("Executable doesn't exist")

        with patch("shopcheck.engine.async_playwright", return_value=starter):
            with pytest.raises(Exception, match="Executable"):
                async with BrowserSession(fast_config):
                    pass

        playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_context_close_failure_still_stops_browser(self, fast_config):
        """Test a failing teardown step does not skip the later ones."""
        starter, playwright, browser, context = self._playwright()
        context.close.side_effect = Exception("Target closed")

        with patch("shopcheck.engine.async_playwright", return_value=starter):
            async with BrowserSession(fast_config) as session:
                pass

        browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()
        assert session.browser is None
        assert session.context is None

    @pytest.mark.asyncio
    async def test_run_checks_lends_context(self, fast_config):
        """Test run_checks passes the session context to the runner."""
        starter, _, _, context = self._playwright()
        runner = Mock()
        runner.run_batch = AsyncMock(return_value=["result"])

        with patch("shopcheck.engine.async_playwright", return_value=starter):
            results = await run_checks([URL], fast_config, "shopify", runner=runner)

        assert results == ["result"]
        runner.run_batch.assert_awaited_once_with(context, [URL], "shopify")
