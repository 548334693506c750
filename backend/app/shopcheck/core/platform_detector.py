"""
Platform Detection

Guesses the storefront platform from page globals and markup, falling
back to URL hints and finally to Shopify.
"""

import logging

from ..knowledge.selector_profiles import DEFAULT_PLATFORM

# Configure logging
logger = logging.getLogger(__name__)


PLATFORM_INDICATORS_SCRIPT = """
() => {
    const html = document.body ? document.body.innerHTML : '';
    return {
        shopify: !!(window.Shopify ||
            document.querySelector('[data-shopify]') ||
            document.querySelector('script[src*="shopify"]') ||
            html.includes('shopify')),
        bigcommerce: !!(window.bigcommerce ||
            document.querySelector('[data-bigcommerce]') ||
            document.querySelector('script[src*="bigcommerce"]') ||
            html.includes('bigcommerce'))
    };
}
"""

URL_HINTS = (
    ("myshopify.com", "shopify"),
    ("shopify", "shopify"),
    ("bigcommerce", "bigcommerce"),
)


async def detect_platform(page) -> str:
    """Detect the storefront platform of a loaded page"""
    try:
        indicators = await page.evaluate(PLATFORM_INDICATORS_SCRIPT) or {}
        if indicators.get("shopify"):
            return "shopify"
        if indicators.get("bigcommerce"):
            return "bigcommerce"

        url = (page.url or "").lower()
        for hint, platform in URL_HINTS:
            if hint in url:
                return platform

    except Exception as e:
        logger.warning(f"Platform detection failed: {e}")

    return DEFAULT_PLATFORM
