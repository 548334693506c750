"""
Pytest configuration and shared fixtures for shopcheck tests.
"""

import pytest
import sys
from pathlib import Path
from unittest.mock import Mock, AsyncMock
from typing import Any, Dict, List, Optional

# Add backend app to path
sys.path.insert(0, str(Path(__file__).parent.parent / "app"))

from shopcheck.config import merge_config
from shopcheck.core.image_auditor import (
    COLLECT_IMAGES_SCRIPT,
    PROBE_IMAGE_SCRIPT,
    SCROLL_HEIGHT_SCRIPT,
    SCROLL_TO_SCRIPT,
)
from shopcheck.core.platform_detector import PLATFORM_INDICATORS_SCRIPT
from shopcheck.core.signal_classifier import PERFORMANCE_SCRIPT


# ==================== Element Helpers ====================

def make_element(text: Optional[str] = "", visible: bool = True, enabled: bool = True):
    """Create a mock element handle."""
    element = AsyncMock()
    element.text_content = AsyncMock(return_value=text)
    element.bounding_box = AsyncMock(
        return_value={"x": 0, "y": 0, "width": 120, "height": 40} if visible else None
    )
    element.is_enabled = AsyncMock(return_value=enabled)
    return element


def make_image(src: str, width: int = 800, height: int = 800, alt: str = "Product photo",
               complete: bool = True, loading: str = "eager") -> Dict[str, Any]:
    """Image record as returned by the in-page enumeration script."""
    return {
        "src": src,
        "currentSrc": src,
        "alt": alt,
        "width": width,
        "height": height,
        "complete": complete,
        "loading": loading,
    }


# ==================== Mock Page Factory ====================

def build_page(
    elements: Optional[Dict[str, Any]] = None,
    all_elements: Optional[Dict[str, List[Any]]] = None,
    image_batches: Optional[List[List[Dict[str, Any]]]] = None,
    scroll_height: int = 0,
    probes: Optional[Dict[str, Dict[str, Any]]] = None,
    metrics: Optional[Dict[str, Any]] = None,
    indicators: Optional[Dict[str, bool]] = None,
    title: str = "Classic Tee | Example Store",
    meta_description: Optional[str] = "A soft cotton tee.",
    url: str = "https://shop.example.com/products/classic-tee",
):
    """
    Create a mock Playwright page for a storefront.

    `elements` maps selectors to an element handle or to an exception the
    query raises. `image_batches` is returned by successive image
    enumerations, the last batch repeating.
    """
    elements = elements or {}
    all_elements = all_elements or {}
    image_batches = image_batches or [[]]
    probes = probes or {}

    page = AsyncMock()
    page.url = url

    # Event subscription is synchronous in Playwright
    page.on = Mock()
    page.remove_listener = Mock()

    page.goto = AsyncMock(return_value=None)
    page.close = AsyncMock()
    page.wait_for_load_state = AsyncMock()
    page.title = AsyncMock(return_value=title)

    def query(selector, **kwargs):
        value = elements.get(selector)
        if isinstance(value, Exception):
            raise value
        return value

    def wait_for(selector, **kwargs):
        value = query(selector)
        if value is None:
            raise Exception(f"Timeout {kwargs.get('timeout')}ms exceeded waiting for {selector}")
        return value

    def query_all(selector):
        value = all_elements.get(selector)
        if isinstance(value, Exception):
            raise value
        return value or []

    page.query_selector = AsyncMock(side_effect=query)
    page.wait_for_selector = AsyncMock(side_effect=wait_for)
    page.query_selector_all = AsyncMock(side_effect=query_all)

    def eval_on_selector(selector, script):
        if meta_description is None:
            raise Exception(f"Failed to find element matching selector {selector}")
        return meta_description

    page.eval_on_selector = AsyncMock(side_effect=eval_on_selector)

    collect_calls = {"count": 0}

    def evaluate(script, arg=None):
        if script == COLLECT_IMAGES_SCRIPT:
            index = min(collect_calls["count"], len(image_batches) - 1)
            collect_calls["count"] += 1
            return image_batches[index]
        if script == SCROLL_HEIGHT_SCRIPT:
            return scroll_height
        if script == SCROLL_TO_SCRIPT:
            return None
        if script == PROBE_IMAGE_SCRIPT:
            return probes.get(arg, {"status": 200, "ok": True, "opaque": False})
        if script == PERFORMANCE_SCRIPT:
            return metrics or {"domContentLoaded": 800, "loadComplete": 1200}
        if script == PLATFORM_INDICATORS_SCRIPT:
            return indicators or {"shopify": False, "bigcommerce": False}
        return None

    page.evaluate = AsyncMock(side_effect=evaluate)

    return page


@pytest.fixture
def page_factory():
    """Factory for mock storefront pages."""
    return build_page


@pytest.fixture
def element_factory():
    """Factory for mock element handles."""
    return make_element


@pytest.fixture
def image_factory():
    """Factory for enumerated image records."""
    return make_image


@pytest.fixture
def mock_page():
    """Create a mock Playwright page with nothing on it."""
    return build_page()


@pytest.fixture
def mock_context(mock_page):
    """Create a mock browser context lending the mock page."""
    context = AsyncMock()
    context.new_page = AsyncMock(return_value=mock_page)
    return context


# ==================== Configuration Fixtures ====================

@pytest.fixture
def fast_config():
    """Configuration with every settle window disabled."""
    return merge_config({
        "timing": {
            "stabilization_delay_ms": 0,
            "image_settle_delay_ms": 0,
            "lazy_load_step_delay_ms": 0,
            "observation_window_ms": 0,
        },
        "retry": {"delay_ms": 0},
    })


@pytest.fixture
def shopify_storefront() -> Dict[str, Any]:
    """Elements of a healthy Shopify product page keyed by the first default selectors."""
    return {
        'h1[class*="product"][class*="title"]': make_element("Classic Tee"),
        '[class*="price"]': make_element("$19.99"),
        'button[name*="add"]': make_element("Add to cart"),
        '[class*="description"]': make_element("Soft cotton tee with a relaxed fit."),
    }


# ==================== Temp Directory Fixture ====================

@pytest.fixture
def temp_data_dir(tmp_path):
    """Create a temporary data directory for tests."""
    data_dir = tmp_path / "data"
    data_dir.mkdir(parents=True)
    return data_dir
