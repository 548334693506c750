"""
shopcheck - Storefront Product Page Readiness Checks

Drives a browser against live product pages and returns a single pass/fail
verdict per page:
- Locates product elements across unknown themes with ordered selector fallbacks
- Verifies that every image actually loads, including lazy-loaded ones
- Classifies console errors, failed requests and HTTP errors by severity
- Applies configurable error tolerances to decide readiness
"""

from .config import ScanConfig, ToleranceConfig, load_config, merge_config
from .errors import ShopcheckError, ConfigError, NavigationError
from .knowledge.selector_profiles import SelectorProfile, SelectorProfiles
from .core.verdict import PageTestResult
from .runner import ProductPageRunner
from .engine import BrowserSession, run_checks

__all__ = [
    # Configuration
    "ScanConfig",
    "ToleranceConfig",
    "load_config",
    "merge_config",
    # Errors
    "ShopcheckError",
    "ConfigError",
    "NavigationError",
    # Selectors
    "SelectorProfile",
    "SelectorProfiles",
    # Execution
    "PageTestResult",
    "ProductPageRunner",
    "BrowserSession",
    "run_checks"
]

__version__ = "1.0.0"
