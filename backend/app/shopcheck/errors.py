"""
Exceptions raised by the readiness checks.

Selector-level faults never surface as exceptions; they are treated as
non-matches inside the resolver.
"""


class ShopcheckError(Exception):
    """Base class for all shopcheck errors"""


class ConfigError(ShopcheckError):
    """Configuration file could not be read or failed validation"""


class NavigationError(ShopcheckError):
    """Navigation did not complete even after every fallback attempt"""

    def __init__(self, url: str, attempts: int, last_error: str):
        self.url = url
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Navigation to {url} failed after {attempts} attempt(s): {last_error}"
        )
