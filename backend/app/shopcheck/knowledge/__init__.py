"""
Knowledge Module

Pre-seeded selector catalogs for the supported storefront platforms.
"""

from .selector_profiles import (
    DEFAULT_SELECTOR_PROFILES,
    LOGICAL_ELEMENTS,
    SelectorProfile,
    SelectorProfiles
)

__all__ = [
    "DEFAULT_SELECTOR_PROFILES",
    "LOGICAL_ELEMENTS",
    "SelectorProfile",
    "SelectorProfiles"
]
