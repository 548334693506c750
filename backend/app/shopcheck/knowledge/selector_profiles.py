"""
Selector Profiles - Candidate Selectors per Storefront Platform

Each platform maps a logical page element (title, price, add-to-cart, ...)
to an ordered list of CSS selectors. The resolver tries them in order, so
the most reliable selector for a theme family goes first.

Profiles are data, not code: callers extend or override them through the
`selectors` section of the configuration.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple


# Logical elements checked by the structural validator
PRODUCT_TITLE = "product_title"
PRODUCT_PRICE = "product_price"
ADD_TO_CART = "add_to_cart"
PRODUCT_DESCRIPTION = "product_description"
PRODUCT_IMAGE = "product_image"
PRODUCT_VARIANT = "product_variant"

LOGICAL_ELEMENTS: Tuple[str, ...] = (
    PRODUCT_TITLE,
    PRODUCT_PRICE,
    ADD_TO_CART,
    PRODUCT_DESCRIPTION,
    PRODUCT_IMAGE,
    PRODUCT_VARIANT,
)

DEFAULT_PLATFORM = "shopify"


DEFAULT_SELECTOR_PROFILES: Dict[str, Dict[str, List[str]]] = {
    # ============================================================
    # SHOPIFY (Dawn and most Online Store 2.0 themes)
    # ============================================================
    "shopify": {
        PRODUCT_TITLE: [
            'h1[class*="product"][class*="title"]',
            'h1[data-product*="title"]',
            '*[class*="title"]',
        ],
        PRODUCT_PRICE: [
            '[class*="price"]',
            '[data-product*="price"]',
            '.product__price',
            '.price-current',
        ],
        ADD_TO_CART: [
            'button[name*="add"]',
            'button[type*="submit"]',
            '[data-testid="pdp-addToBag-submit"]',
            '[data-add-to-cart]',
        ],
        PRODUCT_DESCRIPTION: [
            '[class*="description"]',
            '[data-product*="description"]',
            '*[class*="rte accordion-content"]',
            '[id*="description"]',
        ],
        PRODUCT_IMAGE: [
            'img[class*="product"]',
            '[data-product*="image"]',
            'img[src*="product"]',
            '.product__media img',
            '.product-single__photo img',
        ],
        PRODUCT_VARIANT: [
            'select[name*="id"]',
            '[class*="variant-size"]',
            'select[class*="variant"]',
            '[data-variant*="select"]',
            '.product-form__input select',
        ],
    },
    # ============================================================
    # BIGCOMMERCE (Cornerstone and derived themes)
    # ============================================================
    "bigcommerce": {
        PRODUCT_TITLE: ['h1.product-title', 'h1[data-product-title]', '.productView-title', 'h1'],
        PRODUCT_PRICE: ['.price', '.product-price', '[data-product-price]', '.productView-price'],
        ADD_TO_CART: [
            'button[data-button-type="add-cart"]',
            'button.add-to-cart',
            '[data-product-id] button',
            'button[type="submit"]',
        ],
        PRODUCT_DESCRIPTION: ['.product-description', '[data-product-description]', '.productView-description'],
        PRODUCT_IMAGE: [
            'img.product-image',
            '.productView-images img',
            '[data-product-image]',
            '.productView-image img',
        ],
        PRODUCT_VARIANT: ['select[name*="option"]', 'select.product-option', '[data-product-option]'],
    },
}


@dataclass(frozen=True)
class SelectorProfile:
    """Ordered candidate selectors for every logical element of one platform"""
    platform: str
    elements: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    def __post_init__(self):
        frozen = {name: tuple(selectors) for name, selectors in dict(self.elements).items()}
        object.__setattr__(self, "elements", MappingProxyType(frozen))

    def candidates(self, element: str) -> Tuple[str, ...]:
        """Candidates for a logical element; empty when the profile has none"""
        return self.elements.get(element, ())

    def to_dict(self) -> Dict[str, List[str]]:
        return {name: list(selectors) for name, selectors in self.elements.items()}


class SelectorProfiles:
    """
    Registry of selector profiles keyed by platform.

    The registry never changes after construction; `register` and
    `with_overrides` return new registries.
    """

    def __init__(self, profiles: Optional[Mapping[str, Mapping[str, Sequence[str]]]] = None):
        source = DEFAULT_SELECTOR_PROFILES if profiles is None else profiles
        self._profiles: Mapping[str, SelectorProfile] = MappingProxyType({
            platform.lower(): SelectorProfile(platform.lower(), elements)
            for platform, elements in source.items()
        })

    @classmethod
    def from_overrides(
        cls,
        overrides: Optional[Mapping[str, Mapping[str, Sequence[str]]]] = None
    ) -> "SelectorProfiles":
        """Default profiles with caller overrides merged per platform and element"""
        return cls().with_overrides(overrides or {})

    def with_overrides(self, overrides: Mapping[str, Mapping[str, Sequence[str]]]) -> "SelectorProfiles":
        merged: Dict[str, Dict[str, List[str]]] = {
            platform: profile.to_dict() for platform, profile in self._profiles.items()
        }
        for platform, elements in overrides.items():
            target = merged.setdefault(platform.lower(), {})
            for element, selectors in elements.items():
                target[element] = list(selectors)
        return SelectorProfiles(merged)

    def register(self, platform: str, elements: Mapping[str, Sequence[str]]) -> "SelectorProfiles":
        """Add or replace a whole platform profile"""
        merged = {name: profile.to_dict() for name, profile in self._profiles.items()}
        merged[platform.lower()] = {name: list(selectors) for name, selectors in elements.items()}
        return SelectorProfiles(merged)

    def get(self, platform: Optional[str]) -> SelectorProfile:
        """Profile for a platform, falling back to the Shopify catalog"""
        key = (platform or DEFAULT_PLATFORM).lower()
        if key in self._profiles:
            return self._profiles[key]
        return self._profiles.get(DEFAULT_PLATFORM) or SelectorProfile(key)

    def platforms(self) -> List[str]:
        return list(self._profiles.keys())

    def __contains__(self, platform: str) -> bool:
        return platform.lower() in self._profiles
