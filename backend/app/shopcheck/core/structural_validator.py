"""
Structural Validator

Runs the product-page checklist against one loaded page: title, price,
description, add-to-cart control, image presence, variants and meta tags.
Every element is located through the SelectorResolver using the platform's
selector profile.

Policy:
- title / price / add-to-cart missing           -> critical error
- add-to-cart present but not visible            -> critical error
- add-to-cart present but disabled               -> warning (out of stock)
- description missing or too short               -> warning
- no product image matched                       -> warning
- variants                                       -> informational only
- meta title missing/short, meta description gone -> warning
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..config import ScanConfig
from ..knowledge.selector_profiles import (
    ADD_TO_CART,
    PRODUCT_DESCRIPTION,
    PRODUCT_IMAGE,
    PRODUCT_PRICE,
    PRODUCT_TITLE,
    PRODUCT_VARIANT,
    SelectorProfile,
)
from .selector_resolver import NotFound, SelectorResolver, has_text, looks_like_price

# Configure logging
logger = logging.getLogger(__name__)


MIN_DESCRIPTION_LENGTH = 10
MIN_META_TITLE_LENGTH = 5

META_DESCRIPTION_SCRIPT = "el => el.content"


@dataclass
class Finding:
    """A critical error or warning produced by a check"""
    element: str
    message: str
    severity: str  # critical, warning
    selectors: List[str] = field(default_factory=list)


@dataclass
class ElementCheckResult:
    """Outcome of locating one logical element"""
    found: bool
    matched_selector: Optional[str] = None
    extracted_text: Optional[str] = None
    visible: Optional[bool] = None
    enabled: Optional[bool] = None
    count: Optional[int] = None
    candidates: List[str] = field(default_factory=list)


@dataclass
class StructuralResult:
    passed: bool
    errors: List[Finding] = field(default_factory=list)
    warnings: List[Finding] = field(default_factory=list)
    elements: Dict[str, ElementCheckResult] = field(default_factory=dict)
    meta: Dict[str, Optional[str]] = field(default_factory=dict)


class StructuralValidator:
    """
    Checks the fixed catalog of product-page elements.

    One instance per page visit; results are collected on the instance
    while the checklist runs and handed out as a StructuralResult.
    """

    def __init__(self, page, profile: SelectorProfile, config: Optional[ScanConfig] = None):
        """
        Initialize structural validator.

        Args:
            page: Playwright page object
            profile: Selector profile for the detected platform
            config: Scan configuration (timeouts, settle windows)
        """
        self.page = page
        self.profile = profile
        self.config = config or ScanConfig()
        self.resolver = SelectorResolver(page)

        self._errors: List[Finding] = []
        self._warnings: List[Finding] = []
        self._elements: Dict[str, ElementCheckResult] = {}
        self._meta: Dict[str, Optional[str]] = {}

    async def validate(self) -> StructuralResult:
        """Run the whole checklist and return the structural verdict"""
        logger.info(f"Testing product page elements ({self.profile.platform} profile)")

        await self.wait_for_page_load()

        await self.check_title()
        await self.check_price()
        await self.check_description()
        await self.check_add_to_cart()
        await self.check_images()
        await self.check_variants()
        await self.check_meta()

        result = StructuralResult(
            passed=len(self._errors) == 0,
            errors=list(self._errors),
            warnings=list(self._warnings),
            elements=dict(self._elements),
            meta=dict(self._meta)
        )
        logger.info(
            f"Structural checks: {len(result.errors)} critical, {len(result.warnings)} warnings"
        )
        return result

    # ==================== Stabilization ====================

    async def wait_for_page_load(self):
        """
        Wait for load, then network idle, then a fixed settle delay.

        Network idle not arriving in time is only a warning: busy storefronts
        keep long-polling connections open.
        """
        timing = self.config.timing
        page_load_ms = self.config.timeouts.page_load_ms

        try:
            await self.page.wait_for_load_state("load", timeout=page_load_ms)
            await self.page.wait_for_load_state(
                "networkidle",
                timeout=min(page_load_ms, timing.network_idle_timeout_ms)
            )
        except Exception as e:
            self._warn(
                "page_load",
                "Page did not reach networkidle state within timeout",
            )
            logger.debug(f"Page load wait ended early: {e}")

        if timing.stabilization_delay_ms > 0:
            await asyncio.sleep(timing.stabilization_delay_ms / 1000)

    # ==================== Checks ====================

    async def check_title(self):
        candidates = self.profile.candidates(PRODUCT_TITLE)
        resolution = await self.resolver.resolve(candidates, has_text())

        if isinstance(resolution, NotFound):
            self._critical(PRODUCT_TITLE, "Product title not found on page", candidates)
            self._elements[PRODUCT_TITLE] = ElementCheckResult(found=False, candidates=list(candidates))
            return

        self._elements[PRODUCT_TITLE] = ElementCheckResult(
            found=True,
            matched_selector=resolution.selector,
            extracted_text=resolution.text
        )

    async def check_price(self):
        candidates = self.profile.candidates(PRODUCT_PRICE)
        resolution = await self.resolver.resolve(
            candidates,
            looks_like_price(),
            wait_timeout_ms=self.config.timeouts.element_wait_ms
        )

        if isinstance(resolution, NotFound):
            self._critical(PRODUCT_PRICE, "Product price not found on page", candidates)
            self._elements[PRODUCT_PRICE] = ElementCheckResult(found=False, candidates=list(candidates))
            return

        self._elements[PRODUCT_PRICE] = ElementCheckResult(
            found=True,
            matched_selector=resolution.selector,
            extracted_text=resolution.text
        )

    async def check_description(self):
        candidates = self.profile.candidates(PRODUCT_DESCRIPTION)
        resolution = await self.resolver.resolve(candidates, has_text(MIN_DESCRIPTION_LENGTH))

        if isinstance(resolution, NotFound):
            self._warn(
                PRODUCT_DESCRIPTION,
                "Product description not found or too short",
                candidates
            )
            self._elements[PRODUCT_DESCRIPTION] = ElementCheckResult(found=False, candidates=list(candidates))
            return

        self._elements[PRODUCT_DESCRIPTION] = ElementCheckResult(
            found=True,
            matched_selector=resolution.selector,
            extracted_text=resolution.text
        )

    async def check_add_to_cart(self):
        """
        The first attached candidate wins; visibility and enabled state are
        read from that node, not used to skip to the next candidate.
        """
        candidates = self.profile.candidates(ADD_TO_CART)
        resolution = await self.resolver.resolve(candidates)

        if isinstance(resolution, NotFound):
            self._critical(ADD_TO_CART, "Add to cart button not found on page", candidates)
            self._elements[ADD_TO_CART] = ElementCheckResult(found=False, candidates=list(candidates))
            return

        visible = await self._is_visible(resolution.handle)
        enabled = await self._is_enabled(resolution.handle)

        self._elements[ADD_TO_CART] = ElementCheckResult(
            found=True,
            matched_selector=resolution.selector,
            visible=visible,
            enabled=enabled
        )

        if not visible:
            self._critical(ADD_TO_CART, "Add to cart button is not visible")
        elif not enabled:
            self._warn(ADD_TO_CART, "Add to cart button is disabled (product may be out of stock)")

    async def check_images(self):
        """Presence only; load success is the image auditor's job"""
        candidates = self.profile.candidates(PRODUCT_IMAGE)
        resolution = await self.resolver.resolve_all(candidates)

        if isinstance(resolution, NotFound):
            self._warn(PRODUCT_IMAGE, "No product images found with standard selectors", candidates)
            self._elements[PRODUCT_IMAGE] = ElementCheckResult(found=False, candidates=list(candidates))
            return

        self._elements[PRODUCT_IMAGE] = ElementCheckResult(
            found=True,
            matched_selector=resolution.selector,
            count=resolution.count
        )

    async def check_variants(self):
        """Variants are optional; absence is never reported"""
        candidates = self.profile.candidates(PRODUCT_VARIANT)
        resolution = await self.resolver.resolve_all(candidates)

        if isinstance(resolution, NotFound):
            self._elements[PRODUCT_VARIANT] = ElementCheckResult(found=False, count=0)
            return

        self._elements[PRODUCT_VARIANT] = ElementCheckResult(
            found=True,
            matched_selector=resolution.selector,
            count=resolution.count
        )

    async def check_meta(self):
        try:
            page_title = await self.page.title()
            meta_description = await self._meta_description()

            self._meta = {
                "title": page_title or None,
                "description": meta_description or None
            }

            if not page_title or len(page_title) < MIN_META_TITLE_LENGTH:
                self._warn("meta_title", "Page title is missing or too short")

            if not meta_description:
                self._warn("meta_description", "Meta description is missing")

        except Exception as e:
            self._warn("meta_information", f"Error checking meta information: {e}")

    # ==================== Helpers ====================

    async def _meta_description(self) -> Optional[str]:
        try:
            return await self.page.eval_on_selector('meta[name="description"]', META_DESCRIPTION_SCRIPT)
        except Exception:
            # eval_on_selector raises when the tag is absent
            return None

    async def _is_visible(self, handle) -> bool:
        try:
            box = await handle.bounding_box()
        except Exception as e:
            logger.debug(f"Could not read bounding box: {e}")
            return False
        return bool(box) and box.get("width", 0) > 0 and box.get("height", 0) > 0

    async def _is_enabled(self, handle) -> bool:
        try:
            return bool(await handle.is_enabled())
        except Exception as e:
            logger.debug(f"Could not read enabled state: {e}")
            return False

    def _critical(self, element: str, message: str, selectors=None):
        logger.warning(f"[CRITICAL] {element}: {message}")
        self._errors.append(Finding(element, message, "critical", list(selectors or [])))

    def _warn(self, element: str, message: str, selectors=None):
        logger.info(f"[WARN] {element}: {message}")
        self._warnings.append(Finding(element, message, "warning", list(selectors or [])))
