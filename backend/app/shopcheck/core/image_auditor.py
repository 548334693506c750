"""
Image Load Auditor

Enumerates every <img> on the page and decides, per image, whether it
actually loaded. Signals are consulted in order of trust:

1. DOM: complete with non-zero natural dimensions
2. Intercepted network response for the image URL (200 vs anything else)
3. Active HEAD probe from inside the page

An image with zero width or height is failed whatever the other signals
say. After the first pass the auditor scrolls the page in viewport-sized
steps to trigger lazy loading and validates the images that appear.
"""

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from ..config import ScanConfig

# Configure logging
logger = logging.getLogger(__name__)


COLLECT_IMAGES_SCRIPT = """
() => Array.from(document.querySelectorAll('img')).map(img => ({
    src: img.src,
    currentSrc: img.currentSrc,
    alt: img.alt || '',
    width: img.naturalWidth || img.width,
    height: img.naturalHeight || img.height,
    complete: img.complete,
    loading: img.loading || 'eager'
}))
"""

SCROLL_HEIGHT_SCRIPT = "() => document.body.scrollHeight"

SCROLL_TO_SCRIPT = "y => window.scrollTo(0, y)"

# Opaque (no-cors) responses report status 0 without throwing: that is
# reported back as opaque rather than as a success.
PROBE_IMAGE_SCRIPT = """
async (url) => {
    try {
        const res = await fetch(url, { method: 'HEAD', mode: 'no-cors' });
        return { status: res.status, ok: res.ok, opaque: res.type === 'opaque' };
    } catch (e) {
        return { status: 0, ok: false, opaque: false, error: e.message };
    }
}
"""

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg", ".bmp", ".ico", ".avif")
IMAGE_URL_PATTERN = re.compile(r"\.(jpg|jpeg|png|gif|webp|svg|bmp|ico|avif)(\?|$)", re.I)


class ImageOutcome:
    LOADED = "loaded"
    FAILED = "failed"
    INCONCLUSIVE = "inconclusive"


@dataclass
class ImageRecord:
    """One discovered image, refined as validation signals arrive"""
    src: str
    alt: str = ""
    width: int = 0
    height: int = 0
    loading: str = "eager"
    loaded: bool = False
    outcome: str = ImageOutcome.INCONCLUSIVE
    status: Optional[int] = None
    error: Optional[str] = None
    lazy: bool = False

    @property
    def failed(self) -> bool:
        return self.outcome == ImageOutcome.FAILED


@dataclass
class ImageAuditResult:
    passed: bool
    total_images: int = 0
    loaded_images: int = 0
    inconclusive_images: int = 0
    failed_images: List[ImageRecord] = field(default_factory=list)
    missing_alt_text: List[Dict[str, Any]] = field(default_factory=list)
    images: List[ImageRecord] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def is_image_url(url: str) -> bool:
    url_lower = url.lower()
    return (
        any(ext in url_lower for ext in IMAGE_EXTENSIONS)
        or "image" in url_lower
        or IMAGE_URL_PATTERN.search(url) is not None
    )


class ImageAuditor:
    """
    Validates image loading for one page visit.

    Call attach() before navigation so image responses are captured, then
    audit() once the page is loaded.
    """

    def __init__(self, page, config: Optional[ScanConfig] = None):
        self.page = page
        self.config = config or ScanConfig()
        self._responses: Dict[str, int] = {}
        self._attached = False

        self._records: List[ImageRecord] = []
        self._missing_alt: List[Dict[str, Any]] = []
        self._warnings: List[str] = []

    # ==================== Response Capture ====================

    def attach(self):
        """Start recording image response status codes"""
        if self._attached:
            return
        self.page.on("response", self._on_response)
        self._attached = True

    def detach(self):
        if not self._attached:
            return
        try:
            self.page.remove_listener("response", self._on_response)
        except Exception as e:
            logger.debug(f"Could not detach image response listener: {e}")
        self._attached = False

    def _on_response(self, response):
        url = response.url
        if is_image_url(url):
            self._responses[url] = response.status

    # ==================== Audit ====================

    async def audit(self) -> ImageAuditResult:
        """Validate every image, including lazy-loaded ones"""
        logger.info("Validating image loading")

        settle_ms = self.config.timing.image_settle_delay_ms
        if settle_ms > 0:
            await asyncio.sleep(settle_ms / 1000)

        images = await self.collect_images()
        logger.info(f"Found {len(images)} images on page")

        for img in images:
            await self.validate_image(img)

        await self.check_lazy_loaded_images(known_count=len(images))
        self.detach()

        failed = [r for r in self._records if r.failed]
        loaded = [r for r in self._records if r.loaded]
        inconclusive = [r for r in self._records if r.outcome == ImageOutcome.INCONCLUSIVE]

        result = ImageAuditResult(
            passed=len(failed) == 0,
            total_images=len(self._records),
            loaded_images=len(loaded),
            inconclusive_images=len(inconclusive),
            failed_images=failed,
            missing_alt_text=list(self._missing_alt),
            images=list(self._records),
            warnings=list(self._warnings)
        )
        logger.info(
            f"Images: {result.loaded_images}/{result.total_images} loaded, "
            f"{len(failed)} failed, {result.inconclusive_images} inconclusive"
        )
        return result

    async def collect_images(self) -> List[Dict[str, Any]]:
        images = await self.page.evaluate(COLLECT_IMAGES_SCRIPT)
        return images or []

    async def validate_image(self, img: Dict[str, Any], lazy: bool = False) -> ImageRecord:
        src = img.get("src") or img.get("currentSrc") or ""
        width = int(img.get("width") or 0)
        height = int(img.get("height") or 0)

        record = ImageRecord(
            src=src,
            alt=img.get("alt") or "",
            width=width,
            height=height,
            loading=img.get("loading") or "eager",
            lazy=lazy
        )

        if img.get("complete") and width > 0 and height > 0:
            self._mark_loaded(record)
        else:
            status = self._responses.get(img.get("src")) or self._responses.get(img.get("currentSrc"))
            if status is not None:
                record.status = status
                if status == 200:
                    self._mark_loaded(record)
                else:
                    self._mark_failed(record, f"HTTP {status}")
            else:
                await self._probe(record)

        self._check_alt_text(record)

        if width == 0 or height == 0:
            record.loaded = False
            self._mark_failed(record, "Image has zero dimensions")

        self._records.append(record)
        return record

    async def check_lazy_loaded_images(self, known_count: int):
        """
        Scroll through the document one viewport at a time and validate the
        images that appear.

        New images are taken by position beyond the last known count, which
        breaks if the page reorders or removes images while scrolling. The
        "src" identity mode tracks unseen source URLs instead.
        """
        logger.info("Checking lazy-loaded images")
        step = self.config.browser.viewport.height
        delay_ms = self.config.timing.lazy_load_step_delay_ms
        by_src = self.config.images.lazy_image_identity == "src"
        seen_srcs: Set[str] = {r.src for r in self._records}

        try:
            scroll_height = int(await self.page.evaluate(SCROLL_HEIGHT_SCRIPT) or 0)

            offset = 0
            while offset < scroll_height:
                await self.page.evaluate(SCROLL_TO_SCRIPT, offset)
                if delay_ms > 0:
                    await asyncio.sleep(delay_ms / 1000)

                current = await self.collect_images()
                if by_src:
                    fresh = [img for img in current if (img.get("src") or img.get("currentSrc") or "") not in seen_srcs]
                else:
                    fresh = current[known_count:] if len(current) > known_count else []

                for img in fresh:
                    record = await self.validate_image(img, lazy=True)
                    seen_srcs.add(record.src)

                known_count = max(known_count, len(current))
                offset += step

            await self.page.evaluate(SCROLL_TO_SCRIPT, 0)

        except Exception as e:
            logger.warning(f"Lazy-load sweep failed: {e}")
            self._warnings.append(f"Error checking lazy-loaded images: {e}")

    # ==================== Helpers ====================

    async def _probe(self, record: ImageRecord):
        if not record.src:
            self._mark_failed(record, "Image has no source")
            return

        try:
            response = await self.page.evaluate(PROBE_IMAGE_SCRIPT, record.src) or {}
        except Exception as e:
            self._mark_failed(record, str(e))
            return

        status = response.get("status") or 0
        record.status = status

        if response.get("ok") and status == 200:
            self._mark_loaded(record)
        elif status == 0 and not response.get("error"):
            # Cross-origin opacity: reachable but unreadable
            record.outcome = ImageOutcome.INCONCLUSIVE
            record.error = "Probe response was opaque (cross-origin)"
        else:
            self._mark_failed(record, response.get("error") or f"HTTP {status}")

    def _check_alt_text(self, record: ImageRecord):
        if record.alt.strip():
            return
        min_size = self.config.images.min_alt_text_size
        if record.width > min_size and record.height > min_size and not record.src.startswith("data:"):
            self._missing_alt.append({
                "src": record.src,
                "width": record.width,
                "height": record.height
            })

    @staticmethod
    def _mark_loaded(record: ImageRecord):
        record.loaded = True
        record.outcome = ImageOutcome.LOADED

    @staticmethod
    def _mark_failed(record: ImageRecord, error: str):
        record.loaded = False
        record.outcome = ImageOutcome.FAILED
        record.error = error
