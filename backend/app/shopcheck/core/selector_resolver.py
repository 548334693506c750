"""
Selector Resolver

Locates a logical element on an unknown store theme by walking its
candidate selectors in order. The first candidate that matches a node AND
passes the element's content predicate wins; later candidates are never
evaluated, even if they would be a more specific match.

A candidate that raises (malformed selector, unsupported syntax, timeout)
counts as a non-match. Resolution itself never raises.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple, Union

# Configure logging
logger = logging.getLogger(__name__)


# A predicate receives an element handle and returns (accepted, extracted_text)
ContentPredicate = Callable[[Any], Awaitable[Tuple[bool, Optional[str]]]]

PRICE_PATTERN = re.compile(r"[$€£¥\d]")


@dataclass
class ResolvedElement:
    """A candidate selector that matched and satisfied its predicate"""
    handle: Any
    selector: str
    index: int
    text: Optional[str] = None
    count: int = 1


@dataclass
class NotFound:
    """No candidate matched; carries every selector tried for diagnostics"""
    candidates: List[str] = field(default_factory=list)
    last_error: Optional[str] = None

    def __bool__(self) -> bool:
        return False


Resolution = Union[ResolvedElement, NotFound]


# ==================== Content Predicates ====================

def attached() -> ContentPredicate:
    """Accept any matched node"""
    async def check(handle) -> Tuple[bool, Optional[str]]:
        return True, None
    return check


def has_text(min_length: int = 1) -> ContentPredicate:
    """Accept nodes whose trimmed text content is at least min_length long"""
    async def check(handle) -> Tuple[bool, Optional[str]]:
        text = await _read_text(handle)
        return bool(text) and len(text) >= min_length, text
    return check


def looks_like_price() -> ContentPredicate:
    """Accept nodes whose text carries a currency symbol or a digit"""
    async def check(handle) -> Tuple[bool, Optional[str]]:
        text = await _read_text(handle)
        return bool(text) and PRICE_PATTERN.search(text) is not None, text
    return check


async def _read_text(handle) -> str:
    text = await handle.text_content()
    return (text or "").strip()


# ==================== Resolver ====================

class SelectorResolver:
    """
    Stateless first-success resolver over ordered candidate selectors.

    Safe to share between element kinds; it only reads from the page.
    """

    def __init__(self, page):
        self.page = page

    async def resolve(
        self,
        candidates: Sequence[str],
        predicate: Optional[ContentPredicate] = None,
        wait_timeout_ms: Optional[int] = None
    ) -> Resolution:
        """
        Resolve the first candidate that matches and satisfies the predicate.

        Args:
            candidates: Ordered candidate selectors
            predicate: Content check; any attached node when None
            wait_timeout_ms: Wait up to this long per candidate for the node
                to attach; a plain query when None

        Returns:
            ResolvedElement or NotFound
        """
        predicate = predicate or attached()
        last_error = None

        for index, selector in enumerate(candidates):
            try:
                handle = await self._query(selector, wait_timeout_ms)
                if handle is None:
                    continue

                accepted, text = await predicate(handle)
                if accepted:
                    logger.debug(f"Resolved candidate #{index} {selector!r}")
                    return ResolvedElement(handle=handle, selector=selector, index=index, text=text)

            except Exception as e:
                last_error = str(e)
                logger.debug(f"Candidate {selector!r} failed: {e}")
                continue

        return NotFound(candidates=list(candidates), last_error=last_error)

    async def resolve_all(self, candidates: Sequence[str]) -> Resolution:
        """
        Resolve the first candidate matching one or more nodes.

        Used for presence checks where the count matters (images, variants).
        """
        last_error = None

        for index, selector in enumerate(candidates):
            try:
                handles = await self.page.query_selector_all(selector)
                if handles:
                    return ResolvedElement(
                        handle=handles[0],
                        selector=selector,
                        index=index,
                        count=len(handles)
                    )
            except Exception as e:
                last_error = str(e)
                logger.debug(f"Candidate {selector!r} failed: {e}")
                continue

        return NotFound(candidates=list(candidates), last_error=last_error)

    async def _query(self, selector: str, wait_timeout_ms: Optional[int]):
        if wait_timeout_ms is None:
            return await self.page.query_selector(selector)
        return await self.page.wait_for_selector(selector, state="attached", timeout=wait_timeout_ms)
