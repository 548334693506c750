"""
Verdict Aggregator

Combines the structural, image and signal results of one page visit into a
single frozen PageTestResult. Pages are judged independently: no weighting,
no partial credit.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from ..config import ToleranceConfig
    from .image_auditor import ImageAuditResult
    from .signal_classifier import SignalResult
    from .structural_validator import StructuralResult


def within_tolerance(critical: int, warnings: int, tolerance: "ToleranceConfig") -> bool:
    """True unless a count strictly exceeds its configured maximum"""
    if critical > tolerance.max_critical_errors:
        return False
    if warnings > tolerance.max_warnings:
        return False
    return True


@dataclass(frozen=True)
class PageTestResult:
    """
    Final verdict for one URL.

    The freeze is shallow: the nested stage results keep their lists. The
    reporting layer reads them through to_dict(), which returns copies.
    """
    url: str
    platform: str
    passed: bool
    structural: Optional["StructuralResult"] = None
    images: Optional["ImageAuditResult"] = None
    signals: Optional["SignalResult"] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    duration_ms: int = 0
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())

    @property
    def status(self) -> str:
        return "passed" if self.passed else "failed"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status
        if self.images is not None:
            # ImageRecord.failed is a property, asdict() drops it
            for key in ("images", "failed_images"):
                for record, raw in zip(getattr(self.images, key), data["images"][key]):
                    raw["failed"] = record.failed
        return data


def aggregate(
    url: str,
    platform: str,
    structural: "StructuralResult",
    images: "ImageAuditResult",
    signals: "SignalResult",
    duration_ms: int = 0
) -> PageTestResult:
    """overall passed = structural AND images AND signals"""
    return PageTestResult(
        url=url,
        platform=platform,
        passed=bool(structural.passed and images.passed and signals.passed),
        structural=structural,
        images=images,
        signals=signals,
        duration_ms=duration_ms
    )


def failed_result(
    url: str,
    platform: str,
    error: BaseException,
    structural: Optional["StructuralResult"] = None,
    images: Optional["ImageAuditResult"] = None,
    signals: Optional["SignalResult"] = None,
    duration_ms: int = 0
) -> PageTestResult:
    """Failing verdict for a page whose pipeline raised"""
    return PageTestResult(
        url=url,
        platform=platform,
        passed=False,
        structural=structural,
        images=images,
        signals=signals,
        error=str(error) or error.__class__.__name__,
        error_type=error.__class__.__name__,
        duration_ms=duration_ms
    )
