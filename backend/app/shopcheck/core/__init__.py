"""
Core Checks

Selector resolution, structural validation, image auditing, browser signal
classification and the verdict that combines them.
"""

from .selector_resolver import SelectorResolver, ResolvedElement, NotFound
from .structural_validator import StructuralValidator, StructuralResult, ElementCheckResult, Finding
from .image_auditor import ImageAuditor, ImageAuditResult, ImageRecord
from .signal_classifier import SignalClassifier, SignalResult, ClassifiedSignal, ClassifierState
from .verdict import PageTestResult, aggregate, failed_result, within_tolerance
from .platform_detector import detect_platform

__all__ = [
    "SelectorResolver",
    "ResolvedElement",
    "NotFound",
    "StructuralValidator",
    "StructuralResult",
    "ElementCheckResult",
    "Finding",
    "ImageAuditor",
    "ImageAuditResult",
    "ImageRecord",
    "SignalClassifier",
    "SignalResult",
    "ClassifiedSignal",
    "ClassifierState",
    "PageTestResult",
    "aggregate",
    "failed_result",
    "within_tolerance",
    "detect_platform"
]
