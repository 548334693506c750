"""
Signal Classifier

Listens to the browser's event stream for one page visit and turns it into
a severity-tagged error/warning report.

Lifecycle:
    IDLE --attach()--> ARMED --finalize()--> FINALIZED

While ARMED, four page events feed one append-only log of raw signals:
console errors, uncaught page exceptions, failed requests and responses
(HTTP errors plus passive security checks). Listener callbacks run on the
event loop and only ever append; nothing reads the log until finalize(),
which closes the observation window, detaches the listeners and classifies
everything exactly once. Events arriving after that are dropped.

The observation window is a fixed timer. It gives delayed async errors a
chance to surface but does not prove the page has gone quiet.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..config import ScanConfig, ToleranceConfig
from .verdict import within_tolerance

# Configure logging
logger = logging.getLogger(__name__)


PERFORMANCE_SCRIPT = """
() => {
    const timing = window.performance.timing;
    return {
        domContentLoaded: timing.domContentLoadedEventEnd - timing.navigationStart,
        loadComplete: timing.loadEventEnd - timing.navigationStart
    };
}
"""


class ClassifierState(Enum):
    """State of the signal classifier"""
    IDLE = "idle"
    ARMED = "armed"
    FINALIZED = "finalized"


class Severity:
    CRITICAL = "critical"
    WARNING = "warning"


# ==================== Raw Signals ====================

def _now() -> str:
    return datetime.now().isoformat()


@dataclass(frozen=True)
class ConsoleSignal:
    message: str
    location: Optional[Dict[str, Any]] = None
    timestamp: str = field(default_factory=_now)
    kind: str = "console_error"
    severity_hint: str = Severity.WARNING


@dataclass(frozen=True)
class PageErrorSignal:
    """Uncaught exception thrown inside the page"""
    message: str
    stack: Optional[str] = None
    timestamp: str = field(default_factory=_now)
    kind: str = "page_error"
    severity_hint: str = Severity.CRITICAL


@dataclass(frozen=True)
class RequestFailedSignal:
    url: str
    method: str
    failure: str
    is_cors: bool = False
    timestamp: str = field(default_factory=_now)
    kind: str = "request_failed"
    severity_hint: str = Severity.WARNING


@dataclass(frozen=True)
class HttpErrorSignal:
    url: str
    status: int
    status_text: str = ""
    method: str = "GET"
    timestamp: str = field(default_factory=_now)
    kind: str = "http_error"
    severity_hint: str = Severity.WARNING


@dataclass(frozen=True)
class SecuritySignal:
    finding: str  # mixed_content, insecure_cookie
    url: str
    message: str
    timestamp: str = field(default_factory=_now)
    kind: str = "security"
    severity_hint: str = Severity.WARNING


RawSignal = Union[ConsoleSignal, PageErrorSignal, RequestFailedSignal, HttpErrorSignal, SecuritySignal]


# ==================== Classified Output ====================

@dataclass(frozen=True)
class ClassifiedSignal:
    kind: str
    severity: str
    message: str
    timestamp: str
    url: Optional[str] = None
    status: Optional[int] = None
    resource_type: Optional[str] = None


@dataclass
class SignalResult:
    passed: bool
    console_errors: List[ClassifiedSignal] = field(default_factory=list)
    network_failures: List[ClassifiedSignal] = field(default_factory=list)
    resource_failures: List[ClassifiedSignal] = field(default_factory=list)
    cors_errors: List[ClassifiedSignal] = field(default_factory=list)
    security_findings: List[ClassifiedSignal] = field(default_factory=list)
    performance_warnings: List[ClassifiedSignal] = field(default_factory=list)
    performance_metrics: Dict[str, Any] = field(default_factory=dict)
    filtered_noise: int = 0
    total_critical: int = 0
    total_warnings: int = 0

    @property
    def signals(self) -> List[ClassifiedSignal]:
        return (
            self.console_errors + self.network_failures + self.resource_failures
            + self.cors_errors + self.security_findings + self.performance_warnings
        )


def resource_type(url: str) -> str:
    url_lower = url.lower()
    if ".css" in url_lower:
        return "stylesheet"
    if ".js" in url_lower:
        return "script"
    if any(ext in url_lower for ext in (".jpg", ".jpeg", ".png", ".gif", ".webp", ".svg")):
        return "image"
    if "font" in url_lower:
        return "font"
    return "other"


def _has_secure_attribute(set_cookie: str) -> bool:
    # First pair is name=value, attributes follow
    attributes = set_cookie.split(";")[1:]
    return any(attr.strip().lower() == "secure" for attr in attributes)


class SignalClassifier:
    """
    Collects browser signals during the observation window and classifies
    them once, on finalize.
    """

    EVENTS = ("console", "pageerror", "requestfailed", "response")

    def __init__(self, config: Optional[ScanConfig] = None):
        self.config = config or ScanConfig()
        self.page = None
        self.state = ClassifierState.IDLE

        self._log: List[RawSignal] = []
        self._pending: List[asyncio.Task] = []
        self._handlers = {
            "console": self._on_console,
            "pageerror": self._on_page_error,
            "requestfailed": self._on_request_failed,
            "response": self._on_response,
        }
        self._result: Optional[SignalResult] = None

    # ==================== Lifecycle ====================

    def attach(self, page):
        """Register listeners on a page; must happen before navigation"""
        if self.state != ClassifierState.IDLE:
            raise RuntimeError(f"Cannot attach a classifier in state {self.state.value}")

        self.page = page
        for event, handler in self._handlers.items():
            page.on(event, handler)
        self.state = ClassifierState.ARMED
        logger.info("Error detection armed")

    async def finalize(self, observation_window_ms: Optional[int] = None) -> SignalResult:
        """
        Close the observation window and classify everything collected.

        Args:
            observation_window_ms: Settle delay before classifying; defaults
                to timing.observation_window_ms

        Returns:
            SignalResult (the same object on repeated calls)
        """
        if self.state == ClassifierState.FINALIZED:
            return self._result
        if self.state != ClassifierState.ARMED:
            raise RuntimeError("Classifier was never attached to a page")

        window_ms = self.config.timing.observation_window_ms if observation_window_ms is None else observation_window_ms
        if window_ms > 0:
            await asyncio.sleep(window_ms / 1000)

        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

        metrics = await self._sample_performance()
        self._detach()
        self.state = ClassifierState.FINALIZED

        self._result = self.classify(list(self._log), metrics, self.config.tolerance)
        return self._result

    @property
    def raw_signals(self) -> List[RawSignal]:
        """Snapshot of the raw log; only available once finalized"""
        self._require_finalized()
        return list(self._log)

    @property
    def result(self) -> SignalResult:
        self._require_finalized()
        return self._result

    def _require_finalized(self):
        if self.state != ClassifierState.FINALIZED:
            raise RuntimeError("Signals are only available after finalize()")

    def _detach(self):
        if self.page is None:
            return
        for event, handler in self._handlers.items():
            try:
                self.page.remove_listener(event, handler)
            except Exception as e:
                logger.debug(f"Could not detach {event} listener: {e}")

    def _append(self, signal: RawSignal):
        if self.state == ClassifierState.ARMED:
            self._log.append(signal)

    # ==================== Listeners ====================

    def _on_console(self, msg):
        if msg.type != "error":
            return
        self._append(ConsoleSignal(message=msg.text, location=_location(msg)))

    def _on_page_error(self, error):
        self._append(PageErrorSignal(
            message=getattr(error, "message", None) or str(error),
            stack=getattr(error, "stack", None)
        ))

    def _on_request_failed(self, request):
        failure = request.failure or "Unknown failure"
        self._append(RequestFailedSignal(
            url=request.url,
            method=request.method,
            failure=failure,
            is_cors="cors" in failure.lower()
        ))

    def _on_response(self, response):
        if self.state != ClassifierState.ARMED:
            return

        status = response.status
        if status >= 400:
            request = response.request
            self._append(HttpErrorSignal(
                url=response.url,
                status=status,
                status_text=response.status_text or "",
                method=request.method if request else "GET"
            ))

        page_url = self.page.url if self.page else ""
        if not page_url.startswith("https://"):
            return

        if response.url.startswith("http://"):
            self._append(SecuritySignal(
                finding="mixed_content",
                url=response.url,
                message="HTTP resource loaded on HTTPS page"
            ))

        # Cookie headers are only exposed through the async header API
        self._pending.append(asyncio.ensure_future(self._check_cookies(response)))

    async def _check_cookies(self, response):
        try:
            cookies = await response.header_values("set-cookie")
        except Exception as e:
            logger.debug(f"Could not read Set-Cookie for {response.url}: {e}")
            return

        for cookie in cookies:
            if not _has_secure_attribute(cookie):
                self._append(SecuritySignal(
                    finding="insecure_cookie",
                    url=response.url,
                    message="Cookie set without Secure flag on HTTPS page"
                ))

    async def _sample_performance(self) -> Dict[str, Any]:
        try:
            return await self.page.evaluate(PERFORMANCE_SCRIPT) or {}
        except Exception as e:
            logger.debug(f"Performance metrics unavailable: {e}")
            return {}

    # ==================== Classification ====================

    def classify(
        self,
        raw: List[RawSignal],
        metrics: Optional[Dict[str, Any]] = None,
        tolerance: Optional[ToleranceConfig] = None
    ) -> SignalResult:
        """Filter noise, tag severities and apply the tolerance verdict"""
        signals_config = self.config.signals
        noise = [p.lower() for p in signals_config.noise_patterns]
        critical_phrases = [p.lower() for p in signals_config.critical_console_patterns]
        critical_resources = signals_config.critical_resource_patterns
        tolerance = tolerance or self.config.tolerance
        metrics = metrics or {}

        result = SignalResult(passed=True, performance_metrics=dict(metrics))

        for signal in raw:
            if isinstance(signal, (ConsoleSignal, PageErrorSignal)):
                message = signal.message.lower()
                if any(pattern in message for pattern in noise):
                    result.filtered_noise += 1
                    continue

                if isinstance(signal, PageErrorSignal):
                    severity = Severity.CRITICAL
                elif any(phrase in message for phrase in critical_phrases):
                    severity = Severity.CRITICAL
                else:
                    severity = Severity.WARNING

                result.console_errors.append(ClassifiedSignal(
                    kind=signal.kind,
                    severity=severity,
                    message=signal.message,
                    timestamp=signal.timestamp
                ))

            elif isinstance(signal, RequestFailedSignal):
                classified = ClassifiedSignal(
                    kind="cors_error" if signal.is_cors else "network_failure",
                    severity=Severity.WARNING,
                    message=f"{signal.method} {signal.url}: {signal.failure}",
                    timestamp=signal.timestamp,
                    url=signal.url
                )
                if signal.is_cors:
                    result.cors_errors.append(classified)
                else:
                    result.network_failures.append(classified)

            elif isinstance(signal, HttpErrorSignal):
                message = f"HTTP {signal.status} {signal.status_text}".strip() + f" for {signal.url}"
                if signal.status >= 500:
                    result.network_failures.append(ClassifiedSignal(
                        kind="http_error",
                        severity=Severity.CRITICAL,
                        message=message,
                        timestamp=signal.timestamp,
                        url=signal.url,
                        status=signal.status
                    ))
                elif any(pattern in signal.url for pattern in critical_resources):
                    result.resource_failures.append(ClassifiedSignal(
                        kind="resource_failure",
                        severity=Severity.CRITICAL,
                        message=message,
                        timestamp=signal.timestamp,
                        url=signal.url,
                        status=signal.status,
                        resource_type=resource_type(signal.url)
                    ))
                else:
                    result.network_failures.append(ClassifiedSignal(
                        kind="http_error",
                        severity=Severity.WARNING,
                        message=message,
                        timestamp=signal.timestamp,
                        url=signal.url,
                        status=signal.status
                    ))

            elif isinstance(signal, SecuritySignal):
                result.security_findings.append(ClassifiedSignal(
                    kind=signal.finding,
                    severity=Severity.WARNING,
                    message=signal.message,
                    timestamp=signal.timestamp,
                    url=signal.url
                ))

        load_complete = metrics.get("loadComplete")
        threshold = self.config.timing.slow_load_threshold_ms
        if isinstance(load_complete, (int, float)) and load_complete > threshold:
            result.performance_warnings.append(ClassifiedSignal(
                kind="slow_load",
                severity=Severity.WARNING,
                message=f"Page load time: {int(load_complete)}ms",
                timestamp=_now()
            ))

        all_signals = result.signals
        result.total_critical = sum(1 for s in all_signals if s.severity == Severity.CRITICAL)
        result.total_warnings = sum(1 for s in all_signals if s.severity == Severity.WARNING)
        result.passed = within_tolerance(result.total_critical, result.total_warnings, tolerance)

        logger.info(
            f"Found {result.total_critical} critical errors, {result.total_warnings} warnings "
            f"({result.filtered_noise} filtered as noise)"
        )
        logger.debug(
            f"Network failures: {len(result.network_failures)}, "
            f"resource failures: {len(result.resource_failures)}, CORS errors: {len(result.cors_errors)}"
        )
        return result


def _location(msg) -> Optional[Dict[str, Any]]:
    try:
        location = msg.location
    except Exception:
        return None
    return dict(location) if location else None
