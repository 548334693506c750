"""
Tests for report generation and report storage.
"""

import json
import pytest
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "app"))

from html_reporter import SUMMARY_FILENAME, format_cli_summary, generate_reports, summarize
from models import CheckReport, ReportSummary
from storage import ReportStorage
from shopcheck.core.image_auditor import ImageAuditResult, ImageOutcome, ImageRecord
from shopcheck.core.signal_classifier import ClassifiedSignal, SignalResult
from shopcheck.core.structural_validator import ElementCheckResult, Finding, StructuralResult
from shopcheck.core.verdict import aggregate, failed_result
from shopcheck.errors import NavigationError


@pytest.fixture
def sample_results():
    """One passing, one failing and one faulted page."""
    passing = aggregate(
        "https://shop.example.com/products/tee",
        "shopify",
        StructuralResult(
            passed=True,
            warnings=[Finding("product_description", "Product description not found or too short", "warning")],
            elements={"product_title": ElementCheckResult(True, "h1.product__title", "Classic Tee")}
        ),
        ImageAuditResult(passed=True, total_images=2, loaded_images=2),
        SignalResult(passed=True)
    )
    broken_image = ImageRecord(src="https://cdn.example.com/broken.jpg", outcome=ImageOutcome.FAILED, error="HTTP 404")
    failing = aggregate(
        "https://shop.example.com/products/mug",
        "shopify",
        StructuralResult(
            passed=False,
            errors=[Finding("add_to_cart", "Add to cart button not found on page", "critical")]
        ),
        ImageAuditResult(passed=False, total_images=1, failed_images=[broken_image], images=[broken_image]),
        SignalResult(
            passed=False,
            console_errors=[ClassifiedSignal("console_error", "critical", "Uncaught TypeError: x", "2026-01-01T00:00:00")],
            total_critical=1
        )
    )
    faulted = failed_result(
        "https://gone.example.com/p",
        "shopify",
        NavigationError("https://gone.example.com/p", 3, "net::ERR_NAME_NOT_RESOLVED")
    )
    return [passing, failing, faulted]


class TestSummarize:
    """Test batch counts."""

    def test_counts(self, sample_results):
        assert summarize(sample_results) == {"total": 3, "passed": 1, "failed": 2, "pass_rate": 33.3}

    def test_empty_batch(self):
        assert summarize([]) == {"total": 0, "passed": 0, "failed": 0, "pass_rate": 0.0}


class TestCliSummary:
    """Test the terminal summary."""

    def test_lists_every_page(self, sample_results):
        text = format_cli_summary(sample_results)

        assert "Test 1: https://shop.example.com/products/tee" in text
        assert "Test 3: https://gone.example.com/p" in text
        assert "Total: 3  Passed: 1  Failed: 2" in text

    def test_includes_findings(self, sample_results):
        text = format_cli_summary(sample_results)

        assert " - add_to_cart: Add to cart button not found on page" in text
        assert " - https://cdn.example.com/broken.jpg: HTTP 404" in text
        assert " - [console_error] Uncaught TypeError: x" in text
        assert "Error: Navigation to https://gone.example.com/p failed" in text


class TestGenerateReports:
    """Test report files."""

    def test_writes_all_formats(self, sample_results, tmp_path):
        paths = generate_reports(sample_results, str(tmp_path / "reports"))

        assert Path(paths["json"]).exists()
        assert Path(paths["html"]).exists()
        assert Path(paths["summary"]).name == SUMMARY_FILENAME
        assert paths["report_id"].startswith("report-")

    def test_json_report_contents(self, sample_results, tmp_path):
        paths = generate_reports(sample_results, str(tmp_path))

        data = json.loads(Path(paths["json"]).read_text(encoding="utf-8"))

        assert data["summary"]["failed"] == 2
        assert [r["status"] for r in data["results"]] == ["passed", "failed", "failed"]
        assert data["results"][1]["images"]["failed_images"][0]["failed"] is True
        assert data["results"][2]["error_type"] == "NavigationError"

    def test_html_report_escapes_content(self, tmp_path):
        result = failed_result("https://shop.example.com/<script>", "shopify", Exception("<b>boom</b>"))

        paths = generate_reports([result], str(tmp_path))
        html = Path(paths["html"]).read_text(encoding="utf-8")

        assert "&lt;b&gt;boom&lt;/b&gt;" in html
        assert "<b>boom</b>" not in html


class TestReportStorage:
    """Test API report persistence."""

    def _report(self, report_id, executed_at):
        return CheckReport(
            id=report_id,
            executed_at=executed_at,
            platform="shopify",
            duration=1.5,
            summary=ReportSummary(total=1, passed=1, failed=0, pass_rate=100.0),
            results=[{"url": "https://shop.example.com/p", "passed": True}]
        )

    def test_save_and_get(self, temp_data_dir):
        storage = ReportStorage(str(temp_data_dir))
        storage.save_report(self._report("abc", "2026-01-01T10:00:00"))

        report = storage.get_report("abc")

        assert report.summary.passed == 1
        assert report.results[0]["url"] == "https://shop.example.com/p"

    def test_list_newest_first(self, temp_data_dir):
        storage = ReportStorage(str(temp_data_dir))
        storage.save_report(self._report("old", "2026-01-01T10:00:00"))
        storage.save_report(self._report("new", "2026-02-01T10:00:00"))

        assert [r.id for r in storage.get_all_reports()] == ["new", "old"]

    def test_unknown_and_unsafe_ids(self, temp_data_dir):
        storage = ReportStorage(str(temp_data_dir))

        assert storage.get_report("missing") is None
        assert storage.get_report("../secrets") is None

    def test_delete(self, temp_data_dir):
        storage = ReportStorage(str(temp_data_dir))
        storage.save_report(self._report("abc", "2026-01-01T10:00:00"))

        assert storage.delete_report("abc") is True
        assert storage.delete_report("abc") is False
