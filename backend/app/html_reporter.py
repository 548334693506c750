import json
import os
import sys
from datetime import datetime
from typing import Dict, List, Sequence

try:
    from jinja2 import Environment, FileSystemLoader, select_autoescape
except ModuleNotFoundError as e:
    raise ModuleNotFoundError(
        f"Module 'jinja2' not found in Python interpreter {sys.executable}.\n"
        f"Install it with: {sys.executable} -m pip install jinja2"
    ) from e

from shopcheck.core.verdict import PageTestResult


TEMPLATE_DIR = os.path.join(os.path.dirname(__file__), "..", "templates")
TEMPLATE_NAME = "report_template.html"
SUMMARY_FILENAME = "latest-summary.txt"


def summarize(results: Sequence[PageTestResult]) -> Dict[str, float]:
    """Batch counts; each page verdict stays independent"""
    total = len(results)
    passed = sum(1 for r in results if r.passed)
    failed = total - passed
    return {
        "total": total,
        "passed": passed,
        "failed": failed,
        "pass_rate": round(passed / total * 100, 1) if total else 0.0,
    }


def format_cli_summary(results: Sequence[PageTestResult]) -> str:
    """Plain-text summary, one block per page"""
    lines = ["", "================ TEST EXECUTION SUMMARY ================", ""]

    for index, result in enumerate(results, 1):
        lines.append(f"Test {index}: {result.url}")
        lines.append(f"Platform: {result.platform}")
        lines.append(f"Overall Status: {_status(result.passed)}")
        lines.append("-" * 50)

        if result.error:
            lines.append(f"Error: {result.error}")
        else:
            lines.append(f"Product Page Elements : {_status(result.structural.passed)}")
            lines.append(f"Images Check          : {_status(result.images.passed)}")
            lines.append(f"Error Detection       : {_status(result.signals.passed)}")

            if result.structural.errors:
                lines.append("")
                lines.append("Product Page Errors:")
                for finding in result.structural.errors:
                    lines.append(f" - {finding.element}: {finding.message}")

            if result.structural.warnings:
                lines.append("")
                lines.append("Product Page Warnings:")
                for finding in result.structural.warnings:
                    lines.append(f" - {finding.element}: {finding.message}")

            if result.images.failed_images:
                lines.append("")
                lines.append(f"Failed Images ({len(result.images.failed_images)}):")
                for record in result.images.failed_images[:10]:
                    lines.append(f" - {record.src or '(no src)'}: {record.error}")

            critical = [s for s in result.signals.signals if s.severity == "critical"]
            if critical:
                lines.append("")
                lines.append("Critical Signals:")
                for signal in critical[:10]:
                    lines.append(f" - [{signal.kind}] {signal.message}")

        lines.append("")
        lines.append("=" * 50)
        lines.append("")

    summary = summarize(results)
    lines.append(
        f"Total: {summary['total']}  Passed: {summary['passed']}  "
        f"Failed: {summary['failed']}  Pass rate: {summary['pass_rate']}%"
    )
    return "\n".join(lines)


def build_json_report(results: Sequence[PageTestResult], generated_at: str) -> Dict:
    return {
        "generated_at": generated_at,
        "summary": summarize(results),
        "results": [r.to_dict() for r in results],
    }


def render_html_report(results: Sequence[PageTestResult], generated_at: str) -> str:
    env = Environment(
        loader=FileSystemLoader(TEMPLATE_DIR),
        autoescape=select_autoescape(["html"])
    )
    template = env.get_template(TEMPLATE_NAME)
    return template.render(
        report_title="Storefront Readiness Report",
        generation_date=generated_at,
        summary=summarize(results),
        results=results
    )


def generate_reports(results: List[PageTestResult], output_dir: str = "reports") -> Dict[str, str]:
    """
    Write JSON, HTML and plain-text reports for a batch.

    Args:
        results: Page verdicts in run order
        output_dir: Directory to write into (created if missing)

    Returns:
        Paths of the written files plus the report id
    """
    os.makedirs(output_dir, exist_ok=True)
    now = datetime.now()
    generated_at = now.strftime("%Y-%m-%d %H:%M:%S")
    report_id = f"report-{now.strftime('%Y%m%d-%H%M%S')}"

    json_path = os.path.join(output_dir, f"{report_id}.json")
    with open(json_path, "w", encoding="utf-8") as f:
        json.dump(build_json_report(results, generated_at), f, indent=2, default=str)

    html_path = os.path.join(output_dir, f"{report_id}.html")
    with open(html_path, "w", encoding="utf-8") as f:
        f.write(render_html_report(results, generated_at))

    summary_path = os.path.join(output_dir, SUMMARY_FILENAME)
    with open(summary_path, "w", encoding="utf-8") as f:
        f.write(f"Generated: {generated_at}\n")
        f.write(format_cli_summary(results))
        f.write("\n")

    return {
        "json": json_path,
        "html": html_path,
        "summary": summary_path,
        "report_id": report_id,
    }


def _status(passed: bool) -> str:
    return "PASSED" if passed else "FAILED"
