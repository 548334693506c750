"""
Readiness Check API Endpoints
Runs product page checks and serves the stored reports
"""

from fastapi import APIRouter, HTTPException
from typing import List, Optional
import asyncio
import logging
import os
import sys
import time
import uuid
from datetime import datetime

from models import RunChecksRequest, CheckReport, CheckReportListItem, ReportSummary
from storage import ReportStorage
from html_reporter import generate_reports, summarize
from shopcheck import ConfigError, ScanConfig, load_config, merge_config, run_checks
from shopcheck.knowledge import SelectorProfiles

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/checks", tags=["checks"])

report_storage = ReportStorage()

# One browser run at a time; the flag is only touched from the event loop
_run_state = {"running": False, "run_id": None, "started_at": None, "urls": []}


def build_run_config(request: RunChecksRequest) -> ScanConfig:
    """Server configuration with the request's overrides merged on top"""
    base = load_config(os.getenv("SHOPCHECK_CONFIG"))
    overrides = dict(request.config or {})
    browser = dict(overrides.get("browser") or {})
    browser["headless"] = request.headless
    overrides["browser"] = browser
    return merge_config(overrides, base=base)


def _run_in_thread(urls: List[str], config: ScanConfig, platform: str):
    """Run the browser checks on a private event loop (Playwright on Windows needs Proactor)"""
    if sys.platform == 'win32':
        asyncio.set_event_loop_policy(asyncio.WindowsProactorEventLoopPolicy())
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(run_checks(urls, config, platform))
    finally:
        loop.close()


@router.post("/run", response_model=CheckReport)
async def run_product_checks(request: RunChecksRequest):
    """Check every URL in the request and store the report"""
    if _run_state["running"]:
        raise HTTPException(status_code=409, detail="A check run is already in progress")

    try:
        config = build_run_config(request)
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))

    platform = request.platform.lower()
    if platform != "auto" and platform not in SelectorProfiles.from_overrides(config.selectors):
        logger.warning(f"Unknown platform '{platform}', falling back to the default profile")

    run_id = str(uuid.uuid4())
    _run_state.update(running=True, run_id=run_id, started_at=datetime.now(), urls=list(request.urls))
    logger.info(f"Starting check run {run_id} for {len(request.urls)} URL(s)")

    started = time.monotonic()
    try:
        loop = asyncio.get_running_loop()
        results = await loop.run_in_executor(
            None, _run_in_thread, list(request.urls), config, platform
        )
    except Exception as e:
        logger.error(f"Check run {run_id} failed: {e}")
        raise HTTPException(status_code=500, detail=f"Check run failed: {e}")
    finally:
        _run_state.update(running=False, run_id=None, started_at=None, urls=[])

    duration = round(time.monotonic() - started, 2)

    report_dir = os.getenv("SHOPCHECK_REPORT_DIR", "reports")
    try:
        paths = generate_reports(results, report_dir)
        logger.info(f"Reports written: {paths['html']}")
    except OSError as e:
        logger.warning(f"Could not write report files: {e}")

    report = CheckReport(
        id=run_id,
        platform=platform,
        duration=duration,
        summary=ReportSummary(**summarize(results)),
        results=[r.to_dict() for r in results]
    )
    report_storage.save_report(report)
    return report


@router.get("/reports", response_model=List[CheckReportListItem])
async def list_reports():
    """List stored reports, newest first"""
    return report_storage.get_all_reports()


@router.get("/reports/{report_id}", response_model=CheckReport)
async def get_report(report_id: str):
    """Full report including per-page results"""
    report = report_storage.get_report(report_id)
    if not report:
        raise HTTPException(status_code=404, detail="Report not found")
    return report


@router.delete("/reports/{report_id}")
async def delete_report(report_id: str):
    """Delete a stored report"""
    if not report_storage.delete_report(report_id):
        raise HTTPException(status_code=404, detail="Report not found")
    return {"message": "Report deleted successfully"}


@router.get("/status")
async def get_status():
    """Whether a run is in progress"""
    started_at: Optional[datetime] = _run_state["started_at"]
    return {
        "running": _run_state["running"],
        "run_id": _run_state["run_id"],
        "started_at": started_at.isoformat() if started_at else None,
        "urls": _run_state["urls"],
    }
