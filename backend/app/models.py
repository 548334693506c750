from pydantic import BaseModel, Field
from typing import List, Optional, Dict, Any
from datetime import datetime


class RunChecksRequest(BaseModel):
    urls: List[str] = Field(..., min_length=1)
    platform: str = "auto"  # auto, shopify, bigcommerce
    headless: bool = True
    # Optional overrides merged over the server's configuration
    config: Optional[Dict[str, Any]] = None


class ReportSummary(BaseModel):
    total: int
    passed: int
    failed: int
    pass_rate: float


class CheckReport(BaseModel):
    id: str
    executed_at: datetime = Field(default_factory=datetime.now)
    platform: str
    duration: float
    summary: ReportSummary
    results: List[Dict[str, Any]] = []


class CheckReportListItem(BaseModel):
    id: str
    executed_at: datetime
    platform: str
    summary: ReportSummary
