import json
import os
from typing import List, Optional
from models import CheckReport, CheckReportListItem


class ReportStorage:
    """File-based storage for check reports"""

    def __init__(self, data_dir: str = "data"):
        self.data_dir = data_dir
        self.reports_dir = os.path.join(data_dir, "reports")
        self._ensure_directories()

    def _ensure_directories(self):
        """Ensure all necessary directories exist"""
        os.makedirs(self.reports_dir, exist_ok=True)

    def _get_report_file(self, report_id: str) -> str:
        """Get report file path"""
        return os.path.join(self.reports_dir, f"{report_id}.json")

    def save_report(self, report: CheckReport):
        """Save report to file"""
        file_path = self._get_report_file(report.id)
        with open(file_path, 'w') as f:
            json.dump(report.model_dump(mode='json'), f, indent=2, default=str)

    def get_report(self, report_id: str) -> Optional[CheckReport]:
        """Get report by ID"""
        # Report ids are generated uuids; anything else cannot be a file of ours
        if not report_id or os.sep in report_id or "/" in report_id:
            return None

        file_path = self._get_report_file(report_id)
        if not os.path.exists(file_path):
            return None

        with open(file_path, 'r') as f:
            data = json.load(f)
            return CheckReport(**data)

    def get_all_reports(self) -> List[CheckReportListItem]:
        """Get all reports, newest first, without per-page results"""
        reports = []
        for filename in os.listdir(self.reports_dir):
            if filename.endswith('.json'):
                report = self.get_report(filename[:-5])
                if report:
                    reports.append(CheckReportListItem(
                        id=report.id,
                        executed_at=report.executed_at,
                        platform=report.platform,
                        summary=report.summary
                    ))
        return sorted(reports, key=lambda r: r.executed_at, reverse=True)

    def delete_report(self, report_id: str) -> bool:
        """Delete a report"""
        if not report_id or os.sep in report_id or "/" in report_id:
            return False

        file_path = self._get_report_file(report_id)
        if os.path.exists(file_path):
            os.remove(file_path)
            return True
        return False
