"""Weekly engagement reporting."""

from .schemas import BookActivity, EventRow, ReportSummary, UserEngagement, WeeklyReport
from .weekly import (
    ReportError,
    ReportRunResult,
    WeeklyReportJob,
    build_weekly_report,
    parse_events,
    report_email_body,
    report_to_csv,
)

__all__ = [
    "BookActivity",
    "EventRow",
    "ReportSummary",
    "UserEngagement",
    "WeeklyReport",
    "ReportError",
    "ReportRunResult",
    "WeeklyReportJob",
    "build_weekly_report",
    "parse_events",
    "report_email_body",
    "report_to_csv",
]
