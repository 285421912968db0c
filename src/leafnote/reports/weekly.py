"""Weekly engagement report.

Reads every analytics event, computes the headline numbers (new users,
repeat users, add clicks) plus per-user and per-title activity for the last
seven days, and mails the result as a CSV attachment through Resend.
"""

import csv
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from io import StringIO
from typing import Iterable, Optional

from pydantic import ValidationError

from ..analytics.events import EVENTS_TABLE, EventName
from ..api.mailer import Attachment, ResendClient, ResendError
from ..config import Config, get_config
from ..db.schemas import utcnow
from ..sync.supabase import SupabaseClient, SupabaseError
from .schemas import BookActivity, EventRow, ReportSummary, UserEngagement, WeeklyReport

logger = logging.getLogger(__name__)

REPORT_DAYS = 7
REPORT_FILENAME = "leafnote_weekly_report.csv"
EVENT_COLUMNS = (
    "anon_id,user_id,event_name,book_title,book_author,book_rating,book_status,metadata,created_at"
)

USER_COLUMNS = [
    "anon_id",
    "user_id",
    "first_seen",
    "last_seen",
    "total_events_7d",
    "add_read_clicks_7d",
    "add_toread_clicks_7d",
]
BOOK_COLUMNS = ["title", "author", "status", "count_added_7d", "avg_rating_7d"]

ADD_SUCCESS_EVENTS = {EventName.ADD_READ_SUCCESS.value, EventName.ADD_TOREAD_SUCCESS.value}


class ReportError(Exception):
    """The report could not be generated or sent."""

    pass


def parse_events(rows: Iterable[dict]) -> list[EventRow]:
    """Validate raw event rows, skipping the ones that do not parse."""
    events = []
    skipped = 0
    for row in rows:
        try:
            events.append(EventRow.model_validate(row))
        except ValidationError:
            skipped += 1
    if skipped:
        logger.warning("Skipped %d malformed event rows", skipped)
    return events


def build_weekly_report(
    events: list[EventRow],
    now: Optional[datetime] = None,
    days: int = REPORT_DAYS,
) -> WeeklyReport:
    """Compute the report for the `days` before `now`.

    A new user is an anonymous id first seen inside the window; a repeat user
    has events both inside and before it.
    """
    now = now or utcnow()
    since = now - timedelta(days=days)
    ordered = sorted(events, key=lambda e: e.created_at)

    first_seen: dict[str, datetime] = {}
    recent_ids: set[str] = set()
    old_ids: set[str] = set()
    for event in ordered:
        first_seen.setdefault(event.anon_id, event.created_at)
        if event.created_at >= since:
            recent_ids.add(event.anon_id)
        else:
            old_ids.add(event.anon_id)

    recent = [e for e in ordered if e.created_at >= since]

    users: dict[str, UserEngagement] = {}
    books: dict[tuple[str, str, str], BookActivity] = {}
    for event in recent:
        user = users.get(event.anon_id)
        if user is None:
            user = UserEngagement(
                anon_id=event.anon_id,
                first_seen=first_seen.get(event.anon_id),
                last_seen=event.created_at,
            )
            users[event.anon_id] = user
        if not user.user_id and event.user_id:
            user.user_id = event.user_id
        user.total_events_7d += 1
        if event.event_name == EventName.ADD_READ_CLICK.value:
            user.add_read_clicks_7d += 1
        elif event.event_name == EventName.ADD_TOREAD_CLICK.value:
            user.add_toread_clicks_7d += 1
        if event.created_at > user.last_seen:
            user.last_seen = event.created_at

        if event.event_name in ADD_SUCCESS_EVENTS:
            key = (
                event.book_title or "Unknown",
                event.book_author or "Unknown",
                event.book_status or "unknown",
            )
            book = books.get(key)
            if book is None:
                book = BookActivity(title=key[0], author=key[1], status=key[2])
                books[key] = book
            book.count_added_7d += 1
            if event.book_rating:
                book.total_rating += event.book_rating
                book.rating_count += 1

    summary = ReportSummary(
        new_users=sum(1 for seen in first_seen.values() if seen >= since),
        repeat_users=len(recent_ids & old_ids),
        add_read_clicks=sum(1 for e in recent if e.event_name == EventName.ADD_READ_CLICK.value),
        add_toread_clicks=sum(1 for e in recent if e.event_name == EventName.ADD_TOREAD_CLICK.value),
    )

    return WeeklyReport(
        generated_at=now,
        period_start=since,
        summary=summary,
        users=list(users.values()),
        books=list(books.values()),
    )


def report_to_csv(report: WeeklyReport) -> str:
    """Both report sections as one CSV document with section headings."""
    days = (report.generated_at - report.period_start).days

    users_out = StringIO()
    writer = csv.writer(users_out, lineterminator="\n")
    writer.writerow(USER_COLUMNS)
    for user in report.users:
        writer.writerow([
            user.anon_id,
            user.user_id,
            user.first_seen.isoformat() if user.first_seen else "",
            user.last_seen.isoformat(),
            user.total_events_7d,
            user.add_read_clicks_7d,
            user.add_toread_clicks_7d,
        ])

    books_out = StringIO()
    writer = csv.writer(books_out, lineterminator="\n")
    writer.writerow(BOOK_COLUMNS)
    for book in report.books:
        writer.writerow([
            book.title,
            book.author,
            book.status,
            book.count_added_7d,
            book.avg_rating_display,
        ])

    return (
        f"USER ENGAGEMENT (Last {days} Days)\n{users_out.getvalue()}\n"
        f"BOOK ACTIVITY (Last {days} Days)\n{books_out.getvalue()}"
    )


def report_email_body(report: WeeklyReport) -> str:
    """Plain-text e-mail body with the headline numbers."""
    days = (report.generated_at - report.period_start).days
    summary = report.summary
    return "\n".join([
        "Leafnote Weekly Engagement Report",
        "==================================",
        f"Report generated: {report.generated_at.isoformat()}",
        f"Period: Last {days} days "
        f"({report.period_start.date().isoformat()} to {report.generated_at.date().isoformat()})",
        "",
        "SUMMARY METRICS:",
        f"- New users: {summary.new_users}",
        f"- Repeat users: {summary.repeat_users}",
        f"- Add Read clicks: {summary.add_read_clicks}",
        f"- Add To-Read clicks: {summary.add_toread_clicks}",
        "",
        "See attached CSV for detailed user engagement and book activity data.",
        "",
        "---",
        "Leafnote Analytics",
    ])


@dataclass
class ReportRunResult:
    """Outcome of a report run."""

    report: WeeklyReport
    sent: bool
    message: str
    email_id: Optional[str] = None


class WeeklyReportJob:
    """Builds the weekly report from the events table and mails it."""

    def __init__(
        self,
        client: SupabaseClient,
        resend: Optional[ResendClient] = None,
        to_email: Optional[str] = None,
        from_email: str = "Leafnote Analytics <onboarding@resend.dev>",
        days: int = REPORT_DAYS,
    ):
        """Initialize job.

        Args:
            client: Supabase client authorised to read every event
            resend: E-mail client; None generates the report without sending
            to_email: Report recipient
            from_email: Sender address
            days: Length of the report window
        """
        self.client = client
        self.resend = resend
        self.to_email = to_email
        self.from_email = from_email
        self.days = days

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> "WeeklyReportJob":
        """Build a job from configuration, using the service-role key."""
        config = config or get_config()
        if not config.supabase_url or not config.supabase_service_role_key:
            raise ReportError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required for reports")

        client = SupabaseClient(
            url=config.supabase_url,
            api_key=config.supabase_service_role_key,
            timeout=config.http_timeout,
        )
        resend = None
        if config.resend_api_key:
            resend = ResendClient(config.resend_api_key)
        return cls(
            client,
            resend=resend,
            to_email=config.report_to_email,
            from_email=config.report_from_email,
        )

    def fetch_events(self) -> list[EventRow]:
        """Read every event, oldest first."""
        try:
            rows = self.client.select(EVENTS_TABLE, order="created_at.asc", columns=EVENT_COLUMNS)
        except SupabaseError as e:
            raise ReportError(f"Could not read events: {e}")
        return parse_events(rows)

    def run(self, now: Optional[datetime] = None, send: bool = True) -> ReportRunResult:
        """Generate the report and, when possible, e-mail it.

        Raises:
            ReportError: If events cannot be read or the e-mail is rejected
        """
        report = build_weekly_report(self.fetch_events(), now=now, days=self.days)

        if not send:
            return ReportRunResult(report=report, sent=False, message="Report generated (email not sent)")

        if self.resend is None:
            logger.warning("RESEND_API_KEY not set - skipping email send")
            return ReportRunResult(
                report=report,
                sent=False,
                message="Report generated (email not sent - no API key)",
            )

        if not self.to_email:
            raise ReportError("REPORT_TO_EMAIL not set")

        attachment = Attachment(filename=REPORT_FILENAME, content=report_to_csv(report).encode("utf-8"))
        try:
            email_id = self.resend.send_email(
                sender=self.from_email,
                to=[self.to_email],
                subject=report.subject,
                text=report_email_body(report),
                attachments=[attachment],
            )
        except ResendError as e:
            raise ReportError(str(e))

        logger.info("Weekly report sent to %s (id %s)", self.to_email, email_id)
        return ReportRunResult(
            report=report,
            sent=True,
            message="Weekly report sent successfully",
            email_id=email_id,
        )
