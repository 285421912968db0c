"""Pydantic schemas for the weekly engagement report."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class EventRow(BaseModel):
    """One row of the analytics events table."""

    anon_id: str
    event_name: str
    created_at: datetime
    user_id: Optional[str] = None
    book_title: Optional[str] = None
    book_author: Optional[str] = None
    book_rating: Optional[int] = None
    book_status: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    @field_validator("created_at")
    @classmethod
    def normalize_created_at(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


# ============================================================================
# Report Sections
# ============================================================================


class UserEngagement(BaseModel):
    """Activity of one anonymous id during the report window."""

    anon_id: str
    user_id: str = ""
    first_seen: Optional[datetime] = None
    last_seen: datetime
    total_events_7d: int = 0
    add_read_clicks_7d: int = 0
    add_toread_clicks_7d: int = 0


class BookActivity(BaseModel):
    """How often a title was added during the report window."""

    title: str
    author: str
    status: str
    count_added_7d: int = 0
    total_rating: int = 0
    rating_count: int = 0

    @property
    def avg_rating(self) -> Optional[float]:
        if not self.rating_count:
            return None
        return self.total_rating / self.rating_count

    @property
    def avg_rating_display(self) -> str:
        avg = self.avg_rating
        return "N/A" if avg is None else f"{avg:.1f}"


class ReportSummary(BaseModel):
    """Headline numbers of a weekly report."""

    new_users: int = Field(0, ge=0)
    repeat_users: int = Field(0, ge=0)
    add_read_clicks: int = Field(0, ge=0)
    add_toread_clicks: int = Field(0, ge=0)


class WeeklyReport(BaseModel):
    """Complete weekly engagement report."""

    generated_at: datetime
    period_start: datetime
    summary: ReportSummary
    users: list[UserEngagement] = Field(default_factory=list)
    books: list[BookActivity] = Field(default_factory=list)

    @property
    def subject(self) -> str:
        return f"Leafnote Weekly Engagement Report ({self.generated_at.date().isoformat()})"
