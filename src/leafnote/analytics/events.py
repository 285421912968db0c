"""Anonymous usage events.

Each device gets a persistent anonymous id; events carry it plus the signed-in
user id when there is one. Tracking never interrupts the user: failures are
logged and reported as a False return.
"""

import logging
from enum import Enum
from typing import Optional

from ..auth.session import SessionContext
from ..sync.supabase import SupabaseClient, SupabaseError

logger = logging.getLogger(__name__)

EVENTS_TABLE = "leafnote_events"


class EventName(str, Enum):
    """Tracked event names."""

    APP_OPEN = "app_open"
    ADD_READ_CLICK = "add_read_click"
    ADD_READ_SUCCESS = "add_read_success"
    ADD_TOREAD_CLICK = "add_toread_click"
    ADD_TOREAD_SUCCESS = "add_toread_success"
    SIGNUP_SUCCESS = "signup_success"
    SIGNIN_SUCCESS = "signin_success"
    SIGNOUT = "signout"
    IMPORT_SUCCESS = "import_success"
    EXPORT_SUCCESS = "export_success"
    RECOMMENDATIONS_VIEW = "recommendations_view"


class BookEventStatus(str, Enum):
    """`book_status` values as stored in the events table."""

    READ = "read"
    TO_READ = "toread"


class EventTracker:
    """Writes events to the `leafnote_events` table."""

    def __init__(self, context: SessionContext, client: Optional[SupabaseClient] = None):
        """Initialize tracker.

        Args:
            context: Active session (anonymous id and identity)
            client: Supabase client; None disables tracking
        """
        self.context = context
        self.client = client

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def build_event(
        self,
        event: EventName,
        book_title: Optional[str] = None,
        book_author: Optional[str] = None,
        book_rating: Optional[int] = None,
        book_status: Optional[BookEventStatus] = None,
        metadata: Optional[dict] = None,
    ) -> dict:
        """Row for the events table."""
        return {
            "anon_id": self.context.store.get_or_create_anon_id(),
            "user_id": self.context.user_id,
            "event_name": event.value,
            "book_title": book_title,
            "book_author": book_author,
            "book_rating": book_rating,
            "book_status": book_status.value if book_status else None,
            "metadata": metadata,
        }

    def track(self, event: EventName, **fields) -> bool:
        """Record an event.

        Returns:
            True if the event was stored
        """
        if self.client is None:
            return False

        row = self.build_event(event, **fields)
        try:
            self.client.insert(EVENTS_TABLE, row)
            return True
        except SupabaseError as e:
            logger.warning("Tracking %s failed: %s", event.value, e)
            return False
