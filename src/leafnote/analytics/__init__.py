"""Anonymous usage analytics."""

from .events import EVENTS_TABLE, BookEventStatus, EventName, EventTracker

__all__ = [
    "EVENTS_TABLE",
    "BookEventStatus",
    "EventName",
    "EventTracker",
]
