"""Reading list management.

Adds, removes and moves books between the read and to-read lists of the
active session. Every change is written to the local store first; when a
user is signed in it is then pushed to the remote store on a best-effort
basis, so local state stays authoritative for the session.
"""

import logging
from datetime import datetime
from typing import Optional, Union

from ..analytics.events import BookEventStatus, EventName, EventTracker
from ..auth.session import Identity, SessionContext
from ..db.schemas import BookLists, ReadItem, ToReadItem, generate_id, utcnow
from ..discovery.summarize import BookMeta, generate_fallback_meta
from ..sync.remote import RemoteSyncAdapter, SyncAction, SyncOutcome
from .enricher import MetadataEnricher

logger = logging.getLogger(__name__)

ListItem = Union[ReadItem, ToReadItem]


class ItemNotFoundError(LookupError):
    """No item with the given id exists in either list."""


class ReadingTracker:
    """Owns the two reading lists for a session."""

    def __init__(
        self,
        context: SessionContext,
        remote: Optional[RemoteSyncAdapter] = None,
        enricher: Optional[MetadataEnricher] = None,
        events: Optional[EventTracker] = None,
    ):
        """Initialize tracker.

        Loads the persisted lists and follows identity changes: signing in
        reconciles with the remote store, signing out clears the lists.

        Args:
            context: Active session
            remote: Remote sync adapter; None keeps everything local
            enricher: Metadata enricher for new items
            events: Analytics tracker
        """
        self.context = context
        self.store = context.store
        self.remote = remote
        self.enricher = enricher
        self.events = events
        self.last_sync: Optional[SyncOutcome] = None

        self.lists = self.store.load_lists()
        self._unsubscribe = context.identities.subscribe(self._on_identity_change)

        user_id = context.user_id
        if user_id and self.lists.owner != user_id:
            self.sync()

    # ========================================================================
    # Queries
    # ========================================================================

    @property
    def read_books(self) -> list[ReadItem]:
        return self.lists.read_books

    @property
    def to_read_books(self) -> list[ToReadItem]:
        return self.lists.to_read_books

    def find(self, item_id: str) -> Optional[ListItem]:
        """Find an item in either list by id."""
        for item in [*self.lists.read_books, *self.lists.to_read_books]:
            if item.id == item_id:
                return item
        return None

    # ========================================================================
    # Mutations
    # ========================================================================

    def add_read(
        self,
        title: str,
        rating: int,
        author: Optional[str] = None,
        date_read: Optional[datetime] = None,
    ) -> ReadItem:
        """Add a finished book to the top of the read list.

        Raises:
            ValueError: If the title is blank or the rating is outside 1-5
        """
        title = self._require_title(title)
        if not 1 <= rating <= 5:
            raise ValueError("Rating must be between 1 and 5")

        meta = self._describe(title, author)
        item = ReadItem(
            title=title,
            rating=rating,
            author=meta.author,
            short_description=meta.short_description,
            external_id=meta.external_id,
            date_read=date_read or utcnow(),
        )
        self.lists.read_books.insert(0, item)
        self._commit(upserts=[item])
        self._track(EventName.ADD_READ_SUCCESS, item)
        return item

    def add_to_read(self, title: str, author: Optional[str] = None) -> ToReadItem:
        """Add a book to the top of the to-read list.

        Raises:
            ValueError: If the title is blank
        """
        title = self._require_title(title)
        meta = self._describe(title, author)
        item = ToReadItem(
            title=title,
            author=meta.author,
            short_description=meta.short_description,
            external_id=meta.external_id,
        )
        self.lists.to_read_books.insert(0, item)
        self._commit(upserts=[item])
        self._track(EventName.ADD_TOREAD_SUCCESS, item)
        return item

    def remove(self, item_id: str) -> ListItem:
        """Remove an item from whichever list holds it.

        Raises:
            ItemNotFoundError: If no item has this id
        """
        item = self._take(item_id)
        self._commit(deletes=[item.id])
        return item

    def move_to_read(self, item_id: str, rating: int) -> ReadItem:
        """Mark a to-read item as finished.

        The item leaves the to-read list and a new read item with a fresh id
        is placed at the top of the read list.
        """
        if not 1 <= rating <= 5:
            raise ValueError("Rating must be between 1 and 5")
        old = self.find(item_id)
        if not isinstance(old, ToReadItem):
            raise ItemNotFoundError(f"No to-read item with id {item_id}")

        self._take(item_id)
        item = ReadItem(
            id=generate_id(),
            title=old.title,
            rating=rating,
            author=old.author,
            short_description=old.short_description,
            categories=old.categories,
            external_id=old.external_id,
        )
        self.lists.read_books.insert(0, item)
        self._commit(upserts=[item], deletes=[old.id])
        return item

    def move_to_to_read(self, item_id: str) -> ToReadItem:
        """Put a read item back on the to-read list under a fresh id."""
        old = self.find(item_id)
        if not isinstance(old, ReadItem):
            raise ItemNotFoundError(f"No read item with id {item_id}")

        self._take(item_id)
        item = ToReadItem(
            id=generate_id(),
            title=old.title,
            author=old.author,
            short_description=old.short_description,
            categories=old.categories,
            external_id=old.external_id,
        )
        self.lists.to_read_books.insert(0, item)
        self._commit(upserts=[item], deletes=[old.id])
        return item

    def replace(self, lists: BookLists) -> None:
        """Replace both lists wholesale, e.g. after an import."""
        old_ids = {item.id for item in [*self.lists.read_books, *self.lists.to_read_books]}
        new_items = [*lists.read_books, *lists.to_read_books]
        new_ids = {item.id for item in new_items}

        self.lists = BookLists(
            read_books=list(lists.read_books),
            to_read_books=list(lists.to_read_books),
            owner=self.lists.owner,
        )
        self._commit(upserts=new_items, deletes=sorted(old_ids - new_ids))

    def clear(self) -> None:
        """Empty both lists."""
        self.replace(BookLists())

    # ========================================================================
    # Sync
    # ========================================================================

    def sync(self) -> Optional[SyncOutcome]:
        """Reconcile with the remote store for the signed-in user.

        Returns:
            The outcome, or None when there is no user or no remote store
        """
        user_id = self.context.user_id
        if not user_id or self.remote is None:
            return None

        outcome = self.remote.reconcile(self.lists, user_id)
        if outcome.action == SyncAction.UNCHANGED:
            logger.warning("Sync failed; keeping local lists: %s", "; ".join(outcome.errors))
        else:
            self.lists = outcome.lists
            self.lists.owner = user_id
            self.store.save_lists(self.lists)
            self.store.clear_recommendation_cache()
            logger.info("Sync %s: %d read, %d to-read", outcome.action.value,
                        len(self.lists.read_books), len(self.lists.to_read_books))

        self.last_sync = outcome
        return outcome

    def close(self) -> None:
        """Stop following identity changes."""
        self._unsubscribe()

    # ========================================================================
    # Helpers
    # ========================================================================

    def _on_identity_change(self, identity: Optional[Identity]) -> None:
        if identity is None:
            logger.info("Signed out; clearing local lists")
            self.lists = BookLists()
            self.store.save_lists(self.lists)
            self.store.clear_recommendation_cache()
            return
        self.sync()

    @staticmethod
    def _require_title(title: str) -> str:
        title = (title or "").strip()
        if not title:
            raise ValueError("Title is required")
        return title

    def _describe(self, title: str, author: Optional[str]) -> BookMeta:
        if self.enricher is None:
            return generate_fallback_meta(title, author)
        return self.enricher.enrich(title, author)

    def _take(self, item_id: str) -> ListItem:
        for books in (self.lists.read_books, self.lists.to_read_books):
            for index, item in enumerate(books):
                if item.id == item_id:
                    return books.pop(index)
        raise ItemNotFoundError(f"No item with id {item_id}")

    def _commit(self, upserts: Optional[list[ListItem]] = None, deletes: Optional[list[str]] = None) -> None:
        """Persist locally, then push changes to the remote store."""
        self.store.save_lists(self.lists)
        self.store.clear_recommendation_cache()

        user_id = self.context.user_id
        if self.remote is None or not user_id:
            return

        for item_id in deletes or []:
            self.remote.delete_item(item_id, user_id)
        for item in upserts or []:
            if not self.remote.upsert_item(item, user_id):
                logger.warning("Kept %r locally; remote save failed", item.title)

    def _track(self, event: EventName, item: ListItem) -> None:
        if self.events is None:
            return
        is_read = isinstance(item, ReadItem)
        self.events.track(
            event,
            book_title=item.title,
            book_author=item.author,
            book_rating=item.rating if is_read else None,
            book_status=BookEventStatus.READ if is_read else BookEventStatus.TO_READ,
        )
