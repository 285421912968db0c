"""Remote sync between the local lists and the Supabase `books` table.

The remote store is never merged with local state: a non-empty remote list
replaces the local one wholesale. When the remote store is empty, local
lists are only uploaded if they already belong to the same identity, so an
anonymous or previous user's list on a shared device never leaks into a
new account.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from pydantic import ValidationError

from ..db.schemas import BookLists, ItemStatus, ReadItem, ToReadItem
from .supabase import SupabaseClient, SupabaseError

logger = logging.getLogger(__name__)

BOOKS_TABLE = "books"

# Columns every deployment of the table has
REQUIRED_COLUMNS = ("id", "user_id", "title", "status", "rating", "date_read", "date_added")

# Newer columns that older schemas may lack
ENRICHMENT_COLUMNS = ("author", "short_description")

ListItem = Union[ReadItem, ToReadItem]


class SyncAction(str, Enum):
    """What a reconcile did to the local lists."""

    REMOTE_APPLIED = "remote_applied"  # Remote rows replaced local lists
    SEEDED = "seeded"  # Remote was empty, local lists uploaded
    DISCARDED_LOCAL = "discarded_local"  # Remote empty, foreign local lists dropped
    EMPTY = "empty"  # Nothing on either side
    UNCHANGED = "unchanged"  # Remote query failed, local lists untouched


@dataclass
class FetchResult:
    """Remote lists, or why they could not be fetched."""

    ok: bool
    lists: Optional[BookLists] = None
    error: Optional[str] = None
    skipped_rows: int = 0


@dataclass
class SyncOutcome:
    """Result of reconciling local lists with the remote store."""

    action: SyncAction
    lists: BookLists
    uploaded: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.action != SyncAction.UNCHANGED and not self.errors


def item_to_row(item: ListItem, user_id: str, enriched: bool = True) -> dict:
    """Translate a list item into a `books` row."""
    row = {
        "id": item.id,
        "user_id": user_id,
        "title": item.title,
    }
    if isinstance(item, ReadItem):
        row.update({
            "status": ItemStatus.READ.value,
            "rating": item.rating,
            "date_read": item.date_read.isoformat(),
        })
    else:
        row.update({
            "status": ItemStatus.TO_READ.value,
            "date_added": item.date_added.isoformat(),
        })

    if enriched:
        if item.author:
            row["author"] = item.author
        if item.short_description:
            row["short_description"] = item.short_description
    return row


def _present(fields: dict) -> dict:
    return {k: v for k, v in fields.items() if v is not None}


def rows_to_lists(rows: list[dict], owner: Optional[str] = None) -> tuple[BookLists, int]:
    """Translate `books` rows into the two list shapes.

    Rows that cannot form a valid item (bad status, blank title, missing
    rating) are skipped.

    Returns:
        Tuple of (lists, number of skipped rows)
    """
    lists = BookLists(owner=owner)
    skipped = 0

    for row in rows:
        status = row.get("status")
        fields = {
            "id": row.get("id"),
            "title": row.get("title"),
            "author": row.get("author"),
            "short_description": row.get("short_description"),
        }
        try:
            if status == ItemStatus.READ.value:
                fields["rating"] = row.get("rating")
                fields["date_read"] = row.get("date_read") or row.get("created_at")
                lists.read_books.append(ReadItem.model_validate(_present(fields)))
            elif status == ItemStatus.TO_READ.value:
                fields["date_added"] = row.get("date_added") or row.get("created_at")
                lists.to_read_books.append(ToReadItem.model_validate(_present(fields)))
            else:
                skipped += 1
        except ValidationError:
            skipped += 1

    return lists, skipped


class RemoteSyncAdapter:
    """Reads and writes the signed-in user's rows in the `books` table."""

    def __init__(self, client: SupabaseClient, table: str = BOOKS_TABLE):
        self.client = client
        self.table = table

    def fetch_lists(self, user_id: str) -> FetchResult:
        """Fetch every row for `user_id`, newest first."""
        try:
            rows = self.client.select(
                self.table,
                filters={"user_id": user_id},
                order="created_at.desc",
            )
        except SupabaseError as e:
            logger.error("Fetching remote books failed: %s", e)
            return FetchResult(ok=False, error=str(e))

        lists, skipped = rows_to_lists(rows, owner=user_id)
        if skipped:
            logger.warning("Skipped %d remote rows that did not form valid items", skipped)
        return FetchResult(ok=True, lists=lists, skipped_rows=skipped)

    def upsert_item(self, item: ListItem, user_id: str) -> bool:
        """Upsert one item, retrying once with only the required columns.

        Returns:
            True if either attempt succeeded
        """
        try:
            self.client.upsert(self.table, [item_to_row(item, user_id, enriched=True)])
            return True
        except SupabaseError as e:
            logger.info("Enriched upsert of %r rejected (%s); retrying minimal", item.title, e)

        try:
            self.client.upsert(self.table, [item_to_row(item, user_id, enriched=False)])
            return True
        except SupabaseError as e:
            logger.error("Upsert of %r failed: %s", item.title, e)
            return False

    def delete_item(self, item_id: str, user_id: str) -> bool:
        """Delete one row. Failures are logged, not raised."""
        try:
            self.client.delete(self.table, {"id": item_id, "user_id": user_id})
            return True
        except SupabaseError as e:
            logger.error("Deleting remote book %s failed: %s", item_id, e)
            return False

    def seed_remote(self, lists: BookLists, user_id: str) -> tuple[int, list[str]]:
        """Upload every local item. Returns (uploaded count, failed titles)."""
        uploaded = 0
        failed = []
        for item in [*lists.read_books, *lists.to_read_books]:
            if self.upsert_item(item, user_id):
                uploaded += 1
            else:
                failed.append(item.title)
        return uploaded, failed

    def reconcile(self, lists: BookLists, user_id: str) -> SyncOutcome:
        """Bring local lists in line with the remote store for `user_id`.

        Remote wins when it has any rows. With an empty remote store, local
        lists owned by the same identity are uploaded; anything else is
        discarded.
        """
        fetched = self.fetch_lists(user_id)
        if not fetched.ok:
            return SyncOutcome(
                action=SyncAction.UNCHANGED,
                lists=lists,
                errors=[fetched.error or "remote query failed"],
            )

        remote = fetched.lists
        if not remote.is_empty:
            return SyncOutcome(action=SyncAction.REMOTE_APPLIED, lists=remote)

        if lists.is_empty:
            return SyncOutcome(action=SyncAction.EMPTY, lists=BookLists(owner=user_id))

        if lists.owner == user_id:
            uploaded, failed = self.seed_remote(lists, user_id)
            return SyncOutcome(
                action=SyncAction.SEEDED,
                lists=lists,
                uploaded=uploaded,
                errors=[f"upload failed: {title}" for title in failed],
            )

        logger.info("Remote store empty; discarding local lists not owned by this account")
        return SyncOutcome(action=SyncAction.DISCARDED_LOCAL, lists=BookLists(owner=user_id))
