"""Pytest configuration and shared fixtures.

This module provides fixtures for testing leafnote, including an in-memory
local store, a session context, sample list items and a fake book lookup.
"""

from datetime import datetime, timedelta, timezone
from typing import Generator, Optional

import pytest

from leafnote.api.googlebooks import LookupResult, VolumeResult
from leafnote.auth.session import IdentityProvider, SessionContext
from leafnote.config import reset_config
from leafnote.db.schemas import BookLists, ReadItem, ToReadItem
from leafnote.db.store import LocalStore, reset_store

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def store() -> Generator[LocalStore, None, None]:
    """Create an in-memory store with tables."""
    reset_store()
    reset_config()
    local = LocalStore(":memory:")
    local.create_tables()
    yield local
    reset_store()


@pytest.fixture
def context(store: LocalStore) -> SessionContext:
    """Anonymous session over the in-memory store."""
    return SessionContext(store=store, identities=IdentityProvider())


# ============================================================================
# Sample Data Fixtures
# ============================================================================


def make_read(
    title: str,
    rating: int = 4,
    days_ago: int = 0,
    author: Optional[str] = None,
    categories: Optional[list[str]] = None,
    item_id: Optional[str] = None,
    external_id: Optional[str] = None,
) -> ReadItem:
    """Build a read item dated `days_ago` days before BASE_TIME."""
    fields = dict(
        title=title,
        rating=rating,
        date_read=BASE_TIME - timedelta(days=days_ago),
        author=author,
        categories=categories,
        external_id=external_id,
    )
    if item_id:
        fields["id"] = item_id
    return ReadItem(**fields)


def make_to_read(
    title: str,
    days_ago: int = 0,
    author: Optional[str] = None,
    categories: Optional[list[str]] = None,
    item_id: Optional[str] = None,
    external_id: Optional[str] = None,
) -> ToReadItem:
    """Build a to-read item dated `days_ago` days before BASE_TIME."""
    fields = dict(
        title=title,
        date_added=BASE_TIME - timedelta(days=days_ago),
        author=author,
        categories=categories,
        external_id=external_id,
    )
    if item_id:
        fields["id"] = item_id
    return ToReadItem(**fields)


def make_volume(
    volume_id: str,
    title: str,
    author: Optional[str] = "Some Author",
    language: Optional[str] = "en",
    subtitle: Optional[str] = None,
    description: Optional[str] = "A fine book.",
) -> VolumeResult:
    return VolumeResult(
        id=volume_id,
        title=title,
        subtitle=subtitle,
        authors=[author] if author else [],
        description=description,
        language=language,
    )


@pytest.fixture
def sample_lists() -> BookLists:
    """Two read and two to-read books."""
    return BookLists(
        read_books=[
            make_read("Foundation", rating=5, days_ago=1, author="Isaac Asimov", item_id="r1"),
            make_read("Twilight", rating=2, days_ago=2, item_id="r2"),
        ],
        to_read_books=[
            make_to_read("Dune", days_ago=0, author="Frank Herbert", item_id="t1"),
            make_to_read("Emma", days_ago=3, item_id="t2"),
        ],
    )


# ============================================================================
# Fake Lookup
# ============================================================================


class FakeLookup:
    """Book lookup that answers from a queue of canned results."""

    def __init__(self, results: Optional[list[LookupResult]] = None):
        self.results = list(results or [])
        self.calls: list[dict] = []

    def lookup(self, query, max_results=20, lang_restrict=None) -> LookupResult:
        self.calls.append({
            "query": query,
            "max_results": max_results,
            "lang_restrict": lang_restrict,
        })
        if self.results:
            return self.results.pop(0)
        return LookupResult.success([])


@pytest.fixture
def fake_lookup() -> FakeLookup:
    return FakeLookup()
