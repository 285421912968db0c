"""Pydantic schemas for data validation.

These schemas define the two reading lists, the recommendation records and
the documents persisted in the local key-value store. Field names are
snake_case in Python and camelCase on the wire, so exported JSON matches
what the import path accepts.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


def generate_id() -> str:
    """Generate an opaque unique identifier for list items."""
    return str(uuid4())


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class ItemStatus(str, Enum):
    """Which list an item belongs to. Values match the remote `status` column."""

    READ = "read"
    TO_READ = "to_read"


class RecommendationSource(str, Enum):
    """Provenance of a recommendation."""

    FROM_TO_READ = "fromToRead"
    FROM_TOP_RATED = "fromTopRated"
    FROM_SIMILAR_GENRE = "fromSimilarGenre"
    FROM_EXTERNAL = "fromExternal"
    FALLBACK = "fallback"


# ============================================================================
# List Items
# ============================================================================


class ItemBase(BaseModel):
    """Fields shared by read and to-read items."""

    id: str = Field(default_factory=generate_id)
    title: str = Field(..., min_length=1, description="Book title")
    author: Optional[str] = None
    short_description: Optional[str] = Field(None, alias="shortDescription")
    categories: Optional[list[str]] = None
    external_id: Optional[str] = Field(None, alias="externalId")

    model_config = {"populate_by_name": True}

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v) -> str:
        """Accept numeric ids from older exports."""
        if v is None or str(v).strip() == "":
            return generate_id()
        return str(v)

    @field_validator("title", mode="before")
    @classmethod
    def clean_title(cls, v) -> str:
        """Strip surrounding whitespace; blank titles are rejected."""
        if v is None:
            raise ValueError("title is required")
        v = str(v).strip()
        if not v:
            raise ValueError("title must not be empty")
        return v

    @staticmethod
    def _as_utc(v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    def to_json(self) -> dict:
        """Serialize with camelCase keys, dropping absent optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ReadItem(ItemBase):
    """A book the user has finished, with a 1-5 rating."""

    rating: int = Field(..., ge=1, le=5, description="Rating 1-5")
    date_read: datetime = Field(default_factory=utcnow, alias="dateRead")

    @field_validator("date_read")
    @classmethod
    def normalize_date_read(cls, v: datetime) -> datetime:
        return cls._as_utc(v)


class ToReadItem(ItemBase):
    """A book the user intends to read."""

    date_added: datetime = Field(default_factory=utcnow, alias="dateAdded")

    @field_validator("date_added")
    @classmethod
    def normalize_date_added(cls, v: datetime) -> datetime:
        return cls._as_utc(v)


# ============================================================================
# Recommendations
# ============================================================================


class Recommendation(BaseModel):
    """A suggested title with a human-readable reason. Recomputed on demand."""

    title: str
    reason: str
    source: RecommendationSource
    author: Optional[str] = None
    short_description: Optional[str] = Field(None, alias="shortDescription")
    external_id: Optional[str] = Field(None, alias="externalId")

    model_config = {"populate_by_name": True}

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# Persisted Documents
# ============================================================================


class BookLists(BaseModel):
    """The two lists owned by the active session.

    `owner` is the identity the lists were last synced for; None means the
    lists were built anonymously on this device.
    """

    read_books: list[ReadItem] = Field(default_factory=list, alias="readBooks")
    to_read_books: list[ToReadItem] = Field(default_factory=list, alias="toReadBooks")
    owner: Optional[str] = None

    model_config = {"populate_by_name": True}

    @property
    def is_empty(self) -> bool:
        return not self.read_books and not self.to_read_books

    def to_json(self, include_owner: bool = True) -> dict:
        data = {
            "readBooks": [b.to_json() for b in self.read_books],
            "toReadBooks": [b.to_json() for b in self.to_read_books],
        }
        if include_owner and self.owner:
            data["owner"] = self.owner
        return data


class CachedRecommendations(BaseModel):
    """Time-boxed cache of external recommendation results."""

    ts: datetime
    results: list[Recommendation] = Field(default_factory=list)

    @field_validator("ts")
    @classmethod
    def normalize_ts(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def is_fresh(self, ttl_seconds: int, now: Optional[datetime] = None) -> bool:
        """True if the entry is younger than `ttl_seconds`."""
        now = now or utcnow()
        return (now - self.ts).total_seconds() < ttl_seconds
