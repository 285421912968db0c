"""Database module for local key-value storage."""

from .models import KeyValue
from .schemas import (
    BookLists,
    CachedRecommendations,
    ItemStatus,
    ReadItem,
    Recommendation,
    RecommendationSource,
    ToReadItem,
)
from .store import LocalStore, get_store, reset_store

__all__ = [
    "KeyValue",
    "BookLists",
    "CachedRecommendations",
    "ItemStatus",
    "ReadItem",
    "Recommendation",
    "RecommendationSource",
    "ToReadItem",
    "LocalStore",
    "get_store",
    "reset_store",
]
