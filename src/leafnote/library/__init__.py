"""Reading list management and metadata enrichment."""

from .enricher import MetadataEnricher
from .tracker import ItemNotFoundError, ReadingTracker

__all__ = [
    "MetadataEnricher",
    "ItemNotFoundError",
    "ReadingTracker",
]
