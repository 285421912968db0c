"""External candidate fetch and filter.

Turns the user's favourite books ("seeds") into book-search queries, filters
each result page down to genuinely new titles, and interleaves the pools so
no single seed dominates the suggestions.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol, Sequence

from ..api.googlebooks import (
    LookupResult,
    VolumeResult,
    author_query,
    keyword_query,
    title_query,
)
from ..db.schemas import ReadItem, Recommendation, RecommendationSource, ToReadItem
from .recommendations import top_rated
from .summarize import short_desc_from_text
from .titles import normalize_title, title_keywords, token_overlap

logger = logging.getLogger(__name__)

MAX_SEEDS = 3
EXTERNAL_PAGE_SIZE = 20
SEED_OVERLAP_THRESHOLD = 0.7

# Derivative editions that are never a real "next read"
BANNED_SUBSTRINGS = (
    "study guide",
    "summary of",
    "summary and analysis",
    "book summary",
    "analysis of",
    "companion",
    "sparknotes",
    "cliffsnotes",
    "cliff notes",
    "workbook",
    "reader's guide",
    "readers guide",
    "teacher's guide",
    "discussion guide",
    "book club kit",
    "boxed set",
    "box set",
    "collection set",
    "books set",
    "trivia",
    "quicklet",
    "coloring book",
)


class BookLookup(Protocol):
    """Anything that can answer a book-search query with a LookupResult."""

    def lookup(
        self,
        query: str,
        max_results: int = 20,
        lang_restrict: Optional[str] = None,
    ) -> LookupResult: ...


@dataclass
class ExternalFetchResult:
    """Recommendations plus the reasons any seed lookups failed."""

    recommendations: list[Recommendation] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    lookups: int = 0

    @property
    def all_failed(self) -> bool:
        return self.lookups > 0 and len(self.errors) == self.lookups


def select_seeds(read_items: Sequence[ReadItem], limit: int = MAX_SEEDS) -> list[ReadItem]:
    """Up to `limit` books rated 4+, best and most recent first."""
    return top_rated(read_items)[:limit]


def build_seed_query(seed: ReadItem) -> str:
    """Search query for one seed.

    Author search (narrowed by the primary category) when the author is
    known, otherwise significant title keywords, otherwise the exact title.
    """
    if seed.author:
        category = seed.categories[0] if seed.categories else None
        return author_query(seed.author, category)

    keywords = title_keywords(seed.title)
    if keywords:
        return keyword_query(keywords)
    return title_query(seed.title)


def _is_banned(volume: VolumeResult) -> bool:
    text = f"{volume.title} {volume.subtitle or ''}".lower()
    return any(banned in text for banned in BANNED_SUBSTRINGS)


def filter_candidates(
    seed: ReadItem,
    volumes: Sequence[VolumeResult],
    owned_ids: set[str],
    owned_titles: set[str],
) -> list[Recommendation]:
    """Reduce one result page to new, relevant candidates."""
    seed_key = normalize_title(seed.title)
    candidates = []

    for volume in volumes:
        if not volume.is_english:
            continue
        if _is_banned(volume):
            continue

        key = normalize_title(volume.title)
        if not key or key == seed_key:
            continue
        if token_overlap(volume.title, seed.title) > SEED_OVERLAP_THRESHOLD:
            continue
        if volume.id in owned_ids or key in owned_titles:
            continue

        candidates.append(Recommendation(
            title=volume.title,
            reason=f"Because you loved {seed.title}",
            source=RecommendationSource.FROM_EXTERNAL,
            author=volume.author,
            short_description=short_desc_from_text(volume.description) or None,
            external_id=volume.id,
        ))

    return candidates


def interleave(pools: Sequence[Sequence[Recommendation]], max_results: int) -> list[Recommendation]:
    """Round-robin across pools, skipping ids or titles already emitted."""
    merged: list[Recommendation] = []
    emitted_ids: set[str] = set()
    emitted_titles: set[str] = set()

    depth = max((len(p) for p in pools), default=0)
    for index in range(depth):
        for pool in pools:
            if len(merged) >= max_results:
                return merged
            if index >= len(pool):
                continue
            rec = pool[index]
            key = normalize_title(rec.title)
            if (rec.external_id and rec.external_id in emitted_ids) or key in emitted_titles:
                continue
            if rec.external_id:
                emitted_ids.add(rec.external_id)
            emitted_titles.add(key)
            merged.append(rec)

    return merged


def fetch_external_candidates(
    read_items: Sequence[ReadItem],
    to_read_items: Sequence[ToReadItem],
    max_results: int,
    client: BookLookup,
    page_size: int = EXTERNAL_PAGE_SIZE,
) -> ExternalFetchResult:
    """Fetch and filter external suggestions, reporting lookup failures.

    Seeds are looked up one after another; a failed lookup contributes an
    empty pool. No seeds means no lookups at all. Books already on either
    list are excluded by their books-API volume id or normalized title.
    """
    result = ExternalFetchResult()
    seeds = select_seeds(read_items)
    if not seeds or max_results <= 0:
        return result

    owned = list(read_items) + list(to_read_items)
    owned_ids = {b.external_id for b in owned if b.external_id}
    owned_titles = {normalize_title(b.title) for b in owned}

    pools: list[list[Recommendation]] = []
    for seed in seeds:
        query = build_seed_query(seed)
        result.lookups += 1
        lookup = client.lookup(query, max_results=page_size, lang_restrict="en")
        if not lookup.ok:
            logger.info("External lookup for %r failed: %s", seed.title, lookup.error)
            result.errors.append(f"{seed.title}: {lookup.error}")
            pools.append([])
            continue
        pools.append(filter_candidates(seed, lookup.volumes, owned_ids, owned_titles))

    result.recommendations = interleave(pools, max_results)
    return result


def fetch_external_recommendations(
    read_items: Sequence[ReadItem],
    to_read_items: Sequence[ToReadItem],
    max_results: int,
    client: BookLookup,
) -> list[Recommendation]:
    """Suggestions from the books API; empty on any failure."""
    return fetch_external_candidates(read_items, to_read_items, max_results, client).recommendations
