"""Local recommendation ranking.

Builds an ordered, deduplicated list of suggestions from the two reading
lists alone. The ranking is pure and deterministic: the same lists always
produce the same output, ties keep their input order.
"""

from collections import Counter
from typing import Optional, Sequence

from ..db.schemas import ReadItem, Recommendation, RecommendationSource, ToReadItem
from .titles import normalize_title

DEFAULT_MAX_RESULTS = 8

QUEUED_LIMIT = 3
TOP_RATED_LIMIT = 3
GENRE_LIMIT = 2
HIGH_RATING = 4

EMPTY_FALLBACK = Recommendation(
    title="Add a few books you loved",
    reason="Rate a couple of books you've read to get personal suggestions",
    source=RecommendationSource.FALLBACK,
)

PADDING_PLACEHOLDERS = (
    Recommendation(
        title="Discover new reads",
        reason="Browse new releases and staff picks for something fresh",
        source=RecommendationSource.FALLBACK,
    ),
)


class _RankedList:
    """Output list guarded by a seen-set of normalized titles and a cap."""

    def __init__(self, max_results: int):
        self.max_results = max(0, max_results)
        self.items: list[Recommendation] = []
        self.seen: set[str] = set()

    @property
    def full(self) -> bool:
        return len(self.items) >= self.max_results

    def has(self, title: str) -> bool:
        return normalize_title(title) in self.seen

    def push(self, rec: Recommendation) -> bool:
        if self.full:
            return False
        key = normalize_title(rec.title)
        if not key or key in self.seen:
            return False
        self.seen.add(key)
        self.items.append(rec)
        return True


def top_rated(read_items: Sequence[ReadItem], min_rating: int = HIGH_RATING) -> list[ReadItem]:
    """Read items rated at least `min_rating`, best and most recent first."""
    rated = [b for b in read_items if b.rating >= min_rating]
    return sorted(rated, key=lambda b: (b.rating, b.date_read), reverse=True)


def newest_queued(to_read_items: Sequence[ToReadItem]) -> list[ToReadItem]:
    """To-read items, most recently added first."""
    return sorted(to_read_items, key=lambda b: b.date_added, reverse=True)


def top_categories(items: Sequence[ReadItem], limit: int = GENRE_LIMIT) -> list[str]:
    """Most frequent categories; ties keep first-encountered order."""
    counts: Counter = Counter()
    display: dict[str, str] = {}
    for item in items:
        for category in item.categories or []:
            key = category.strip().lower()
            if not key:
                continue
            counts[key] += 1
            display.setdefault(key, category.strip())
    # Counter preserves insertion order, sorted() is stable
    ranked = sorted(counts, key=lambda k: counts[k], reverse=True)
    return [display[k] for k in ranked[:limit]]


def _has_category(item: ToReadItem, category: str) -> bool:
    wanted = category.lower()
    return any(c.strip().lower() == wanted for c in item.categories or [])


def recommend(
    read_items: Sequence[ReadItem],
    to_read_items: Sequence[ToReadItem],
    max_results: int = DEFAULT_MAX_RESULTS,
) -> list[Recommendation]:
    """Rank local suggestions.

    Rules apply strictly in order, each checked against the titles already
    chosen:

    1. Up to 3 to-read items, newest first.
    2. Up to 3 read items rated 4+, by rating then recency, skipping
       titles that are already queued to read.
    3. Up to 2 genre picks from the top categories of the 4+ set: a queued
       book carrying the category, or an "Explore more" placeholder.
    4. One motivational fallback if nothing was found.
    5. Generic padding until `max_results` or no unused placeholder remains.

    Args:
        read_items: Books the user has finished
        to_read_items: Books the user intends to read
        max_results: Maximum suggestions to return

    Returns:
        At most `max_results` recommendations with distinct titles
    """
    ranked = _RankedList(max_results)
    queued = newest_queued(to_read_items)

    added = 0
    for item in queued:
        if added >= QUEUED_LIMIT or ranked.full:
            break
        if ranked.push(Recommendation(
            title=item.title,
            reason="Already on your to-read list",
            source=RecommendationSource.FROM_TO_READ,
            author=item.author,
            short_description=item.short_description,
        )):
            added += 1

    favourites = top_rated(read_items)
    queued_keys = {normalize_title(b.title) for b in to_read_items}

    added = 0
    for item in favourites:
        if added >= TOP_RATED_LIMIT or ranked.full:
            break
        if normalize_title(item.title) in queued_keys:
            continue
        if ranked.push(Recommendation(
            title=item.title,
            reason=f"You rated this {item.rating}/5; consider revisiting it or something similar",
            source=RecommendationSource.FROM_TOP_RATED,
            author=item.author,
            short_description=item.short_description,
        )):
            added += 1

    for category in top_categories([b for b in read_items if b.rating >= HIGH_RATING]):
        if ranked.full:
            break
        match: Optional[ToReadItem] = next(
            (b for b in queued if _has_category(b, category) and not ranked.has(b.title)),
            None,
        )
        if match:
            ranked.push(Recommendation(
                title=match.title,
                reason=f"Matches your interest in {category}",
                source=RecommendationSource.FROM_SIMILAR_GENRE,
                author=match.author,
                short_description=match.short_description,
            ))
        else:
            ranked.push(Recommendation(
                title=f"Explore more {category}",
                reason="You seem to enjoy this genre",
                source=RecommendationSource.FROM_SIMILAR_GENRE,
            ))

    if not ranked.items:
        ranked.push(EMPTY_FALLBACK.model_copy())

    for placeholder in PADDING_PLACEHOLDERS:
        if ranked.full:
            break
        ranked.push(placeholder.model_copy())

    return ranked.items


def combine(
    external: Sequence[Recommendation],
    local: Sequence[Recommendation],
    max_results: int = DEFAULT_MAX_RESULTS,
) -> list[Recommendation]:
    """External suggestions first, then local ones, without repeats.

    Candidates are deduplicated by external id first and normalized title
    second.
    """
    combined: list[Recommendation] = []
    seen_ids: set[str] = set()
    seen_titles: set[str] = set()

    for rec in list(external) + list(local):
        if len(combined) >= max_results:
            break
        if rec.external_id and rec.external_id in seen_ids:
            continue
        key = normalize_title(rec.title)
        if key in seen_titles:
            continue
        if rec.external_id:
            seen_ids.add(rec.external_id)
        seen_titles.add(key)
        combined.append(rec)

    return combined
