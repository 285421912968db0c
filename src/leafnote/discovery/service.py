"""Recommendation refresh with a time-boxed cache of external results."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from ..db.schemas import BookLists, Recommendation
from ..db.store import LocalStore
from .external import BookLookup, fetch_external_candidates
from .recommendations import DEFAULT_MAX_RESULTS, combine, recommend

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 24 * 60 * 60

# External results kept per fetch, independent of how many one call shows
CACHED_POOL_SIZE = 40


@dataclass
class RecommendationView:
    """What a refresh produced and where the external part came from."""

    recommendations: list[Recommendation] = field(default_factory=list)
    local: list[Recommendation] = field(default_factory=list)
    external: list[Recommendation] = field(default_factory=list)
    from_cache: bool = False
    errors: list[str] = field(default_factory=list)


class RecommendationService:
    """Combines local ranking with cached or freshly fetched external picks."""

    def __init__(
        self,
        store: LocalStore,
        client: Optional[BookLookup] = None,
        cache_ttl: int = CACHE_TTL_SECONDS,
    ):
        """Initialize the service.

        Args:
            store: Local store holding the results cache
            client: Book lookup client; None disables external suggestions
            cache_ttl: Seconds before cached external results go stale
        """
        self.store = store
        self.client = client
        self.cache_ttl = cache_ttl

    def refresh(
        self,
        lists: BookLists,
        max_results: int = DEFAULT_MAX_RESULTS,
        force: bool = False,
    ) -> RecommendationView:
        """Compute the combined recommendation view.

        Fresh cached external results are reused unless `force` is set. The
        cache holds the whole interleaved pool and each call takes the first
        `max_results` of it. A fetch where every lookup failed leaves the
        cache as it was.
        """
        view = RecommendationView()
        view.local = recommend(lists.read_books, lists.to_read_books, max_results)

        if self.client is not None and max_results > 0:
            cached = None if force else self.store.load_recommendation_cache()
            if cached and cached.is_fresh(self.cache_ttl):
                view.external = list(cached.results[:max_results])
                view.from_cache = True
            else:
                fetched = fetch_external_candidates(
                    lists.read_books,
                    lists.to_read_books,
                    max(max_results, CACHED_POOL_SIZE),
                    self.client,
                )
                view.external = fetched.recommendations[:max_results]
                view.errors = fetched.errors
                if fetched.all_failed:
                    logger.warning("All external lookups failed; keeping previous cache")
                else:
                    self.store.save_recommendation_cache(fetched.recommendations)

        view.recommendations = combine(view.external, view.local, max_results)
        return view

    def invalidate(self) -> None:
        """Drop cached external results, e.g. after the lists change."""
        self.store.clear_recommendation_cache()
