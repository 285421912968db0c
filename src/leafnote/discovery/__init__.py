"""Recommendation and discovery functionality."""

from .external import (
    ExternalFetchResult,
    build_seed_query,
    fetch_external_candidates,
    fetch_external_recommendations,
)
from .recommendations import combine, recommend
from .service import RecommendationService, RecommendationView
from .summarize import (
    BookMeta,
    generate_fallback_meta,
    short_desc_from_text,
    summarize_to_two_sentences,
)
from .titles import dedup, normalize_title

__all__ = [
    "ExternalFetchResult",
    "build_seed_query",
    "fetch_external_candidates",
    "fetch_external_recommendations",
    "combine",
    "recommend",
    "RecommendationService",
    "RecommendationView",
    "BookMeta",
    "generate_fallback_meta",
    "short_desc_from_text",
    "summarize_to_two_sentences",
    "dedup",
    "normalize_title",
]
