"""Metadata enrichment for newly added books.

Looks a title up in the books API and keeps its author and a two-sentence
description. Any failure falls back to a synthesized description, so adding
a book never fails because of the lookup.
"""

import logging
from typing import Optional

from ..api.googlebooks import title_query
from ..discovery.external import BookLookup
from ..discovery.summarize import BookMeta, generate_fallback_meta, summarize_to_two_sentences

logger = logging.getLogger(__name__)

ENRICH_PAGE_SIZE = 5


class MetadataEnricher:
    """Fetches {author, description} for a title."""

    def __init__(self, client: BookLookup):
        self.client = client

    def enrich(self, title: str, author: Optional[str] = None) -> BookMeta:
        """Return author and short description for `title`.

        Args:
            title: Book title as entered by the user
            author: Author, if the user supplied one

        Returns:
            BookMeta; `is_fallback` is set when nothing usable was found
        """
        query = title_query(title)
        if author:
            query += f' inauthor:"{author}"'

        result = self.client.lookup(query, max_results=ENRICH_PAGE_SIZE)
        if not result.ok:
            logger.info("Metadata lookup for %r failed: %s", title, result.error)
            return generate_fallback_meta(title, author)

        if not result.volumes:
            logger.debug("No metadata found for %r", title)
            return generate_fallback_meta(title, author)

        volume = next((v for v in result.volumes if v.description), result.volumes[0])
        found_author = author or volume.author
        description = summarize_to_two_sentences(volume.description)
        if not description:
            return generate_fallback_meta(title, found_author)

        return BookMeta(
            author=found_author,
            short_description=description,
            external_id=volume.id,
        )
