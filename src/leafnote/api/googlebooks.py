"""Google Books API client for book metadata lookup.

The volumes endpoint provides free-text search with field operators
(`intitle:`, `inauthor:`, `subject:`), descriptions, languages and
categories. An API key is optional for low request volumes.
"""

import time
from dataclasses import dataclass, field
from typing import Optional

import requests


class BooksApiError(Exception):
    """Base exception for Google Books API errors."""

    pass


class BooksApiRateLimitError(BooksApiError):
    """Raised when rate limited by Google Books."""

    pass


@dataclass
class VolumeResult:
    """A volume from a Google Books search."""

    id: str
    title: str
    subtitle: Optional[str] = None
    authors: list[str] = field(default_factory=list)
    description: Optional[str] = None
    language: Optional[str] = None
    categories: list[str] = field(default_factory=list)

    @property
    def author(self) -> Optional[str]:
        """Primary author, if any."""
        return self.authors[0] if self.authors else None

    @property
    def is_english(self) -> bool:
        """True unless the volume declares a non-English language."""
        if not self.language:
            return True
        return self.language.lower().split("-")[0] == "en"


@dataclass
class LookupResult:
    """Outcome of a lookup: either volumes or the reason it failed.

    An empty `volumes` list with `ok=True` means the API answered but had
    nothing to offer.
    """

    ok: bool
    volumes: list[VolumeResult] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def success(cls, volumes: list[VolumeResult]) -> "LookupResult":
        return cls(ok=True, volumes=volumes)

    @classmethod
    def failure(cls, error: str) -> "LookupResult":
        return cls(ok=False, error=error)


class GoogleBooksClient:
    """Client for the Google Books volumes API."""

    BASE_URL = "https://www.googleapis.com/books/v1"
    MAX_RESULTS_LIMIT = 40  # API maximum per page

    def __init__(self, api_key: Optional[str] = None, timeout: float = 10):
        """Initialize client.

        Args:
            api_key: Optional Google Books API key
            timeout: Request timeout in seconds
        """
        self.api_key = api_key
        self.timeout = timeout
        self._session = requests.Session()
        self._session.headers.update({
            "User-Agent": "Leafnote/1.0 (reading tracker)"
        })
        self._last_request_time = 0.0
        self._min_request_interval = 0.1

    def _rate_limit(self) -> None:
        """Enforce rate limiting between requests."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self._min_request_interval:
            time.sleep(self._min_request_interval - elapsed)
        self._last_request_time = time.time()

    def _get(self, url: str, params: Optional[dict] = None) -> dict:
        """Make GET request with error handling."""
        self._rate_limit()
        params = dict(params or {})
        if self.api_key:
            params["key"] = self.api_key
        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.Timeout:
            raise BooksApiError("Request timed out")
        except requests.exceptions.HTTPError as e:
            if e.response is not None and e.response.status_code == 429:
                raise BooksApiRateLimitError("Rate limited by Google Books")
            status = e.response.status_code if e.response is not None else "unknown"
            raise BooksApiError(f"HTTP error: {status}")
        except requests.exceptions.RequestException as e:
            raise BooksApiError(f"Request failed: {e}")
        except ValueError:
            raise BooksApiError("Response was not valid JSON")

    # ========================================================================
    # Search Operations
    # ========================================================================

    def search(
        self,
        query: str,
        max_results: int = 20,
        lang_restrict: Optional[str] = None,
    ) -> list[VolumeResult]:
        """Search volumes with a free-text or operator query.

        Args:
            query: Query string, e.g. 'inauthor:"Frank Herbert"'
            max_results: Maximum results (capped at 40)
            lang_restrict: Two-letter language code to restrict results

        Returns:
            List of VolumeResult objects

        Raises:
            BooksApiError: On network or HTTP failure
        """
        params = {
            "q": query,
            "maxResults": max(1, min(max_results, self.MAX_RESULTS_LIMIT)),
            "printType": "books",
        }
        if lang_restrict:
            params["langRestrict"] = lang_restrict

        data = self._get(f"{self.BASE_URL}/volumes", params)

        results = []
        for item in data.get("items") or []:
            result = self._item_to_result(item)
            if result:
                results.append(result)

        return results

    def search_by_title(self, title: str, max_results: int = 5) -> list[VolumeResult]:
        """Search for volumes by exact title."""
        return self.search(title_query(title), max_results=max_results)

    def search_by_author(
        self,
        author: str,
        category: Optional[str] = None,
        max_results: int = 20,
    ) -> list[VolumeResult]:
        """Search for volumes by author, optionally narrowed by subject."""
        return self.search(author_query(author, category), max_results=max_results)

    def lookup(
        self,
        query: str,
        max_results: int = 20,
        lang_restrict: Optional[str] = None,
    ) -> LookupResult:
        """Like `search`, but reports failure as a value instead of raising."""
        try:
            return LookupResult.success(
                self.search(query, max_results=max_results, lang_restrict=lang_restrict)
            )
        except BooksApiError as e:
            return LookupResult.failure(str(e))

    def _item_to_result(self, item: dict) -> Optional[VolumeResult]:
        """Convert a volume item to VolumeResult."""
        info = item.get("volumeInfo") or {}
        title = (info.get("title") or "").strip()
        volume_id = item.get("id")
        if not title or not volume_id:
            return None

        return VolumeResult(
            id=volume_id,
            title=title,
            subtitle=info.get("subtitle"),
            authors=list(info.get("authors") or []),
            description=info.get("description"),
            language=info.get("language"),
            categories=list(info.get("categories") or []),
        )


def _quote(value: str) -> str:
    return '"' + value.replace('"', "").strip() + '"'


def title_query(title: str) -> str:
    """Query matching an exact title."""
    return f"intitle:{_quote(title)}"


def author_query(author: str, category: Optional[str] = None) -> str:
    """Query matching an author, optionally narrowed by subject."""
    query = f"inauthor:{_quote(author)}"
    if category:
        query += f" subject:{_quote(category)}"
    return query


def keyword_query(keywords: list[str]) -> str:
    """Query matching all keywords in the title."""
    return " ".join(f"intitle:{k}" for k in keywords)
