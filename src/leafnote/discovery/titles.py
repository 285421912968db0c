"""Title normalization and deduplication.

A normalized title is a case, punctuation and whitespace-insensitive key.
Two titles are the same book iff their keys are equal. Keys are only
used for comparison and never displayed.
"""

import re
from typing import Iterable, Protocol, TypeVar

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_ROMAN_NUMERAL = re.compile(
    r"^m{0,4}(cm|cd|d?c{0,3})(xc|xl|l?x{0,3})(ix|iv|v?i{0,3})$"
)

# Series and ordinal words that say nothing about what a book is about
KEYWORD_STOP_WORDS = frozenset({
    "the", "and", "for", "with", "from", "into",
    "book", "books", "volume", "vol", "part", "series", "edition",
    "novel", "trilogy", "saga", "chronicles", "collection", "complete",
    "omnibus", "box", "set",
    "one", "two", "three", "four", "five", "six", "seven", "eight", "nine", "ten",
    "first", "second", "third", "fourth", "fifth", "sixth", "seventh",
    "eighth", "ninth", "tenth",
})

MAX_KEYWORDS = 6


class HasTitle(Protocol):
    title: str


T = TypeVar("T", bound=HasTitle)


def normalize_title(title: str) -> str:
    """Lowercase, drop punctuation, collapse whitespace, trim.

    Example:
        >>> normalize_title("  The Hobbit:  There & Back Again! ")
        'the hobbit there back again'
    """
    if not title:
        return ""
    key = _NON_WORD.sub("", title.lower())
    return _WHITESPACE.sub(" ", key).strip()


def dedup(items: Iterable[T]) -> list[T]:
    """Keep the first item per normalized title, preserving input order."""
    seen: set[str] = set()
    unique = []
    for item in items:
        key = normalize_title(item.title)
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def title_tokens(title: str) -> set[str]:
    """Distinct tokens of the normalized title."""
    key = normalize_title(title)
    return set(key.split()) if key else set()


def token_overlap(a: str, b: str) -> float:
    """Jaccard overlap of the two titles' token sets (0.0 - 1.0)."""
    tokens_a = title_tokens(a)
    tokens_b = title_tokens(b)
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def _is_roman_numeral(token: str) -> bool:
    return bool(token) and bool(_ROMAN_NUMERAL.match(token))


def title_keywords(title: str, limit: int = MAX_KEYWORDS) -> list[str]:
    """Significant title words usable as a search query.

    Drops tokens of two characters or fewer, roman numerals, pure digits
    and series/ordinal words. Order is preserved and repeats removed.
    """
    keywords: list[str] = []
    for token in normalize_title(title).split():
        if len(token) <= 2:
            continue
        if token.isdigit() or _is_roman_numeral(token):
            continue
        if token in KEYWORD_STOP_WORDS or token in keywords:
            continue
        keywords.append(token)
        if len(keywords) >= limit:
            break
    return keywords
