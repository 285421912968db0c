"""Description summarization helpers.

Book descriptions from metadata services are long and often carry HTML.
These helpers reduce them to something that fits on a recommendation card.
"""

import html
import re
from dataclasses import dataclass
from typing import Optional

SUMMARY_MAX_CHARS = 300
SHORT_DESC_MAX_CHARS = 220
SHORT_DESC_MIN_SENTENCE_CUT = 100
SHORT_DESC_MIN_SPACE_CUT = 180
ELLIPSIS = "…"

_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")
_SENTENCE_SPLIT = re.compile(r"(?<=[.?!])\s+")
_SENTENCE_END = re.compile(r"[.?!](?=\s|$)")
_CLAUSE_SPLIT = re.compile(r"\s*[;,]\s*")
_TERMINAL = (".", "?", "!")


@dataclass
class BookMeta:
    """Author and card-sized description for a title."""

    author: Optional[str]
    short_description: str
    is_fallback: bool = False
    external_id: Optional[str] = None


def strip_markup(text: Optional[str]) -> str:
    """Remove HTML tags and entities, collapse whitespace."""
    if not text:
        return ""
    text = html.unescape(_TAG.sub(" ", text))
    return _WHITESPACE.sub(" ", text).strip()


def _truncate_at_word(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    cut = text[:limit]
    space = cut.rfind(" ")
    if space > 0:
        cut = cut[:space]
    return cut.rstrip(" ,;:") + ELLIPSIS


def _punctuate(clause: str) -> str:
    clause = clause.strip().rstrip(",;:")
    if not clause:
        return ""
    clause = clause[0].upper() + clause[1:]
    if not clause.endswith(_TERMINAL):
        clause += "."
    return clause


def summarize_to_two_sentences(text: Optional[str]) -> str:
    """Return at most the first two sentences of `text`.

    A single sentence is split into two clauses on ';' or ',' when possible;
    otherwise it is truncated to 300 characters at a word boundary.

    Example:
        >>> summarize_to_two_sentences("One. Two! Three?")
        'One. Two!'
        >>> summarize_to_two_sentences("Hello world.")
        'Hello world.'
    """
    clean = strip_markup(text)
    if not clean:
        return ""

    sentences = [s for s in _SENTENCE_SPLIT.split(clean) if s]
    if len(sentences) >= 2:
        return " ".join(sentences[:2])

    sentence = sentences[0]
    parts = _CLAUSE_SPLIT.split(sentence, maxsplit=1)
    if len(parts) == 2:
        first, second = _punctuate(parts[0]), _punctuate(parts[1])
        if first and second:
            return f"{first} {second}"

    return _truncate_at_word(sentence, SUMMARY_MAX_CHARS)


def short_desc_from_text(text: Optional[str]) -> str:
    """Long-form card description capped at roughly 220 characters.

    Prefers ending on a sentence boundary past character 100; otherwise
    cuts at the last space after character 180 and appends an ellipsis.
    """
    clean = strip_markup(text)
    if len(clean) <= SHORT_DESC_MAX_CHARS:
        return clean

    sentence_end = 0
    for match in _SENTENCE_END.finditer(clean):
        if match.end() > SHORT_DESC_MAX_CHARS:
            break
        sentence_end = match.end()

    if sentence_end > SHORT_DESC_MIN_SENTENCE_CUT:
        return clean[:sentence_end].strip()

    window = clean[:SHORT_DESC_MAX_CHARS]
    space = window.rfind(" ", SHORT_DESC_MIN_SPACE_CUT)
    cut = window[:space] if space != -1 else window
    return cut.rstrip(" ,;:") + ELLIPSIS


def generate_fallback_meta(title: str, author: Optional[str] = None) -> BookMeta:
    """Synthesize a generic description when none can be retrieved."""
    subject = f"{title} by {author}" if author else title
    text = (
        f"A book worth a place on your shelf: {subject}. "
        f"No description is available yet, so jot down your own impressions as you read."
    )
    return BookMeta(
        author=author,
        short_description=summarize_to_two_sentences(text),
        is_fallback=True,
    )
