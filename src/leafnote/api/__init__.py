"""API module for external services.

Provides the Google Books client used for enrichment and external
recommendations, and the Resend client used to mail the weekly report.
"""

from .googlebooks import (
    BooksApiError,
    BooksApiRateLimitError,
    GoogleBooksClient,
    LookupResult,
    VolumeResult,
)
from .mailer import Attachment, ResendClient, ResendError

__all__ = [
    "Attachment",
    "BooksApiError",
    "BooksApiRateLimitError",
    "GoogleBooksClient",
    "LookupResult",
    "ResendClient",
    "ResendError",
    "VolumeResult",
]
