"""JSON importer for `{readBooks, toReadBooks}` documents."""

import json

from pydantic import ValidationError

from ..db.schemas import BookLists
from .base import BaseImporter, ImportFormatError


class JSONImporter(BaseImporter):
    """Imports lists from a Leafnote JSON export.

    At least one of `readBooks` / `toReadBooks` must be a list; a missing or
    non-list counterpart is treated as empty.
    """

    source_name = "json"

    def parse_text(self, text: str) -> BookLists:
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            raise ImportFormatError("Failed to parse JSON.")

        if not isinstance(data, dict):
            raise ImportFormatError("Invalid file format.")

        read_books = data.get("readBooks")
        to_read_books = data.get("toReadBooks")
        if not isinstance(read_books, list) and not isinstance(to_read_books, list):
            raise ImportFormatError("Invalid file format.")

        try:
            return BookLists.model_validate({
                "readBooks": read_books if isinstance(read_books, list) else [],
                "toReadBooks": to_read_books if isinstance(to_read_books, list) else [],
            })
        except ValidationError as e:
            problem = e.errors()[0]
            location = ".".join(str(part) for part in problem["loc"])
            raise ImportFormatError(f"Invalid file format: {location}: {problem['msg']}")
