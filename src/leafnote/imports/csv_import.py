"""CSV importer for the `status,id,title,rating,date` export format."""

import csv
from io import StringIO

from pydantic import ValidationError

from ..db.schemas import BookLists, ItemStatus, ReadItem, ToReadItem
from .base import BaseImporter, ImportFormatError

REQUIRED_COLUMNS = ("status", "id", "title", "rating", "date")


class CSVImporter(BaseImporter):
    """Imports lists from a Leafnote CSV export."""

    source_name = "csv"

    def parse_text(self, text: str) -> BookLists:
        reader = csv.DictReader(StringIO(text))
        fieldnames = [name.strip().lower() for name in (reader.fieldnames or [])]
        missing = [column for column in REQUIRED_COLUMNS if column not in fieldnames]
        if missing:
            raise ImportFormatError(
                f"Invalid file format: CSV header must be {','.join(REQUIRED_COLUMNS)}"
            )
        reader.fieldnames = fieldnames

        lists = BookLists()
        # Line 1 is the header
        for line_number, row in enumerate(reader, start=2):
            status = (row.get("status") or "").strip()
            fields = {"title": row.get("title")}
            item_id = (row.get("id") or "").strip()
            if item_id:
                fields["id"] = item_id
            date = (row.get("date") or "").strip()

            try:
                if status == ItemStatus.READ.value:
                    fields["rating"] = (row.get("rating") or "").strip()
                    if date:
                        fields["dateRead"] = date
                    lists.read_books.append(ReadItem.model_validate(fields))
                elif status == ItemStatus.TO_READ.value:
                    if date:
                        fields["dateAdded"] = date
                    lists.to_read_books.append(ToReadItem.model_validate(fields))
                else:
                    raise ImportFormatError(f"Line {line_number}: unknown status {status!r}")
            except ValidationError as e:
                problem = e.errors()[0]
                location = ".".join(str(part) for part in problem["loc"])
                raise ImportFormatError(f"Line {line_number}: {location}: {problem['msg']}")

        return lists
