"""CSV export functionality.

One row per item from both lists under the header `status,id,title,rating,date`.
Titles are always quoted; the rating column is blank for to-read rows.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from ..db.schemas import BookLists, ItemStatus, utcnow

logger = logging.getLogger(__name__)


class ExportFormat(str, Enum):
    """Export format options."""

    CSV = "csv"
    JSON = "json"


@dataclass
class ExportResult:
    """Result of an export operation."""

    success: bool
    file_path: Optional[Path] = None
    records_exported: int = 0
    format: Optional[ExportFormat] = None
    error: Optional[str] = None


def default_export_filename(format: ExportFormat, now: Optional[datetime] = None) -> str:
    """File name like `leafnote-data-2024-05-01T10-00-00-000000+00-00.csv`."""
    stamp = (now or utcnow()).isoformat()
    for ch in ":.":
        stamp = stamp.replace(ch, "-")
    return f"leafnote-data-{stamp}.{format.value}"


def _quote(value: str, always: bool = False) -> str:
    """Quote a CSV field, doubling embedded quotes."""
    if always or any(ch in value for ch in ',"\r\n'):
        return '"' + value.replace('"', '""') + '"'
    return value


class CSVExporter:
    """Exports both reading lists to CSV."""

    COLUMNS = ["status", "id", "title", "rating", "date"]

    def __init__(self, lists: BookLists):
        """Initialize exporter.

        Args:
            lists: Lists to export
        """
        self.lists = lists

    def rows(self) -> list[dict]:
        """Rows in export order: read items first, then to-read items."""
        rows = []
        for item in self.lists.read_books:
            rows.append({
                "status": ItemStatus.READ.value,
                "id": item.id,
                "title": item.title,
                "rating": str(item.rating),
                "date": item.date_read.isoformat(),
            })
        for item in self.lists.to_read_books:
            rows.append({
                "status": ItemStatus.TO_READ.value,
                "id": item.id,
                "title": item.title,
                "rating": "",
                "date": item.date_added.isoformat(),
            })
        return rows

    def export_to_string(self) -> str:
        """Export to a CSV string (header included)."""
        lines = [",".join(self.COLUMNS)]
        for row in self.rows():
            lines.append(",".join(
                _quote(row[column], always=(column == "title")) for column in self.COLUMNS
            ))
        return "\n".join(lines) + "\n"

    def export(self, output_path: Path) -> ExportResult:
        """Write the CSV to `output_path`.

        Returns:
            ExportResult with success status and details
        """
        try:
            content = self.export_to_string()
            with open(output_path, "w", newline="", encoding="utf-8") as f:
                f.write(content)
        except OSError as e:
            logger.error("CSV export to %s failed: %s", output_path, e)
            return ExportResult(success=False, format=ExportFormat.CSV, error=str(e))

        return ExportResult(
            success=True,
            file_path=output_path,
            records_exported=len(self.lists.read_books) + len(self.lists.to_read_books),
            format=ExportFormat.CSV,
        )
