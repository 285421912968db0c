"""JSON export functionality.

Writes `{readBooks, toReadBooks}`, the same document the JSON importer reads.
"""

import json
import logging
from pathlib import Path

from ..db.schemas import BookLists
from .csv_export import ExportFormat, ExportResult

logger = logging.getLogger(__name__)


class JSONExporter:
    """Exports both reading lists to JSON."""

    def __init__(self, lists: BookLists):
        self.lists = lists

    def export_to_string(self, pretty: bool = True) -> str:
        payload = self.lists.to_json(include_owner=False)
        return json.dumps(payload, indent=2 if pretty else None, ensure_ascii=False)

    def export(self, output_path: Path, pretty: bool = True) -> ExportResult:
        """Write the JSON document to `output_path`.

        Args:
            output_path: Path for output file
            pretty: Pretty-print JSON output

        Returns:
            ExportResult with success status
        """
        try:
            with open(output_path, "w", encoding="utf-8") as f:
                f.write(self.export_to_string(pretty=pretty))
        except OSError as e:
            logger.error("JSON export to %s failed: %s", output_path, e)
            return ExportResult(success=False, format=ExportFormat.JSON, error=str(e))

        return ExportResult(
            success=True,
            file_path=output_path,
            records_exported=len(self.lists.read_books) + len(self.lists.to_read_books),
            format=ExportFormat.JSON,
        )
