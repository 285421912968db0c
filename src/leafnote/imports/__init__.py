"""Import reading lists from exported files."""

from pathlib import Path

from .base import BaseImporter, ImportFormatError, ImportResult
from .csv_import import CSVImporter
from .json_import import JSONImporter


def detect_importer(file_path: Path) -> BaseImporter:
    """Pick an importer by extension, falling back to sniffing the content.

    Raises:
        ImportFormatError: If the file cannot be read
    """
    suffix = Path(file_path).suffix.lower()
    if suffix == ".json":
        return JSONImporter()
    if suffix == ".csv":
        return CSVImporter()

    try:
        head = Path(file_path).read_text(encoding="utf-8-sig")[:256].lstrip()
    except (OSError, UnicodeDecodeError) as e:
        raise ImportFormatError(f"Could not read {file_path}: {e}")
    return JSONImporter() if head.startswith(("{", "[")) else CSVImporter()


def load_import(file_path: Path) -> ImportResult:
    """Parse an exported file of either format.

    Raises:
        ImportFormatError: If the file is not a recognised export
    """
    return detect_importer(file_path).import_file(file_path)


__all__ = [
    "BaseImporter",
    "CSVImporter",
    "ImportFormatError",
    "ImportResult",
    "JSONImporter",
    "detect_importer",
    "load_import",
]
