"""Base importer functionality.

An import either yields complete replacement lists or fails as a whole with
`ImportFormatError`; there is no partial import.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..db.schemas import BookLists


class ImportFormatError(Exception):
    """The file is not a recognised export; the message is shown to the user."""

    pass


@dataclass
class ImportResult:
    """Result of an import operation."""

    lists: BookLists
    source_file: Optional[Path] = None
    source_type: Optional[str] = None

    @property
    def read_count(self) -> int:
        return len(self.lists.read_books)

    @property
    def to_read_count(self) -> int:
        return len(self.lists.to_read_books)

    @property
    def summary(self) -> str:
        """Get summary string."""
        return f"Read: {self.read_count}, To read: {self.to_read_count}"


class BaseImporter(ABC):
    """Base class for list importers."""

    source_name: str = "unknown"

    @abstractmethod
    def parse_text(self, text: str) -> BookLists:
        """Parse file contents into lists.

        Raises:
            ImportFormatError: If the contents are not in this format
        """
        pass

    def import_file(self, file_path: Path) -> ImportResult:
        """Read and parse `file_path`.

        Raises:
            ImportFormatError: If the file cannot be read or parsed
        """
        try:
            text = Path(file_path).read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as e:
            raise ImportFormatError(f"Could not read {file_path}: {e}")

        return ImportResult(
            lists=self.parse_text(text),
            source_file=Path(file_path),
            source_type=self.source_name,
        )
