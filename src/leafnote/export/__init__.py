"""Export functionality for reading lists."""

from .csv_export import CSVExporter, ExportFormat, ExportResult, default_export_filename
from .json_export import JSONExporter

__all__ = [
    "CSVExporter",
    "ExportFormat",
    "ExportResult",
    "JSONExporter",
    "default_export_filename",
]
