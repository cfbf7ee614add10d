"""
Export module for sleep detection results.

Formats results as JSON, CSV and a lossless binary record stream.
"""

from doze.export.binary import ExportFormatError, export_binary, import_binary
from doze.export.formats import (
    export_csv,
    export_json,
    export_performance_metrics,
)

__all__ = [
    "ExportFormatError",
    "export_binary",
    "export_csv",
    "export_json",
    "export_performance_metrics",
    "import_binary",
]
