# ========================
# src/clarity_pipeline/exceptions.py
# ========================

"""
Pipeline Exceptions

Every error here is terminal for a run. Each carries enough context
(file path, row index where known) to diagnose the failing input.
"""

from typing import Iterable, Optional


class LayerPipelineError(Exception):
    """Base class for all layer preparation errors."""


class ConfigurationError(LayerPipelineError):
    """Raised when a configured filter window or option is invalid."""


class ReadError(LayerPipelineError):
    """Raised when the input file is missing, unreadable or malformed."""

    def __init__(self, path: str, message: str, row_index: Optional[int] = None):
        self.path = str(path)
        self.row_index = row_index
        location = f" (row {row_index})" if row_index is not None else ""
        super().__init__(f"{self.path}{location}: {message}")


class SchemaError(ReadError):
    """Raised when expected source columns are absent."""

    def __init__(self, path: str, missing_columns: Iterable[str], row_index: Optional[int] = None):
        self.missing_columns = sorted(missing_columns)
        super().__init__(
            path,
            f"missing expected columns: {', '.join(self.missing_columns)}",
            row_index=row_index,
        )


class DateParseError(ReadError):
    """Raised when a non-null date value does not match the configured format."""

    def __init__(self, path: str, value: str, date_format: str, row_index: Optional[int] = None):
        self.value = value
        self.date_format = date_format
        super().__init__(
            path,
            f"cannot parse date {value!r} with format {date_format!r}",
            row_index=row_index,
        )


class WriteError(LayerPipelineError):
    """Raised when an output file cannot be written."""

    def __init__(self, path: str, message: str):
        self.path = str(path)
        super().__init__(f"{self.path}: {message}")
