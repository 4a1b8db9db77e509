"""
Exception taxonomy for the vault exporter.

Components raise these; the exporter turns them into ErrorRecord entries
on the ExportResult so callers always get a result back.
"""
from pathlib import Path
from typing import Optional


class ExportError(Exception):
    """Base class for export failures."""
    kind = "export_error"


class ConfigInvalid(ExportError):
    """Export enabled but the vault configuration is unusable."""
    kind = "config_invalid"


class AmbiguousSession(ExportError):
    """Two sessions resolve to the same note path."""
    kind = "ambiguous_session"


class IOFailure(ExportError):
    """A specific write or copy failed."""
    kind = "io_failure"

    def __init__(self, message: str, path: Optional[Path | str] = None):
        super().__init__(message)
        self.path = str(path) if path is not None else None


class Busy(ExportError):
    """Another export is already running against the same vault."""
    kind = "busy"


class InvalidDate(ExportError, ValueError):
    """Input is not a valid calendar date."""
    kind = "invalid_date"
