"""Exception types raised by the analysis core.

Only *file-level* conditions are raised. Event-level anomalies (short pulses,
non-physical resistance, ...) never raise; they are recorded as reason strings
on the affected event and the numeric field is set to
:data:`~battery_correlation_analyzer.models.results.INVALID`.
"""

from __future__ import annotations

from typing import Sequence


class AnalysisError(ValueError):
    """Base class for all errors raised by the analysis core."""


class FileProcessingError(AnalysisError):
    """A condition that aborts the contribution of one file to the result table."""

    def __init__(self, message: str, *, file_id: str = "") -> None:
        super().__init__(message)
        self.file_id = file_id


class MissingChannelError(FileProcessingError, KeyError):
    """One or more required logical roles have no bound channel in the file."""

    def __init__(self, roles: Sequence[str], *, file_id: str = "", available: Sequence[str] = ()) -> None:
        self.roles = tuple(roles)
        self.available = tuple(available)
        msg = f"missing required channel(s) for role(s): {', '.join(self.roles)}"
        if self.available:
            msg += f" (available: {', '.join(self.available[:20])})"
        super().__init__(msg, file_id=file_id)

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class NoEventsFoundError(FileProcessingError):
    """Segmentation produced zero complete start/finish pairs."""
