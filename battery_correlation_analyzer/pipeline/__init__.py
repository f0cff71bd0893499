"""File-level analysis and batch aggregation."""

from .batch import (
    BatchResult,
    FileResult,
    FileState,
    analyse_file,
    analyse_pulse_file,
    analyse_rate_file,
    run_batch,
)
from .reporting import ListReporter, NullReporter, Reporter

__all__ = [
    "BatchResult",
    "FileResult",
    "FileState",
    "analyse_file",
    "analyse_pulse_file",
    "analyse_rate_file",
    "run_batch",
    "ListReporter",
    "NullReporter",
    "Reporter",
]
