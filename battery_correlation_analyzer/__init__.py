"""Battery Correlation Analyzer -- Python tooling for multi-facility battery cell test comparison.

Designed for rate-capability and pulse-power (HPPC-style) tests of the same
cell type run at several laboratories on different cyclers.

This package provides tools for:
- Binding instrument-specific channel names to logical roles, once per file
- Locating discharge events and target-current pulses in current channels
- Aligning voltage response with current-derived pulse boundaries
- Computing discharge capacity, state of charge and internal resistance
- Counting cycles by sign transitions, state codes or spike markers
- Aggregating per-event rows into one unit-annotated result table

Key principles:
- No synthetic time: time comes from acquisition columns only
- One shared algorithm set; facilities differ by configuration only
- Event-level anomalies are flagged on the row, never raised

Main subpackages:
- analysis: Coding, segmentation, alignment and per-event metrics
- ingest: Channel resolution, conditioning and temperature strategies
- models: Profiles, facility presets, frames and result records
- pipeline: Per-file analysis, batch driver and reporters
"""

from .errors import AnalysisError, FileProcessingError, MissingChannelError, NoEventsFoundError
from .models import ChannelFrame, FacilityProfile, FileMetadata, ResultTable, get_preset
from .pipeline import run_batch

__all__ = [
    "AnalysisError",
    "FileProcessingError",
    "MissingChannelError",
    "NoEventsFoundError",
    "ChannelFrame",
    "FacilityProfile",
    "FileMetadata",
    "ResultTable",
    "get_preset",
    "run_batch",
]
