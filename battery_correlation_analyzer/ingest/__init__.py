"""Ingest package - channel binding and conditioning of already-loaded files.

This package handles:
- Resolving logical roles (current, voltage, capacity, time, state) to the
  columns of one imported file, once per file
- NaN gap interpolation, state-code parsing and discharge-current inversion
- Test temperature resolution through ordered, named strategies

File discovery and the format-specific readers live with each facility's
tooling; they hand over a :class:`~battery_correlation_analyzer.models.frames.ChannelFrame`.

Design principle:
- No synthetic time is created; gaps are filled on the sample index only
- Missing required channels fail the file with MissingChannelError
"""

from .channels import ResolvedChannels, normalize_channel_name, resolve_channels, robust_range
from .conditioning import interpolate_frame_gaps, interpolate_nan_gaps, invert_discharge_current, parse_state_channel
from .temperature import resolve_temperature

__all__ = [
    "ResolvedChannels",
    "normalize_channel_name",
    "resolve_channels",
    "robust_range",
    "interpolate_frame_gaps",
    "interpolate_nan_gaps",
    "invert_discharge_current",
    "parse_state_channel",
    "resolve_temperature",
]
