"""Test temperature resolution through an ordered list of named strategies.

Each strategy returns a :class:`StrategyResult` (success flag, value, note)
instead of raising; :func:`resolve_temperature` walks the list and the first
success wins. When none succeeds the temperature is NaN and every failure
note is returned as a warning.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np

from battery_correlation_analyzer.models.frames import ChannelFrame
from battery_correlation_analyzer.models.profile import TemperatureStrategy

from .channels import find_channel


#: Test temperatures of the correlation programme; medians are snapped to these.
TEMPERATURE_BANDS_C = (25.0, 45.0)
BAND_SPLIT_C = 35.0


@dataclass(frozen=True)
class StrategyResult:
    ok: bool
    value: float = float("nan")
    note: str = ""


def band_temperature(t: float) -> float:
    """Snap a measured temperature to the nearest test band (< 35 degC -> 25, else 45)."""
    return TEMPERATURE_BANDS_C[0] if t < BAND_SPLIT_C else TEMPERATURE_BANDS_C[1]


def from_channel_median(
    frame: ChannelFrame,
    channel: Optional[str],
    *,
    banded: bool = False,
    round_to_int: bool = False,
) -> StrategyResult:
    if not channel:
        return StrategyResult(False, note="no temperature channel configured")
    key = find_channel(channel, frame.channel_names)
    if key is None:
        return StrategyResult(False, note=f"temperature channel '{channel}' not present")
    x = frame.column(key)
    x = x[np.isfinite(x)]
    if x.size == 0:
        return StrategyResult(False, note=f"temperature channel '{key}' has no finite samples")
    t = float(np.median(x))
    if round_to_int:
        t = float(np.round(t))
    if banded:
        t = band_temperature(t)
    return StrategyResult(True, t, f"median of '{key}'")


def from_metadata(frame: ChannelFrame) -> StrategyResult:
    t = frame.metadata.temperature_c
    if t is None or not np.isfinite(t):
        return StrategyResult(False, note="no temperature in file metadata")
    return StrategyResult(True, float(t), "file metadata")


def from_fixed(value: Optional[float]) -> StrategyResult:
    if value is None or not np.isfinite(value):
        return StrategyResult(False, note="no fixed temperature configured")
    return StrategyResult(True, float(value), "fixed value")


def run_strategy(frame: ChannelFrame, strategy: TemperatureStrategy) -> StrategyResult:
    if strategy.source == "channel_median":
        return from_channel_median(frame, strategy.channel, banded=strategy.banded, round_to_int=strategy.round_to_int)
    if strategy.source == "metadata":
        return from_metadata(frame)
    if strategy.source == "fixed":
        return from_fixed(strategy.value)
    return StrategyResult(False, note=f"unknown temperature source {strategy.source!r}")


def resolve_temperature(
    frame: ChannelFrame,
    strategies: Sequence[TemperatureStrategy],
) -> Tuple[float, List[str]]:
    """Return ``(temperature_c, warnings)`` from the first successful strategy."""
    notes: List[str] = []
    for s in strategies:
        res = run_strategy(frame, s)
        if res.ok:
            return res.value, notes
        notes.append(f"temperature strategy {s.name} failed: {res.note}")
    notes.append("temperature unresolved; reported as NaN")
    return float("nan"), notes
