from __future__ import annotations

"""Lag estimation between current-derived pulse boundaries and the voltage response.

Current and voltage are not guaranteed to be sample-aligned (sensor latency,
instrument filtering). The lag is the signed index offset

    lag = voltage_index - current_boundary

and is only ever added to *voltage* indices when reading delta-V.

- Discharge side: the voltage index is the first negative-going step of the
  rounded voltage trace inside a search window around the current-derived
  discharge start.
- Charge side: the voltage index is the position of the voltage maximum
  inside a search window around the last sample of the charge pulse.

If no step is found the lag is 0 and a diagnostic is returned.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class LagEstimate:
    """Lag (in samples) and the voltage index it was derived from."""

    lag: int
    voltage_index: int
    boundary: int
    found: bool
    note: str = ""


def _search_bounds(boundary: int, radius: int, n: int) -> Tuple[int, int]:
    lo = max(int(boundary) - int(radius), 0)
    hi = min(int(boundary) + int(radius) + 1, n)
    return lo, hi


def estimate_discharge_lag(
    voltage: np.ndarray,
    boundary: int,
    *,
    radius: int = 5,
    decimals: int = 3,
) -> LagEstimate:
    """Lag between a discharge start and the first voltage drop around it.

    Parameters
    ----------
    voltage:
        Voltage samples of the window that contains the pulse.
    boundary:
        Current-derived discharge start (first discharge sample), window index.
    radius:
        Half-width of the search window in samples.
    decimals:
        Rounding applied before differencing; steps smaller than the rounding
        resolution are ignored.
    """
    v = np.round(np.asarray(voltage, dtype=float), int(decimals))
    n = v.size
    boundary = int(boundary)
    if radius < 0:
        raise ValueError("radius must be >= 0")
    if n < 2 or not 0 <= boundary < n:
        return LagEstimate(0, boundary, boundary, False, "boundary outside voltage window")

    lo, hi = _search_bounds(boundary, radius, n)
    # step at k -> k+1 lands at sample k+1; steps landing in [lo, hi)
    k_lo = max(lo - 1, 0)
    dv = np.diff(v[k_lo:hi])
    steps = np.flatnonzero(dv < 0)
    if steps.size == 0:
        return LagEstimate(0, boundary, boundary, False, f"no voltage drop within +/-{radius} samples of {boundary}")

    v_idx = k_lo + int(steps[0]) + 1
    return LagEstimate(v_idx - boundary, v_idx, boundary, True)


def estimate_charge_lag(
    voltage: np.ndarray,
    boundary: int,
    *,
    radius: int = 5,
) -> LagEstimate:
    """Lag between the last charge-pulse sample and the voltage maximum around it."""
    v = np.asarray(voltage, dtype=float)
    n = v.size
    boundary = int(boundary)
    if radius < 0:
        raise ValueError("radius must be >= 0")
    if n == 0 or not 0 <= boundary < n:
        return LagEstimate(0, boundary, boundary, False, "boundary outside voltage window")

    lo, hi = _search_bounds(boundary, radius, n)
    seg = v[lo:hi]
    if not np.any(np.isfinite(seg)):
        return LagEstimate(0, boundary, boundary, False, f"no finite voltage within +/-{radius} samples of {boundary}")

    # ties (flat plateau) resolve to the maximum nearest the boundary, later sample first
    peaks = lo + np.flatnonzero(seg == np.nanmax(seg))
    dist = np.abs(peaks - boundary)
    v_idx = int(peaks[np.flatnonzero(dist == dist.min())[-1]])
    return LagEstimate(v_idx - boundary, v_idx, boundary, True)
