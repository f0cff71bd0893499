from __future__ import annotations

"""Per-file channel conditioning applied before segmentation.

- NaN gap filling: linear in the *sample index* (the time base is never
  rebuilt), linear extrapolation at the file edges.
- State channels: letter codes (``"O"``, ``"R"``, ``"C"``, ``"D"``) or integer
  codes are mapped onto :class:`~battery_correlation_analyzer.models.states.CellState`.
- Discharge-current inversion for testers that log unsigned current together
  with a state channel.
"""

from typing import List, Tuple

import numpy as np
import pandas as pd

from battery_correlation_analyzer.models.states import CellState


def interpolate_nan_gaps(x: np.ndarray) -> Tuple[np.ndarray, int]:
    """Fill NaNs by linear interpolation over the sample index.

    Returns ``(filled, n_filled)``. Leading / trailing NaNs are extrapolated
    from the two nearest finite samples; with a single finite sample they take
    its value. An all-NaN array is returned unchanged.
    """
    y = np.asarray(x, dtype=float).copy()
    bad = ~np.isfinite(y)
    n_bad = int(bad.sum())
    if n_bad == 0:
        return y, 0
    good = np.flatnonzero(~bad)
    if good.size == 0:
        return y, 0
    if good.size == 1:
        y[bad] = y[good[0]]
        return y, n_bad

    idx = np.arange(y.size, dtype=float)
    y[bad] = np.interp(idx[bad], good.astype(float), y[good])

    # np.interp holds the edge value; replace with linear extrapolation
    lead = idx < good[0]
    if np.any(lead):
        slope = (y[good[1]] - y[good[0]]) / float(good[1] - good[0])
        y[lead] = y[good[0]] + slope * (idx[lead] - good[0])
    trail = idx > good[-1]
    if np.any(trail):
        slope = (y[good[-1]] - y[good[-2]]) / float(good[-1] - good[-2])
        y[trail] = y[good[-1]] + slope * (idx[trail] - good[-1])
    return y, n_bad


def interpolate_frame_gaps(df: pd.DataFrame, columns=None) -> Tuple[pd.DataFrame, List[str]]:
    """Apply :func:`interpolate_nan_gaps` to every numeric column (or ``columns``)."""
    out = df.copy()
    warnings: List[str] = []
    cols = list(columns) if columns is not None else [c for c in df.columns if pd.api.types.is_numeric_dtype(df[c])]
    for c in cols:
        filled, n = interpolate_nan_gaps(df[c].to_numpy(dtype=float))
        if n:
            out[c] = filled
            warnings.append(f"interpolated {n} NaN sample(s) in '{c}'")
    return out, warnings


def parse_state_channel(values) -> np.ndarray:
    """Map a state channel onto integer :class:`CellState` codes.

    Accepts integer codes or single-letter names; anything unrecognised maps
    to -1.
    """
    arr = np.asarray(values)
    if arr.dtype.kind in "iuf":
        codes = np.where(np.isfinite(arr.astype(float)), arr.astype(float), -1).astype(int)
        valid = np.isin(codes, [int(s) for s in CellState])
        return np.where(valid, codes, -1)

    lookup = {s.name: int(s) for s in CellState}
    out = np.full(arr.shape, -1, dtype=int)
    for i, v in enumerate(arr.ravel()):
        key = str(v).strip().upper()
        if key in lookup:
            out.flat[i] = lookup[key]
        elif key.lstrip("-").isdigit() and int(key) in lookup.values():
            out.flat[i] = int(key)
    return out


def invert_discharge_current(current: np.ndarray, state_codes: np.ndarray) -> Tuple[np.ndarray, int]:
    """Negate current where the state is discharge. Returns ``(current, n_inverted)``."""
    c = np.asarray(current, dtype=float).copy()
    idx = np.asarray(state_codes) == int(CellState.D)
    c[idx] = -c[idx]
    return c, int(idx.sum())
