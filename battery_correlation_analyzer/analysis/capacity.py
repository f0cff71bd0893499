from __future__ import annotations

"""Rate-test discharge capacity per event.

The capacity window convention differs between testers (per-instrument
calibration, not a universal rule) and is therefore an explicit profile
parameter. With ``s = start`` and ``f = finish`` (first sample after the
event)::

    start_minus_finish        cap[s]     - cap[f]
    finish_minus_start        cap[f]     - cap[s]
    start_minus_finish_prev   cap[s]     - cap[f - 1]
    finish_prev_minus_start   cap[f - 1] - cap[s]

An index past the last sample (trailing event closed at end of file) is
clamped to the last sample.
"""

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .segmentation import EventSet


CAPACITY_WINDOWS = (
    "start_minus_finish",
    "finish_minus_start",
    "start_minus_finish_prev",
    "finish_prev_minus_start",
)


@dataclass(frozen=True)
class CapacityResult:
    capacity_ah: np.ndarray  # (n_events,)
    convention: str
    warnings: Tuple[str, ...] = ()


def discharge_capacity(
    capacity: np.ndarray,
    events: EventSet,
    *,
    convention: str = "start_minus_finish",
    scale: float = 1.0,
) -> CapacityResult:
    """Per-event discharge capacity in Ah (``scale`` converts channel units to Ah)."""
    if convention not in CAPACITY_WINDOWS:
        raise ValueError(f"Unknown capacity window {convention!r}; expected one of {CAPACITY_WINDOWS}")

    c = np.asarray(capacity, dtype=float)
    n = c.size
    warnings: List[str] = []
    if n == 0 or events.n_events == 0:
        return CapacityResult(np.zeros(0, dtype=float), convention)

    s = events.start.astype(int)
    f = events.finish.astype(int)
    if convention in ("start_minus_finish_prev", "finish_prev_minus_start"):
        f = f - 1

    over = f > n - 1
    if np.any(over):
        warnings.append(f"clamped {int(over.sum())} finish index(es) past end of file to {n - 1}")
        f = np.minimum(f, n - 1)

    if convention == "start_minus_finish" or convention == "start_minus_finish_prev":
        cap = c[s] - c[f]
    else:
        cap = c[f] - c[s]

    return CapacityResult(cap * float(scale), convention, tuple(warnings))
