from __future__ import annotations

"""Per-event state of charge from a capacity channel.

Both models read the capacity inside each event's *rest window*: from the
event's finish up to (not including) the next event's start, or up to the
end of the file for the last event. The file's maximum capacity is computed
once and reused for every event.

- ``direct_ratio`` (capacity accumulates monotonically, no per-step resets)::

      soc[q] = max(cap[window_q]) / max(cap)

- ``cumulative_depletion`` (each event removes an increment)::

      loss[q] = |stat(cap[window_q])| / max(cap)        stat = min or max
      soc[q]  = 1 - cumsum(loss)[q]

  Each increment is non-negative, so the SoC sequence is non-increasing in
  event order.
"""

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from battery_correlation_analyzer.models.results import INVALID

from .segmentation import EventSet


FLAG_DEGENERATE_CAPACITY = "degenerate_capacity"


@dataclass(frozen=True)
class SocResult:
    """Per-event SoC (fraction) plus the per-file reference capacity."""

    soc: np.ndarray  # (n_events,)
    max_capacity: float
    increments: np.ndarray  # (n_events,) depletion increments, NaN for direct_ratio
    flags: Tuple[Tuple[str, ...], ...]  # per event
    warnings: Tuple[str, ...] = ()


def rest_windows(events: EventSet, n_samples: int) -> List[Tuple[int, int]]:
    """Half-open ``(lo, hi)`` rest window after every event."""
    out: List[Tuple[int, int]] = []
    n = events.n_events
    for q in range(n):
        lo = int(events.finish[q])
        hi = int(events.start[q + 1]) if q + 1 < n else int(n_samples)
        out.append((min(lo, n_samples), min(hi, n_samples)))
    return out


def file_max_capacity(capacity: np.ndarray) -> float:
    """Maximum finite capacity of a file (NaN if none)."""
    c = np.asarray(capacity, dtype=float)
    c = c[np.isfinite(c)]
    return float(np.max(c)) if c.size else INVALID


def _window_stat(c: np.ndarray, lo: int, hi: int, stat: str) -> float:
    w = c[lo:hi]
    w = w[np.isfinite(w)]
    if w.size == 0:
        return INVALID
    return float(np.max(w) if stat == "max" else np.min(w))


def direct_ratio_soc(capacity: np.ndarray, events: EventSet) -> SocResult:
    """SoC as the ratio of the rest-window capacity maximum to the file maximum."""
    c = np.asarray(capacity, dtype=float)
    max_cap = file_max_capacity(c)
    n = events.n_events
    soc = np.full(n, INVALID)
    flags: List[Tuple[str, ...]] = []
    warnings: List[str] = []
    if not (np.isfinite(max_cap) and max_cap > 0):
        warnings.append(f"file maximum capacity is not positive ({max_cap}); SoC invalid for all events")
        return SocResult(soc, max_cap, np.full(n, INVALID), tuple((FLAG_DEGENERATE_CAPACITY,) for _ in range(n)), tuple(warnings))

    for q, (lo, hi) in enumerate(rest_windows(events, c.size)):
        s = _window_stat(c, lo, hi, "max")
        if np.isfinite(s):
            soc[q] = s / max_cap
            flags.append(())
        else:
            flags.append((FLAG_DEGENERATE_CAPACITY,))
    return SocResult(soc, max_cap, np.full(n, INVALID), tuple(flags), tuple(warnings))


def cumulative_depletion_soc(
    capacity: np.ndarray,
    events: EventSet,
    *,
    statistic: str = "min",
) -> SocResult:
    """SoC as one minus the running sum of per-event fractional losses.

    An event whose rest window has no finite capacity contributes no loss and
    is flagged; later events still accumulate.
    """
    if statistic not in ("min", "max"):
        raise ValueError(f"statistic must be 'min' or 'max', got {statistic!r}")
    c = np.asarray(capacity, dtype=float)
    max_cap = file_max_capacity(c)
    n = events.n_events
    warnings: List[str] = []
    if not (np.isfinite(max_cap) and max_cap > 0):
        warnings.append(f"file maximum capacity is not positive ({max_cap}); SoC invalid for all events")
        return SocResult(
            np.full(n, INVALID), max_cap, np.full(n, INVALID),
            tuple((FLAG_DEGENERATE_CAPACITY,) for _ in range(n)), tuple(warnings),
        )

    inc = np.zeros(n, dtype=float)
    flags: List[Tuple[str, ...]] = []
    for q, (lo, hi) in enumerate(rest_windows(events, c.size)):
        s = _window_stat(c, lo, hi, statistic)
        if np.isfinite(s):
            inc[q] = abs(s) / max_cap
            flags.append(())
        else:
            flags.append((FLAG_DEGENERATE_CAPACITY,))

    soc = 1.0 - np.cumsum(inc)
    soc[np.array([bool(f) for f in flags], dtype=bool)] = INVALID
    if np.any(soc < 0.0):
        warnings.append(f"cumulative depletion exceeds file capacity (min SoC={np.nanmin(soc):.4g})")
    return SocResult(soc, max_cap, inc, tuple(flags), tuple(warnings))


def compute_soc(capacity: np.ndarray, events: EventSet, *, model: str = "direct_ratio", statistic: str = "min") -> SocResult:
    """Dispatch on the SoC model name."""
    if model == "direct_ratio":
        return direct_ratio_soc(capacity, events)
    if model == "cumulative_depletion":
        return cumulative_depletion_soc(capacity, events, statistic=statistic)
    raise ValueError(f"Unknown SoC model {model!r}; expected 'direct_ratio' or 'cumulative_depletion'")
