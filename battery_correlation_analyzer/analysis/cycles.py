"""Cycle counting.

Three ways of counting the qualifying discharge events of one file:

``sign``
    Number of raw discharge starts found by sign-transition analysis of the
    current (see :func:`~battery_correlation_analyzer.analysis.segmentation.sign_transitions`).
``state``
    Number of transitions *into* the discharge state code of an explicit
    per-sample state channel. A file that begins in discharge does not count
    that first event.
``spike``
    For noisy traces where sign differencing double-counts or misses events:
    isolated transient current spikes above a coded threshold (default 0.98)
    are taken as markers, and each marker is paired with the next unclaimed
    start/finish pair that follows it. The count is the number of paired
    markers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from battery_correlation_analyzer.models.states import CellState

from .coding import CodingParameters
from .segmentation import EventSet, sign_transitions


@dataclass(frozen=True)
class CycleCount:
    """Result of one counting strategy.

    ``event_index`` lists the positions (into the EventSet) of the events that
    qualified; it is ``None`` when the strategy does not select events.
    """

    mode: str
    count: int
    event_index: Optional[np.ndarray] = None
    markers: Optional[np.ndarray] = None
    warnings: Tuple[str, ...] = ()


# =====================================================================
#  Contiguous group finder
# =====================================================================

def find_contiguous_groups(
    mask: np.ndarray,
    min_length: int = 1,
) -> list[tuple[int, int]]:
    """Find contiguous runs of True in a boolean array.

    Parameters
    ----------
    mask : ndarray of bool
        Boolean array to scan.
    min_length : int, optional
        Only return groups with at least this many consecutive True values.

    Returns
    -------
    list of (start, end) tuples
        Each tuple gives the inclusive start and end indices of a group.
    """
    m = np.asarray(mask, dtype=bool)
    if m.size == 0:
        return []
    padded = np.concatenate(([False], m, [False])).astype(np.int8)
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1) - 1
    return [(int(s), int(e)) for s, e in zip(starts, ends) if (e - s + 1) >= min_length]


# =====================================================================
#  Counting strategies
# =====================================================================

def count_sign_cycles(source) -> CycleCount:
    """Count raw discharge starts.

    ``source`` is either the EventSet a locator produced (its raw starts are
    counted, so a target-pulse mask is honoured) or a current-like channel,
    which is segmented by sign transitions first.
    """
    if isinstance(source, EventSet):
        return CycleCount(mode="sign", count=int(source.raw_start.size))
    start, _ = sign_transitions(source)
    return CycleCount(mode="sign", count=int(start.size))


def count_state_cycles(state: np.ndarray, *, discharge_code: int = int(CellState.D)) -> CycleCount:
    """Count transitions into ``discharge_code`` on a state-code channel."""
    s = np.asarray(state)
    if s.size < 2:
        return CycleCount(mode="state", count=0)
    in_dis = (s == discharge_code).astype(np.int8)
    rises = np.diff(in_dis)
    warnings: List[str] = []
    if in_dis[0]:
        warnings.append("file begins in discharge state; first event not counted")
    return CycleCount(mode="state", count=int(np.sum(rises > 0)), warnings=tuple(warnings))


def spike_markers(
    current: np.ndarray,
    *,
    threshold: float = 0.98,
    max_samples: int = 3,
) -> Tuple[np.ndarray, List[str]]:
    """Start indices of isolated transient spikes above ``threshold`` on the coded scale."""
    x = np.asarray(current, dtype=float)
    warnings: List[str] = []
    finite = x[np.isfinite(x)]
    if finite.size == 0 or not np.min(finite) < np.max(finite):
        warnings.append("current channel is flat or empty; no spike markers")
        return np.zeros(0, dtype=int), warnings

    params = CodingParameters.from_data(x)
    xc = params.code(x)
    above = np.isfinite(xc) & (xc > float(threshold))
    groups = find_contiguous_groups(above, min_length=1)
    kept = [g for g in groups if (g[1] - g[0] + 1) <= int(max_samples)]
    if len(kept) < len(groups):
        warnings.append(f"ignored {len(groups) - len(kept)} run(s) above threshold longer than {max_samples} samples")
    return np.asarray([g[0] for g in kept], dtype=int), warnings


def pair_markers_with_events(markers: np.ndarray, events: EventSet) -> Tuple[np.ndarray, List[str]]:
    """For each marker, the first unclaimed event whose start lies after it."""
    warnings: List[str] = []
    claimed: List[int] = []
    j = 0
    n_unpaired = 0
    for m in np.asarray(markers, dtype=int):
        while j < events.n_events and events.start[j] <= m:
            j += 1
        if j < events.n_events:
            claimed.append(j)
            j += 1
        else:
            n_unpaired += 1
    if n_unpaired:
        warnings.append(f"{n_unpaired} spike marker(s) with no following event")
    return np.asarray(claimed, dtype=int), warnings


def count_spike_cycles(
    current: np.ndarray,
    events: EventSet,
    *,
    threshold: float = 0.98,
    max_samples: int = 3,
) -> CycleCount:
    """Count events that follow an isolated current spike."""
    markers, w1 = spike_markers(current, threshold=threshold, max_samples=max_samples)
    idx, w2 = pair_markers_with_events(markers, events)
    return CycleCount(mode="spike", count=int(idx.size), event_index=idx, markers=markers, warnings=tuple(w1 + w2))
