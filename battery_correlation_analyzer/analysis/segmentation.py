from __future__ import annotations

"""Event boundary detection in current-like channels.

Index convention
----------------
All indices are 0-based positions in the file's sample index space.

With ``S = sign(I)`` clamped to ``{-1, 0}`` (positive samples mapped to 0) and
``D = diff(S)``:

- a *start* is reported at ``k + 1`` for every ``D[k] < 0``: the first sample of
  a negative (discharge) run,
- a *finish* is reported at ``k + 1`` for every ``D[k] > 0``: the first sample
  after the run.

So an event covers samples ``start .. finish - 1`` and ``start < finish``. A
current ``[1, 1, -1, -1, 1, 1, -1, -1]`` gives raw starts ``[2, 6]`` and raw
finishes ``[4]`` (``[3, 7]`` / ``[5]`` when counted from 1).

Pairing
-------
Raw starts and finishes are paired by scanning forward: each start takes the
first finish after it. A finish with no preceding start (file begins inside a
discharge) and a start with no following finish (file ends inside a
discharge) are dropped. A trailing start is closed at ``finish = n_samples``
only when the caller opts in.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from .coding import CodingParameters


@dataclass(frozen=True)
class EventSet:
    """Paired event boundaries of one channel.

    Attributes
    ----------
    start, finish:
        Paired boundaries, int arrays of equal length, ordered and
        non-overlapping, ``start[i] < finish[i] <= start[i + 1]``.
    raw_start, raw_finish:
        Unpaired transitions as detected.
    n_samples:
        Length of the segmented channel.
    warnings:
        Diagnostics (dropped boundaries, truncation, ...).
    n_truncated:
        Paired events removed by :meth:`truncated`.
    """

    start: np.ndarray
    finish: np.ndarray
    raw_start: np.ndarray
    raw_finish: np.ndarray
    n_samples: int
    warnings: Tuple[str, ...] = ()
    n_truncated: int = 0

    @property
    def n_events(self) -> int:
        return int(self.start.size)

    def __len__(self) -> int:
        return self.n_events

    def pairs(self) -> List[Tuple[int, int]]:
        return [(int(s), int(f)) for s, f in zip(self.start, self.finish)]

    def truncated(self, n_drop: int) -> EventSet:
        """Drop the last ``n_drop`` paired events."""
        n_drop = int(n_drop)
        if n_drop < 0:
            raise ValueError(f"n_drop must be >= 0, got {n_drop}")
        if n_drop == 0:
            return self
        keep = max(self.n_events - n_drop, 0)
        msg = f"dropped {self.n_events - keep} trailing event(s) (configured truncation={n_drop})"
        return EventSet(
            start=self.start[:keep],
            finish=self.finish[:keep],
            raw_start=self.raw_start,
            raw_finish=self.raw_finish,
            n_samples=self.n_samples,
            warnings=self.warnings + (msg,),
            n_truncated=self.n_truncated + self.n_events - keep,
        )

    def select(self, idx: np.ndarray, reason: str) -> EventSet:
        """Keep only the events at positions ``idx``."""
        idx = np.asarray(idx, dtype=int)
        return EventSet(
            start=self.start[idx],
            finish=self.finish[idx],
            raw_start=self.raw_start,
            raw_finish=self.raw_finish,
            n_samples=self.n_samples,
            warnings=self.warnings + (f"kept {idx.size}/{self.n_events} event(s): {reason}",),
            n_truncated=self.n_truncated,
        )


def sign_transitions(current: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Raw (start, finish) transition indices of the negative-polarity regions."""
    x = np.asarray(current, dtype=float)
    if x.ndim != 1:
        raise ValueError(f"Expected 1D array, got shape {x.shape}")
    if x.size < 2:
        return np.zeros(0, dtype=int), np.zeros(0, dtype=int)
    s = np.sign(np.nan_to_num(x, nan=0.0))
    s[s > 0] = 0.0
    d = np.diff(s)
    start = np.flatnonzero(d < 0) + 1
    finish = np.flatnonzero(d > 0) + 1
    return start.astype(int), finish.astype(int)


def pair_boundaries(
    raw_start: np.ndarray,
    raw_finish: np.ndarray,
    n_samples: int,
    *,
    close_trailing: bool = False,
) -> Tuple[np.ndarray, np.ndarray, List[str]]:
    """Pair raw starts with the first following finish.

    Returns ``(start, finish, warnings)``.
    """
    warnings: List[str] = []
    starts: List[int] = []
    finishes: List[int] = []

    fin = np.asarray(raw_finish, dtype=int)
    j = 0
    n_leading = 0
    for s in np.asarray(raw_start, dtype=int):
        if starts and s < finishes[-1]:
            continue
        while j < fin.size and fin[j] <= s:
            if not starts:
                n_leading += 1
            j += 1
        if j < fin.size:
            starts.append(int(s))
            finishes.append(int(fin[j]))
            j += 1
        else:
            if close_trailing:
                starts.append(int(s))
                finishes.append(int(n_samples))
                warnings.append(f"closed trailing start at {int(s)} with finish={int(n_samples)} (end of file)")
            else:
                warnings.append(f"dropped unmatched trailing start at {int(s)}")
            break

    if n_leading:
        warnings.append(f"dropped {n_leading} leading finish(es) with no matching start")

    return np.asarray(starts, dtype=int), np.asarray(finishes, dtype=int), warnings


def locate_events(current: np.ndarray, *, close_trailing: bool = False) -> EventSet:
    """Detect discharge events by sign-transition analysis of a current-like channel."""
    x = np.asarray(current, dtype=float)
    raw_start, raw_finish = sign_transitions(x)
    start, finish, warnings = pair_boundaries(raw_start, raw_finish, x.size, close_trailing=close_trailing)
    return EventSet(
        start=start,
        finish=finish,
        raw_start=raw_start,
        raw_finish=raw_finish,
        n_samples=int(x.size),
        warnings=tuple(warnings),
    )


# ---------------------------------------------------------------------------
# Thresholded pulse location
# ---------------------------------------------------------------------------


def target_pulse_mask(
    current: np.ndarray,
    target: float,
    *,
    threshold: float = 0.005,
) -> Tuple[np.ndarray, CodingParameters]:
    """Boolean mask of the samples within ``threshold`` of ``target`` on the coded scale.

    Channel and target share one coding whose bounds are the channel's min / max
    envelope, extended to include the target when it lies outside.
    """
    x = np.asarray(current, dtype=float)
    finite = x[np.isfinite(x)]
    if finite.size == 0:
        raise ValueError("current channel has no finite samples")
    A = min(float(np.min(finite)), float(target))
    B = max(float(np.max(finite)), float(target))
    params = CodingParameters(A, B)
    xc = params.code(x)
    tc = float(params.code(target))
    keep = np.abs(xc - tc) < float(threshold)
    keep &= np.isfinite(x)
    return keep, params


def locate_target_pulses(
    current: np.ndarray,
    target: float,
    *,
    threshold: float = 0.005,
    drop_trailing: int = 0,
    close_trailing: bool = False,
) -> EventSet:
    """Isolate the pulses whose plateau sits at ``target`` and segment them.

    Steps: code channel and target with shared bounds, zero every sample whose
    coded distance to the target is ``>= threshold``, then run
    :func:`locate_events` on the masked signal. ``drop_trailing`` removes that
    many events from the end of the paired sequence.
    """
    if not target < 0:
        raise ValueError(f"target discharge current must be negative, got {target}")
    if threshold <= 0:
        raise ValueError("threshold must be > 0")

    x = np.asarray(current, dtype=float)
    keep, params = target_pulse_mask(x, target, threshold=threshold)
    masked = np.where(keep, x, 0.0)

    ev = locate_events(masked, close_trailing=close_trailing)
    ev = EventSet(
        start=ev.start,
        finish=ev.finish,
        raw_start=ev.raw_start,
        raw_finish=ev.raw_finish,
        n_samples=ev.n_samples,
        warnings=(
            f"target pulse mask: target={target:.6g}, threshold={threshold:.6g}, "
            f"coding A={params.A:.6g} B={params.B:.6g}, kept {int(keep.sum())}/{x.size} samples",
        )
        + ev.warnings,
    )
    return ev.truncated(drop_trailing)


# ---------------------------------------------------------------------------
# Short diagnostic pulses inside a rest window
# ---------------------------------------------------------------------------


def locate_discharge_subpulse(current: np.ndarray) -> Optional[Tuple[int, int]]:
    """First negative-going run in a window, as (start, finish) window indices.

    Positive samples are zeroed; ``finish`` is the first sample after the run.
    Returns ``None`` if the window holds no complete discharge pulse.
    """
    x = np.nan_to_num(np.asarray(current, dtype=float), nan=0.0)
    if x.size < 2:
        return None
    x = np.where(x > 0, 0.0, x)
    d = np.diff(np.sign(x))
    starts = np.flatnonzero(d < 0)
    if starts.size == 0:
        return None
    start = int(starts[0]) + 1
    finishes = np.flatnonzero(d[start - 1:] > 0)
    if finishes.size == 0:
        return None
    return start, start + int(finishes[0])


def locate_charge_subpulse(current: np.ndarray) -> Optional[Tuple[int, int]]:
    """First positive-going run in a window, as (start, finish) window indices.

    Negative samples are zeroed and the forward difference of the clamped signal
    (not of its sign) is scanned, so ``start`` is the first rising step and
    ``finish`` the first sample after the first falling step that follows it.
    """
    x = np.nan_to_num(np.asarray(current, dtype=float), nan=0.0)
    if x.size < 2:
        return None
    x = np.where(x < 0, 0.0, x)
    d = np.diff(x)
    rises = np.flatnonzero(d > 0)
    if rises.size == 0:
        return None
    start = int(rises[0]) + 1
    falls = np.flatnonzero(d[start - 1:] < 0)
    if falls.size == 0:
        return None
    return start, start + int(falls[0])
