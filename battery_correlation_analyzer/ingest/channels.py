"""Channel role resolution and validation.

Facility readers deliver channels under instrument-specific names
(``"Current (A)"``, ``"Amp-hr"``, ``"I_mA"``, ...). This module binds the
logical roles (current, voltage, capacity, time, state) to frame columns
*once per file*; everything downstream uses the resolved column key and never
looks a name up again.

Name matching is case-insensitive on a normalised form (spaces removed,
parentheses -> ``_``, ``-`` removed), so a binding ``"Current (A)"`` matches a
column exported as ``Current_A_`` and ``"Amp-hr"`` matches ``Amphr``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from battery_correlation_analyzer.errors import MissingChannelError
from battery_correlation_analyzer.models.profile import ChannelBindings


ROLES: Tuple[str, ...] = ("current", "voltage", "capacity", "time", "state")


# ---------------------------------------------------------------------------
# Name normalisation
# ---------------------------------------------------------------------------


def normalize_channel_name(name: str) -> str:
    """Canonical comparison key for a channel name."""
    s = str(name).replace(" ", "")
    s = s.replace("(", "_").replace(")", "_")
    s = s.replace("-", "")
    return s.lower()


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResolvedChannels:
    """Role -> frame column key, resolved once per file.

    Roles that are not bound (or not found and not required) map to ``None``.
    """

    current: Optional[str] = None
    voltage: Optional[str] = None
    capacity: Optional[str] = None
    time: Optional[str] = None
    state: Optional[str] = None
    warnings: Tuple[str, ...] = ()

    def key(self, role: str) -> str:
        k = getattr(self, role)
        if k is None:
            raise MissingChannelError([role])
        return k


def find_channel(name: str, available: Sequence[str]) -> Optional[str]:
    """Return the entry of ``available`` matching ``name`` (exact match preferred)."""
    if name in available:
        return name
    target = normalize_channel_name(name)
    for a in available:
        if normalize_channel_name(a) == target:
            return a
    return None


def resolve_channels(
    bindings: ChannelBindings,
    columns: Sequence[str],
    *,
    required: Sequence[str] = ("current",),
    available: Optional[Sequence[str]] = None,
    file_id: str = "",
) -> ResolvedChannels:
    """Bind every role of ``bindings`` to one of ``columns``.

    Parameters
    ----------
    bindings:
        Role -> channel name from the facility profile.
    columns:
        Column names present in the frame.
    required:
        Roles that must resolve; otherwise :class:`MissingChannelError` is raised
        listing all of them at once.
    available:
        Optional list of channel names the reader declared. When given, a
        binding must appear in it as well as in ``columns``.
    """
    cols = [str(c) for c in columns]
    declared = None if available is None else [str(a) for a in available]

    keys: Dict[str, Optional[str]] = {}
    warnings: List[str] = []
    missing: List[str] = []

    for role in ROLES:
        name = bindings.get(role)
        if name is None:
            keys[role] = None
            if role in required:
                missing.append(role)
            continue

        if declared is not None and find_channel(name, declared) is None:
            key = None
            warnings.append(f"{role}: channel '{name}' not in declared channel list")
        else:
            key = find_channel(name, cols)

        if key is None:
            if role in required:
                missing.append(role)
            else:
                warnings.append(f"{role}: optional channel '{name}' not found")
        elif key != name:
            warnings.append(f"{role}: bound '{name}' to column '{key}'")
        keys[role] = key

    if missing:
        raise MissingChannelError(missing, file_id=file_id, available=cols)

    return ResolvedChannels(warnings=tuple(warnings), **keys)


# ---------------------------------------------------------------------------
# Robust range helper
# ---------------------------------------------------------------------------


def robust_range(x: np.ndarray) -> float:
    """Compute the robust dynamic range as *p99.5 - p0.5*.

    This is more resilient to outliers than ``max - min``.
    Returns ``nan`` for empty or all-NaN arrays.
    """
    x = np.asarray(x, dtype=float)
    if x.size == 0 or not np.any(np.isfinite(x)):
        return float("nan")
    return float(np.nanpercentile(x, 99.5) - np.nanpercentile(x, 0.5))


# ---------------------------------------------------------------------------
# Post-resolution validation
# ---------------------------------------------------------------------------


def validate_current_channel(current: np.ndarray, *, min_range: float = 1e-12) -> List[str]:
    """Validate the resolved current channel and return warning strings.

    This function never raises -- it only produces diagnostic warnings.
    The caller decides whether to abort or continue.
    """
    warnings: List[str] = []
    x = np.asarray(current, dtype=float)
    r = robust_range(x)

    if not np.isfinite(r):
        warnings.append("WARNING: current channel robust range is non-finite.")
    elif r < min_range:
        warnings.append(
            f"WARNING: current channel robust range ({r:.6g}) is extremely small. "
            "Channel may be flat or bound to the wrong column."
        )
    n_nan = int(np.sum(~np.isfinite(x)))
    if n_nan:
        warnings.append(f"current channel has {n_nan} non-finite sample(s)")
    if x.size and not np.any(x[np.isfinite(x)] < 0):
        warnings.append("current channel has no negative samples; no discharge events can be found")

    warnings.append(f"current range (p99.5-p0.5): {r:.6g}")
    return warnings
