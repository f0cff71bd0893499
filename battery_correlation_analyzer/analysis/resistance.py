from __future__ import annotations

"""Internal resistance from short current pulses inside a rest window.

For one inter-event window (the rest between two detected events) the
discharge and charge diagnostic pulses are located on the raw current, the
current and voltage windows are coded onto [-1, 1], the voltage / current
samples are read on the coded scale and decoded back to engineering units,
and the resistance is ``IR = |dV| / |dI|``.

Discharge side (pulse samples ``s .. f-1``, discharge lag ``L``)::

    dV = |V[s + L] - V[f + L]|
    dI = |min(I)|             ("extreme")  or  |median(I[s:f])|  ("median")

Charge side (pulse samples ``s .. f-1``, charge lag ``L`` around ``f - 1``)::

    dV = |V[f - 1 + L] - V[s - 1 + L]|
    dI = max(I)               ("extreme")  or  |median(I[s:f])|  ("median")

Validity
--------
- Pulse-width gate (optional): ``(max(t) - min(t)) * time_to_seconds`` over the
  pulse samples must be >= ``min_pulse_time_s``, else the resistance is
  :data:`INVALID` with flag ``invalid_pulse_width``.
- A resistance that is infinite, NaN or <= 0 becomes :data:`INVALID` with flag
  ``degenerate_resistance``.
- A pulse that cannot be located (or whose lagged voltage index falls outside
  the window) leaves every field of that side invalid with flag
  ``pulse_not_found``.
"""

from dataclasses import dataclass
from typing import List, Literal, Optional, Tuple

import numpy as np

from battery_correlation_analyzer.models.results import INVALID

from .alignment import LagEstimate, estimate_charge_lag, estimate_discharge_lag
from .coding import CodingParameters
from .segmentation import locate_charge_subpulse, locate_discharge_subpulse


Polarity = Literal["discharge", "charge"]

FLAG_PULSE_NOT_FOUND = "pulse_not_found"
FLAG_INVALID_PULSE_WIDTH = "invalid_pulse_width"
FLAG_DEGENERATE_RESISTANCE = "degenerate_resistance"


@dataclass(frozen=True)
class PulseResistance:
    """Resistance diagnostics of one pulse (one polarity, one window)."""

    polarity: Polarity
    ir_ohm: float = INVALID
    dv_v: float = INVALID
    di_a: float = INVALID
    start: int = -1
    finish: int = -1
    lag: int = 0
    duration_s: float = INVALID
    flags: Tuple[str, ...] = ()

    @property
    def valid(self) -> bool:
        return bool(np.isfinite(self.ir_ohm))


@dataclass(frozen=True)
class WindowResistance:
    """Discharge and charge resistance of one inter-event window."""

    discharge: PulseResistance
    charge: PulseResistance

    @property
    def flags(self) -> Tuple[str, ...]:
        return tuple(f"discharge_{f}" for f in self.discharge.flags) + tuple(
            f"charge_{f}" for f in self.charge.flags
        )


def _coding(x: np.ndarray) -> Optional[CodingParameters]:
    finite = x[np.isfinite(x)]
    if finite.size == 0:
        return None
    lo, hi = float(np.min(finite)), float(np.max(finite))
    if not lo < hi:
        # flat channel: any symmetric span keeps the round trip exact
        lo, hi = lo - 1.0, hi + 1.0
    return CodingParameters(lo, hi)


def pulse_duration_s(time: Optional[np.ndarray], start: int, finish: int, time_to_seconds: float = 1.0) -> float:
    """Measured pulse duration, ``(max(t) - min(t)) * time_to_seconds`` over ``t[start:finish]``."""
    if time is None:
        return INVALID
    t = np.asarray(time, dtype=float)[start:finish]
    t = t[np.isfinite(t)]
    if t.size == 0:
        return INVALID
    return float((np.max(t) - np.min(t)) * float(time_to_seconds))


def _finalize(
    polarity: Polarity,
    dv: float,
    di: float,
    start: int,
    finish: int,
    lag: LagEstimate,
    duration: float,
    min_pulse_time_s: Optional[float],
) -> PulseResistance:
    flags: List[str] = []
    with np.errstate(divide="ignore", invalid="ignore"):
        ir = float(np.float64(dv) / np.float64(di))

    if min_pulse_time_s is not None:
        if not np.isfinite(duration) or duration < float(min_pulse_time_s):
            flags.append(FLAG_INVALID_PULSE_WIDTH)
            ir = INVALID
    if FLAG_INVALID_PULSE_WIDTH not in flags and (not np.isfinite(ir) or ir <= 0.0):
        flags.append(FLAG_DEGENERATE_RESISTANCE)
        ir = INVALID
    if not lag.found:
        flags.append(f"lag_not_found({lag.note})")

    return PulseResistance(
        polarity=polarity,
        ir_ohm=ir,
        dv_v=float(dv),
        di_a=float(di),
        start=int(start),
        finish=int(finish),
        lag=int(lag.lag),
        duration_s=float(duration),
        flags=tuple(flags),
    )


def discharge_pulse_resistance(
    current: np.ndarray,
    voltage: np.ndarray,
    time: Optional[np.ndarray] = None,
    *,
    current_scale: float = 1.0,
    time_to_seconds: float = 1.0,
    min_pulse_time_s: Optional[float] = None,
    lag_radius: int = 5,
    voltage_decimals: int = 3,
    current_statistic: str = "extreme",
) -> PulseResistance:
    """Discharge-pulse resistance inside one rest window (see module docstring)."""
    I = np.asarray(current, dtype=float)
    V = np.asarray(voltage, dtype=float)
    n = min(I.size, V.size)

    loc = locate_discharge_subpulse(I)
    ci, cv = _coding(I), _coding(V)
    if loc is None or ci is None or cv is None:
        return PulseResistance("discharge", flags=(FLAG_PULSE_NOT_FOUND,))
    s, f = loc

    lag = estimate_discharge_lag(V, s, radius=lag_radius, decimals=voltage_decimals)
    i1, i2 = s + lag.lag, f + lag.lag
    if not (0 <= i1 < n and 0 <= i2 < n):
        return PulseResistance("discharge", start=s, finish=f, lag=lag.lag, flags=(FLAG_PULSE_NOT_FOUND,))

    Ic, Vc = ci.code(I), cv.code(V)
    dv = abs(float(cv.decode(Vc[i1])) - float(cv.decode(Vc[i2])))
    if current_statistic == "median":
        di = abs(float(ci.decode(np.nanmedian(Ic[s:f]))))
    else:
        di = abs(float(ci.decode(np.nanmin(Ic))))
    di *= float(current_scale)

    duration = pulse_duration_s(time, s, f, time_to_seconds)
    return _finalize("discharge", dv, di, s, f, lag, duration, min_pulse_time_s)


def charge_pulse_resistance(
    current: np.ndarray,
    voltage: np.ndarray,
    time: Optional[np.ndarray] = None,
    *,
    current_scale: float = 1.0,
    time_to_seconds: float = 1.0,
    min_pulse_time_s: Optional[float] = None,
    lag_radius: int = 5,
    current_statistic: str = "extreme",
) -> PulseResistance:
    """Charge-pulse resistance inside one rest window (see module docstring)."""
    I = np.asarray(current, dtype=float)
    V = np.asarray(voltage, dtype=float)
    n = min(I.size, V.size)

    loc = locate_charge_subpulse(I)
    ci, cv = _coding(I), _coding(V)
    if loc is None or ci is None or cv is None:
        return PulseResistance("charge", flags=(FLAG_PULSE_NOT_FOUND,))
    s, f = loc

    lag = estimate_charge_lag(V, f - 1, radius=lag_radius)
    i_peak, i_pre = f - 1 + lag.lag, s - 1 + lag.lag
    if not (0 <= i_peak < n and 0 <= i_pre < n):
        return PulseResistance("charge", start=s, finish=f, lag=lag.lag, flags=(FLAG_PULSE_NOT_FOUND,))

    Ic, Vc = ci.code(I), cv.code(V)
    dv = abs(float(cv.decode(Vc[i_peak])) - float(cv.decode(Vc[i_pre])))
    if current_statistic == "median":
        di = abs(float(ci.decode(np.nanmedian(Ic[s:f]))))
    else:
        di = float(ci.decode(np.nanmax(Ic)))
    di *= float(current_scale)

    duration = pulse_duration_s(time, s, f, time_to_seconds)
    return _finalize("charge", dv, di, s, f, lag, duration, min_pulse_time_s)


def window_resistance(
    current: np.ndarray,
    voltage: np.ndarray,
    time: Optional[np.ndarray] = None,
    *,
    current_scale: float = 1.0,
    time_to_seconds: float = 1.0,
    min_pulse_time_s: Optional[float] = None,
    lag_radius: int = 5,
    voltage_decimals: int = 3,
    current_statistic: str = "extreme",
) -> WindowResistance:
    """Discharge and charge resistance of one rest window."""
    if current_statistic not in ("extreme", "median"):
        raise ValueError(f"current_statistic must be 'extreme' or 'median', got {current_statistic!r}")
    common = dict(
        current_scale=current_scale,
        time_to_seconds=time_to_seconds,
        min_pulse_time_s=min_pulse_time_s,
        lag_radius=lag_radius,
        current_statistic=current_statistic,
    )
    return WindowResistance(
        discharge=discharge_pulse_resistance(current, voltage, time, voltage_decimals=voltage_decimals, **common),
        charge=charge_pulse_resistance(current, voltage, time, **common),
    )
