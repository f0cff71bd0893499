"""Tests for lag estimation and pulse resistance."""

from __future__ import annotations

import numpy as np
import pytest

from battery_correlation_analyzer.analysis.alignment import estimate_charge_lag, estimate_discharge_lag
from battery_correlation_analyzer.analysis.resistance import (
    FLAG_DEGENERATE_RESISTANCE,
    FLAG_INVALID_PULSE_WIDTH,
    FLAG_PULSE_NOT_FOUND,
    pulse_duration_s,
    window_resistance,
)
from battery_correlation_analyzer.models.results import is_invalid


def _window() -> tuple[np.ndarray, np.ndarray]:
    """One rest window: ideal 0.1 Ohm cell, discharge sub-pulse at 2..4, charge sub-pulse at 7..9."""
    current = np.array([0, 0, -1, -1, -1, 0, 0, 1, 1, 1, 0, 0], dtype=float)
    voltage = 4.0 + 0.1 * current
    return current, voltage


# -----------------------------------------------------------------------
# Lag estimation
# -----------------------------------------------------------------------


def test_discharge_lag_zero_when_aligned() -> None:
    _, v = _window()
    lag = estimate_discharge_lag(v, 2)
    assert lag.found
    assert lag.lag == 0


def test_discharge_lag_positive_when_voltage_late() -> None:
    v = np.array([4.0, 4.0, 4.0, 4.0, 3.9, 3.9, 4.0, 4.0])
    lag = estimate_discharge_lag(v, 2, radius=3)
    assert lag.lag == 2
    assert lag.voltage_index == 4


def test_discharge_lag_ignores_sub_resolution_noise() -> None:
    v = np.array([4.0, 4.0, 3.99996, 4.0, 3.9, 3.9])
    lag = estimate_discharge_lag(v, 2, radius=3, decimals=3)
    assert lag.voltage_index == 4


def test_discharge_lag_not_found() -> None:
    lag = estimate_discharge_lag(np.full(10, 4.0), 5, radius=2)
    assert not lag.found
    assert lag.lag == 0


def test_charge_lag_at_voltage_peak() -> None:
    v = np.array([4.0, 4.0, 3.9, 3.9, 3.9, 4.0, 4.0, 4.08, 4.09, 4.1, 4.0, 4.0])
    assert estimate_charge_lag(v, 9).lag == 0
    lag = estimate_charge_lag(v, 8)
    assert lag.lag == 1
    assert lag.voltage_index == 9


def test_charge_lag_flat_plateau_is_zero() -> None:
    _, v = _window()
    assert estimate_charge_lag(v, 9).lag == 0
    assert estimate_charge_lag(v, 8).lag == 0


def test_charge_lag_tie_prefers_later_sample() -> None:
    v = np.array([4.0, 4.1, 4.0, 4.1, 4.0])
    assert estimate_charge_lag(v, 2, radius=2).voltage_index == 3


def test_negative_radius_raises() -> None:
    with pytest.raises(ValueError):
        estimate_charge_lag(np.ones(4), 1, radius=-1)


# -----------------------------------------------------------------------
# Resistance
# -----------------------------------------------------------------------


def test_resistance_example() -> None:
    current, voltage = _window()
    wr = window_resistance(current, voltage)
    assert wr.discharge.dv_v == pytest.approx(0.1, abs=1e-9)
    assert wr.discharge.di_a == pytest.approx(1.0)
    assert wr.discharge.ir_ohm == pytest.approx(0.10, abs=1e-9)
    assert wr.charge.ir_ohm == pytest.approx(0.10, abs=1e-9)
    assert wr.charge.lag == 0
    assert wr.charge.dv_v == pytest.approx(0.1, abs=1e-9)
    assert wr.discharge.valid and wr.charge.valid
    assert wr.flags == ()


def test_resistance_unit_conversion_from_milliamps() -> None:
    current, voltage = _window()
    wr = window_resistance(current * 1000.0, voltage, current_scale=1e-3)
    assert wr.discharge.di_a == pytest.approx(1.0)
    assert wr.discharge.ir_ohm == pytest.approx(0.10, abs=1e-9)


def test_median_current_statistic() -> None:
    current, voltage = _window()
    current[3] = -1.5
    wr = window_resistance(current, voltage, current_statistic="median")
    assert wr.discharge.di_a == pytest.approx(1.0)


def test_pulse_width_gate() -> None:
    current, voltage = _window()
    t_ms = np.arange(current.size) * 4000.0  # 4 s per sample, logged in ms
    # discharge pulse spans samples 2..4 -> 8 s
    assert pulse_duration_s(t_ms, 2, 5, 1e-3) == pytest.approx(8.0)

    short = window_resistance(current, voltage, t_ms, time_to_seconds=1e-3, min_pulse_time_s=10.0)
    assert is_invalid(short.discharge.ir_ohm)
    assert FLAG_INVALID_PULSE_WIDTH in short.discharge.flags
    assert f"discharge_{FLAG_INVALID_PULSE_WIDTH}" in short.flags

    ok = window_resistance(current, voltage, t_ms, time_to_seconds=1e-3, min_pulse_time_s=7.5)
    assert ok.discharge.ir_ohm == pytest.approx(0.10, abs=1e-9)


def test_gate_without_time_channel_marks_invalid() -> None:
    current, voltage = _window()
    wr = window_resistance(current, voltage, None, min_pulse_time_s=1.0)
    assert FLAG_INVALID_PULSE_WIDTH in wr.discharge.flags


def test_flat_voltage_is_degenerate() -> None:
    current, _ = _window()
    wr = window_resistance(current, np.full(current.size, 4.0))
    assert is_invalid(wr.discharge.ir_ohm)
    assert FLAG_DEGENERATE_RESISTANCE in wr.discharge.flags
    assert FLAG_DEGENERATE_RESISTANCE in wr.charge.flags


def test_missing_pulse() -> None:
    wr = window_resistance(np.zeros(8), np.full(8, 4.0))
    assert wr.discharge.flags == (FLAG_PULSE_NOT_FOUND,)
    assert wr.charge.flags == (FLAG_PULSE_NOT_FOUND,)
    assert is_invalid(wr.discharge.dv_v)


def test_unknown_current_statistic_raises() -> None:
    current, voltage = _window()
    with pytest.raises(ValueError):
        window_resistance(current, voltage, current_statistic="mean")
