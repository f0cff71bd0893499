"""Tests for channel resolution, conditioning and temperature strategies."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from battery_correlation_analyzer.errors import FileProcessingError, MissingChannelError
from battery_correlation_analyzer.ingest.channels import (
    normalize_channel_name,
    resolve_channels,
    robust_range,
    validate_current_channel,
)
from battery_correlation_analyzer.ingest.conditioning import (
    interpolate_frame_gaps,
    interpolate_nan_gaps,
    invert_discharge_current,
    parse_state_channel,
)
from battery_correlation_analyzer.ingest.temperature import band_temperature, resolve_temperature
from battery_correlation_analyzer.models.frames import ChannelFrame, FileMetadata
from battery_correlation_analyzer.models.profile import ChannelBindings, TemperatureStrategy


# -----------------------------------------------------------------------
# Channel names
# -----------------------------------------------------------------------


@pytest.mark.parametrize(
    "a,b",
    [("Current (A)", "Current_A_"), ("Amp-hr", "Amphr"), ("Capacity (Ah)", "capacity_ah_"), ("Amps", "AMPS")],
)
def test_normalized_names_match(a: str, b: str) -> None:
    assert normalize_channel_name(a) == normalize_channel_name(b)


def test_resolve_channels_binds_quirky_names() -> None:
    b = ChannelBindings(current="Current (A)", capacity="Amp-hr")
    r = resolve_channels(b, ["Current_A_", "Amphr", "Volts"], required=("current", "capacity"))
    assert r.current == "Current_A_"
    assert r.capacity == "Amphr"
    assert r.voltage is None
    assert r.key("current") == "Current_A_"


def test_resolve_channels_lists_all_missing_roles() -> None:
    b = ChannelBindings(current="Amps", voltage="Volts", capacity="Amp_hr")
    with pytest.raises(MissingChannelError) as ei:
        resolve_channels(b, ["Amps"], required=("current", "voltage", "capacity"), file_id="f1")
    err = ei.value
    assert err.roles == ("voltage", "capacity")
    assert err.file_id == "f1"
    assert isinstance(err, KeyError)
    assert isinstance(err, FileProcessingError)
    assert "voltage" in str(err)


def test_optional_channel_missing_is_a_warning() -> None:
    b = ChannelBindings(current="Amps", time="TestTime")
    r = resolve_channels(b, ["Amps"], required=("current",))
    assert r.time is None
    assert any("optional" in w for w in r.warnings)
    with pytest.raises(MissingChannelError):
        r.key("time")


def test_declared_channel_list_is_honoured() -> None:
    b = ChannelBindings(current="Amps")
    with pytest.raises(MissingChannelError):
        resolve_channels(b, ["Amps"], required=("current",), available=["Volts"])


# -----------------------------------------------------------------------
# Current channel sanity
# -----------------------------------------------------------------------


def test_robust_range() -> None:
    assert 985 < robust_range(np.arange(1001, dtype=float)) < 995
    assert np.isnan(robust_range(np.array([])))


def test_flat_current_warns() -> None:
    w = validate_current_channel(np.zeros(100))
    assert any("extremely small" in s for s in w)
    assert any("no negative samples" in s for s in w)


# -----------------------------------------------------------------------
# Conditioning
# -----------------------------------------------------------------------


def test_interpolate_with_edge_extrapolation() -> None:
    y, n = interpolate_nan_gaps(np.array([np.nan, 1.0, np.nan, 3.0, np.nan]))
    np.testing.assert_allclose(y, [0.0, 1.0, 2.0, 3.0, 4.0])
    assert n == 3


def test_interpolate_degenerate_inputs() -> None:
    y, n = interpolate_nan_gaps(np.array([np.nan, 2.0, np.nan]))
    np.testing.assert_allclose(y, [2.0, 2.0, 2.0])
    y, n = interpolate_nan_gaps(np.array([np.nan, np.nan]))
    assert n == 0 and np.all(np.isnan(y))


def test_interpolate_frame_reports_columns() -> None:
    df = pd.DataFrame({"a": [1.0, np.nan, 3.0], "b": [1.0, 2.0, 3.0]})
    out, w = interpolate_frame_gaps(df)
    assert out["a"].tolist() == [1.0, 2.0, 3.0]
    assert len(w) == 1 and "'a'" in w[0]
    assert np.isnan(df["a"].iloc[1])


def test_parse_state_letters_and_codes() -> None:
    assert parse_state_channel(["O", "R", "c", "D", "x"]).tolist() == [0, 1, 2, 3, -1]
    assert parse_state_channel(np.array([3, 1, 7])).tolist() == [3, 1, -1]


def test_invert_discharge_current() -> None:
    c, n = invert_discharge_current(np.array([1.0, 2.0, 3.0]), np.array([3, 1, 3]))
    assert c.tolist() == [-1.0, 2.0, -3.0]
    assert n == 2


# -----------------------------------------------------------------------
# Temperature
# -----------------------------------------------------------------------


def _frame(temperature_c=None) -> ChannelFrame:
    df = pd.DataFrame({"Temp1": [30.0, 31.0, 29.0, np.nan], "Amps": [0.0, -1.0, 0.0, 0.0]})
    return ChannelFrame("f", df, FileMetadata(temperature_c=temperature_c))


def test_band_temperature() -> None:
    assert band_temperature(27.0) == 25.0
    assert band_temperature(35.0) == 45.0


def test_channel_median_banded() -> None:
    t, w = resolve_temperature(_frame(), (TemperatureStrategy("channel_median", channel="Temp1", banded=True),))
    assert t == 25.0
    assert w == []


def test_first_success_wins() -> None:
    strategies = (
        TemperatureStrategy("channel_median", channel="EVTempC"),
        TemperatureStrategy("metadata"),
        TemperatureStrategy("fixed", value=45.0),
    )
    t, w = resolve_temperature(_frame(temperature_c=24.6), strategies)
    assert t == 24.6
    assert len(w) == 1 and "EVTempC" in w[0]


def test_no_strategy_succeeds() -> None:
    t, w = resolve_temperature(_frame(), (TemperatureStrategy("metadata"),))
    assert np.isnan(t)
    assert any("unresolved" in s for s in w)
