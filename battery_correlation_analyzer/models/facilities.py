"""Built-in facility profiles.

One entry per (facility, test type). Channel names, discharge targets,
unit scales and index conventions are the ones used by each laboratory's
tester exports. Override any field with ``dataclasses.replace()``.
"""

from __future__ import annotations

from typing import Dict, Tuple

from .profile import ChannelBindings, FacilityProfile, TemperatureStrategy


_METADATA = TemperatureStrategy("metadata")


PRESETS: Dict[Tuple[str, str], FacilityProfile] = {
    # ------------------------------------------------------------------
    # Birmingham (Maccor): unsigned current + explicit state codes
    # ------------------------------------------------------------------
    ("birmingham", "rate"): FacilityProfile(
        facility="Birmingham",
        tester="Maccor",
        test_type="rate",
        channels=ChannelBindings(current="Amps", capacity="Amp_hr", state="State"),
        capacity_window="finish_prev_minus_start",
        cycle_count_mode="state",
        invert_current_by_state=True,
        temperature_strategies=(
            TemperatureStrategy("channel_median", channel="EVTempC", banded=True, round_to_int=True),
            _METADATA,
        ),
    ),
    ("birmingham", "pulse"): FacilityProfile(
        facility="Birmingham",
        tester="Maccor",
        test_type="pulse",
        channels=ChannelBindings(current="Amps", voltage="Volts", capacity="Amp_hr", state="State"),
        discharge_current=-1.667,
        drop_trailing_events=1,
        soc_model="cumulative_depletion",
        depletion_statistic="max",
        invert_current_by_state=True,
        temperature_strategies=(
            TemperatureStrategy("channel_median", channel="EVTempC"),
            _METADATA,
        ),
    ),
    # ------------------------------------------------------------------
    # Imperial (Biologic): mA / mAh logging
    # ------------------------------------------------------------------
    ("imperial", "rate"): FacilityProfile(
        facility="Imperial",
        tester="Biologic",
        test_type="rate",
        channels=ChannelBindings(current="Amps", capacity="Amp-hr"),
        capacity_scale=1e-3,
        capacity_window="finish_minus_start",
        interpolate_gaps=True,
    ),
    ("imperial", "pulse"): FacilityProfile(
        facility="Imperial",
        tester="Biologic",
        test_type="pulse",
        channels=ChannelBindings(current="I_mA", voltage="Ecell_V", capacity="Capacity_mAh", time="time_s"),
        current_scale=1e-3,
        capacity_scale=1e-3,
        discharge_current=-1.67e3,
        drop_trailing_events=1,
        min_pulse_time_s=10.0,
        time_to_seconds=1.0,
        soc_model="cumulative_depletion",
        depletion_statistic="max",
        interpolate_gaps=True,
        temperature_strategies=(
            TemperatureStrategy("channel_median", channel="Temperature_degC"),
            _METADATA,
        ),
    ),
    # ------------------------------------------------------------------
    # Lancaster (Novonix)
    # ------------------------------------------------------------------
    ("lancaster", "rate"): FacilityProfile(
        facility="Lancaster",
        tester="Novonix",
        test_type="rate",
        channels=ChannelBindings(current="Current (A)", capacity="Capacity (Ah)"),
    ),
    ("lancaster", "pulse"): FacilityProfile(
        facility="Lancaster",
        tester="Novonix",
        test_type="pulse",
        channels=ChannelBindings(current="Current (A)", voltage="Potential (V)", capacity="Capacity (Ah)"),
        discharge_current=-1.67,
        soc_model="direct_ratio",
    ),
    # ------------------------------------------------------------------
    # Oxford (Maccor)
    # ------------------------------------------------------------------
    ("oxford", "rate"): FacilityProfile(
        facility="Oxford",
        tester="Maccor",
        test_type="rate",
        channels=ChannelBindings(current="Amps", capacity="Amp-hr"),
        capacity_window="start_minus_finish_prev",
        temperature_strategies=(
            TemperatureStrategy("channel_median", channel="Temp1", banded=True, round_to_int=True),
            _METADATA,
        ),
    ),
    ("oxford", "pulse"): FacilityProfile(
        facility="Oxford",
        tester="Maccor",
        test_type="pulse",
        channels=ChannelBindings(current="Amps", voltage="Volts", capacity="Amphr", time="TestTime"),
        discharge_current=-1.667,
        drop_trailing_events=1,
        min_pulse_time_s=10.0,
        time_to_seconds=1.0,
        soc_model="cumulative_depletion",
        depletion_statistic="max",
        temperature_strategies=(
            TemperatureStrategy("channel_median", channel="Temp1"),
            _METADATA,
        ),
    ),
    # ------------------------------------------------------------------
    # Warwick (Bitrode rate / Digatron pulse)
    # ------------------------------------------------------------------
    ("warwick", "rate"): FacilityProfile(
        facility="Warwick",
        tester="Bitrode",
        test_type="rate",
        channels=ChannelBindings(current="Current", capacity="AhAccu"),
        interpolate_gaps=True,
    ),
    ("warwick", "pulse"): FacilityProfile(
        facility="Warwick",
        tester="Digatron",
        test_type="pulse",
        channels=ChannelBindings(current="Current", voltage="Voltage", capacity="AhAccu"),
        discharge_current=-1.67,
        drop_trailing_events=1,
        soc_model="cumulative_depletion",
        depletion_statistic="min",
        temperature_strategies=(
            TemperatureStrategy("channel_median", channel="LogTemp001", round_to_int=True),
            _METADATA,
        ),
    ),
}


def available_presets() -> Tuple[Tuple[str, str], ...]:
    """Return the (facility, test_type) keys of all built-in profiles."""
    return tuple(sorted(PRESETS))


def get_preset(facility: str, test_type: str) -> FacilityProfile:
    """Look up a built-in profile (facility name is case-insensitive)."""
    key = (str(facility).strip().lower(), str(test_type).strip().lower())
    if key not in PRESETS:
        known = ", ".join(f"{f}/{t}" for f, t in available_presets())
        raise KeyError(f"No built-in profile for facility={facility!r} test_type={test_type!r}. Known: {known}")
    return PRESETS[key]
