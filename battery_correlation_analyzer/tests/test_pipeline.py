"""End-to-end tests for per-file analysis and the batch driver."""

from __future__ import annotations

import dataclasses

import numpy as np
import pandas as pd
import pytest

from battery_correlation_analyzer.errors import (
    AnalysisError,
    FileProcessingError,
    MissingChannelError,
    NoEventsFoundError,
)
from battery_correlation_analyzer.models.frames import ChannelFrame, FileMetadata
from battery_correlation_analyzer.models.profile import ChannelBindings, FacilityProfile
from battery_correlation_analyzer.pipeline.batch import (
    FileState,
    analyse_file,
    analyse_pulse_file,
    analyse_rate_file,
    run_batch,
)
from battery_correlation_analyzer.pipeline.reporting import ListReporter


# -----------------------------------------------------------------------
# Synthetic files
# -----------------------------------------------------------------------


RATE_PROFILE = FacilityProfile(
    facility="TestLab",
    test_type="rate",
    channels=ChannelBindings(current="Current (A)", capacity="Capacity (Ah)"),
)

PULSE_PROFILE = FacilityProfile(
    facility="TestLab",
    test_type="pulse",
    channels=ChannelBindings(current="I", voltage="V", capacity="Q"),
    discharge_current=-5.0,
)


def _rate_frame(file_id: str = "rate-1") -> ChannelFrame:
    current = np.zeros(20)
    current[6:13] = -2.0
    capacity = np.linspace(5.0, 0.0, 20)
    df = pd.DataFrame({"Current (A)": current, "Capacity (Ah)": capacity})
    return ChannelFrame(file_id, df, FileMetadata(serial_number="SN1", c_rate=0.5, temperature_c=25.0))


def _pulse_frame(file_id: str = "pulse-1", n_blocks: int = 3) -> ChannelFrame:
    """Target pulses at -5 A, each followed by a -1 A / +1 A diagnostic pair; 0.1 Ohm cell."""
    block = np.array([-5] * 4 + [0] * 2 + [-1] * 3 + [0] * 2 + [1] * 3 + [0] * 2, dtype=float)
    current = np.concatenate([np.zeros(2)] + [block] * n_blocks)

    is_target = current == -5.0
    capacity = 10.0 - 0.5 * np.cumsum(is_target)

    ocv = 4.2 - 0.05 * np.cumsum(is_target)
    voltage = ocv + 0.1 * current
    df = pd.DataFrame({"I": current, "V": voltage, "Q": capacity})
    return ChannelFrame(file_id, df, FileMetadata(serial_number="SN2", temperature_c=45.0))


# -----------------------------------------------------------------------
# Rate
# -----------------------------------------------------------------------


def test_rate_end_to_end() -> None:
    frame = _rate_frame()
    res = analyse_rate_file(frame, RATE_PROFILE)
    assert res.state == FileState.METRICS_COMPUTED
    assert res.n_events == 1
    (row,) = res.rows
    assert (row.start, row.finish) == (6, 13)
    cap = frame.df["Capacity (Ah)"].to_numpy()
    assert row.discharge_capacity_ah == pytest.approx(cap[6] - cap[13])
    assert row.cycle == 1
    assert row.temperature_c == 25.0
    assert row.c_rate == 0.5
    assert row.serial_number == "SN1"
    assert row.flags == ()


def test_rate_no_events() -> None:
    frame = _rate_frame()
    df = frame.df.copy()
    df["Current (A)"] = 1.0
    with pytest.raises(NoEventsFoundError):
        analyse_rate_file(dataclasses.replace(frame, df=df), RATE_PROFILE)


def test_rate_state_inversion() -> None:
    frame = _rate_frame()
    df = frame.df.copy()
    df["Current (A)"] = np.abs(df["Current (A)"])
    df["State"] = np.where(df["Current (A)"] > 0, "D", "R")
    profile = dataclasses.replace(
        RATE_PROFILE,
        channels=dataclasses.replace(RATE_PROFILE.channels, state="State"),
        invert_current_by_state=True,
        cycle_count_mode="state",
    )
    res = analyse_rate_file(dataclasses.replace(frame, df=df), profile)
    assert [(r.start, r.finish) for r in res.rows] == [(6, 13)]
    assert res.cycles.mode == "state"
    assert res.cycles.count == 1


# -----------------------------------------------------------------------
# Pulse
# -----------------------------------------------------------------------


def test_pulse_end_to_end() -> None:
    res = analyse_pulse_file(_pulse_frame(), PULSE_PROFILE)
    assert res.n_events == 3
    assert [(r.start, r.finish) for r in res.rows] == [(2, 6), (18, 22), (34, 38)]
    np.testing.assert_allclose([r.soc for r in res.rows], [0.8, 0.6, 0.4])
    # diagnostic sub-pulses are not discharge events
    assert res.cycles.mode == "sign"
    assert res.cycles.count == 3
    assert not any("differs" in w for w in res.warnings)
    for r in res.rows:
        assert r.discharge_ir_ohm == pytest.approx(0.1, abs=1e-9)
        assert r.charge_ir_ohm == pytest.approx(0.1, abs=1e-9)
        assert r.discharge_di_a == pytest.approx(1.0)
        assert r.flags == ()
        assert r.temperature_c == 45.0


def test_pulse_truncation_and_depletion() -> None:
    profile = dataclasses.replace(
        PULSE_PROFILE, drop_trailing_events=1, soc_model="cumulative_depletion", depletion_statistic="max"
    )
    frame = _pulse_frame()
    df = frame.df.copy()
    # per-step counter: charge removed since the last target pulse started
    current = df["I"].to_numpy()
    step = np.zeros(current.size)
    acc = 0.0
    for k, i in enumerate(current):
        if i == -5.0 and (k == 0 or current[k - 1] != -5.0):
            acc = 0.0
        if i == -5.0:
            acc += 0.5
        step[k] = acc
    step[0] = 10.0
    df["Q"] = step
    res = analyse_pulse_file(dataclasses.replace(frame, df=df), profile)
    assert res.n_events == 2
    soc = [r.soc for r in res.rows]
    np.testing.assert_allclose(soc, [0.8, 0.6])
    assert soc[1] <= soc[0]
    assert res.cycles.count == 3
    assert not any("differs" in w for w in res.warnings)


def test_pulse_without_target_raises() -> None:
    with pytest.raises(AnalysisError):
        analyse_pulse_file(_pulse_frame(), dataclasses.replace(PULSE_PROFILE, discharge_current=None))


def test_pulse_missing_voltage() -> None:
    frame = _pulse_frame()
    with pytest.raises(MissingChannelError) as ei:
        analyse_file(dataclasses.replace(frame, df=frame.df.drop(columns=["V"])), PULSE_PROFILE)
    assert ei.value.roles == ("voltage",)


def test_pulse_table_units_and_percent() -> None:
    batch = run_batch([_pulse_frame()], PULSE_PROFILE)
    df = batch.table.to_frame()
    assert list(df.index.names) == ["file_id", "event"]
    assert df.attrs["units"]["SoC"] == "[%]"
    assert df.attrs["units"]["DischargeIR"] == "[Ohms]"
    np.testing.assert_allclose(df["SoC"].to_numpy(), [80.0, 60.0, 40.0])
    assert (df["Facility"] == "TestLab").all()


# -----------------------------------------------------------------------
# Batch
# -----------------------------------------------------------------------


def _mixed_frames() -> list:
    bad = _rate_frame("rate-bad")
    bad = dataclasses.replace(bad, df=bad.df.drop(columns=["Capacity (Ah)"]))
    return [_rate_frame("rate-a"), bad, _rate_frame("rate-b")]


def test_batch_continues_after_failure() -> None:
    rep = ListReporter()
    batch = run_batch(_mixed_frames(), RATE_PROFILE, reporter=rep)
    assert [f.state for f in batch.files] == [FileState.AGGREGATED, FileState.FAILED, FileState.AGGREGATED]
    assert batch.table.keys() == [("rate-a", 0), ("rate-b", 0)]
    assert [f.file_id for f in batch.failed] == ["rate-bad"]
    assert "capacity" in batch.file("rate-bad").error
    assert any("rate-bad" in m for m in rep.messages("error"))
    assert rep.last_progress == (3, 3, "rate-b")


def test_batch_stop_on_error() -> None:
    with pytest.raises(MissingChannelError) as ei:
        run_batch(_mixed_frames(), RATE_PROFILE, stop_on_error=True)
    assert ei.value.file_id == "rate-bad"


def test_batch_parallel_preserves_order() -> None:
    frames = [_pulse_frame(f"p{i}", n_blocks=2 + i % 3) for i in range(8)]
    seq = run_batch(frames, PULSE_PROFILE)
    par = run_batch(frames, PULSE_PROFILE, max_workers=4)
    assert par.table.keys() == seq.table.keys()
    pd.testing.assert_frame_equal(par.table.to_frame(), seq.table.to_frame())


def test_batch_empty() -> None:
    batch = run_batch([], RATE_PROFILE)
    assert len(batch.table) == 0
    assert batch.files == []


# -----------------------------------------------------------------------
# Reporter
# -----------------------------------------------------------------------


def test_list_reporter_coalesces_and_bounds() -> None:
    rep = ListReporter(max_entries=3)
    rep.info("a")
    rep.info("a")
    rep.warning("a")
    rep.error("b")
    rep.info("c")
    assert [e.message for e in rep.entries] == ["a", "b", "c"]
    assert rep.entries[0].level == "warning"
    rep.clear()
    rep.info("x")
    rep.info("x")
    assert rep.entries[0].count == 2
    assert rep.format() == "x (x2)"


@pytest.mark.parametrize("bad_current", [np.nan, -5.0])
def test_batch_survives_unusable_pulse_current(bad_current: float) -> None:
    bad = _pulse_frame("pulse-bad")
    df = bad.df.copy()
    df["I"] = bad_current  # all-NaN, or flat at the target so no coding span exists
    frames = [_pulse_frame("pulse-a"), dataclasses.replace(bad, df=df), _pulse_frame("pulse-b")]
    rep = ListReporter()
    batch = run_batch(frames, PULSE_PROFILE, reporter=rep)
    assert [f.state for f in batch.files] == [FileState.AGGREGATED, FileState.FAILED, FileState.AGGREGATED]
    assert {k[0] for k in batch.table.keys()} == {"pulse-a", "pulse-b"}
    assert "unusable" in batch.file("pulse-bad").error
    assert any("pulse-bad" in m for m in rep.messages("error"))


def test_unusable_pulse_current_raises_file_error() -> None:
    frame = _pulse_frame()
    df = frame.df.copy()
    df["I"] = np.nan
    with pytest.raises(FileProcessingError) as ei:
        analyse_pulse_file(dataclasses.replace(frame, df=df), PULSE_PROFILE)
    assert ei.value.file_id == frame.file_id
