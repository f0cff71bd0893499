"""Per-file analysis and batch aggregation.

One file moves through ``Idle -> Segmenting -> MetricsComputed -> Aggregated``;
any :class:`~battery_correlation_analyzer.errors.FileProcessingError` raised
while segmenting moves it to ``Failed`` instead. Files are independent: the
batch driver may analyse them in a thread pool, but rows are always appended
to the :class:`~battery_correlation_analyzer.models.results.ResultTable` in
input order by a single writer.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from battery_correlation_analyzer.analysis.capacity import discharge_capacity
from battery_correlation_analyzer.analysis.cycles import (
    CycleCount,
    count_sign_cycles,
    count_spike_cycles,
    count_state_cycles,
)
from battery_correlation_analyzer.analysis.resistance import window_resistance
from battery_correlation_analyzer.analysis.segmentation import EventSet, locate_events, locate_target_pulses
from battery_correlation_analyzer.analysis.soc import FLAG_DEGENERATE_CAPACITY, compute_soc, rest_windows
from battery_correlation_analyzer.errors import AnalysisError, FileProcessingError, NoEventsFoundError
from battery_correlation_analyzer.ingest.channels import ResolvedChannels, resolve_channels, validate_current_channel
from battery_correlation_analyzer.ingest.conditioning import (
    interpolate_frame_gaps,
    invert_discharge_current,
    parse_state_channel,
)
from battery_correlation_analyzer.ingest.temperature import resolve_temperature
from battery_correlation_analyzer.models.frames import ChannelFrame
from battery_correlation_analyzer.models.profile import FacilityProfile
from battery_correlation_analyzer.models.results import EventMetrics, ResultTable

from .reporting import NullReporter, Reporter

logger = logging.getLogger(__name__)


class FileState(str, Enum):
    IDLE = "Idle"
    SEGMENTING = "Segmenting"
    METRICS_COMPUTED = "MetricsComputed"
    AGGREGATED = "Aggregated"
    FAILED = "Failed"


_TRANSITIONS = {
    FileState.IDLE: (FileState.SEGMENTING,),
    FileState.SEGMENTING: (FileState.METRICS_COMPUTED, FileState.FAILED),
    FileState.METRICS_COMPUTED: (FileState.AGGREGATED,),
    FileState.AGGREGATED: (),
    FileState.FAILED: (),
}


@dataclass
class FileResult:
    """Outcome of one file: its state, rows and diagnostics."""

    file_id: str
    state: FileState = FileState.IDLE
    rows: Tuple[EventMetrics, ...] = ()
    n_events: int = 0
    cycles: Optional[CycleCount] = None
    warnings: List[str] = field(default_factory=list)
    error: Optional[str] = None

    def advance(self, new_state: FileState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"{self.file_id}: illegal state transition {self.state.value} -> {new_state.value}")
        logger.debug("%s: %s -> %s", self.file_id, self.state.value, new_state.value)
        self.state = new_state

    @property
    def ok(self) -> bool:
        return self.state in (FileState.METRICS_COMPUTED, FileState.AGGREGATED)


@dataclass
class BatchResult:
    table: ResultTable
    files: List[FileResult]

    @property
    def failed(self) -> List[FileResult]:
        return [f for f in self.files if f.state == FileState.FAILED]

    def file(self, file_id: str) -> FileResult:
        for f in self.files:
            if f.file_id == file_id:
                return f
        raise KeyError(file_id)


# ---------------------------------------------------------------------------
# Per-file preparation
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Prepared:
    channels: ResolvedChannels
    arrays: Dict[str, Optional[np.ndarray]]
    state_codes: Optional[np.ndarray]
    temperature_c: float
    warnings: Tuple[str, ...]


def _prepare(frame: ChannelFrame, profile: FacilityProfile) -> _Prepared:
    """Resolve channels once, condition them, and resolve the temperature."""
    warnings: List[str] = list(frame.warnings)
    df = frame.df

    resolved = resolve_channels(
        profile.channels, [str(c) for c in df.columns], required=profile.required_roles(), file_id=frame.file_id
    )
    warnings.extend(resolved.warnings)

    if profile.interpolate_gaps:
        keys = [k for k in (resolved.current, resolved.voltage, resolved.capacity, resolved.time) if k is not None]
        df, w = interpolate_frame_gaps(df, columns=keys)
        warnings.extend(w)
        frame = replace(frame, df=df)

    arrays: Dict[str, Optional[np.ndarray]] = {}
    for role in ("current", "voltage", "capacity", "time"):
        key = getattr(resolved, role)
        arrays[role] = None if key is None else frame.column(key)

    state_codes = None
    if resolved.state is not None:
        state_codes = parse_state_channel(df[resolved.state].to_numpy())
        n_unknown = int(np.sum(state_codes < 0))
        if n_unknown:
            warnings.append(f"{n_unknown} sample(s) with unrecognised state code")

    if profile.invert_current_by_state:
        arrays["current"], n_inv = invert_discharge_current(arrays["current"], state_codes)
        warnings.append(f"inverted current on {n_inv} discharge-state sample(s)")

    warnings.extend(validate_current_channel(arrays["current"]))

    temperature, w = resolve_temperature(frame, profile.temperature_strategies)
    warnings.extend(w)

    return _Prepared(resolved, arrays, state_codes, temperature, tuple(warnings))


def _count_cycles(
    prep: _Prepared, events: EventSet, profile: FacilityProfile
) -> Tuple[EventSet, CycleCount, List[str]]:
    """Run the configured counting mode; spike mode also selects the qualifying events."""
    warnings: List[str] = []
    current = prep.arrays["current"]
    mode = profile.cycle_count_mode
    if mode == "state":
        cc = count_state_cycles(prep.state_codes)
    elif mode == "spike":
        cc = count_spike_cycles(
            current, events, threshold=profile.spike_threshold, max_samples=profile.max_spike_samples
        )
        events = events.select(cc.event_index, "paired with a spike marker")
    else:
        cc = count_sign_cycles(events)
    warnings.extend(cc.warnings)
    expected = events.n_events + events.n_truncated
    if mode != "spike" and cc.count != expected:
        warnings.append(f"{mode} cycle count ({cc.count}) differs from paired events ({expected})")
    return events, cc, warnings


def _begin(frame: ChannelFrame) -> FileResult:
    res = FileResult(file_id=frame.file_id)
    res.advance(FileState.SEGMENTING)
    return res


def _require_events(events: EventSet, file_id: str) -> None:
    if events.n_events == 0:
        raise NoEventsFoundError("no complete discharge events found", file_id=file_id)


# ---------------------------------------------------------------------------
# Rate tests
# ---------------------------------------------------------------------------


def analyse_rate_file(frame: ChannelFrame, profile: FacilityProfile) -> FileResult:
    """Segment one rate-test file and compute the discharge capacity of every event.

    Raises FileProcessingError (missing channels, no events); the returned
    result is in state ``MetricsComputed``.
    """
    res = _begin(frame)
    prep = _prepare(frame, profile)
    res.warnings.extend(prep.warnings)

    events = locate_events(prep.arrays["current"], close_trailing=profile.close_trailing_event)
    events = events.truncated(profile.drop_trailing_events)
    events, cc, w = _count_cycles(prep, events, profile)
    res.warnings.extend(events.warnings)
    res.warnings.extend(w)
    _require_events(events, frame.file_id)

    cap = discharge_capacity(
        prep.arrays["capacity"], events, convention=profile.capacity_window, scale=profile.capacity_scale
    )
    res.warnings.extend(cap.warnings)

    md = frame.metadata
    rows = []
    for q, (s, f) in enumerate(events.pairs()):
        value = float(cap.capacity_ah[q])
        rows.append(
            EventMetrics(
                file_id=frame.file_id,
                event=q,
                start=s,
                finish=f,
                battery_id=profile.battery_id,
                serial_number=md.serial_number,
                facility=profile.facility,
                temperature_c=prep.temperature_c,
                c_rate=md.c_rate,
                cycle=q + 1,
                discharge_capacity_ah=value,
                flags=() if np.isfinite(value) else (FLAG_DEGENERATE_CAPACITY,),
            )
        )

    res.rows = tuple(rows)
    res.n_events = events.n_events
    res.cycles = cc
    res.advance(FileState.METRICS_COMPUTED)
    return res


# ---------------------------------------------------------------------------
# Pulse tests
# ---------------------------------------------------------------------------


def analyse_pulse_file(frame: ChannelFrame, profile: FacilityProfile) -> FileResult:
    """Locate the target discharge pulses and compute SoC and resistance per rest window."""
    if profile.discharge_current is None:
        raise AnalysisError(f"{profile.facility}: pulse profile has no discharge_current target")

    res = _begin(frame)
    prep = _prepare(frame, profile)
    res.warnings.extend(prep.warnings)

    current = prep.arrays["current"]
    voltage = prep.arrays["voltage"]
    time = prep.arrays["time"]

    try:
        events = locate_target_pulses(
            current,
            profile.discharge_current,
            threshold=profile.coded_threshold,
            drop_trailing=profile.drop_trailing_events,
            close_trailing=profile.close_trailing_event,
        )
    except ValueError as exc:
        # all-NaN or flat-at-target current cannot be coded
        raise FileProcessingError(f"current channel unusable for pulse location: {exc}", file_id=frame.file_id) from exc
    events, cc, w = _count_cycles(prep, events, profile)
    res.warnings.extend(events.warnings)
    res.warnings.extend(w)
    _require_events(events, frame.file_id)

    soc = compute_soc(
        prep.arrays["capacity"], events, model=profile.soc_model, statistic=profile.depletion_statistic
    )
    res.warnings.extend(soc.warnings)

    md = frame.metadata
    rows = []
    windows = rest_windows(events, frame.n_samples)
    for q, ((s, f), (lo, hi)) in enumerate(zip(events.pairs(), windows)):
        wr = window_resistance(
            current[lo:hi],
            voltage[lo:hi],
            None if time is None else time[lo:hi],
            current_scale=profile.current_scale,
            time_to_seconds=profile.time_to_seconds,
            min_pulse_time_s=profile.min_pulse_time_s,
            lag_radius=profile.lag_search_radius,
            voltage_decimals=profile.voltage_round_decimals,
            current_statistic=profile.current_statistic,
        )
        rows.append(
            EventMetrics(
                file_id=frame.file_id,
                event=q,
                start=s,
                finish=f,
                battery_id=profile.battery_id,
                serial_number=md.serial_number,
                facility=profile.facility,
                temperature_c=prep.temperature_c,
                soc=float(soc.soc[q]),
                discharge_ir_ohm=wr.discharge.ir_ohm,
                charge_ir_ohm=wr.charge.ir_ohm,
                discharge_dv_v=wr.discharge.dv_v,
                discharge_di_a=wr.discharge.di_a,
                charge_dv_v=wr.charge.dv_v,
                charge_di_a=wr.charge.di_a,
                flags=soc.flags[q] + wr.flags,
            )
        )

    res.rows = tuple(rows)
    res.n_events = events.n_events
    res.cycles = cc
    res.advance(FileState.METRICS_COMPUTED)
    return res


def analyse_file(frame: ChannelFrame, profile: FacilityProfile) -> FileResult:
    if profile.test_type == "rate":
        return analyse_rate_file(frame, profile)
    return analyse_pulse_file(frame, profile)


# ---------------------------------------------------------------------------
# Batch driver
# ---------------------------------------------------------------------------


def _analyse_or_fail(frame: ChannelFrame, profile: FacilityProfile) -> Tuple[FileResult, Optional[FileProcessingError]]:
    try:
        return analyse_file(frame, profile), None
    except FileProcessingError as exc:
        if not exc.file_id:
            exc.file_id = frame.file_id
        res = FileResult(file_id=frame.file_id, state=FileState.SEGMENTING, error=str(exc))
        res.advance(FileState.FAILED)
        return res, exc


def run_batch(
    frames: Iterable[ChannelFrame],
    profile: FacilityProfile,
    *,
    reporter: Optional[Reporter] = None,
    max_workers: Optional[int] = None,
    stop_on_error: bool = False,
) -> BatchResult:
    """Analyse every frame with one profile and aggregate the rows.

    Parameters
    ----------
    frames:
        Imported files, in the order their rows should appear.
    reporter:
        Progress / diagnostics sink (default: discard).
    max_workers:
        ``None`` or ``1`` runs sequentially; larger values analyse files in a
        thread pool. Rows are appended in input order either way.
    stop_on_error:
        Re-raise the first FileProcessingError (in input order) instead of
        recording the file as failed and continuing.
    """
    rep: Reporter = reporter if reporter is not None else NullReporter()
    frames = list(frames)
    total = len(frames)
    table = ResultTable(profile.test_type)
    results: List[FileResult] = []
    outcomes: Iterable[Tuple[FileResult, Optional[FileProcessingError]]]

    rep.info(f"{profile.facility} {profile.test_type}: analysing {total} file(s)")

    if max_workers is not None and max_workers > 1 and total > 1:
        with ThreadPoolExecutor(max_workers=int(max_workers)) as pool:
            outcomes = list(pool.map(lambda fr: _analyse_or_fail(fr, profile), frames))
    else:
        outcomes = (_analyse_or_fail(fr, profile) for fr in frames)

    for done, (res, exc) in enumerate(outcomes, start=1):
        if exc is not None:
            rep.error(f"{res.file_id}: {res.error}")
            if stop_on_error:
                raise exc
        else:
            for msg in res.warnings:
                rep.warning(f"{res.file_id}: {msg}")
            table.extend(res.rows)
            res.advance(FileState.AGGREGATED)
            rep.info(f"{res.file_id}: {res.n_events} event(s)")
        results.append(res)
        rep.progress(done, total, res.file_id)

    n_failed = sum(1 for r in results if r.state == FileState.FAILED)
    rep.info(f"done: {len(table)} row(s), {n_failed} failed file(s)")
    logger.debug("batch %s/%s: %d rows, %d failed", profile.facility, profile.test_type, len(table), n_failed)
    return BatchResult(table=table, files=results)
