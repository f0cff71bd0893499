"""Facility profile -- bundles all analysis-relevant configuration of one laboratory.

A FacilityProfile groups every parameter that affects the analysis output
for one facility and test type into one frozen dataclass. One shared
implementation of the segmentation and metric algorithms consumes it; no
behaviour lives in per-facility code. A profile can be:

- Taken from the built-in presets (:mod:`battery_correlation_analyzer.models.facilities`)
- Overridden field-by-field via ``dataclasses.replace()``
- Serialized to/from a dict for JSON provenance
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Literal, Optional, Tuple


TestType = Literal["rate", "pulse"]
SocModel = Literal["direct_ratio", "cumulative_depletion"]
WindowStatistic = Literal["min", "max"]
CurrentStatistic = Literal["extreme", "median"]
CapacityWindow = Literal[
    "start_minus_finish",
    "finish_minus_start",
    "start_minus_finish_prev",
    "finish_prev_minus_start",
]
CycleCountMode = Literal["sign", "state", "spike"]
TemperatureSource = Literal["channel_median", "metadata", "fixed"]

_ROLES = ("current", "voltage", "capacity", "time", "state")


@dataclass(frozen=True)
class ChannelBindings:
    """Logical role -> instrument channel name.

    Set a role to ``None`` when the facility does not record it. Names are
    matched case-insensitively after normalisation (see
    :func:`battery_correlation_analyzer.ingest.channels.normalize_channel_name`).
    """

    current: Optional[str] = None
    voltage: Optional[str] = None
    capacity: Optional[str] = None
    time: Optional[str] = None
    state: Optional[str] = None

    def get(self, role: str) -> Optional[str]:
        if role not in _ROLES:
            raise KeyError(f"Unknown channel role: {role!r}")
        return getattr(self, role)


@dataclass(frozen=True)
class TemperatureStrategy:
    """One named way of obtaining the test temperature.

    source
        ``"channel_median"`` (median of a temperature channel),
        ``"metadata"`` (value supplied by the reader), or ``"fixed"``.
    channel
        Channel name for ``channel_median``.
    banded
        Snap the channel median to the 25/45 degC test bands (< 35 -> 25).
    round_to_int
        Round the channel median to whole degrees.
    value
        Temperature for ``fixed``.
    """

    source: TemperatureSource
    channel: Optional[str] = None
    banded: bool = False
    round_to_int: bool = False
    value: Optional[float] = None

    @property
    def name(self) -> str:
        if self.source == "channel_median":
            return f"channel_median({self.channel})"
        if self.source == "fixed":
            return f"fixed({self.value})"
        return self.source


@dataclass(frozen=True)
class FacilityProfile:
    """Frozen configuration for one facility and test type.

    Required fields
    ---------------
    facility : str
        Facility name reported in every output row.
    test_type : {"rate", "pulse"}
        Selects the output schema and the per-event metrics.
    channels : ChannelBindings
        Role-to-channel-name bindings.

    Optional fields (sensible defaults)
    ------------------------------------
    tester : str
        Instrument make, for provenance only.
    battery_id : str
        Battery designation reported in every row.
    current_scale, capacity_scale : float
        Multipliers converting the current channel to A and the capacity
        channel to Ah (1e-3 for testers logging mA / mAh).
    discharge_current : float or None
        Pulse tests: target discharge current in channel units (negative).
    coded_threshold : float
        Pulse tests: maximum |coded(I) - coded(target)| kept by the
        thresholded pulse locator.
    drop_trailing_events : int
        Number of trailing events discarded after pairing.
    close_trailing_event : bool
        Pair an unmatched trailing start with ``finish = n_samples``.
    min_pulse_time_s : float or None
        Pulse-width gate; ``None`` disables the gate.
    time_to_seconds : float
        Time channel to seconds conversion factor.
    lag_search_radius : int
        Half-width, in samples, of the voltage lag search window.
    voltage_round_decimals : int
        Rounding applied to the voltage trace before step detection.
    current_statistic : {"extreme", "median"}
        Representative pulse current (min/max of the rest window, or median
        of the pulse samples).
    soc_model : {"direct_ratio", "cumulative_depletion"}
    depletion_statistic : {"min", "max"}
        Rest-window capacity statistic used by the depletion model.
    capacity_window : str
        Rate tests: discharge-capacity index convention.
    cycle_count_mode : {"sign", "state", "spike"}
    spike_threshold : float
        Coded current level that marks a spike for ``spike`` counting.
    max_spike_samples : int
        Longest run above ``spike_threshold`` still treated as a transient.
    invert_current_by_state : bool
        Negate current where the state channel reports discharge.
    interpolate_gaps : bool
        Linearly fill NaN gaps in every channel before analysis.
    temperature_strategies : tuple of TemperatureStrategy
        Tried in order; the first success wins.
    """

    facility: str
    test_type: TestType
    channels: ChannelBindings

    tester: str = ""
    battery_id: str = "LGM50"

    current_scale: float = 1.0
    capacity_scale: float = 1.0

    discharge_current: Optional[float] = None
    coded_threshold: float = 0.005
    drop_trailing_events: int = 0
    close_trailing_event: bool = False

    min_pulse_time_s: Optional[float] = None
    time_to_seconds: float = 1.0
    lag_search_radius: int = 5
    voltage_round_decimals: int = 3
    current_statistic: CurrentStatistic = "extreme"

    soc_model: SocModel = "direct_ratio"
    depletion_statistic: WindowStatistic = "min"

    capacity_window: CapacityWindow = "start_minus_finish"

    cycle_count_mode: CycleCountMode = "sign"
    spike_threshold: float = 0.98
    max_spike_samples: int = 3

    invert_current_by_state: bool = False
    interpolate_gaps: bool = False

    temperature_strategies: Tuple[TemperatureStrategy, ...] = field(
        default_factory=lambda: (TemperatureStrategy("metadata"),)
    )

    def __post_init__(self) -> None:
        if self.test_type not in ("rate", "pulse"):
            raise ValueError(f"test_type must be 'rate' or 'pulse', got {self.test_type!r}")
        if self.drop_trailing_events < 0:
            raise ValueError("drop_trailing_events must be >= 0")
        if self.discharge_current is not None and not self.discharge_current < 0:
            raise ValueError(f"discharge_current must be negative, got {self.discharge_current}")
        if self.coded_threshold <= 0:
            raise ValueError("coded_threshold must be > 0")
        if self.time_to_seconds <= 0:
            raise ValueError("time_to_seconds must be > 0")

    # ------------------------------------------------------------------
    # Derived requirements
    # ------------------------------------------------------------------

    def required_roles(self) -> Tuple[str, ...]:
        """Roles that must resolve to a channel before segmentation."""
        roles = ["current", "capacity"]
        if self.test_type == "pulse":
            roles.append("voltage")
            if self.min_pulse_time_s is not None:
                roles.append("time")
        if self.invert_current_by_state or self.cycle_count_mode == "state":
            roles.append("state")
        return tuple(roles)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-friendly dict (tuples become lists)."""
        d = asdict(self)
        d["temperature_strategies"] = [dict(s) for s in d["temperature_strategies"]]
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> FacilityProfile:
        """Reconstruct from a dict (e.g. loaded from JSON)."""
        d = dict(d)  # shallow copy
        if isinstance(d.get("channels"), dict):
            d["channels"] = ChannelBindings(**d["channels"])
        if "temperature_strategies" in d:
            d["temperature_strategies"] = tuple(
                s if isinstance(s, TemperatureStrategy) else TemperatureStrategy(**s)
                for s in d["temperature_strategies"]
            )
        return cls(**d)
