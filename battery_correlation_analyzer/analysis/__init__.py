"""Signal-processing core.

Design principle:
  - Ingest produces a validated :class:`~battery_correlation_analyzer.models.frames.ChannelFrame`
    and the resolved channel keys.
  - Analysis consumes plain channel arrays and returns frozen result records
    carrying their own diagnostics; it never raises for event-level anomalies.

Accordingly, every function here is expressed on the *sample index* of one file
and is a pure function of that file's arrays.
"""

from .alignment import LagEstimate, estimate_charge_lag, estimate_discharge_lag
from .capacity import CapacityResult, discharge_capacity
from .coding import CodingParameters, code, decode
from .cycles import (
    CycleCount,
    count_sign_cycles,
    count_spike_cycles,
    count_state_cycles,
    find_contiguous_groups,
)
from .resistance import PulseResistance, WindowResistance, window_resistance
from .segmentation import (
    EventSet,
    locate_charge_subpulse,
    locate_discharge_subpulse,
    locate_events,
    locate_target_pulses,
)
from .soc import SocResult, compute_soc, cumulative_depletion_soc, direct_ratio_soc

__all__ = [
    "LagEstimate",
    "estimate_charge_lag",
    "estimate_discharge_lag",
    "CapacityResult",
    "discharge_capacity",
    "CodingParameters",
    "code",
    "decode",
    "CycleCount",
    "count_sign_cycles",
    "count_spike_cycles",
    "count_state_cycles",
    "find_contiguous_groups",
    "PulseResistance",
    "WindowResistance",
    "window_resistance",
    "EventSet",
    "locate_charge_subpulse",
    "locate_discharge_subpulse",
    "locate_events",
    "locate_target_pulses",
    "SocResult",
    "compute_soc",
    "cumulative_depletion_soc",
    "direct_ratio_soc",
]
