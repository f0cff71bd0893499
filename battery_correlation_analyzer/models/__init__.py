from .facilities import PRESETS, available_presets, get_preset
from .frames import ChannelFrame, FileMetadata
from .profile import ChannelBindings, FacilityProfile, TemperatureStrategy
from .states import CellState
from .results import INVALID, PULSE_SCHEMA, RATE_SCHEMA, EventMetrics, ResultTable, is_invalid

__all__ = [
    "PRESETS",
    "available_presets",
    "get_preset",
    "CellState",
    "ChannelFrame",
    "FileMetadata",
    "ChannelBindings",
    "FacilityProfile",
    "TemperatureStrategy",
    "INVALID",
    "PULSE_SCHEMA",
    "RATE_SCHEMA",
    "EventMetrics",
    "ResultTable",
    "is_invalid",
]
