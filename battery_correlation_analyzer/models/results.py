from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np
import pandas as pd


#: Marker stored in any derived field that could not be computed validly.
INVALID = float("nan")


def is_invalid(x: Optional[float]) -> bool:
    """True for the invalid marker (and for ``None``)."""
    return x is None or not np.isfinite(x)


@dataclass(frozen=True)
class Column:
    """One output column: table name, unit annotation and the record attribute it reads."""

    name: str
    unit: str
    attr: str


RATE_SCHEMA: Tuple[Column, ...] = (
    Column("BatteryName", "NA", "battery_id"),
    Column("SerialNumber", "NA", "serial_number"),
    Column("CRate", "[C]", "c_rate"),
    Column("Cycle", "[#]", "cycle"),
    Column("Facility", "NA", "facility"),
    Column("Temperature", "[Deg C]", "temperature_c"),
    Column("DischargeCapacity", "[Ah]", "discharge_capacity_ah"),
)

PULSE_SCHEMA: Tuple[Column, ...] = (
    Column("BatteryName", "NA", "battery_id"),
    Column("SerialNumber", "NA", "serial_number"),
    Column("Facility", "NA", "facility"),
    Column("Temperature", "[Deg C]", "temperature_c"),
    Column("SoC", "[%]", "soc_percent"),
    Column("DischargeIR", "[Ohms]", "discharge_ir_ohm"),
    Column("ChargeIR", "[Ohms]", "charge_ir_ohm"),
    Column("DV", "[V]", "discharge_dv_v"),
    Column("DI", "[A]", "discharge_di_a"),
    Column("CV", "[V]", "charge_dv_v"),
    Column("CI", "[A]", "charge_di_a"),
)

SCHEMAS: Dict[str, Tuple[Column, ...]] = {"rate": RATE_SCHEMA, "pulse": PULSE_SCHEMA}


@dataclass(frozen=True)
class EventMetrics:
    """Derived values for one event of one file.

    Keyed by ``(file_id, event)`` where ``event`` is the 0-based event index in
    the file. Fields not produced by the test type stay at the invalid marker.

    Attributes
    ----------
    start, finish:
        Event boundaries into the file's sample index space.
    soc:
        State of charge as a fraction in [0, 1]; the table reports it in percent.
    flags:
        Reason strings for every field degraded to :data:`INVALID`.
    """

    file_id: str
    event: int
    start: int
    finish: int

    battery_id: str = ""
    serial_number: str = ""
    facility: str = ""
    temperature_c: float = INVALID

    # rate test
    c_rate: float = INVALID
    cycle: int = 0
    discharge_capacity_ah: float = INVALID

    # pulse test
    soc: float = INVALID
    discharge_ir_ohm: float = INVALID
    charge_ir_ohm: float = INVALID
    discharge_dv_v: float = INVALID
    discharge_di_a: float = INVALID
    charge_dv_v: float = INVALID
    charge_di_a: float = INVALID

    flags: Tuple[str, ...] = ()

    @property
    def key(self) -> Tuple[str, int]:
        return (self.file_id, self.event)

    @property
    def soc_percent(self) -> float:
        return 100.0 * self.soc


@dataclass
class ResultTable:
    """Append-only accumulation of EventMetrics rows with a fixed column schema.

    The table is not thread-safe: a single writer appends rows in the
    deterministic file-processing order (see :func:`~battery_correlation_analyzer.pipeline.batch.run_batch`).
    """

    test_type: str
    rows: List[EventMetrics] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.test_type not in SCHEMAS:
            raise ValueError(f"Unknown test_type {self.test_type!r}; expected one of {sorted(SCHEMAS)}")

    @property
    def schema(self) -> Tuple[Column, ...]:
        return SCHEMAS[self.test_type]

    @property
    def columns(self) -> List[str]:
        return [c.name for c in self.schema]

    @property
    def units(self) -> Dict[str, str]:
        return {c.name: c.unit for c in self.schema}

    def __len__(self) -> int:
        return len(self.rows)

    def extend(self, rows: Iterable[EventMetrics]) -> None:
        self.rows.extend(rows)

    def keys(self) -> List[Tuple[str, int]]:
        return [r.key for r in self.rows]

    def to_records(self) -> List[Dict[str, Any]]:
        """Rows as dicts in schema column order."""
        return [{c.name: getattr(r, c.attr) for c in self.schema} for r in self.rows]

    def to_frame(self) -> pd.DataFrame:
        """Build a DataFrame indexed by ``(file_id, event)``.

        Units are attached as ``df.attrs["units"]``.
        """
        index = pd.MultiIndex.from_tuples(self.keys(), names=["file_id", "event"])
        df = pd.DataFrame(self.to_records(), columns=self.columns, index=index)
        df.attrs["units"] = self.units
        return df
