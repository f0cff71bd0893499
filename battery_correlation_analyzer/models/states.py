from __future__ import annotations

from enum import IntEnum


class CellState(IntEnum):
    """Per-sample cell state codes exported by testers with an explicit state channel."""

    O = 0  # noqa: E741  (off)
    R = 1  # rest
    C = 2  # charge
    D = 3  # discharge
