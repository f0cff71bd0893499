from __future__ import annotations

"""Affine channel coding onto the normalised interval [-1, 1].

Thresholds in the segmentation and spike-detection code are expressed on the
coded scale so that the same numbers apply whether a tester logs amps or
milliamps, or adds a facility-specific offset.

Given natural-scale bounds ``A < B`` and ``C = (A + B) / 2``::

    code(X)    = 2 * (X - C) / (B - A)
    decode(Xc) = 0.5 * (B - A) * Xc + C

``A`` maps to -1 and ``B`` to +1. Values outside ``[A, B]`` are not clipped, so
the round trip is exact (to floating precision) for any real X.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass(frozen=True)
class CodingParameters:
    """Natural-scale bounds of one coding. Transient: computed per channel per call."""

    A: float
    B: float

    def __post_init__(self) -> None:
        if not (np.isfinite(self.A) and np.isfinite(self.B)):
            raise ValueError(f"Coding bounds must be finite, got A={self.A}, B={self.B}")
        if not self.A < self.B:
            raise ValueError(f"Coding requires A < B, got A={self.A}, B={self.B}")

    @property
    def centre(self) -> float:
        return 0.5 * (self.A + self.B)

    @property
    def half_span(self) -> float:
        return 0.5 * (self.B - self.A)

    @classmethod
    def from_data(
        cls,
        x: np.ndarray,
        A: Optional[float] = None,
        B: Optional[float] = None,
    ) -> CodingParameters:
        """Default unspecified bounds to the finite min / max of ``x``."""
        x = np.asarray(x, dtype=float)
        if A is None or B is None:
            finite = x[np.isfinite(x)]
            if finite.size == 0:
                raise ValueError("Cannot derive coding bounds from an empty or all-NaN array")
            if A is None:
                A = float(np.min(finite))
            if B is None:
                B = float(np.max(finite))
        return cls(float(A), float(B))

    def code(self, x):
        return 2.0 * (np.asarray(x, dtype=float) - self.centre) / (self.B - self.A)

    def decode(self, xc):
        return self.half_span * np.asarray(xc, dtype=float) + self.centre

    def decode_delta(self, dxc):
        """Decode a *difference* of coded values (the offset cancels)."""
        return self.half_span * np.asarray(dxc, dtype=float)


def code(x, A: Optional[float] = None, B: Optional[float] = None) -> np.ndarray:
    """Code ``x`` onto [-1, 1]; bounds default to min / max of ``x``."""
    return CodingParameters.from_data(x, A, B).code(x)


def decode(xc, A: float, B: float) -> np.ndarray:
    """Inverse of :func:`code` for explicit bounds."""
    return CodingParameters(float(A), float(B)).decode(xc)
