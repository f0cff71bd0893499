from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class FileMetadata:
    """
    Per-file descriptors supplied by the facility reader (filename or header parsing
    happens outside this package).

    temperature_c is only a candidate value: the pipeline resolves the reported
    temperature through the profile's ordered temperature strategies.
    """
    serial_number: str = ""
    c_rate: float = float("nan")
    temperature_c: Optional[float] = None


@dataclass(frozen=True)
class ChannelFrame:
    """
    In-memory representation of one imported test file.

    Notes
    - df holds one column per instrument channel, all of equal length and sharing
      the same sample index (no resampling, no reordering).
    - Column names are kept exactly as the reader produced them; role resolution
      happens once per file in ingest.channels.
    """
    file_id: str
    df: pd.DataFrame
    metadata: FileMetadata = FileMetadata()
    warnings: Tuple[str, ...] = ()

    @property
    def n_samples(self) -> int:
        return int(len(self.df))

    @property
    def channel_names(self) -> Tuple[str, ...]:
        return tuple(str(c) for c in self.df.columns)

    def column(self, key: str) -> np.ndarray:
        """Return one channel as a float64 array (a copy, callers may mutate it)."""
        return self.df[key].to_numpy(dtype=np.float64, copy=True)
