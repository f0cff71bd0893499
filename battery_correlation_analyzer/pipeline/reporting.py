from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Optional, Protocol


Level = Literal["info", "warning", "error"]


class Reporter(Protocol):
    """Sink for batch progress and diagnostics.

    Passed explicitly into :func:`~battery_correlation_analyzer.pipeline.batch.run_batch`;
    the analysis core never prints.
    """

    def info(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...

    def progress(self, done: int, total: int, label: str = "") -> None: ...


class NullReporter:
    """Discards everything."""

    def info(self, message: str) -> None:
        pass

    def warning(self, message: str) -> None:
        pass

    def error(self, message: str) -> None:
        pass

    def progress(self, done: int, total: int, label: str = "") -> None:
        pass


@dataclass
class _Entry:
    level: Level
    message: str
    count: int = 1


class ListReporter:
    """
    In-memory reporter for inspection and tests.

    Features:
      - coalescing of consecutive identical messages (count is incremented)
      - bounded history (drops oldest entries beyond max_entries)
      - last progress tuple kept separately, so it never floods the history
    """

    def __init__(self, *, max_entries: int = 2000) -> None:
        self._entries: List[_Entry] = []
        self._max_entries = int(max_entries)
        self.last_progress: Optional[tuple] = None

    def clear(self) -> None:
        self._entries.clear()
        self.last_progress = None

    def info(self, message: str) -> None:
        self._add("info", message)

    def warning(self, message: str) -> None:
        self._add("warning", message)

    def error(self, message: str) -> None:
        self._add("error", message)

    def progress(self, done: int, total: int, label: str = "") -> None:
        self.last_progress = (int(done), int(total), str(label))

    @property
    def entries(self) -> List[_Entry]:
        return list(self._entries)

    def messages(self, level: Optional[Level] = None) -> List[str]:
        return [e.message for e in self._entries if level is None or e.level == level]

    def format(self) -> str:
        """Plain-text rendering, one line per entry, ``(xN)`` for coalesced repeats."""
        lines = []
        for e in self._entries:
            prefix = "" if e.level == "info" else f"{e.level.upper()}: "
            suffix = f" (x{e.count})" if e.count > 1 else ""
            lines.append(f"{prefix}{e.message}{suffix}")
        return "\n".join(lines)

    def _add(self, level: Level, message: str) -> None:
        msg = "" if message is None else str(message)

        # Coalesce consecutive duplicates
        if self._entries and self._entries[-1].level == level and self._entries[-1].message == msg:
            self._entries[-1].count += 1
            return

        self._entries.append(_Entry(level=level, message=msg, count=1))
        if len(self._entries) > self._max_entries:
            self._entries = self._entries[-self._max_entries :]
