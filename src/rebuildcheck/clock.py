"""Logical clock used to stamp filesystem mutations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rebuildcheck.vfs import FileSystem

INITIAL_TIME = 100
# One logical minute, in milliseconds.
TICK_STEP = 60_000


@dataclass(slots=True)
class LogicalClock:
    """Monotonic counter advanced only by explicit :meth:`tick` calls."""

    current: int = INITIAL_TIME
    step: int = TICK_STEP

    def __post_init__(self) -> None:
        if self.step <= 0:
            raise ValueError("LogicalClock step must be positive.")

    def tick(self) -> int:
        self.current += self.step
        return self.current

    def now(self) -> int:
        return self.current

    def touch(self, fs: FileSystem, path: str) -> None:
        """Stamp an existing file with the current logical time."""
        fs.touch(path, self.current)
