"""Fixed-width trailing history of each graphed metric."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from pidash.sampler import Reading

T = TypeVar("T")

DEFAULT_WIDTH = 42


@dataclass(frozen=True)
class CompositePoint:
    """Two stacked quantities against a capacity ceiling.

    ``val1 <= val2 <= total`` is expected but not enforced; the renderer
    copes with any ordering.
    """

    val1: int
    val2: int
    total: int


NEUTRAL_COMPOSITE = CompositePoint(0, 0, 100)


class HistoryWindow(Generic[T]):
    """Exactly ``width`` most recent points, oldest first.

    The window starts full of *neutral* points so a graph is always drawn at
    full width. ``push`` drops the oldest point in O(1).
    """

    def __init__(self, width: int, neutral: T) -> None:
        if width < 1:
            raise ValueError(f"history width must be >= 1, got {width}")
        self._points: deque[T] = deque([neutral] * width, maxlen=width)

    def push(self, point: T) -> None:
        self._points.append(point)

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[T]:
        return iter(self._points)


class Histories:
    """The four graphed windows, updated together once per tick."""

    def __init__(self, width: int = DEFAULT_WIDTH) -> None:
        self.cpu: HistoryWindow[int] = HistoryWindow(width, 0)
        self.temp: HistoryWindow[int] = HistoryWindow(width, 0)
        self.ram: HistoryWindow[CompositePoint] = HistoryWindow(width, NEUTRAL_COMPOSITE)
        self.cma: HistoryWindow[CompositePoint] = HistoryWindow(width, NEUTRAL_COMPOSITE)

    def push(self, reading: Reading) -> None:
        self.cpu.push(reading.cpu_percent)
        self.temp.push(max(0, int(reading.temp_c)))
        self.ram.push(reading.ram)
        self.cma.push(reading.cma)
