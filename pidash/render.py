"""Quantize a history window into rows of discrete glyph levels.

A graph is ``height`` rows tall and one column per history point. Row ``r``
(0 = top) of a column is filled when the point's value reaches
``((height - r) * ceiling) // height``, which gives a bottom-anchored bar
quantized into ``height`` levels.

The ceiling is either one fixed scale for the whole window (CPU percent,
temperature) or each point's own ``total`` (stacked memory graphs), and a
point carries one layer (a plain number) or two (a CompositePoint).
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import IntEnum

from pidash.history import CompositePoint

DEFAULT_HEIGHT = 4


class Level(IntEnum):
    BLANK = 0
    BACKGROUND = 1
    SECONDARY = 2
    PRIMARY = 3


GLYPHS: dict[Level, str] = {
    Level.BLANK: " ",
    Level.BACKGROUND: "░",
    Level.SECONDARY: "▓",
    Level.PRIMARY: "█",
}

Point = int | float | CompositePoint


def _layers(point: Point) -> tuple[float, ...]:
    if isinstance(point, CompositePoint):
        return (point.val1, point.val2)
    return (point,)


def _ceiling(point: Point, max_val: float | None) -> float:
    if max_val is not None:
        return max_val
    if not isinstance(point, CompositePoint):
        raise TypeError("a per-point scale needs CompositePoint values")
    return max(point.total, 1)


def quantize(
    points: Iterable[Point],
    height: int = DEFAULT_HEIGHT,
    max_val: float | None = None,
) -> list[list[Level]]:
    """Return *height* rows (top first) of one Level per point.

    Args:
        points: History window, oldest first.
        height: Number of rows.
        max_val: Fixed scale for every point. None scales each
            CompositePoint against its own ``total``.

    Single-layer points render PRIMARY or BLANK. Two-layer points render
    PRIMARY where ``val1`` reaches the threshold, else SECONDARY where
    ``val2`` does, else BACKGROUND.
    """
    if height < 1:
        raise ValueError(f"graph height must be >= 1, got {height}")
    columns = [(_layers(p), _ceiling(p, max_val)) for p in points]
    rows: list[list[Level]] = []
    for row in range(height):
        cells: list[Level] = []
        for layers, ceiling in columns:
            threshold = ((height - row) * ceiling) // height
            if layers[0] >= threshold:
                cells.append(Level.PRIMARY)
            elif len(layers) > 1 and layers[1] >= threshold:
                cells.append(Level.SECONDARY)
            else:
                cells.append(Level.BACKGROUND if len(layers) > 1 else Level.BLANK)
        rows.append(cells)
    return rows
