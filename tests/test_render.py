"""Tests for the graph quantizer in pidash.render."""

from __future__ import annotations

import pytest

from pidash.history import CompositePoint, HistoryWindow
from pidash.render import GLYPHS, Level, quantize

P, S, G, B = Level.PRIMARY, Level.SECONDARY, Level.BACKGROUND, Level.BLANK


def _filled(rows: list[list[Level]], column: int) -> int:
    return sum(1 for cells in rows if cells[column] in (P, S))


# ── Simple graphs ──────────────────────────────────────────────────────────


class TestSimpleGraph:
    def test_worked_example(self) -> None:
        # thresholds top→bottom: 100, 75, 50, 25; 10 stays under the lowest
        rows = quantize([10, 40, 70, 100], height=4, max_val=100)
        assert rows == [
            [B, B, B, P],
            [B, B, B, P],
            [B, B, P, P],
            [B, P, P, P],
        ]

    def test_below_lowest_threshold_fills_nothing(self) -> None:
        rows = quantize([0], height=4, max_val=100)
        assert _filled(rows, 0) == 0

    def test_over_scale_fills_every_row(self) -> None:
        rows = quantize([250], height=4, max_val=100)
        assert _filled(rows, 0) == 4

    def test_integer_thresholds_truncate(self) -> None:
        # thresholds 80, 60, 40, 20
        rows = quantize([60], height=4, max_val=80)
        assert _filled(rows, 0) == 3
        rows = quantize([5], height=3, max_val=7)
        # thresholds 7, 4, 2
        assert [cells[0] for cells in rows] == [B, P, P]

    def test_ties_render_identically(self) -> None:
        rows = quantize([50, 50], height=4, max_val=100)
        assert all(cells[0] == cells[1] for cells in rows)

    def test_monotonic(self) -> None:
        counts = [_filled(quantize([v], height=4, max_val=100), 0) for v in range(0, 130, 5)]
        assert counts == sorted(counts)

    def test_idempotent(self) -> None:
        w: HistoryWindow[int] = HistoryWindow(6, 0)
        for v in (3, 90, 41, 77):
            w.push(v)
        assert quantize(w, 4, 100) == quantize(w, 4, 100)

    def test_width_matches_window(self) -> None:
        w: HistoryWindow[int] = HistoryWindow(42, 0)
        rows = quantize(w, height=4, max_val=100)
        assert len(rows) == 4
        assert all(len(cells) == 42 for cells in rows)

    def test_rejects_zero_height(self) -> None:
        with pytest.raises(ValueError):
            quantize([1], height=0, max_val=10)


# ── Stacked graphs ─────────────────────────────────────────────────────────


class TestStackedGraph:
    def test_layers(self) -> None:
        # thresholds for total 100: 100, 75, 50, 25
        rows = quantize([CompositePoint(30, 80, 100)], height=4)
        assert [cells[0] for cells in rows] == [G, S, S, P]

    def test_primary_wins_regardless_of_secondary(self) -> None:
        rows = quantize([CompositePoint(100, 0, 100)], height=4)
        assert [cells[0] for cells in rows] == [P, P, P, P]

    def test_empty_point_is_background(self) -> None:
        rows = quantize([CompositePoint(0, 0, 100)], height=4)
        assert [cells[0] for cells in rows] == [G, G, G, G]

    def test_per_point_ceiling(self) -> None:
        rows = quantize(
            [CompositePoint(50, 50, 100), CompositePoint(50, 50, 200)], height=4
        )
        assert _filled(rows, 0) == 2
        # 50 of 200: only the 50 threshold row (bottom) fills
        assert _filled(rows, 1) == 1

    def test_zero_total_treated_as_one(self) -> None:
        rows = quantize([CompositePoint(0, 0, 0)], height=4)
        # ceiling 1 → thresholds 1, 0, 0, 0
        assert [cells[0] for cells in rows] == [G, P, P, P]

    def test_fixed_scale_overrides_total(self) -> None:
        rows = quantize([CompositePoint(50, 50, 1000)], height=4, max_val=100)
        assert _filled(rows, 0) == 2

    def test_plain_values_need_a_fixed_scale(self) -> None:
        with pytest.raises(TypeError):
            quantize([10], height=4)


def test_glyphs() -> None:
    assert [GLYPHS[level] for level in Level] == [" ", "░", "▓", "█"]
