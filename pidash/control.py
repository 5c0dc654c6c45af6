"""Interactive control: run-time parameters, key handling and the tick loop.

The loop is single-threaded. Each tick samples, updates histories, draws a
frame, then blocks for at most ``interval_ms`` waiting for one key. The key
wait is the only suspension point.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from pidash.history import Histories
from pidash.sampler import Reading, Sampler
from pidash.source import MetricSource

logger = logging.getLogger(__name__)

MIN_INTERVAL_MS = 100
MAX_INTERVAL_MS = 5000
INTERVAL_STEP_MS = 100
MIN_LOG_LINES = 1

COLOR_MODES = ("color", "mono")


@dataclass(frozen=True)
class DashboardConfig:
    """Parameters the user can change while the dashboard runs.

    Out-of-range values are clamped rather than rejected.
    """

    interval_ms: int = 1000
    log_lines: int = 10
    color_mode: str = "color"

    def __post_init__(self) -> None:
        interval = min(max(int(self.interval_ms), MIN_INTERVAL_MS), MAX_INTERVAL_MS)
        object.__setattr__(self, "interval_ms", interval)
        object.__setattr__(self, "log_lines", max(int(self.log_lines), MIN_LOG_LINES))
        if self.color_mode not in COLOR_MODES:
            object.__setattr__(self, "color_mode", COLOR_MODES[0])

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> DashboardConfig:
        return cls(
            interval_ms=config["interval_ms"],
            log_lines=config["log_lines"],
            color_mode=config["color_mode"],
        )

    @property
    def speed_label(self) -> str:
        if self.interval_ms < 1000:
            return f"{self.interval_ms}ms"
        return f"{self.interval_ms // 1000}s"


class Phase(Enum):
    RUNNING = "running"
    EXITING = "exiting"


@dataclass(frozen=True)
class Transition:
    config: DashboardConfig
    phase: Phase = Phase.RUNNING
    clear_screen: bool = False


def apply_key(config: DashboardConfig, key: str | None) -> Transition:
    """Apply one key press to *config*.

    ``+``/``-`` change the refresh interval, ``.``/``,`` the log line count
    (requesting a full-screen clear), ``c`` cycles the color mode and ``q``
    exits. Any other key, or no key at all, leaves everything unchanged.
    """
    if key in ("q", "Q"):
        return Transition(config, Phase.EXITING)
    if key == "+":
        return Transition(replace(config, interval_ms=config.interval_ms - INTERVAL_STEP_MS))
    if key == "-":
        return Transition(replace(config, interval_ms=config.interval_ms + INTERVAL_STEP_MS))
    if key == ".":
        return Transition(replace(config, log_lines=config.log_lines + 1), clear_screen=True)
    if key == ",":
        if config.log_lines <= MIN_LOG_LINES:
            return Transition(config)
        return Transition(replace(config, log_lines=config.log_lines - 1), clear_screen=True)
    if key == "c":
        idx = COLOR_MODES.index(config.color_mode)
        return Transition(replace(config, color_mode=COLOR_MODES[(idx + 1) % len(COLOR_MODES)]))
    return Transition(config)


@dataclass
class DashboardState:
    """All mutable run state, owned by the loop."""

    config: DashboardConfig
    sampler: Sampler
    histories: Histories
    reading: Reading = field(default_factory=Reading)
    phase: Phase = Phase.RUNNING


DrawFn = Callable[[DashboardState], None]
PollFn = Callable[[int], "str | None"]


def tick(
    state: DashboardState, source: MetricSource, draw: DrawFn, poll: PollFn
) -> Transition:
    """One sample → update → draw → wait cycle. Returns the key transition."""
    state.reading = state.sampler.sample(source, state.config.log_lines)
    state.histories.push(state.reading)
    draw(state)
    key = poll(state.config.interval_ms)
    transition = apply_key(state.config, key)
    if transition.config != state.config:
        logger.info(
            "key %r: interval=%dms log_lines=%d color=%s",
            key,
            transition.config.interval_ms,
            transition.config.log_lines,
            transition.config.color_mode,
        )
    return transition


def run(
    state: DashboardState,
    source: MetricSource,
    draw: DrawFn,
    poll: PollFn,
    clear: Callable[[], None],
) -> None:
    """Tick until a quit key moves the loop to the exiting phase."""
    while state.phase is Phase.RUNNING:
        transition = tick(state, source, draw, poll)
        state.config = transition.config
        state.phase = transition.phase
        if transition.clear_screen:
            clear()
