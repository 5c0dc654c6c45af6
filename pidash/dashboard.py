"""Full-screen terminal dashboard for a Raspberry Pi class host.

Shows CPU and SoC temperature history graphs, stacked RAM and CMA graphs,
hardware health, DMA-buf usage by category, network throughput, running
stream processes and the tail of a systemd unit's journal, using curses.

Usage:
    uv run pidash
    uv run pidash --interval 500 --log-lines 20 --unit camera.service
"""

from __future__ import annotations

import argparse
import curses
import logging
import time
from functools import partial
from pathlib import Path
from typing import Any

from pidash.config import dump_default_config, load_config, validate_config
from pidash.control import DashboardConfig, DashboardState, run
from pidash.history import Histories
from pidash.render import GLYPHS, Level, quantize
from pidash.sampler import Sampler, top_categories
from pidash.source import MetricSource

VERSION = "23.0"

MIN_COLS = 40

# Curses colour-pair IDs
C_TEXT = 1
C_TITLE = 2
C_HEADING = 3
C_DIM = 4
C_GREEN = 5
C_RED = 6
C_BLUE = 7
C_CYAN = 8
C_MAGENTA = 9
C_DARK_MAGENTA = 10

# Metric → (primary layer colour, secondary layer colour)
GRAPH_COLORS: dict[str, tuple[int, int]] = {
    "cpu": (C_GREEN, C_GREEN),
    "temp": (C_RED, C_RED),
    "ram": (C_BLUE, C_CYAN),
    "cma": (C_MAGENTA, C_DARK_MAGENTA),
}


# ── Colour helpers ─────────────────────────────────────────────────────────


def _init_colors() -> None:
    curses.start_color()
    curses.use_default_colors()
    wide = curses.COLORS >= 256
    curses.init_pair(C_TEXT, curses.COLOR_WHITE, -1)
    curses.init_pair(C_TITLE, curses.COLOR_CYAN, -1)
    curses.init_pair(C_HEADING, curses.COLOR_YELLOW, -1)
    curses.init_pair(C_DIM, 240 if wide else curses.COLOR_WHITE, -1)
    curses.init_pair(C_GREEN, curses.COLOR_GREEN, -1)
    curses.init_pair(C_RED, curses.COLOR_RED, -1)
    curses.init_pair(C_BLUE, curses.COLOR_BLUE, -1)
    curses.init_pair(C_CYAN, curses.COLOR_CYAN, -1)
    curses.init_pair(C_MAGENTA, curses.COLOR_MAGENTA, -1)
    curses.init_pair(C_DARK_MAGENTA, 90 if wide else curses.COLOR_MAGENTA, -1)


def _attr(state: DashboardState, pair: int, extra: int = 0) -> int:
    if state.config.color_mode == "mono":
        return extra
    return curses.color_pair(pair) | extra


# ── Formatting helpers ─────────────────────────────────────────────────────


def fmt_uptime(seconds: float) -> str:
    minutes = int(seconds // 60)
    days, rem = divmod(minutes, 1440)
    hours, mins = divmod(rem, 60)
    if days:
        return f"{days}d {hours}h {mins}m"
    if hours:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def fit_tail(line: str, width: int) -> str:
    """Keep the last *width* characters of *line*."""
    if width <= 0:
        return ""
    return line[-width:] if len(line) > width else line


# ── Curses drawing primitives ──────────────────────────────────────────────


def _safe(win: curses.window, *args: Any) -> None:
    """addstr wrapper that swallows out-of-bounds errors."""
    try:
        win.addstr(*args)
    except curses.error:
        pass


def _draw_graph(
    win: curses.window,
    y: int,
    x: int,
    rows: list[list[Level]],
    metric: str,
    state: DashboardState,
) -> None:
    primary, secondary = GRAPH_COLORS[metric]
    pairs = {
        Level.PRIMARY: primary,
        Level.SECONDARY: secondary,
        Level.BACKGROUND: C_DIM,
        Level.BLANK: C_TEXT,
    }
    for r, cells in enumerate(rows):
        for c, level in enumerate(cells):
            _safe(win, y + r, x + c, GLYPHS[level], _attr(state, pairs[level]))


def _rule(win: curses.window, y: int, cols: int, state: DashboardState) -> None:
    _safe(win, y, 0, "-" * (cols - 1), _attr(state, C_DIM))


# ── Frame ──────────────────────────────────────────────────────────────────


def draw_frame(win: curses.window, state: DashboardState, config: dict[str, Any]) -> None:
    """Draw one complete frame from the latest reading and histories."""
    height: int = config["history"]["height"]
    scales: dict[str, int] = config["scales"]
    r = state.reading
    h = state.histories
    rows, cols = win.getmaxyx()
    mid_x = max(cols // 2, 55)
    log_y = 16 + 2 * height

    win.erase()
    if cols < MIN_COLS or rows < log_y + 2:
        _safe(win, 0, 0, f"Terminal too small (need {MIN_COLS}x{log_y + 2}+)")
        win.refresh()
        return

    heading = _attr(state, C_HEADING, curses.A_BOLD)
    text = _attr(state, C_TEXT)

    # Header
    ts = time.strftime("%H:%M:%S")
    _safe(win, 0, 0, f"=== PI DASHBOARD === {ts} (v{VERSION})", _attr(state, C_TITLE, curses.A_BOLD))
    _safe(win, 1, 0, f"Uptime: {fmt_uptime(r.uptime_s)} | Load: {r.load}", text)
    _rule(win, 2, cols, state)

    # CPU / temperature
    _safe(win, 3, 0, "CPU HISTORY", heading)
    _safe(win, 3, mid_x, "TEMP HISTORY", heading)
    _draw_graph(win, 4, 0, quantize(h.cpu, height, scales["cpu"]), "cpu", state)
    _draw_graph(win, 4, mid_x, quantize(h.temp, height, scales["temp"]), "temp", state)
    y = 4 + height
    _safe(win, y, 0, f"Usage: {r.cpu_percent}% (Peak: {r.cpu_peak}%)", text)
    _safe(win, y, mid_x, f"Temp: {r.temp_c:.1f}°C (Peak: {r.temp_peak:.1f}°C)", text)

    # RAM / CMA
    y += 2
    _safe(win, y, 0, "RAM (App/Cache/Tot)", heading)
    _safe(win, y, mid_x, "CMA (Act/Res/Tot)", heading)
    _draw_graph(win, y + 1, 0, quantize(h.ram, height), "ram", state)
    _draw_graph(win, y + 1, mid_x, quantize(h.cma, height), "cma", state)
    y += 1 + height
    _safe(
        win, y, 0,
        f"{r.mem_app_kb // 1024}/{r.mem_cached_kb // 1024}/{r.mem_total_kb // 1024} MB",
        text,
    )
    _safe(
        win, y, mid_x,
        f"{r.dma_active // 1024 // 1024}/{r.cma_reserved_kb // 1024}/{r.cma_total_kb // 1024} MB",
        text,
    )

    # Hardware & DMA-buf
    y += 2
    _safe(win, y, 0, "[HARDWARE & HEALTH]", heading)
    _safe(win, y, mid_x, "[DMA-BUFFER DETAILS]", heading)
    _safe(win, y + 1, 0, f"Volt: {r.volts:<7} | H264: {r.h264_mhz}MHz", text)
    _safe(win, y + 2, 0, f"Net Errs/s: {r.net_errs:<3} | Throttled: ", text)
    if r.throttled == "0x0":
        _safe(win, "None", _attr(state, C_GREEN))
    else:
        _safe(win, r.throttled or "n/a", _attr(state, C_RED))
    for i, (name, total) in enumerate(top_categories(r.dma_categories)):
        _safe(
            win, y + 1 + i, mid_x,
            f"{name:<12} | {total.size / 1024 / 1024:>7.1f}MB | #{total.count}",
            text,
        )

    # Network
    y += 4
    _rule(win, y, cols, state)
    _safe(win, y + 1, 0, f"Net: {r.net_kbps:>5} kbps Out", _attr(state, C_CYAN))
    _safe(win, " | ", text)
    _safe(win, f"Stream: {', '.join(r.streams)}", _attr(state, C_CYAN))
    _rule(win, y + 2, cols, state)

    # Log tail
    _safe(
        win, log_y, 0,
        f"[SYSTEMD LOG: {config['log_unit']} ({state.config.log_lines} lines)]",
        heading,
    )
    for i, line in enumerate(r.log):
        ly = log_y + 1 + i
        if ly >= rows - 1:
            break
        _safe(win, ly, 0, fit_tail(line, cols - 1), text)
        win.clrtoeol()

    # Footer
    footer = (
        f"Controls: [+/-] Speed ({state.config.speed_label}) | "
        f"[c] Color ({state.config.color_mode}) | "
        f"[,/.] Logs ({state.config.log_lines}) | [q] Exit"
    )
    _safe(win, rows - 1, 0, footer[: cols - 1], _attr(state, C_DIM))
    win.refresh()


# ── Main loop ──────────────────────────────────────────────────────────────


def _poll_key(win: curses.window, timeout_ms: int) -> str | None:
    """Wait up to *timeout_ms* for one key press."""
    win.timeout(timeout_ms)
    key = win.getch()
    if key == curses.KEY_RESIZE:
        win.clear()
        return None
    if 0 <= key < 256:
        return chr(key)
    return None


def _dashboard_loop(stdscr: curses.window, config: dict[str, Any]) -> None:
    _init_colors()
    curses.curs_set(0)

    state = DashboardState(
        config=DashboardConfig.from_config(config),
        sampler=Sampler(config),
        histories=Histories(config["history"]["width"]),
    )
    run(
        state,
        MetricSource(),
        draw=partial(draw_frame, stdscr, config=config),
        poll=partial(_poll_key, stdscr),
        clear=stdscr.clear,
    )


# ── CLI entry point ────────────────────────────────────────────────────────


def _configure_logging(path: Path | None, level: str) -> None:
    # The terminal belongs to curses, so records only go to an explicit file
    if path is None:
        logging.getLogger("pidash").addHandler(logging.NullHandler())
        return
    logging.basicConfig(
        filename=path,
        level=level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Live terminal dashboard for Raspberry Pi class hosts.",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=None,
        metavar="MS",
        help="Milliseconds between refreshes, 100-5000 (default: 1000)",
    )
    parser.add_argument(
        "--log-lines",
        type=int,
        default=None,
        metavar="N",
        help="Journal lines to show (default: 10)",
    )
    parser.add_argument(
        "--unit",
        default=None,
        help="systemd unit whose journal is shown (default: stream.service)",
    )
    parser.add_argument(
        "--mono",
        action="store_true",
        help="Start in monochrome mode",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="PATH",
        help="Path to TOML config file",
    )
    parser.add_argument(
        "--dump-config",
        action="store_true",
        help="Print the default configuration as TOML and exit",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        metavar="PATH",
        help="Write diagnostic logs to PATH",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Level for --log-file (default: info)",
    )
    args = parser.parse_args()

    if args.dump_config:
        print(dump_default_config(), end="")
        return

    config = load_config(args.config)
    validate_config(config)
    if args.interval is not None:
        config["interval_ms"] = args.interval
    if args.log_lines is not None:
        config["log_lines"] = args.log_lines
    if args.unit is not None:
        config["log_unit"] = args.unit
    if args.mono:
        config["color_mode"] = "mono"

    _configure_logging(args.log_file, args.log_level)
    try:
        curses.wrapper(_dashboard_loop, config)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
