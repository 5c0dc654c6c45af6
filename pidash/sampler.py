"""Turn raw metric text into one typed Reading per tick.

Counters exposed by the kernel are cumulative, so CPU utilization and
network throughput are computed as saturating deltas against the previous
tick. Everything else is an instantaneous value. Unparsable input never
aborts a tick: the affected value falls back to zero and sampling continues.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any

from pidash.history import NEUTRAL_COMPOSITE, CompositePoint
from pidash.source import MetricSource

logger = logging.getLogger(__name__)

# ── Sources ────────────────────────────────────────────────────────────────

PROC_STAT = "/proc/stat"
PROC_LOADAVG = "/proc/loadavg"
PROC_MEMINFO = "/proc/meminfo"
PROC_NET_DEV = "/proc/net/dev"

# /proc/stat "cpu" line: fields 1..7 are cumulative jiffies, field 4 is idle
CPU_COUNTER_FIELDS = slice(1, 8)
CPU_IDLE_FIELD = 4

# /proc/net/dev row, after the interface name
NET_TX_BYTES_COLUMN = 9
NET_ERROR_COLUMNS = (2, 3)

OTHER_CATEGORY = "Sys/ISP"


# ── Data types ─────────────────────────────────────────────────────────────


@dataclass
class CounterState:
    """Previous cumulative (total, idle) jiffies."""

    prev_total: int = 0
    prev_idle: int = 0


@dataclass
class NetState:
    """Previous cumulative transmit bytes and error count."""

    prev_tx: int = 0
    prev_errs: int = 0


@dataclass
class CategoryTotal:
    size: int = 0
    count: int = 0


@dataclass
class Reading:
    """Everything sampled during one tick."""

    cpu_percent: int = 0
    cpu_peak: int = 0
    temp_c: float = 0.0
    temp_peak: float = 0.0
    load: str = ""
    uptime_s: float = 0.0
    ram: CompositePoint = NEUTRAL_COMPOSITE
    mem_app_kb: int = 0
    mem_cached_kb: int = 0
    mem_total_kb: int = 0
    cma: CompositePoint = NEUTRAL_COMPOSITE
    cma_reserved_kb: int = 0
    cma_total_kb: int = 0
    dma_active: int = 0  # bytes
    dma_categories: dict[str, CategoryTotal] = field(
        default_factory=lambda: dict[str, CategoryTotal]()
    )
    net_kbps: int = 0
    net_errs: int = 0
    volts: str = ""
    h264_mhz: int = 0
    throttled: str = ""
    streams: list[str] = field(default_factory=lambda: list[str]())
    log: list[str] = field(default_factory=lambda: list[str]())


class PeakTracker:
    """High-water mark per metric for the lifetime of the process."""

    def __init__(self) -> None:
        self._peaks: dict[str, float] = {}

    def observe(self, name: str, value: float) -> float:
        """Record *value* and return the (possibly raised) peak."""
        peak = self._peaks.get(name)
        if peak is None or value > peak:
            self._peaks[name] = value
            return value
        return peak


# ── Field helpers ──────────────────────────────────────────────────────────


def _int(text: str, base: int = 10) -> int:
    try:
        value = int(text, base)
    except ValueError:
        logger.debug("unparsable integer field %r", text)
        return 0
    return max(value, 0)


def _float(text: str) -> float:
    try:
        value = float(text)
    except ValueError:
        logger.debug("unparsable float field %r", text)
        return 0.0
    # float() also accepts nan, inf and overflowing literals
    if not math.isfinite(value):
        logger.debug("non-finite float field %r", text)
        return 0.0
    return value


def _sat_sub(a: int, b: int) -> int:
    return a - b if a > b else 0


def strip_reading(text: str, prefix: str, suffix: str = "") -> str:
    """Remove a vendor tool's ``key=`` prefix and unit suffix."""
    text = text.replace(prefix, "")
    if suffix:
        text = text.replace(suffix, "")
    return text.strip()


# ── CPU ────────────────────────────────────────────────────────────────────


def parse_cpu_counters(stat_text: str) -> tuple[int, int] | None:
    """Return (total, idle) jiffies from the aggregate line of /proc/stat.

    Returns None when the line is too short to hold an idle field.
    """
    lines = stat_text.splitlines()
    parts = lines[0].split() if lines else []
    if len(parts) <= CPU_IDLE_FIELD:
        return None
    total = sum(_int(p) for p in parts[CPU_COUNTER_FIELDS])
    idle = _int(parts[CPU_IDLE_FIELD])
    return total, idle


def cpu_utilization(state: CounterState, total: int, idle: int) -> int:
    """Interval-average busy percentage, updating *state* in place.

    Deltas saturate at zero so a counter reset reads as 0%, never negative.
    """
    d_total = _sat_sub(total, state.prev_total)
    d_idle = _sat_sub(idle, state.prev_idle)
    state.prev_total = total
    state.prev_idle = idle
    if d_total == 0:
        return 0
    # idle can outrun total when the counters are misread
    busy = _sat_sub(d_total, d_idle)
    return 100 * busy // d_total


# ── Network ────────────────────────────────────────────────────────────────


def parse_net_counters(netdev_text: str, interfaces: list[str]) -> tuple[int, int]:
    """Return (tx_bytes, errors) for the first row naming one of *interfaces*."""
    for line in netdev_text.splitlines():
        if any(name in line for name in interfaces):
            parts = line.split()
            if len(parts) > 10:
                tx = _int(parts[NET_TX_BYTES_COLUMN])
                errs = sum(_int(parts[i]) for i in NET_ERROR_COLUMNS)
                return tx, errs
            return 0, 0
    return 0, 0


def net_rate(state: NetState, tx: int, errs: int) -> tuple[int, int]:
    """Return (kbit per tick, new errors per tick), updating *state*.

    The byte delta is treated as one second's worth of traffic whatever the
    actual sampling interval is.
    """
    kbps = _sat_sub(tx, state.prev_tx) * 8 // 1024
    err_diff = _sat_sub(errs, state.prev_errs)
    state.prev_tx = tx
    state.prev_errs = errs
    return kbps, err_diff


# ── Memory ─────────────────────────────────────────────────────────────────


def parse_meminfo(text: str) -> dict[str, int]:
    """Parse ``Key: value [unit]`` lines; non-numeric values read as 0."""
    mem: dict[str, int] = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2:
            mem[parts[0].replace(":", "")] = _int(parts[1])
    return mem


def ram_breakdown(mem: dict[str, int]) -> tuple[int, int, int]:
    """Return (app, cached, total) kB. Cached includes buffers."""
    total = mem.get("MemTotal", 1)
    cached = mem.get("Cached", 0) + mem.get("Buffers", 0)
    app = _sat_sub(_sat_sub(total, mem.get("MemFree", 0)), cached)
    return app, cached, total


def cma_breakdown(mem: dict[str, int]) -> tuple[int, int]:
    """Return (reserved, total) kB of the contiguous memory allocator."""
    total = mem.get("CmaTotal", 1)
    return _sat_sub(total, mem.get("CmaFree", 0)), total


def parse_dma_bufinfo(
    text: str, categories: dict[str, str]
) -> tuple[int, dict[str, CategoryTotal]]:
    """Aggregate DMA-buf objects by category.

    Args:
        text: Output of ``/sys/kernel/debug/dma_buf/bufinfo``.
        categories: Substring → label. Rows matching none go to Sys/ISP.

    Returns:
        ``(active_bytes, {label: CategoryTotal})``. The active size comes
        straight from the ``Total`` summary row, not from the sum of rows.
    """
    active = 0
    totals: dict[str, CategoryTotal] = {}
    for line in text.splitlines():
        parts = line.split()
        is_total = "Total" in line
        if is_total and len(parts) >= 4:
            active = _int(parts[3])
        if len(parts) < 6 or is_total or line.startswith("size"):
            continue
        try:
            size = int(parts[0], 16)
        except ValueError:
            continue
        if size < 0:
            continue
        label = next(
            (name for needle, name in categories.items() if needle in line),
            OTHER_CATEGORY,
        )
        entry = totals.setdefault(label, CategoryTotal())
        entry.size += size
        entry.count += 1
    return active, totals


def top_categories(
    totals: dict[str, CategoryTotal], n: int = 3
) -> list[tuple[str, CategoryTotal]]:
    return sorted(totals.items(), key=lambda kv: kv[1].size, reverse=True)[:n]


# ── Vendor tools ───────────────────────────────────────────────────────────


def parse_temp(text: str) -> float:
    """``temp=48.3'C`` → 48.3"""
    return _float(strip_reading(text, "temp=", "'C"))


def parse_clock_mhz(text: str) -> int:
    """``frequency(28)=250000000`` → 250"""
    return _int(text.split("=")[-1].strip()) // 1_000_000


def tail_lines(text: str, n: int) -> list[str]:
    lines = text.splitlines()
    return lines[-n:] if n > 0 else []


# ── Sampler ────────────────────────────────────────────────────────────────


class Sampler:
    """Owns the rate state and peaks; produces one Reading per tick."""

    def __init__(self, config: dict[str, Any]) -> None:
        self.interfaces: list[str] = list(config["interfaces"])
        self.stream_processes: list[str] = list(config["stream_processes"])
        self.categories: dict[str, str] = dict(config["dma_categories"])
        self.log_unit: str = config["log_unit"]
        self.dma_path: str = config["dma_bufinfo"]
        self.dma_use_sudo: bool = bool(config["dma_use_sudo"])
        self.cpu_state = CounterState()
        self.net_state = NetState()
        self.peaks = PeakTracker()

    def _read_bufinfo(self, source: MetricSource) -> str:
        # debugfs is root-only on most images
        if self.dma_use_sudo:
            return source.run("sudo", "cat", self.dma_path)
        return source.read(self.dma_path)

    def sample(self, source: MetricSource, log_lines: int) -> Reading:
        r = Reading()

        # CPU
        counters = parse_cpu_counters(source.read(PROC_STAT))
        if counters is not None:
            r.cpu_percent = cpu_utilization(self.cpu_state, *counters)
        r.cpu_peak = int(self.peaks.observe("cpu", r.cpu_percent))

        # Temperature
        r.temp_c = parse_temp(source.run("vcgencmd", "measure_temp"))
        r.temp_peak = self.peaks.observe("temp", r.temp_c)

        # Memory
        mem = parse_meminfo(source.read(PROC_MEMINFO))
        app, cached, total = ram_breakdown(mem)
        r.mem_app_kb, r.mem_cached_kb, r.mem_total_kb = app, cached, total
        r.ram = CompositePoint(app, app + cached, total)

        # CMA / DMA-buf
        r.cma_reserved_kb, r.cma_total_kb = cma_breakdown(mem)
        r.dma_active, r.dma_categories = parse_dma_bufinfo(
            self._read_bufinfo(source), self.categories
        )
        r.cma = CompositePoint(r.dma_active // 1024, r.cma_reserved_kb, r.cma_total_kb)

        # Network
        tx, errs = parse_net_counters(source.read(PROC_NET_DEV), self.interfaces)
        r.net_kbps, r.net_errs = net_rate(self.net_state, tx, errs)

        # Hardware health
        r.volts = strip_reading(source.run("vcgencmd", "measure_volts", "core"), "volt=")
        r.h264_mhz = parse_clock_mhz(source.run("vcgencmd", "measure_clock", "h264"))
        r.throttled = strip_reading(source.run("vcgencmd", "get_throttled"), "throttled=")

        # Host status
        r.load = source.read(PROC_LOADAVG).strip()
        boot = source.boot_time()
        r.uptime_s = max(0.0, time.time() - boot) if boot else 0.0
        r.streams = source.processes(self.stream_processes)
        r.log = tail_lines(
            source.run(
                "journalctl", "-u", self.log_unit, "-n", str(log_lines), "--no-pager"
            ),
            log_lines,
        )
        return r
