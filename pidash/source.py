"""Raw metric sources: pseudo-files, vendor utilities and the process table.

Every call is best-effort and happens once per tick. A failure of any kind
yields empty output (or a zero) instead of an exception; the sampler turns
that into a zero reading for the affected value only.
"""

from __future__ import annotations

import logging
import subprocess

import psutil

logger = logging.getLogger(__name__)


class MetricSource:
    """Synchronous, never-raising access to the host's metric text."""

    def read(self, path: str) -> str:
        """Return the contents of a /proc or /sys file, or "" if unreadable."""
        try:
            with open(path, encoding="utf-8", errors="replace") as f:
                return f.read()
        except OSError as e:
            logger.debug("read %s failed: %s", path, e)
            return ""

    def run(self, *argv: str) -> str:
        """Run a utility and return its stripped stdout.

        Missing binaries, OS errors and non-zero exit codes all give "".
        There is no timeout: a hung utility stalls the tick.
        """
        try:
            result = subprocess.run(
                list(argv),
                capture_output=True,
                text=True,
                errors="replace",
                check=False,
            )
        except OSError as e:
            logger.debug("%s failed: %s", argv[0], e)
            return ""
        if result.returncode != 0:
            logger.debug("%s exited with %d", argv[0], result.returncode)
            return ""
        return result.stdout.strip()

    def processes(self, names: list[str]) -> list[str]:
        """Names of running processes that exactly match one of *names*."""
        wanted = set(names)
        found: list[str] = []
        for proc in psutil.process_iter(["name"]):
            try:
                pname = proc.info["name"] or ""
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
            if pname in wanted:
                found.append(pname)
        return found

    def boot_time(self) -> float:
        try:
            return psutil.boot_time()
        except (OSError, RuntimeError) as e:
            logger.debug("boot time unavailable: %s", e)
            return 0.0
