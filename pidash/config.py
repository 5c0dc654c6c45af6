"""Configuration loading for pidash.

Loads settings from TOML config files with sensible defaults.
Search order: explicit --config path → ~/.config/pidash/config.toml → defaults only.
"""

from __future__ import annotations

import sys
import tomllib
from pathlib import Path
from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "interval_ms": 1000,
    "log_lines": 10,
    "color_mode": "color",
    "log_unit": "stream.service",
    "interfaces": ["wlan0", "eth0"],
    "stream_processes": ["rpicam-vid", "ffmpeg"],
    "dma_bufinfo": "/sys/kernel/debug/dma_buf/bufinfo",
    "dma_use_sudo": True,
    "history": {"width": 42, "height": 4},
    "scales": {"cpu": 100, "temp": 80},
    "dma_categories": {
        "vc_sm": "GPU Shared",
        "rpicam": "Camera App",
    },
}

_DEFAULT_PATH = Path.home() / ".config" / "pidash" / "config.toml"


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base. Nested dicts are merged at the first level only."""
    merged = dict(base)
    for key, value in overlay.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = {**merged[key], **value}
        else:
            merged[key] = value
    return merged


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Load configuration, merging user TOML over defaults.

    Args:
        path: Explicit config file path (from --config). If None, tries the
              default location ~/.config/pidash/config.toml.

    Returns:
        Merged configuration dict.

    Raises:
        SystemExit: If an explicit path doesn't exist or can't be parsed.
    """
    if path is not None:
        if not path.is_file():
            print(f"pidash: config file not found: {path}", file=sys.stderr)
            raise SystemExit(1)
        try:
            user_config = tomllib.loads(path.read_text(encoding="utf-8"))
        except tomllib.TOMLDecodeError as e:
            print(f"pidash: invalid TOML in {path}: {e}", file=sys.stderr)
            raise SystemExit(1) from e
        return _deep_merge(DEFAULT_CONFIG, user_config)

    if _DEFAULT_PATH.is_file():
        try:
            user_config = tomllib.loads(_DEFAULT_PATH.read_text(encoding="utf-8"))
            return _deep_merge(DEFAULT_CONFIG, user_config)
        except tomllib.TOMLDecodeError:
            print(
                f"pidash: warning: ignoring invalid TOML in {_DEFAULT_PATH}",
                file=sys.stderr,
            )

    return dict(DEFAULT_CONFIG)


def validate_config(config: dict[str, Any]) -> None:
    """Reject graph sizes that cannot be drawn.

    Raises:
        SystemExit: If [history] width or height is not a positive integer.
    """
    history = config.get("history")
    if not isinstance(history, dict):
        print(f"pidash: invalid [history]: {history!r} (must be a table)", file=sys.stderr)
        raise SystemExit(1)
    for key in ("width", "height"):
        value = history.get(key)
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            print(
                f"pidash: invalid [history] {key}: {value!r} (must be an integer >= 1)",
                file=sys.stderr,
            )
            raise SystemExit(1)


def _toml_list(items: list[str]) -> str:
    return "[" + ", ".join(f'"{item}"' for item in items) + "]"


def dump_default_config() -> str:
    """Return the default configuration as a TOML string."""
    lines = [
        "# pidash configuration",
        "# Place this file at ~/.config/pidash/config.toml",
        "",
        f"interval_ms = {DEFAULT_CONFIG['interval_ms']}",
        f"log_lines = {DEFAULT_CONFIG['log_lines']}",
        f'color_mode = "{DEFAULT_CONFIG["color_mode"]}"',
        f'log_unit = "{DEFAULT_CONFIG["log_unit"]}"',
        f"interfaces = {_toml_list(DEFAULT_CONFIG['interfaces'])}",
        f"stream_processes = {_toml_list(DEFAULT_CONFIG['stream_processes'])}",
        f'dma_bufinfo = "{DEFAULT_CONFIG["dma_bufinfo"]}"',
        f"dma_use_sudo = {str(DEFAULT_CONFIG['dma_use_sudo']).lower()}",
        "",
    ]

    for table in ("history", "scales"):
        lines.append(f"[{table}]")
        for key, value in DEFAULT_CONFIG[table].items():
            lines.append(f"{key} = {value}")
        lines.append("")

    # Substring of a bufinfo row → category label
    lines.append("[dma_categories]")
    for needle, label in DEFAULT_CONFIG["dma_categories"].items():
        lines.append(f'{needle} = "{label}"')

    return "\n".join(lines) + "\n"
