"""Relay server configuration.

Values come from constructor arguments (CLI options) or the environment:

    FIGMA_BRIDGE_HOST            relay bind host (default 127.0.0.1)
    FIGMA_BRIDGE_PORT            relay port (default 3055)
    FIGMA_BRIDGE_EXPORT_DIR      directory for exported SVG files (default cwd)
    FIGMA_BRIDGE_EXPORT_WORKERS  export worker threads (default 4)

Gateway (client-side) settings live in sdk/config.py.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .export import DEFAULT_EXPORT_WORKERS

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3055


def env_int(name: str, default: int) -> int:
    """Read an integer environment variable, falling back to `default`."""
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {value!r}") from e


def env_float(name: str, default: float) -> float:
    """Read a numeric environment variable, falling back to `default`."""
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {value!r}") from e


@dataclass
class RelayConfig:
    """Relay server settings."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    export_dir: str | None = None
    export_workers: int = DEFAULT_EXPORT_WORKERS

    @classmethod
    def from_env(cls) -> RelayConfig:
        """Build from FIGMA_BRIDGE_* environment variables."""
        return cls(
            host=os.environ.get("FIGMA_BRIDGE_HOST") or DEFAULT_HOST,
            port=env_int("FIGMA_BRIDGE_PORT", DEFAULT_PORT),
            export_dir=os.environ.get("FIGMA_BRIDGE_EXPORT_DIR") or None,
            export_workers=env_int("FIGMA_BRIDGE_EXPORT_WORKERS", DEFAULT_EXPORT_WORKERS),
        )
