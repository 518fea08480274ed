# SPDX-License-Identifier: GPL-3.0-or-later
"""
goal: configuration loader for the inventory run and the report dashboard. loads settings from
      data/config.json and SURFACESCAN_* environment variables, with sensible defaults. handles
      PyInstaller frozen executables by detecting the base directory correctly. returns a frozen
      Config dataclass.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "SURFACESCAN_"

DEFAULT_SCAN_ROOTS = [
    "C:\\Tools",
    "C:\\ProgramData",
    "C:\\Users\\Public",
]


# figure out where the app is running from (handles PyInstaller bundles)
def _resolve_base_dir() -> Path:
    import sys

    # if we are frozen (PyInstaller), use the executable's directory
    if getattr(sys, "frozen", False):
        return Path(sys.executable).parent
    # otherwise, go up one level from this file (dashboard/config.py -> project root)
    return Path(__file__).resolve().parents[1]


# frozen dataclass to hold all config values (immutable once created)
@dataclass(frozen=True)
class Config:
    base_dir: Path  # root directory of the project
    facts_path: Path  # raw facts JSON written by external collectors
    output_path: Path  # where the inventory document is written
    scan_roots: tuple[str, ...]  # directories the filesystem collector walks
    hash_max_mb: float  # skip hashing files bigger than this
    workers: int  # threads used to classify facts (1 = inline)
    host: str  # dashboard host address
    port: int  # dashboard port number
    log_level: str  # root logging level name
    max_entries: int  # cap on entries returned by one dashboard call


# coerce a raw env / JSON value to the type of its default, falling back to the default
def _coerce(value, default):
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int):
        try:
            return int(value)
        except (TypeError, ValueError):
            return default
    if isinstance(default, float):
        try:
            return float(value)
        except (TypeError, ValueError):
            return default
    if isinstance(default, list):
        # lists come in as "a;b;c" (";" because Windows paths contain ":")
        if isinstance(value, str):
            return [part.strip() for part in value.split(";") if part.strip()]
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        return default
    if isinstance(default, str):
        return value if isinstance(value, str) else default
    return value


# get a config value with priority: environment variable > JSON file > default
def _get(obj: dict, key: str, default):
    env = os.getenv(f"{ENV_PREFIX}{key.upper()}")
    if env is not None:
        return _coerce(env, default)
    if key not in obj:
        return default
    # JSON values go through the same coercion, a bad value never reaches the caller
    return _coerce(obj[key], default)


def _resolve(base: Path, value: str) -> Path:
    p = Path(value)
    return p if p.is_absolute() else base / p


# load configuration from JSON file and environment variables
def load_config() -> Config:
    # base directory can be overridden by env var, otherwise auto-detect
    base = Path(os.getenv(f"{ENV_PREFIX}BASE_DIR") or _resolve_base_dir())
    cfg_file = base / "data" / "config.json"
    obj = {}
    if cfg_file.exists():
        try:
            obj = json.loads(cfg_file.read_text(encoding="utf-8") or "{}")
        except (json.JSONDecodeError, OSError):
            # if JSON is broken, just use empty dict (all defaults)
            obj = {}
        if not isinstance(obj, dict):
            obj = {}

    roots = _get(obj, "scan_roots", list(DEFAULT_SCAN_ROOTS))

    return Config(
        base_dir=base,
        facts_path=_resolve(base, _get(obj, "facts_path", "data/raw_facts.json")),
        output_path=_resolve(base, _get(obj, "output_path", "inventory.json")),
        scan_roots=tuple(str(r) for r in roots),
        hash_max_mb=_get(obj, "hash_max_mb", 64.0),
        workers=max(1, _get(obj, "workers", 1)),
        host=_get(obj, "host", "127.0.0.1"),
        port=_get(obj, "port", 8766),
        log_level=_get(obj, "log_level", "ERROR").upper(),
        max_entries=_get(obj, "max_entries", 5000),
    )
