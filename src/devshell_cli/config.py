# DevShell™ — Declarative Reproducible Development Environments
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Filesystem discovery and defaults loading for DevShell.

Handles:
- Data root resolution (DEVSHELL_DATA_HOME, ~/.local/share)
- Descriptor discovery by walking up from the cwd
- Packaged YAML defaults loading (devshell_cli/defaults/*.yaml)
- Package index table loading (--index FILE)
- ANSI coloring constants
"""

from __future__ import annotations

import os
from importlib import resources as importlib_resources
from pathlib import Path
from typing import Any

import yaml

# -----------------------
# UI constants
# -----------------------

ANSI_COLORS: dict[str, str] = {
    "cyan": "\033[38;5;69;1m",
    "yellow": "\033[38;5;226;1m",
    "reset": "\033[0m",
    "dim": "\033[2m",
    "green": "\033[32m",
    "red": "\033[31m",
}

TAG_COLORS: dict[str, str] = {
    "OK": "green",
    "ERR": "red",
    "WARN": "yellow",
    "INFO": "cyan",
}

DEFAULT_DESCRIPTOR_NAMES = ("devshell.yaml", "devshell.yml")
DEFAULT_STORE_ROOT = "/nix/store"


# -----------------------
# Config model wrapper
# -----------------------


class YAMLConfig:
    """Simple config wrapper that implements ConfigModel protocol."""

    def __init__(self, config_dict: dict[str, Any]):
        self._config = config_dict

    @property
    def discovery(self) -> dict[str, Any]:
        return self._config.get("discovery", {})

    @property
    def emit(self) -> dict[str, Any]:
        return self._config.get("emit", {})

    @property
    def index(self) -> dict[str, Any]:
        return self._config.get("index", {})

    @property
    def descriptor_names(self) -> tuple[str, ...]:
        names = self.discovery.get("filenames")
        if not names:
            return DEFAULT_DESCRIPTOR_NAMES
        return tuple(str(n) for n in names)

    @property
    def default_shell(self) -> str:
        return str(self.emit.get("default_shell") or "bash")

    @property
    def store_root(self) -> str:
        """DEVSHELL_STORE_ROOT wins over the packaged default."""
        env_root = os.getenv("DEVSHELL_STORE_ROOT")
        if env_root:
            return env_root
        return str(self.index.get("store_root") or DEFAULT_STORE_ROOT)

    def get_path(self, path: str, default: Any = None) -> Any:
        """
        Nested lookup using dot-separated path.
        Example: get_path("ui.colors.err", "red")
        """
        if not path:
            return default

        cur: Any = self._config
        for part in path.split("."):
            if not isinstance(cur, dict):
                return default
            if part not in cur:
                return default
            cur = cur[part]
        return cur


# -----------------------
# Data root + discovery
# -----------------------


def get_data_root() -> Path:
    """Get the data root directory for DevShell.

    Resolution order:
    1. DEVSHELL_DATA_HOME environment variable (if set)
    2. ~/.local/share (default, XDG_DATA_HOME is ignored)
    """
    data_home = os.getenv("DEVSHELL_DATA_HOME")
    if data_home:
        root = Path(data_home)
    else:
        root = Path.home() / ".local" / "share"

    root.mkdir(parents=True, exist_ok=True)
    return root


def crash_log_path(data_root: Path) -> Path:
    """<data_root>/devshell/logs/crash.log"""
    return data_root / "devshell" / "logs" / "crash.log"


def find_descriptor(
    cwd: Path, names: tuple[str, ...] = DEFAULT_DESCRIPTOR_NAMES
) -> Path | None:
    """Walk up from cwd and return the first descriptor file found."""
    current = cwd.resolve()

    while True:
        for name in names:
            candidate = current / name
            if candidate.is_file():
                return candidate

        parent = current.parent
        if parent == current:
            return None

        current = parent


def load_index_table(path: Path) -> dict[str, dict[str, str]]:
    """Load a package index table: ``{input: {package: prefix}}``.

    Raises ValueError when the file does not have that shape.
    """
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Index file {path} must load to a mapping/dict.")

    table: dict[str, dict[str, str]] = {}
    for input_name, entries in data.items():
        if not isinstance(entries, dict):
            raise ValueError(
                f"Index file {path}: layer '{input_name}' must be a mapping."
            )
        table[str(input_name)] = {
            str(name): str(prefix) for name, prefix in entries.items()
        }
    return table


# -----------------------
# Packaged defaults loading
# -----------------------


def _defaults_dir() -> Path:
    """Return the installed path to packaged defaults directory."""
    return Path(
        importlib_resources.files("devshell_cli.defaults")
    )  # type: ignore[arg-type]


def load_defaults_yaml(filename: str) -> dict[str, Any]:
    """
    Load a YAML file from devshell_cli/defaults/.
    """
    defaults_dir = _defaults_dir()
    path = defaults_dir / filename
    if not path.exists():
        raise FileNotFoundError(
            f"Missing defaults YAML: {filename} "
            f"(looked in {defaults_dir})"
        )

    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(
            f"Defaults YAML {filename} must load to a mapping/dict."
        )
    return data


def load_system_config() -> YAMLConfig:
    """
    Load system.yaml from packaged defaults and return a YAMLConfig wrapper.
    """
    return YAMLConfig(load_defaults_yaml("system.yaml"))


def load_template() -> str:
    """Return the raw text of the starter descriptor used by ``init``."""
    path = _defaults_dir() / "template.yaml"
    return path.read_text(encoding="utf-8")
