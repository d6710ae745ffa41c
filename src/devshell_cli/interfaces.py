# DevShell™ — Declarative Reproducible Development Environments
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Protocol definitions for dependency injection.

These interfaces keep the resolver independent of where package prefixes
come from, and the kernel independent of how configuration is loaded.
"""

from __future__ import annotations

from typing import Any, Protocol

from .models import PackageRef


class IndexLayer(Protocol):
    """One layer of a package index (a channel or an overlay)."""

    @property
    def name(self) -> str:
        """Name of the input this layer represents."""
        ...

    def get(self, ref: PackageRef) -> str | None:
        """Return the install prefix for ref, or None if not provided."""
        ...


class PackageIndex(Protocol):
    """Protocol for package prefix lookup."""

    def lookup(self, ref: PackageRef) -> str:
        """Return the install prefix for ref.

        Raises:
            UnresolvedReferenceError: if no layer provides the package.
        """
        ...


class ConfigModel(Protocol):
    """Protocol for configuration access."""

    @property
    def descriptor_names(self) -> tuple[str, ...]:
        """File names probed during descriptor discovery."""
        ...

    @property
    def default_shell(self) -> str:
        """Dialect used when none is requested."""
        ...

    @property
    def store_root(self) -> str:
        """Root directory for store-derived package prefixes."""
        ...

    def get_path(self, path: str, default: Any = None) -> Any:
        """Nested dotted lookup."""
        ...
