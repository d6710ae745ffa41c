# DevShell™ — Declarative Reproducible Development Environments
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
In-memory descriptor model.

All types are frozen dataclasses holding tuples, so a loaded descriptor can
be shared freely between the resolver and the emitter without copying.
"""

from __future__ import annotations

from dataclasses import dataclass

# Subdirectories used by the path-aggregate shorthands.
AGGREGATE_SUBDIRS: dict[str, str] = {
    "library_path": "lib",
    "bin_path": "bin",
    "pkg_config_path": "lib/pkgconfig",
}


@dataclass(frozen=True)
class Input:
    """A declared source of packages (channel or overlay)."""

    name: str
    url: str = ""


@dataclass(frozen=True)
class PackageRef:
    """A package to make available, optionally pinned to an input/version."""

    name: str
    input: str | None = None
    version: str | None = None

    def __str__(self) -> str:
        text = self.name
        if self.input:
            text = f"{self.input}#{text}"
        if self.version:
            text = f"{text}@{self.version}"
        return text


@dataclass(frozen=True)
class LiteralValue:
    text: str


@dataclass(frozen=True)
class PathAggregate:
    """Join of ``<prefix>/<subdir>`` for each named package."""

    packages: tuple[str, ...]
    subdir: str = "lib"


@dataclass(frozen=True)
class VarRef:
    """Value of another variable of the same descriptor."""

    key: str


EnvValue = LiteralValue | PathAggregate | VarRef


@dataclass(frozen=True)
class EnvVar:
    key: str
    value: EnvValue


@dataclass(frozen=True)
class Alias:
    name: str
    command: str


@dataclass(frozen=True)
class EnvironmentDescriptor:
    """Parsed form of a descriptor document.

    ``env`` keeps every declaration in document order, duplicates included;
    collapsing them (last-write-wins) is the resolver's job.
    """

    source: str = "<memory>"
    description: str = ""
    inputs: tuple[Input, ...] = ()
    channel: str | None = None
    overlays: tuple[str, ...] = ()
    systems: tuple[str, ...] = ()
    packages: tuple[PackageRef, ...] = ()
    native_packages: tuple[PackageRef, ...] = ()
    env: tuple[EnvVar, ...] = ()
    aliases: tuple[Alias, ...] = ()
    shell_hook: str = ""

    @property
    def input_names(self) -> tuple[str, ...]:
        return tuple(i.name for i in self.inputs)

    @property
    def all_packages(self) -> tuple[PackageRef, ...]:
        """Build packages followed by native packages, in declared order."""
        return self.packages + self.native_packages

    def find_package(self, name: str) -> PackageRef | None:
        for ref in self.all_packages:
            if ref.name == name:
                return ref
        return None

    def alias_map(self) -> dict[str, str]:
        return {a.name: a.command for a in self.aliases}
