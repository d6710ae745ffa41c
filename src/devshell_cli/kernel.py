# DevShell™ — Declarative Reproducible Development Environments
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
DevShell kernel.

Session engine wiring the pipeline together:
- descriptor discovery + loading
- index assembly (packaged store root or an injected index table)
- resolution for the target system
- emission for the target shell

Important boundary:
- Kernel does not load packaged YAML or index files.
- Kernel consumes the injected ConfigModel and index table.
- Kernel never writes activation output; it returns it complete or raises,
  so callers cannot leave a shell half-configured.
"""

from __future__ import annotations

import logging
import traceback
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from . import config as cfg_module
from .emitter import emit, get_dialect, render
from .errors import ParseError
from .index import LayeredIndex, build_index
from .interfaces import ConfigModel
from .loader import load_descriptor
from .models import EnvironmentDescriptor
from .resolver import Resolver, current_system
from .utils import format_table, truncate

logger = logging.getLogger(__name__)

VALUE_COLUMN_WIDTH = 72


def write_crash_log(
    error: Exception,
    command: str = "",
    descriptor_path: Path | str | None = None,
) -> Path | None:
    """Write an entry to the crash log.

    Logs unhandled exceptions. Only creates the log directory when actually
    needed. Appends to crash.log (never overwrites).

    Returns the log path, or None if the log itself could not be written.
    """
    try:
        crash_log_path = cfg_module.crash_log_path(cfg_module.get_data_root())
        crash_log_path.parent.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().isoformat()
        lines = [
            "=" * 72,
            f"Timestamp: {timestamp}",
            f"Command: {command}",
            f"Descriptor: {descriptor_path or ''}",
            f"Exception: {type(error).__name__}: {error}",
            "Traceback:",
            "".join(
                traceback.format_exception(
                    type(error), error, error.__traceback__
                )
            ),
        ]
        with crash_log_path.open("a", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")
        return crash_log_path
    except OSError:
        logger.exception("Failed to write crash log")
        return None


@dataclass
class Activation:
    """Everything produced by one successful activation run."""

    descriptor: EnvironmentDescriptor
    resolved: dict[str, str]
    statements: list[str]
    shell: str

    @property
    def script(self) -> str:
        return render(self.statements)


@dataclass
class Kernel:
    config: ConfigModel
    index_table: Mapping[str, Mapping[str, str]] | None = None
    system: str | None = None

    def __post_init__(self) -> None:
        if self.system is None:
            self.system = current_system()

    # ---------- pipeline steps ----------

    def discover(self, cwd: Path) -> Path:
        """Find the descriptor for cwd, or raise ParseError."""
        path = cfg_module.find_descriptor(cwd, self.config.descriptor_names)
        if path is None:
            names = ", ".join(self.config.descriptor_names)
            raise ParseError(
                f"no descriptor ({names}) found in {cwd} or its parents"
            )
        logger.debug("Discovered descriptor %s", path)
        return path

    def load(self, path: Path) -> EnvironmentDescriptor:
        return load_descriptor(path)

    def build_index(self, descriptor: EnvironmentDescriptor) -> LayeredIndex:
        return build_index(
            descriptor,
            table=self.index_table,
            store_root=self.config.store_root,
        )

    def resolver_for(self, descriptor: EnvironmentDescriptor) -> Resolver:
        return Resolver(index=self.build_index(descriptor), system=self.system)

    def resolve(self, descriptor: EnvironmentDescriptor) -> dict[str, str]:
        return self.resolver_for(descriptor).resolve(descriptor)

    # ---------- commands ----------

    def activate(
        self,
        path: Path,
        shell: str | None = None,
        include_aliases: bool = True,
    ) -> Activation:
        """Load, resolve and emit. Raises on any failure; never partial."""
        shell = shell or self.config.default_shell
        descriptor = self.load(path)
        resolved = self.resolve(descriptor)
        aliases = descriptor.alias_map() if include_aliases else None
        statements = emit(
            resolved,
            shell_hook=descriptor.shell_hook,
            shell=shell,
            aliases=aliases,
        )
        logger.info(
            "Activation for %s (%s, %s): %d statements",
            descriptor.source, shell, self.system, len(statements),
        )
        return Activation(
            descriptor=descriptor,
            resolved=resolved,
            statements=statements,
            shell=shell,
        )

    def check(self, path: Path, shell: str | None = None) -> str:
        """Validate a descriptor end to end and return a one-line summary."""
        if shell is not None:
            get_dialect(shell)
        descriptor = self.load(path)
        resolved = self.resolve(descriptor)
        return (
            f"{descriptor.source}: {len(descriptor.all_packages)} packages, "
            f"{len(resolved)} variables, {len(descriptor.aliases)} aliases "
            f"(system {self.system})"
        )

    def describe(self, path: Path) -> str:
        """Human-readable summary: packages, variables and aliases."""
        descriptor = self.load(path)
        resolver = self.resolver_for(descriptor)
        resolved = resolver.resolve(descriptor)
        prefixes = resolver.package_prefixes(descriptor)

        sections: list[str] = []
        if descriptor.description:
            sections.append(descriptor.description)

        package_rows = [
            [str(ref), "build", prefixes[str(ref)]]
            for ref in descriptor.packages
        ] + [
            [str(ref), "native", prefixes[str(ref)]]
            for ref in descriptor.native_packages
        ]
        table = format_table(
            ["Package", "Kind", "Prefix"], package_rows, title="[Packages]"
        )
        if table:
            sections.append(table)

        env_rows = [
            [key, truncate(value, VALUE_COLUMN_WIDTH) if value else "''"]
            for key, value in resolved.items()
        ]
        table = format_table(["Name", "Value"], env_rows, title="[Environment]")
        if table:
            sections.append(table)

        alias_rows = [[a.name, a.command] for a in descriptor.aliases]
        table = format_table(["Alias", "Command"], alias_rows, title="[Aliases]")
        if table:
            sections.append(table)

        if descriptor.shell_hook:
            hook_lines = descriptor.shell_hook.count("\n") + (
                0 if descriptor.shell_hook.endswith("\n") else 1
            )
            sections.append(f"[Shell hook] {hook_lines} line(s)")

        return "\n\n".join(sections)
