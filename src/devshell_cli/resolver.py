# DevShell™ — Declarative Reproducible Development Environments
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Environment resolver.

Turns a descriptor into a flat ``{name: value}`` mapping:

1. every declared package is looked up in the injected index
   (build packages first, then native packages, declared order);
2. explicit env declarations are collapsed last-write-wins, keeping the
   position of the first declaration of each key;
3. each surviving declaration is evaluated: literals as-is, path
   aggregates as the joined ``<prefix>/<subdir>`` fragments, refs as the
   final value of the referenced key.

An aggregate over zero packages is the empty string, and the key is kept.
"""

from __future__ import annotations

import logging
import os
import platform
from dataclasses import dataclass

from .errors import UnresolvedReferenceError, UnsupportedSystemError
from .interfaces import PackageIndex
from .models import (
    EnvironmentDescriptor,
    EnvValue,
    LiteralValue,
    PathAggregate,
    VarRef,
)

logger = logging.getLogger(__name__)

_MACHINE_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
}


def current_system() -> str:
    """Return the running platform as ``<arch>-<os>`` (e.g. x86_64-linux)."""
    machine = platform.machine().lower()
    machine = _MACHINE_ALIASES.get(machine, machine)
    return f"{machine}-{platform.system().lower()}"


@dataclass
class Resolver:
    """Resolves descriptors against a package index."""

    index: PackageIndex
    system: str | None = None
    separator: str = os.pathsep

    def package_prefixes(
        self, descriptor: EnvironmentDescriptor
    ) -> dict[str, str]:
        """Look up every declared package.

        Keys are both the bare name and the qualified form
        (``input#name@version``) so aggregates may use either.
        """
        prefixes: dict[str, str] = {}
        for ref in descriptor.all_packages:
            if ref.name in prefixes and str(ref) in prefixes:
                continue
            prefix = self.index.lookup(ref)
            prefixes.setdefault(ref.name, prefix)
            prefixes.setdefault(str(ref), prefix)
        return prefixes

    def resolve(self, descriptor: EnvironmentDescriptor) -> dict[str, str]:
        self._check_system(descriptor)
        prefixes = self.package_prefixes(descriptor)

        declared: dict[str, EnvValue] = {}
        for var in descriptor.env:
            if var.key in declared:
                logger.debug("Override: %s redeclared", var.key)
            declared[var.key] = var.value

        resolved: dict[str, str] = {}
        for key in declared:
            self._evaluate(key, declared, prefixes, resolved, ())

        logger.debug(
            "Resolved %d variables from %s", len(declared), descriptor.source
        )
        return {key: resolved[key] for key in declared}

    # ---------- internals ----------

    def _check_system(self, descriptor: EnvironmentDescriptor) -> None:
        if self.system is None or not descriptor.systems:
            return
        if self.system not in descriptor.systems:
            raise UnsupportedSystemError(
                f"system '{self.system}' is not supported "
                f"(declared: {', '.join(descriptor.systems)})",
                descriptor.source,
            )

    def _evaluate(
        self,
        key: str,
        declared: dict[str, EnvValue],
        prefixes: dict[str, str],
        resolved: dict[str, str],
        chain: tuple[str, ...],
    ) -> str:
        if key in resolved:
            return resolved[key]
        if key in chain:
            cycle = " -> ".join(chain + (key,))
            raise UnresolvedReferenceError(f"reference cycle: {cycle}")

        value = declared[key]
        if isinstance(value, LiteralValue):
            result = value.text
        elif isinstance(value, PathAggregate):
            result = self._aggregate(key, value, prefixes)
        elif isinstance(value, VarRef):
            if value.key not in declared:
                raise UnresolvedReferenceError(
                    f"'{key}' references undeclared variable '{value.key}'"
                )
            result = self._evaluate(
                value.key, declared, prefixes, resolved, chain + (key,)
            )
        else:  # pragma: no cover
            raise TypeError(f"unsupported env value: {value!r}")

        resolved[key] = result
        return result

    def _aggregate(
        self, key: str, value: PathAggregate, prefixes: dict[str, str]
    ) -> str:
        fragments: list[str] = []
        for name in value.packages:
            prefix = prefixes.get(name)
            if prefix is None:
                raise UnresolvedReferenceError(
                    f"'{key}' references package '{name}' "
                    "which is not declared in packages or native_packages"
                )
            if value.subdir:
                fragments.append(f"{prefix.rstrip('/')}/{value.subdir}")
            else:
                fragments.append(prefix)
        return self.separator.join(fragments)


def resolve(
    descriptor: EnvironmentDescriptor,
    index: PackageIndex,
    system: str | None = None,
) -> dict[str, str]:
    """Resolve descriptor against index. See Resolver."""
    return Resolver(index=index, system=system).resolve(descriptor)
