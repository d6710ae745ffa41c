# DevShell™ — Declarative Reproducible Development Environments
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Activation emitter.

Produces shell statements for a resolved environment:

    export statements   (one per variable, resolution order)
    alias statements    (optional, interactive sessions only)
    shell hook          (verbatim, never evaluated or substituted)

Values are single-quoted so the target shell never re-expands them.
Emission is pure; sourcing the output is the caller's business.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from .errors import EmissionError
from .utils import fish_quote, shell_quote

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Dialect:
    name: str
    export: Callable[[str, str], str]
    alias: Callable[[str, str], str]


def _posix_export(key: str, value: str) -> str:
    return f"export {key}={shell_quote(value)}"


def _posix_alias(name: str, command: str) -> str:
    return f"alias {name}={shell_quote(command)}"


def _fish_export(key: str, value: str) -> str:
    return f"set -gx {key} {fish_quote(value)}"


def _fish_alias(name: str, command: str) -> str:
    return f"alias {name} {fish_quote(command)}"


DIALECTS: dict[str, Dialect] = {
    "sh": Dialect("sh", _posix_export, _posix_alias),
    "bash": Dialect("bash", _posix_export, _posix_alias),
    "zsh": Dialect("zsh", _posix_export, _posix_alias),
    "fish": Dialect("fish", _fish_export, _fish_alias),
}

SUPPORTED_SHELLS: tuple[str, ...] = tuple(DIALECTS)


def get_dialect(shell: str) -> Dialect:
    dialect = DIALECTS.get(shell)
    if dialect is None:
        raise EmissionError(
            f"unsupported shell dialect '{shell}' "
            f"(supported: {', '.join(SUPPORTED_SHELLS)})"
        )
    return dialect


def emit(
    resolved: Mapping[str, str],
    shell_hook: str = "",
    shell: str = "bash",
    aliases: Mapping[str, str] | None = None,
) -> list[str]:
    """Return activation statements for ``shell``.

    Args:
        resolved: Final variables, in the order they should be exported
        shell_hook: Opaque activation script, appended verbatim if non-empty
        shell: Target dialect name (see SUPPORTED_SHELLS)
        aliases: Optional alias name -> command mapping

    Returns:
        List of statements; the shell hook is a single (possibly
        multi-line) entry.

    Raises:
        EmissionError: if the dialect is unsupported
    """
    dialect = get_dialect(shell)

    statements = [dialect.export(k, v) for k, v in resolved.items()]
    if aliases:
        statements.extend(dialect.alias(n, c) for n, c in aliases.items())
    if shell_hook:
        statements.append(shell_hook)

    logger.debug(
        "Emitted %d exports, %d aliases for %s",
        len(resolved), len(aliases or {}), dialect.name,
    )
    return statements


def render(statements: list[str]) -> str:
    """Join statements into a sourceable script."""
    if not statements:
        return ""
    text = "\n".join(statements)
    if not text.endswith("\n"):
        text += "\n"
    return text
