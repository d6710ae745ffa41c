# DevShell™ — Declarative Reproducible Development Environments
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Error taxonomy for DevShell.

Every failure the pipeline can report derives from DevShellError. The CLI
maps ``exit_code`` straight to the process exit status, so scripts can tell
a broken document apart from a broken resolution or an unsupported shell.
"""

from __future__ import annotations

EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_LOAD = 3
EXIT_RESOLVE = 4
EXIT_EMIT = 5


class DevShellError(Exception):
    """Base class for all DevShell failures."""

    code: str = "UNKNOWN"
    exit_code: int = EXIT_UNEXPECTED

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.source = source

    def __str__(self) -> str:
        if self.source:
            return f"{self.source}: {self.message}"
        return self.message


class ParseError(DevShellError):
    """Descriptor document is malformed, mistyped or has unknown keys."""

    code = "PARSE_ERROR"
    exit_code = EXIT_LOAD


class DescriptorReferenceError(DevShellError):
    """Descriptor names an input (channel, overlay) it never declared."""

    code = "REFERENCE_ERROR"
    exit_code = EXIT_LOAD


class ResolutionError(DevShellError):
    """Descriptor loaded fine but its variables cannot be resolved."""

    code = "RESOLUTION_ERROR"
    exit_code = EXIT_RESOLVE


class UnresolvedReferenceError(ResolutionError):
    """A variable references package data or a variable that is missing."""

    code = "UNRESOLVED_REFERENCE"


class UnsupportedSystemError(ResolutionError):
    """Target system is not in the descriptor's ``systems`` list."""

    code = "UNSUPPORTED_SYSTEM"


class EmissionError(DevShellError):
    """Target shell dialect is unsupported."""

    code = "EMISSION_ERROR"
    exit_code = EXIT_EMIT
