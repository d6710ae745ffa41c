# DevShell™ — Declarative Reproducible Development Environments
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Terminal UI for DevShell.

- ConsoleUI: tagged, coloured diagnostics on stderr
- PromptToolkitInterviewer: interactive questions for ``devshell init``

stdout is never touched here; it belongs to activation output.
"""

from __future__ import annotations

import sys
from typing import IO, TYPE_CHECKING, Any

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import ANSI
from prompt_toolkit.shortcuts import print_formatted_text
from prompt_toolkit.styles import Style

from .config import ANSI_COLORS, TAG_COLORS

if TYPE_CHECKING:
    from .interfaces import ConfigModel  # pragma: no cover


def _default_style_dict() -> dict[str, str]:
    return {
        "devshell.prompt": "#5f87ff bold",
        "devshell.default": "#808080",
    }


def _build_style(config: ConfigModel | None) -> Style:
    base = _default_style_dict()
    overrides: Any = {}
    if config is not None:
        overrides = config.get_path("ui.theme.style", {})
    if isinstance(overrides, dict):
        # only keep string->string
        for k, v in overrides.items():
            if isinstance(k, str) and isinstance(v, str):
                base[k] = v
    return Style.from_dict(base)


def _tag_color(config: ConfigModel | None, tag: str) -> str:
    """Color name for a tag: ui.colors.<tag> overrides TAG_COLORS."""
    default = TAG_COLORS.get(tag, "reset")
    if config is None:
        return default
    name = config.get_path(f"ui.colors.{tag.lower()}", default)
    return name if name in ANSI_COLORS else default


def colorize(text: str, color: str) -> str:
    return ANSI_COLORS.get(color, "") + text + ANSI_COLORS["reset"]


class ConsoleUI:
    """Diagnostics writer (stderr by default)."""

    def __init__(
        self,
        config: ConfigModel | None = None,
        file: IO[str] | None = None,
    ) -> None:
        self.config = config
        self.file = file
        self._style = _build_style(config)

    def _out(self) -> IO[str]:
        # Resolved late so redirected sys.stderr (tests, pipes) is honoured.
        return self.file if self.file is not None else sys.stderr

    def write(self, text: str) -> None:
        """Write EXACTLY what we receive (no extra newline)."""
        if not text:
            return
        print_formatted_text(
            ANSI(text), style=self._style, end="", file=self._out()
        )

    def tagged(self, tag: str, message: str) -> None:
        label = colorize(f"[{tag}]", _tag_color(self.config, tag))
        self.write(f"{label} {message}\n")

    def ok(self, message: str) -> None:
        self.tagged("OK", message)

    def info(self, message: str) -> None:
        self.tagged("INFO", message)

    def warn(self, message: str) -> None:
        self.tagged("WARN", message)

    def error(self, message: str) -> None:
        self.tagged("ERR", message)


class PromptToolkitInterviewer:
    """Interviewer for ``devshell init`` backed by a PromptSession."""

    def __init__(
        self, config: ConfigModel | None = None, ui: ConsoleUI | None = None
    ) -> None:
        self.ui = ui or ConsoleUI(config)
        self._style = _build_style(config)
        self._session: PromptSession | None = None

    def write(self, text: str) -> None:
        self.ui.write(text + "\n")

    def ask(self, prompt: str) -> str:
        if self._session is None:
            self._session = PromptSession(style=self._style)
        return self._session.prompt(
            [("class:devshell.prompt", prompt)]
        )
