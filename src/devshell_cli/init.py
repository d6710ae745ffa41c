# DevShell™ — Declarative Reproducible Development Environments
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Guided initialization for ``devshell init``.

Responsibilities:
- Refuse to overwrite an existing descriptor
- Ask a few questions (description, channel, packages)
- Start from the packaged template and write devshell.yaml
- Validate the generated document before it touches disk

Important boundary:
- The template is owned by devshell_cli.config.
- Questions go through an Interviewer, so the wizard is testable.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Protocol

import yaml

from . import config
from .loader import parse_descriptor

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "devshell.yaml"

# ----------------------------------------------------------------
# Interviewer (init-owned wizard interface)
# ----------------------------------------------------------------


class Interviewer(Protocol):
    """Minimal interface for init wizard interaction."""

    def write(self, text: str) -> None: ...

    def ask(self, prompt: str) -> str: ...


class StdIOInterviewer:
    """Default interviewer for non-interactive usage (input/print)."""

    def write(self, text: str) -> None:
        print(text)

    def ask(self, prompt: str) -> str:
        return input(prompt)


# ----------------------------------------------------------------
# Public API
# ----------------------------------------------------------------


def split_packages(raw: str) -> list[str]:
    """Split a comma/space separated package answer, keeping order."""
    seen: list[str] = []
    for token in re.split(r"[,\s]+", raw.strip()):
        if token and token not in seen:
            seen.append(token)
    return seen


def init_descriptor(
    cwd: Path,
    interviewer: Interviewer | None = None,
    filename: str = DEFAULT_FILENAME,
) -> Path:
    """Create a starter descriptor in cwd and return its path.

    Raises:
        FileExistsError: if the descriptor already exists.
    """
    if interviewer is None:
        interviewer = StdIOInterviewer()

    target = cwd / filename
    if target.exists():
        interviewer.write(f"An existing {filename} was found in this directory.")
        interviewer.write(f"Refusing to overwrite. Remove {filename} first.\n")
        raise FileExistsError(f"Descriptor already exists: {target}")

    interviewer.write("Initializing DevShell descriptor…\n")

    document = _template_document()

    default_description = document.get("description") or cwd.name
    description = _ask(interviewer, "Description", default_description)
    document["description"] = description

    inputs = document.get("inputs") or {}
    channel_name = next(iter(inputs), "nixpkgs")
    channel_url = _ask(
        interviewer, f"Channel '{channel_name}' url",
        str(inputs.get(channel_name, "")),
    )
    document["inputs"] = {channel_name: channel_url}

    packages = split_packages(
        interviewer.ask("Packages (comma or space separated) []: ")
    )
    document["packages"] = _merge(document.get("packages") or [], packages)

    if packages and _confirm(
        interviewer, "Add packages to APPEND_LIBRARY_PATH?"
    ):
        _fill_library_path(document, packages)

    text = yaml.safe_dump(document, sort_keys=False, default_flow_style=False)

    # Fails loudly (ParseError/DescriptorReferenceError) on a bad answer
    # such as "other#pkg" before anything is written.
    parse_descriptor(text, source=str(target))

    target.write_text(text, encoding="utf-8")
    logger.info("Wrote %s", target)
    interviewer.write(f"\nCreated {target}")
    return target


# ----------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------


def _template_document() -> dict[str, Any]:
    data = yaml.safe_load(config.load_template()) or {}
    if not isinstance(data, dict):
        raise ValueError("Packaged template must load to a mapping/dict.")
    return data


def _ask(interviewer: Interviewer, label: str, default: str) -> str:
    raw = interviewer.ask(f"{label} [{default}]: ").strip()
    return raw if raw else default


def _confirm(interviewer: Interviewer, question: str) -> bool:
    raw = interviewer.ask(f"{question} [y/N]: ").strip().lower()
    return raw in ("y", "yes")


def _merge(existing: list[Any], extra: list[str]) -> list[Any]:
    merged = list(existing)
    for name in extra:
        if name not in merged:
            merged.append(name)
    return merged


def _fill_library_path(document: dict[str, Any], packages: list[str]) -> None:
    for entry in document.get("env") or []:
        if isinstance(entry, dict) and "APPEND_LIBRARY_PATH" in entry:
            value = entry["APPEND_LIBRARY_PATH"]
            if isinstance(value, dict) and "library_path" in value:
                value["library_path"] = _merge(value["library_path"] or [], packages)
            return
