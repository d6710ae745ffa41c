# DevShell™ — Declarative Reproducible Development Environments
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Utility functions for DevShell.
"""

import shlex
from typing import Any


def format_table(
    headers: list[str],
    rows: list[list[Any]],
    title: str = ""
) -> str:
    """
    Format data as a simple text table without external dependencies.

    Args:
        headers: List of column header names
        rows: List of rows, where each row is a list of values
        title: Optional title to display above the table

    Returns:
        Formatted table as a string (empty string when there are no rows)
    """
    if not rows:
        return ""

    str_headers = [str(h) for h in headers]
    str_rows = [[str(val) for val in row] for row in rows]

    # Column width = widest of header and cells
    col_widths = [len(h) for h in str_headers]
    for row in str_rows:
        for i, val in enumerate(row[:len(col_widths)]):
            col_widths[i] = max(col_widths[i], len(val))

    lines = []
    if title:
        lines.append(title)

    lines.append(
        "  ".join(h.ljust(col_widths[i]) for i, h in enumerate(str_headers))
        .rstrip()
    )
    for row in str_rows:
        lines.append(
            "  ".join(v.ljust(col_widths[i]) for i, v in enumerate(row))
            .rstrip()
        )

    return "\n".join(lines)


def shell_quote(s: str) -> str:
    """Quote for POSIX shells (sh, bash, zsh) so the value is a literal."""
    return shlex.quote(s)


def fish_quote(s: str) -> str:
    """Quote for fish.

    fish single quotes only recognise ``\\'`` and ``\\\\`` as escapes, so
    those two are escaped and everything else is literal.
    """
    escaped = s.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def truncate(text: str, width: int) -> str:
    """Shorten text to width characters, marking the cut with '…'."""
    if width <= 0 or len(text) <= width:
        return text
    if width == 1:
        return "…"
    return text[: width - 1] + "…"
