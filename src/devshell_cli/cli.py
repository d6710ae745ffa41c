# DevShell™ — Declarative Reproducible Development Environments
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
DevShell CLI entry point.

Design:
- CLI owns process startup, defaults loading and descriptor discovery.
- Kernel is the pipeline engine (config + index table injected).
- stdout carries activation output only; diagnostics go to stderr.

Usage:
    eval "$(devshell emit)"
    devshell emit --shell fish | source
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path
from typing import TypeVar

import click
import yaml

from . import __version__, config
from .emitter import SUPPORTED_SHELLS
from .errors import EXIT_UNEXPECTED, DevShellError, ParseError
from .init import StdIOInterviewer, init_descriptor
from .kernel import Kernel, write_crash_log
from .logger import setup_logging
from .ui import ConsoleUI, PromptToolkitInterviewer

T = TypeVar("T")


def _make_kernel(
    cfg: config.YAMLConfig, index_file: Path | None, system: str | None
) -> Kernel:
    table = None
    if index_file is not None:
        try:
            table = config.load_index_table(index_file)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ParseError(f"invalid index file: {e}", str(index_file)) from e
    return Kernel(config=cfg, index_table=table, system=system)


def _run(
    ctx: click.Context, ui: ConsoleUI, command: str, fn: Callable[[], T]
) -> T:
    """Run fn, mapping failures to exit codes. Never returns on failure."""
    code = EXIT_UNEXPECTED
    try:
        return fn()
    except DevShellError as e:
        ui.error(str(e))
        code = e.exit_code
    except Exception as e:
        log_path = write_crash_log(
            e, command=command, descriptor_path=ctx.params.get("path")
        )
        msg = f"Unhandled exception: {type(e).__name__}: {e}"
        if log_path is not None:
            msg += f" (details in {log_path})"
        ui.error(msg)
    ctx.exit(code)
    raise AssertionError("unreachable")  # pragma: no cover


def _descriptor_path(kernel: Kernel, path: Path | None) -> Path:
    return path if path is not None else kernel.discover(Path.cwd())


# ---------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------

path_argument = click.argument(
    "path",
    required=False,
    type=click.Path(dir_okay=False, path_type=Path),
)
system_option = click.option(
    "--system",
    default=None,
    help="Target system, e.g. x86_64-linux (default: this machine).",
)
index_option = click.option(
    "--index",
    "index_file",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="YAML table of package prefixes per input.",
)


@click.group()
@click.version_option(version=__version__, prog_name="devshell")
@click.option(
    "-v", "--verbose", count=True, help="-v for INFO logs, -vv for DEBUG."
)
@click.pass_context
def main(ctx: click.Context, verbose: int) -> None:
    """DevShell - declarative, reproducible development environments."""
    level = "DEBUG" if verbose > 1 else "INFO" if verbose == 1 else "WARNING"
    setup_logging(level)
    ctx.obj = config.load_system_config()


@main.command()
@path_argument
@click.option(
    "--shell", "-s", default=None,
    help=f"Target shell dialect ({', '.join(SUPPORTED_SHELLS)}).",
)
@system_option
@index_option
@click.option(
    "--no-aliases", is_flag=True, help="Do not emit alias statements."
)
@click.pass_context
def emit(
    ctx: click.Context,
    path: Path | None,
    shell: str | None,
    system: str | None,
    index_file: Path | None,
    no_aliases: bool,
) -> None:
    """Print activation statements for a descriptor."""
    cfg: config.YAMLConfig = ctx.obj
    ui = ConsoleUI(cfg)

    def _activate():
        kernel = _make_kernel(cfg, index_file, system)
        return kernel.activate(
            _descriptor_path(kernel, path),
            shell=shell,
            include_aliases=not no_aliases,
        )

    activation = _run(ctx, ui, "emit", _activate)
    click.echo(activation.script, nl=False)


@main.command()
@path_argument
@system_option
@index_option
@click.pass_context
def show(
    ctx: click.Context,
    path: Path | None,
    system: str | None,
    index_file: Path | None,
) -> None:
    """Show packages, resolved variables and aliases."""
    cfg: config.YAMLConfig = ctx.obj
    ui = ConsoleUI(cfg)

    def _describe():
        kernel = _make_kernel(cfg, index_file, system)
        return kernel.describe(_descriptor_path(kernel, path))

    click.echo(_run(ctx, ui, "show", _describe))


@main.command()
@path_argument
@click.option("--shell", "-s", default=None, help="Also validate this dialect.")
@system_option
@index_option
@click.pass_context
def check(
    ctx: click.Context,
    path: Path | None,
    shell: str | None,
    system: str | None,
    index_file: Path | None,
) -> None:
    """Validate a descriptor without emitting anything."""
    cfg: config.YAMLConfig = ctx.obj
    ui = ConsoleUI(cfg)

    def _check():
        kernel = _make_kernel(cfg, index_file, system)
        return kernel.check(_descriptor_path(kernel, path), shell=shell)

    ui.ok(_run(ctx, ui, "check", _check))


@main.command()
@click.argument(
    "directory",
    required=False,
    default=".",
    type=click.Path(file_okay=False, exists=True, path_type=Path),
)
@click.pass_context
def init(ctx: click.Context, directory: Path) -> None:
    """Create a starter devshell.yaml in DIRECTORY."""
    cfg: config.YAMLConfig = ctx.obj
    ui = ConsoleUI(cfg)

    interviewer = (
        PromptToolkitInterviewer(cfg, ui) if sys.stdin.isatty()
        else StdIOInterviewer()
    )

    try:
        init_descriptor(directory, interviewer=interviewer)
    except FileExistsError as e:
        ui.error(str(e))
        ctx.exit(EXIT_UNEXPECTED)
    except DevShellError as e:
        ui.error(f"Generated descriptor is invalid: {e}")
        ctx.exit(e.exit_code)
