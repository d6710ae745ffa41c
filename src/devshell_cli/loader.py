# DevShell™ — Declarative Reproducible Development Environments
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Descriptor loader.

Parses a YAML descriptor document into an EnvironmentDescriptor.

Document shape::

    description: A devShell example
    inputs:
      nixpkgs: github:nixos/nixpkgs/nixos-unstable
      rust-overlay:
        url: github:oxalica/rust-overlay
    overlays: [rust-overlay]
    systems: [x86_64-linux]
    packages:
      - openssl
      - rust-overlay#rust-bin.nightly.latest.default
      - {name: clang, version: "17"}
    native_packages: [pkg-config]
    env:
      - APPEND_LIBRARY_PATH: {library_path: [openssl]}
      - LD_LIBRARY_PATH: {ref: APPEND_LIBRARY_PATH}
      - RUST_LOG=debug
    aliases:
      ls: eza
    shell_hook: |
      echo "entered"

Rules:
- Unknown keys are rejected at every level (ParseError).
- Inputs named by ``channel``, ``overlays`` or a package must be declared
  under ``inputs`` (DescriptorReferenceError).
- Unquoted numbers keep their source text; unquoted booleans are rejected.
- Package names inside path aggregates are NOT checked here; that is a
  resolution concern.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml

from .errors import DescriptorReferenceError, ParseError
from .models import (
    AGGREGATE_SUBDIRS,
    Alias,
    EnvironmentDescriptor,
    EnvValue,
    EnvVar,
    Input,
    LiteralValue,
    PackageRef,
    PathAggregate,
    VarRef,
)

logger = logging.getLogger(__name__)

TOP_LEVEL_KEYS = frozenset({
    "description",
    "inputs",
    "channel",
    "overlays",
    "systems",
    "packages",
    "native_packages",
    "env",
    "aliases",
    "shell_hook",
})
INPUT_KEYS = frozenset({"url"})
PACKAGE_KEYS = frozenset({"name", "input", "version"})
VALUE_KEYS = frozenset(
    set(AGGREGATE_SUBDIRS) | {"search_path", "subdir", "ref"}
)

ENV_KEY_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
ALIAS_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_.-]*")

_NUMERIC_TAGS = frozenset({"tag:yaml.org,2002:int", "tag:yaml.org,2002:float"})


class _DescriptorLoader(yaml.SafeLoader):
    """SafeLoader that keeps unquoted numbers as their source text.

    ``3.10`` stays ``"3.10"`` and ``0755`` stays ``"0755"`` instead of
    being reinterpreted as a float or a YAML 1.1 octal.
    """


_DescriptorLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in _NUMERIC_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


# ----------------------------------------------------------------
# Public API
# ----------------------------------------------------------------


def load_descriptor(path: Path) -> EnvironmentDescriptor:
    """Read and parse the descriptor at ``path``."""
    source = str(path)
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ParseError("descriptor file not found", source) from e
    except IsADirectoryError as e:
        raise ParseError("descriptor path is a directory", source) from e
    except UnicodeDecodeError as e:
        raise ParseError(f"descriptor is not valid UTF-8: {e}", source) from e
    except OSError as e:
        raise ParseError(f"cannot read descriptor: {e}", source) from e

    logger.debug("Loaded %d bytes from %s", len(text), source)
    return parse_descriptor(text, source=source)


def parse_descriptor(
    text: str, source: str = "<memory>"
) -> EnvironmentDescriptor:
    """Parse descriptor text. See module docstring for the document shape."""
    try:
        data = yaml.load(text, Loader=_DescriptorLoader)  # noqa: S506
    except yaml.YAMLError as e:
        raise ParseError(f"malformed YAML: {e}", source) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseError("document must be a mapping", source)

    _reject_unknown(data, TOP_LEVEL_KEYS, "descriptor", source)

    description = _optional_str(data.get("description"), "description", source)
    inputs = _parse_inputs(data.get("inputs"), source)
    input_names = [i.name for i in inputs]

    overlays = tuple(_string_list(data.get("overlays"), "overlays", source))
    for name in overlays:
        if name not in input_names:
            raise DescriptorReferenceError(
                f"overlay '{name}' is not declared in inputs", source
            )

    channel = _parse_channel(data.get("channel"), input_names, overlays, source)
    systems = tuple(_string_list(data.get("systems"), "systems", source))

    packages = tuple(
        _parse_package(entry, input_names, channel, "packages", source)
        for entry in _list(data.get("packages"), "packages", source)
    )
    native_packages = tuple(
        _parse_package(entry, input_names, channel, "native_packages", source)
        for entry in _list(
            data.get("native_packages"), "native_packages", source
        )
    )

    env = tuple(_parse_env(data.get("env"), source))
    aliases = tuple(_parse_aliases(data.get("aliases"), source))
    shell_hook = _optional_str(data.get("shell_hook"), "shell_hook", source)

    descriptor = EnvironmentDescriptor(
        source=source,
        description=description,
        inputs=inputs,
        channel=channel,
        overlays=overlays,
        systems=systems,
        packages=packages,
        native_packages=native_packages,
        env=env,
        aliases=aliases,
        shell_hook=shell_hook,
    )
    logger.debug(
        "Parsed %s: %d inputs, %d packages, %d native, %d env declarations",
        source, len(inputs), len(packages), len(native_packages), len(env),
    )
    return descriptor


# ----------------------------------------------------------------
# Sections
# ----------------------------------------------------------------


def _parse_inputs(raw: Any, source: str) -> tuple[Input, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, dict):
        raise ParseError("'inputs' must be a mapping of name -> url", source)

    inputs: list[Input] = []
    for name, spec in raw.items():
        if not isinstance(name, str) or not name:
            raise ParseError(f"invalid input name: {name!r}", source)
        if isinstance(spec, str):
            inputs.append(Input(name=name, url=spec))
        elif isinstance(spec, dict):
            _reject_unknown(spec, INPUT_KEYS, f"inputs.{name}", source)
            url = _optional_str(spec.get("url"), f"inputs.{name}.url", source)
            inputs.append(Input(name=name, url=url))
        elif spec is None:
            inputs.append(Input(name=name))
        else:
            raise ParseError(
                f"input '{name}' must be a url string or mapping", source
            )
    return tuple(inputs)


def _parse_channel(
    raw: Any,
    input_names: list[str],
    overlays: tuple[str, ...],
    source: str,
) -> str | None:
    if raw is not None:
        if not isinstance(raw, str):
            raise ParseError("'channel' must be a string", source)
        if raw not in input_names:
            raise DescriptorReferenceError(
                f"channel '{raw}' is not declared in inputs", source
            )
        return raw

    # Default: first declared input that is not an overlay.
    for name in input_names:
        if name not in overlays:
            return name
    return None


def _parse_package(
    entry: Any,
    input_names: list[str],
    channel: str | None,
    field: str,
    source: str,
) -> PackageRef:
    if isinstance(entry, str):
        ref = _parse_package_string(entry, field, source)
    elif isinstance(entry, dict):
        _reject_unknown(entry, PACKAGE_KEYS, f"{field} entry", source)
        name = entry.get("name")
        if not isinstance(name, str) or not name:
            raise ParseError(f"{field} entry is missing 'name'", source)
        ref = PackageRef(
            name=name,
            input=_optional_str(entry.get("input"), f"{field}.input", source)
            or None,
            version=_optional_str(entry.get("version"), f"{field}.version", source)
            or None,
        )
    else:
        raise ParseError(
            f"{field} entries must be strings or mappings, got {entry!r}",
            source,
        )

    if ref.input is not None and ref.input not in input_names:
        raise DescriptorReferenceError(
            f"package '{ref.name}' references undeclared input '{ref.input}'",
            source,
        )
    if ref.input is None and not input_names:
        raise DescriptorReferenceError(
            f"package '{ref.name}' needs an input but none is declared",
            source,
        )
    if ref.input is None and channel is None:
        raise DescriptorReferenceError(
            f"package '{ref.name}' has no input pin and every input is an overlay",
            source,
        )
    return ref


def _parse_package_string(text: str, field: str, source: str) -> PackageRef:
    """``[input#]name[@version]``"""
    text = text.strip()
    input_name: str | None = None
    version: str | None = None

    if "#" in text:
        input_name, text = text.split("#", 1)
    if "@" in text:
        text, version = text.rsplit("@", 1)

    if not text or input_name == "" or version == "":
        raise ParseError(f"invalid {field} entry: {text!r}", source)

    return PackageRef(name=text, input=input_name, version=version)


def _parse_env(raw: Any, source: str) -> list[EnvVar]:
    if raw is None:
        return []

    pairs: list[tuple[Any, Any]] = []
    if isinstance(raw, dict):
        pairs.extend(raw.items())
    elif isinstance(raw, list):
        for item in raw:
            if isinstance(item, str):
                if "=" not in item:
                    raise ParseError(
                        f"env entry {item!r} must look like KEY=VALUE", source
                    )
                key, value = item.split("=", 1)
                pairs.append((key.strip(), value))
            elif isinstance(item, dict) and len(item) == 1:
                pairs.extend(item.items())
            else:
                raise ParseError(
                    "env list entries must be KEY=VALUE strings or "
                    f"single-key mappings, got {item!r}",
                    source,
                )
    else:
        raise ParseError("'env' must be a mapping or a list", source)

    env: list[EnvVar] = []
    for key, value in pairs:
        if not isinstance(key, str) or not ENV_KEY_RE.fullmatch(key):
            raise ParseError(f"invalid environment variable name: {key!r}", source)
        env.append(EnvVar(key=key, value=_parse_value(key, value, source)))
    return env


def _parse_value(key: str, raw: Any, source: str) -> EnvValue:
    if raw is None:
        return LiteralValue("")
    if isinstance(raw, bool):
        raise ParseError(
            f"env '{key}': boolean values are ambiguous, quote them", source
        )
    if isinstance(raw, str):
        return LiteralValue(raw)
    if not isinstance(raw, dict):
        raise ParseError(f"env '{key}': unsupported value {raw!r}", source)

    _reject_unknown(raw, VALUE_KEYS, f"env '{key}'", source)

    kinds = [k for k in raw if k != "subdir"]
    if len(kinds) != 1:
        raise ParseError(
            f"env '{key}': expected exactly one of "
            f"{', '.join(sorted(VALUE_KEYS - {'subdir'}))}",
            source,
        )
    kind = kinds[0]

    if "subdir" in raw and kind != "search_path":
        raise ParseError(
            f"env '{key}': 'subdir' is only valid with 'search_path'", source
        )

    if kind == "ref":
        target = raw["ref"]
        if not isinstance(target, str) or not ENV_KEY_RE.fullmatch(target):
            raise ParseError(f"env '{key}': invalid ref {target!r}", source)
        return VarRef(target)

    packages = tuple(_string_list(raw[kind], f"env '{key}'.{kind}", source))
    if kind == "search_path":
        subdir = _optional_str(raw.get("subdir"), f"env '{key}'.subdir", source)
        return PathAggregate(packages=packages, subdir=subdir.strip("/"))
    return PathAggregate(packages=packages, subdir=AGGREGATE_SUBDIRS[kind])


def _parse_aliases(raw: Any, source: str) -> list[Alias]:
    if raw is None:
        return []
    if not isinstance(raw, dict):
        raise ParseError("'aliases' must be a mapping of name -> command", source)

    aliases: list[Alias] = []
    for name, command in raw.items():
        if not isinstance(name, str) or not ALIAS_NAME_RE.fullmatch(name):
            raise ParseError(f"invalid alias name: {name!r}", source)
        if not isinstance(command, str) or not command.strip():
            raise ParseError(f"alias '{name}' needs a command string", source)
        aliases.append(Alias(name=name, command=command))
    return aliases


# ----------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------


def _reject_unknown(
    mapping: dict, allowed: frozenset[str], where: str, source: str
) -> None:
    unknown = [k for k in mapping if k not in allowed]
    if unknown:
        listed = ", ".join(repr(k) for k in unknown)
        raise ParseError(f"unknown key(s) in {where}: {listed}", source)


def _list(raw: Any, field: str, source: str) -> list:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ParseError(f"'{field}' must be a list", source)
    return raw


def _string_list(raw: Any, field: str, source: str) -> list[str]:
    items = _list(raw, field, source)
    for item in items:
        if not isinstance(item, str) or not item:
            raise ParseError(f"'{field}' must contain strings, got {item!r}", source)
    return items


def _optional_str(raw: Any, field: str, source: str) -> str:
    if raw is None:
        return ""
    if not isinstance(raw, str):
        raise ParseError(f"'{field}' must be a string", source)
    return raw
