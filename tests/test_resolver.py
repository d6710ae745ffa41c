"""
Tests for devshell_cli.resolver.
"""

from __future__ import annotations

import pytest

from devshell_cli.errors import UnresolvedReferenceError, UnsupportedSystemError
from devshell_cli.index import LayeredIndex, MappingLayer, build_index
from devshell_cli.loader import parse_descriptor
from devshell_cli.models import PackageRef
from devshell_cli.resolver import Resolver, current_system, resolve


class RecordingIndex:
    """PackageIndex fake: prefix = /pkgs/<name>, records lookups."""

    def __init__(self) -> None:
        self.lookups: list[str] = []

    def lookup(self, ref: PackageRef) -> str:
        self.lookups.append(str(ref))
        return f"/pkgs/{ref.name}"


def _resolve(doc: str, **kwargs) -> dict[str, str]:
    d = parse_descriptor(doc)
    return resolve(d, RecordingIndex(), **kwargs)


def test_literal_variable() -> None:
    assert _resolve("env:\n  FOO: bar\n") == {"FOO": "bar"}


def test_last_write_wins() -> None:
    assert _resolve("env:\n  - X=a\n  - X=b\n") == {"X": "b"}


def test_override_keeps_first_declaration_position() -> None:
    resolved = _resolve("env:\n  - X=a\n  - Y=y\n  - X=b\n")
    assert list(resolved) == ["X", "Y"]
    assert resolved == {"X": "b", "Y": "y"}


def test_empty_aggregate_is_empty_string_not_omitted() -> None:
    resolved = _resolve("env:\n  APPEND_LIBRARY_PATH: {library_path: []}\n")
    assert "APPEND_LIBRARY_PATH" in resolved
    assert resolved["APPEND_LIBRARY_PATH"] == ""


def test_aggregate_joins_package_subdirs_with_separator() -> None:
    doc = (
        "inputs: {nixpkgs: x}\n"
        "packages: [openssl, zlib]\n"
        "env:\n"
        "  LIBS: {library_path: [openssl, zlib]}\n"
        "  PKGS: {pkg_config_path: [zlib]}\n"
        "  BINS: {bin_path: [openssl]}\n"
        "  ROOTS: {search_path: [zlib], subdir: ''}\n"
    )
    d = parse_descriptor(doc)
    resolved = Resolver(index=RecordingIndex(), separator=":").resolve(d)

    assert resolved == {
        "LIBS": "/pkgs/openssl/lib:/pkgs/zlib/lib",
        "PKGS": "/pkgs/zlib/lib/pkgconfig",
        "BINS": "/pkgs/openssl/bin",
        "ROOTS": "/pkgs/zlib",
    }


def test_ref_substitutes_derived_value() -> None:
    doc = (
        "inputs: {nixpkgs: x}\n"
        "packages: [openssl]\n"
        "env:\n"
        "  - APPEND_LIBRARY_PATH: {library_path: [openssl]}\n"
        "  - LD_LIBRARY_PATH: {ref: APPEND_LIBRARY_PATH}\n"
        "  - PKG_CONFIG_PATH: {ref: APPEND_LIBRARY_PATH}\n"
    )
    resolved = _resolve(doc)
    assert resolved["LD_LIBRARY_PATH"] == "/pkgs/openssl/lib"
    assert resolved["PKG_CONFIG_PATH"] == "/pkgs/openssl/lib"


def test_ref_sees_final_value_of_target() -> None:
    doc = "env:\n  - X=a\n  - Y: {ref: X}\n  - X=b\n"
    assert _resolve(doc) == {"X": "b", "Y": "b"}


def test_forward_ref_is_allowed() -> None:
    doc = "env:\n  - Y: {ref: X}\n  - X=late\n"
    assert _resolve(doc) == {"Y": "late", "X": "late"}


def test_ref_to_undeclared_variable_fails() -> None:
    with pytest.raises(UnresolvedReferenceError, match="MISSING"):
        _resolve("env:\n  Y: {ref: MISSING}\n")


def test_ref_cycle_fails() -> None:
    doc = "env:\n  A: {ref: B}\n  B: {ref: A}\n"
    with pytest.raises(UnresolvedReferenceError, match="cycle"):
        _resolve(doc)


def test_aggregate_over_undeclared_package_fails() -> None:
    doc = "env:\n  LIBS: {library_path: [openssl]}\n"
    with pytest.raises(UnresolvedReferenceError, match="openssl"):
        _resolve(doc)


def test_aggregate_may_use_qualified_name() -> None:
    doc = (
        "inputs: {nixpkgs: x, rust-overlay: y}\n"
        "packages: ['rust-overlay#rust-bin']\n"
        "env:\n"
        "  A: {bin_path: ['rust-overlay#rust-bin']}\n"
        "  B: {bin_path: [rust-bin]}\n"
    )
    resolved = _resolve(doc)
    assert resolved["A"] == resolved["B"] == "/pkgs/rust-bin/bin"


def test_every_package_is_looked_up_in_declared_order() -> None:
    doc = (
        "inputs: {nixpkgs: x}\n"
        "packages: [openssl, mold]\n"
        "native_packages: [pkg-config, openssl]\n"
    )
    index = RecordingIndex()
    resolve(parse_descriptor(doc), index)
    assert index.lookups == ["openssl", "mold", "pkg-config"]


def test_package_missing_from_index_fails() -> None:
    doc = "inputs: {nixpkgs: x}\npackages: [openssl]\n"
    d = parse_descriptor(doc)
    index = build_index(d, table={"nixpkgs": {}})
    with pytest.raises(UnresolvedReferenceError, match="openssl"):
        resolve(d, index)


def test_overlay_package_shadows_channel() -> None:
    doc = (
        "inputs: {nixpkgs: x, rust-overlay: y}\n"
        "overlays: [rust-overlay]\n"
        "packages: [rustc]\n"
        "env:\n"
        "  RUST_ROOT: {search_path: [rustc], subdir: ''}\n"
    )
    d = parse_descriptor(doc)
    index = LayeredIndex([
        MappingLayer("rust-overlay", {"rustc": "/overlay/rustc"}),
        MappingLayer("nixpkgs", {"rustc": "/nixpkgs/rustc"}),
    ])
    assert resolve(d, index) == {"RUST_ROOT": "/overlay/rustc"}


def test_unsupported_system_fails() -> None:
    doc = "systems: [x86_64-linux]\nenv: {FOO: bar}\n"
    with pytest.raises(UnsupportedSystemError, match="riscv64-linux"):
        _resolve(doc, system="riscv64-linux")


def test_supported_or_unrestricted_system_passes() -> None:
    assert _resolve(
        "systems: [x86_64-linux]\nenv: {FOO: bar}\n", system="x86_64-linux"
    ) == {"FOO": "bar"}
    assert _resolve("env: {FOO: bar}\n", system="riscv64-linux") == {
        "FOO": "bar"
    }


def test_resolving_twice_is_identical() -> None:
    doc = (
        "inputs: {nixpkgs: x}\n"
        "packages: [openssl, zlib]\n"
        "env:\n"
        "  - A: {library_path: [zlib, openssl]}\n"
        "  - B: {ref: A}\n"
        "  - C=literal\n"
    )
    d = parse_descriptor(doc)
    resolver = Resolver(index=RecordingIndex())
    first = resolver.resolve(d)
    second = resolver.resolve(d)
    assert first == second
    assert list(first) == list(second)


def test_current_system_format(monkeypatch: pytest.MonkeyPatch) -> None:
    import platform

    monkeypatch.setattr(platform, "machine", lambda: "arm64")
    monkeypatch.setattr(platform, "system", lambda: "Darwin")
    assert current_system() == "aarch64-darwin"
