# tests/test_cli.py
from __future__ import annotations

import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from devshell_cli import __version__
from devshell_cli.cli import main
from devshell_cli.errors import EXIT_EMIT, EXIT_LOAD, EXIT_RESOLVE, EXIT_UNEXPECTED
from devshell_cli.kernel import Kernel

DOC = """\
description: A devShell example
inputs:
  nixpkgs: github:nixos/nixpkgs/nixos-unstable
  rust-overlay: github:oxalica/rust-overlay
overlays: [rust-overlay]
packages:
  - openssl
  - rust-overlay#rust-bin.nightly.latest.default
native_packages: [pkg-config]
env:
  - APPEND_LIBRARY_PATH: {library_path: []}
  - LD_LIBRARY_PATH: {ref: APPEND_LIBRARY_PATH}
  - PKG_CONFIG_PATH: {ref: APPEND_LIBRARY_PATH}
aliases:
  ls: eza
shell_hook: |
  echo "welcome"
"""


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    data = tmp_path / "data"
    monkeypatch.setenv("DEVSHELL_DATA_HOME", str(data))
    monkeypatch.setenv("DEVSHELL_STORE_ROOT", "/store")
    return data


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def descriptor(tmp_path: Path) -> Path:
    path = tmp_path / "devshell.yaml"
    path.write_text(DOC, encoding="utf-8")
    return path


def write(tmp_path: Path, text: str, name: str = "devshell.yaml") -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


# ---------------------------------------------------------------
# emit
# ---------------------------------------------------------------


def test_emit_prints_activation_script(runner: CliRunner, descriptor: Path) -> None:
    result = runner.invoke(main, ["emit", str(descriptor)])

    assert result.exit_code == 0, result.output
    assert result.stdout == (
        "export APPEND_LIBRARY_PATH=''\n"
        "export LD_LIBRARY_PATH=''\n"
        "export PKG_CONFIG_PATH=''\n"
        "alias ls=eza\n"
        'echo "welcome"\n'
    )


def test_emit_single_variable_no_packages(runner: CliRunner, tmp_path: Path) -> None:
    path = write(tmp_path, "env:\n  FOO: bar\n")
    result = runner.invoke(main, ["emit", str(path)])

    assert result.exit_code == 0
    assert result.stdout == "export FOO=bar\n"


def test_emit_last_write_wins(runner: CliRunner, tmp_path: Path) -> None:
    path = write(tmp_path, "env:\n  - X=a\n  - X=b\n")
    result = runner.invoke(main, ["emit", str(path)])
    assert result.stdout == "export X=b\n"


def test_emit_discovers_descriptor_from_cwd(
    runner: CliRunner,
    descriptor: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    nested = descriptor.parent / "src"
    nested.mkdir()
    monkeypatch.chdir(nested)

    result = runner.invoke(main, ["emit", "--no-aliases"])

    assert result.exit_code == 0
    assert "alias" not in result.stdout
    assert result.stdout.startswith("export APPEND_LIBRARY_PATH=''\n")


def test_emit_fish(runner: CliRunner, tmp_path: Path) -> None:
    path = write(tmp_path, "env:\n  FOO: bar\naliases:\n  cat: bat\n")
    result = runner.invoke(main, ["emit", str(path), "--shell", "fish"])
    assert result.stdout == "set -gx FOO 'bar'\nalias cat 'bat'\n"


def test_emit_with_index_file(runner: CliRunner, tmp_path: Path) -> None:
    path = write(
        tmp_path,
        "inputs: {nixpkgs: x}\n"
        "packages: [openssl]\n"
        "env:\n  LD_LIBRARY_PATH: {library_path: [openssl]}\n",
    )
    index = write(
        tmp_path, "nixpkgs:\n  openssl: /nix/store/abc-openssl\n", "index.yaml"
    )
    result = runner.invoke(main, ["emit", str(path), "--index", str(index)])

    assert result.exit_code == 0, result.output
    assert result.stdout == "export LD_LIBRARY_PATH=/nix/store/abc-openssl/lib\n"


def test_emit_uses_store_root(runner: CliRunner, tmp_path: Path) -> None:
    path = write(
        tmp_path,
        "inputs: {nixpkgs: x}\n"
        "packages: [zlib]\n"
        "env:\n  L: {library_path: [zlib]}\n",
    )
    result = runner.invoke(main, ["emit", str(path)])
    assert result.stdout == "export L=/store/nixpkgs/zlib/lib\n"


# ---------------------------------------------------------------
# failures: distinct exit codes, nothing on stdout
# ---------------------------------------------------------------


def test_parse_error_exit_code(runner: CliRunner, tmp_path: Path) -> None:
    path = write(tmp_path, "env: [unclosed\n")
    result = runner.invoke(main, ["emit", str(path)])

    assert result.exit_code == EXIT_LOAD
    assert result.stdout == ""
    assert "[ERR]" in result.stderr
    assert "malformed YAML" in result.stderr


def test_undeclared_overlay_emits_nothing(runner: CliRunner, tmp_path: Path) -> None:
    path = write(tmp_path, "inputs: {nixpkgs: x}\noverlays: [ghost]\nenv: {A: b}\n")
    result = runner.invoke(main, ["emit", str(path)])

    assert result.exit_code == EXIT_LOAD
    assert result.stdout == ""
    assert "ghost" in result.stderr


def test_newline_in_names_emits_nothing(runner: CliRunner, tmp_path: Path) -> None:
    path = write(tmp_path, 'env:\n  "FOO\\n": bar\naliases:\n  "ls\\n": eza\n')
    result = runner.invoke(main, ["emit", str(path)])

    assert result.exit_code == EXIT_LOAD
    assert result.stdout == ""


def test_emit_keeps_numeric_text(runner: CliRunner, tmp_path: Path) -> None:
    path = write(tmp_path, "env:\n  PYTHON_VERSION: 3.10\n  MODE: 0755\n")
    result = runner.invoke(main, ["emit", str(path)])
    assert result.stdout == "export PYTHON_VERSION=3.10\nexport MODE=0755\n"


def test_unresolved_reference_exit_code(runner: CliRunner, tmp_path: Path) -> None:
    path = write(tmp_path, "env:\n  A: {ref: NOPE}\n")
    result = runner.invoke(main, ["emit", str(path)])

    assert result.exit_code == EXIT_RESOLVE
    assert result.stdout == ""


def test_unsupported_system_exit_code(runner: CliRunner, tmp_path: Path) -> None:
    path = write(tmp_path, "systems: [x86_64-linux]\nenv: {A: b}\n")
    result = runner.invoke(main, ["emit", str(path), "--system", "mips-plan9"])

    assert result.exit_code == EXIT_RESOLVE
    assert "mips-plan9" in result.stderr


def test_unsupported_shell_exit_code(runner: CliRunner, descriptor: Path) -> None:
    result = runner.invoke(main, ["emit", str(descriptor), "--shell", "tcsh"])

    assert result.exit_code == EXIT_EMIT
    assert result.stdout == ""
    assert "tcsh" in result.stderr


def test_missing_descriptor_discovery(
    runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    empty = tmp_path / "empty"
    empty.mkdir()
    monkeypatch.chdir(empty)

    result = runner.invoke(main, ["emit"])
    assert result.exit_code == EXIT_LOAD
    assert "no descriptor" in result.stderr


def test_bad_index_file_is_load_error(runner: CliRunner, descriptor: Path, tmp_path: Path) -> None:
    index = write(tmp_path, "- not\n- a mapping\n", "index.yaml")
    result = runner.invoke(main, ["emit", str(descriptor), "--index", str(index)])
    assert result.exit_code == EXIT_LOAD
    assert "invalid index file" in result.stderr


def test_unexpected_exception_writes_crash_log(
    runner: CliRunner,
    descriptor: Path,
    isolated_env: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def boom(self, *args, **kwargs):
        raise RuntimeError("kaboom")

    monkeypatch.setattr(Kernel, "activate", boom)
    result = runner.invoke(main, ["emit", str(descriptor)])

    assert result.exit_code == EXIT_UNEXPECTED
    assert result.stdout == ""
    assert "RuntimeError: kaboom" in result.stderr

    crash_log = isolated_env / "devshell" / "logs" / "crash.log"
    content = crash_log.read_text(encoding="utf-8")
    assert "Command: emit" in content
    assert "kaboom" in content


# ---------------------------------------------------------------
# show / check / init / misc
# ---------------------------------------------------------------


def test_show(runner: CliRunner, descriptor: Path) -> None:
    result = runner.invoke(main, ["show", str(descriptor)])

    assert result.exit_code == 0, result.output
    assert "[Packages]" in result.stdout
    assert "/store/rust-overlay/rust-bin.nightly.latest.default" in result.stdout
    assert "[Environment]" in result.stdout
    assert "[Aliases]" in result.stdout


def test_check_ok(runner: CliRunner, descriptor: Path) -> None:
    result = runner.invoke(main, ["check", str(descriptor), "--shell", "zsh"])

    assert result.exit_code == 0
    assert result.stdout == ""
    assert "[OK]" in result.stderr
    assert "3 variables" in result.stderr


def test_check_reports_failure(runner: CliRunner, tmp_path: Path) -> None:
    path = write(tmp_path, "bogus: 1\n")
    result = runner.invoke(main, ["check", str(path)])
    assert result.exit_code == EXIT_LOAD
    assert "bogus" in result.stderr


def test_init_creates_descriptor(runner: CliRunner, tmp_path: Path) -> None:
    project = tmp_path / "project"
    project.mkdir()

    result = runner.invoke(
        main, ["init", str(project)], input="My env\n\nopenssl\ny\n"
    )

    assert result.exit_code == 0, result.output
    created = project / "devshell.yaml"
    assert created.exists()

    emitted = runner.invoke(main, ["emit", str(created), "--system", "x86_64-linux"])
    assert emitted.exit_code == 0, emitted.output
    assert "export APPEND_LIBRARY_PATH=/store/nixpkgs/openssl/lib\n" in emitted.stdout


def test_init_refuses_overwrite(runner: CliRunner, descriptor: Path) -> None:
    result = runner.invoke(main, ["init", str(descriptor.parent)], input="\n")
    assert result.exit_code == EXIT_UNEXPECTED
    assert "already exists" in result.stderr


def test_version(runner: CliRunner) -> None:
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_verbose_logs_go_to_stderr(runner: CliRunner, tmp_path: Path) -> None:
    path = write(tmp_path, "env:\n  FOO: bar\n")
    result = runner.invoke(main, ["-vv", "emit", str(path)])

    assert result.stdout == "export FOO=bar\n"
    assert "devshell_cli" in result.stderr
