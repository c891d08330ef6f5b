"""Shared test fixtures for argsh.

Provides reusable fixtures for loading annotated script fixtures, creating
isolated config environments, managing output state, and running CLI
commands. These fixtures are automatically discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from argsh.models import CommandTree
from argsh.output import OutputFormat, OutputManager, reset_output, set_output


FIXTURES_DIR = Path(__file__).parent / "fixtures"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time.  When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale
    ("I/O operation on closed file").  Resetting forces a fresh manager
    to be created on next use.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Script fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def deploy_source() -> str:
    """Text of the annotated ``deploy.sh`` fixture."""
    return (FIXTURES_DIR / "deploy.sh").read_text(encoding="utf-8")


@pytest.fixture
def deploy_tree(deploy_source: str) -> CommandTree:
    """Validated command tree of ``deploy.sh``."""
    from argsh.compiler import check_source

    result = check_source(deploy_source)
    assert result.ok, [d.message for d in result.diagnostics]
    return result.tree


@pytest.fixture
def deploy_script(tmp_path: Path, deploy_source: str) -> Path:
    """Copy of ``deploy.sh`` inside tmp_path, for CLI tests that write files."""
    path = tmp_path / "deploy.sh"
    path.write_text(deploy_source, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path so
    that tests never touch real user config. Clears all ARGSH_* environment
    variables and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("argsh.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "ARGSH_PREFIX",
        "ARGSH_NO_HELP",
        "ARGSH_HOOK_TIMEOUT",
        "ARGSH_HOOK",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
