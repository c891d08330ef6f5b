"""Helpers shared by the script-processing commands."""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer

from argsh.compiler import CompileResult
from argsh.exceptions import ArgshError, CompileError, SourceNotFoundError
from argsh.models import CompileOptions
from argsh.output import error, print_diagnostics


def read_source(script: Path) -> str:
    """Read an annotated script as UTF-8 text.

    Raises:
        SourceNotFoundError: If the file is missing, unreadable or not UTF-8.
    """
    try:
        return script.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise SourceNotFoundError(f"Script not found: {script}") from None
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceNotFoundError(f"Cannot read {script}: {exc}") from exc


def compile_options(
    script: Path,
    prog: Optional[str] = None,
    prefix: Optional[str] = None,
    no_help: bool = False,
) -> CompileOptions:
    """Resolve :class:`CompileOptions` for *script* from flags and config."""
    from argsh.config import resolve_config

    config = resolve_config(cli_prefix=prefix, cli_no_help=no_help or None)
    return config.compile.model_copy(update={"prog": prog or script.name})


def report(result: CompileResult, script: Path) -> None:
    """Print the result's diagnostics; raise :class:`CompileError` on errors."""
    print_diagnostics(result.diagnostics, str(script))
    if not result.ok:
        count = len(result.errors)
        noun = "error" if count == 1 else "errors"
        raise CompileError(f"{count} {noun} in {script}", result.diagnostics)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn :class:`ArgshError` into an error message and a typer exit code."""
    try:
        yield
    except ArgshError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
