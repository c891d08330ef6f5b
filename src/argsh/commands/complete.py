"""Completion commands -- answer completion requests and ship the shell driver.

* ``argsh complete SCRIPT CWORD -- WORDS...`` (hidden) -- print one
  candidate per line for the word at index ``CWORD``. Called by the driver
  on every ``<TAB>``; it never fails loudly, because a broken completion
  must not disturb the interactive shell.
* ``argsh completion show SCRIPT`` -- print the bash driver for SCRIPT.
* ``argsh completion install SCRIPT`` -- write the driver to
  ``~/.bash_completion.d/<prog>``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from argsh.commands.common import handle_errors, read_source
from argsh.compiler import check_source
from argsh.exceptions import ArgshError
from argsh.generator.completion import ScriptHookRunner, complete, render_completion_script
from argsh.output import debug, info, print_data, print_diagnostics, success, suggest


completion_app = typer.Typer(no_args_is_help=True)
"""Typer application for the ``completion`` command group."""


def complete_command(
    script: Path = typer.Argument(help="Annotated bash script."),
    cword: int = typer.Argument(help="Index of the word being completed."),
    words: Optional[list[str]] = typer.Argument(
        None, help="Command line words; the first is the program name."
    ),
) -> None:
    """Print completion candidates for the word at CWORD, one per line."""
    from argsh.config import resolve_config

    try:
        config = resolve_config()
        result = check_source(read_source(script))
    except ArgshError as exc:
        debug(f"completion disabled: {exc}")
        return
    if not result.ok:
        debug(f"completion disabled: {len(result.errors)} error(s) in {script}")
        return

    runner = ScriptHookRunner(script, timeout=config.completion.hook_timeout)
    candidates, diagnostics = complete(
        result.tree,
        list(words or []),
        cword,
        hook_runner=runner,
        add_help=config.compile.add_help,
    )
    print_diagnostics(diagnostics, str(script))
    for candidate in candidates:
        print_data(candidate)


def _prog_for(script: Path, prog: Optional[str]) -> str:
    return prog or script.name


@completion_app.command("show")
def completion_show(
    script: Path = typer.Argument(help="Annotated bash script."),
    prog: Optional[str] = typer.Option(
        None, "--prog", help="Command name to complete (default: script file name)."
    ),
) -> None:
    """Print the bash completion driver for SCRIPT.

    Example::

        source <(argsh completion show ./deploy.sh --prog deploy)
    """
    with handle_errors():
        read_source(script)
        print_data(render_completion_script(_prog_for(script, prog), script.resolve()).rstrip("\n"))


@completion_app.command("install")
def completion_install(
    script: Path = typer.Argument(help="Annotated bash script."),
    prog: Optional[str] = typer.Option(
        None, "--prog", help="Command name to complete (default: script file name)."
    ),
) -> None:
    """Install the bash completion driver for SCRIPT.

    Writes ``~/.bash_completion.d/<prog>``. Source that file from
    ``~/.bashrc`` (or let bash-completion load it) to activate it.
    """
    from argsh.config import atomic_write

    with handle_errors():
        read_source(script)
        name = _prog_for(script, prog)
        target = Path.home() / ".bash_completion.d" / name
        atomic_write(target, render_completion_script(name, script.resolve()))
        success(f"Installed completion for {name} to {target}")
        info("Restart your shell or run:")
        suggest(f"source {target}")
