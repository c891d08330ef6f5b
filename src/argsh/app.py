"""Typer application factory and CLI entry point for argsh.

This module wires together the top-level Typer application and registers the
built-in sub-commands (``compile``, ``build``, ``check``, ``inspect``,
``complete``, ``completion``, ``config``).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers, registers commands, and
invokes the Typer app. :class:`~argsh.exceptions.ArgshError` exits with the
error's code; any other exception is written to a crash log under the data
directory.

See Also:
    :mod:`argsh.config`: Configuration resolution.
    :mod:`argsh.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any

import typer

from argsh import __version__
from argsh.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="argsh",
    help="Compile comment-annotated bash scripts into argument parsers.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


# ------------------------------------------------------------------ #
# Built-in commands
# ------------------------------------------------------------------ #

from argsh.commands.build import build_command, check_command, compile_command  # noqa: E402
from argsh.commands.complete import complete_command, completion_app  # noqa: E402
from argsh.commands.config import config_app  # noqa: E402
from argsh.commands.inspect import inspect_command  # noqa: E402

app.command("compile")(compile_command)
app.command("build")(build_command)
app.command("check")(check_command)
app.command("inspect")(inspect_command)
app.command("complete", hidden=True)(complete_command)
app.add_typer(completion_app, name="completion", help="Shell completion scripts.")
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Handle ``--version`` before any command runs."""
    if value:
        typer.echo(f"argsh {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Print data as JSON."
    ),
    plain_output: bool = typer.Option(
        False, "--plain", help="Print data as plain text."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Hide status lines and compiler warnings."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show debug output on stderr."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Do not ask for confirmation."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises the global :class:`~argsh.output.OutputManager` from CLI
    flags, routes library logging to stderr when ``--verbose`` is set, and
    stores shared options in ``ctx.obj`` for sub-commands.
    """
    from argsh.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(
        OutputManager(
            format=fmt,
            no_color=no_color,
            quiet=quiet,
            verbose=verbose,
        )
    )
    if verbose:
        _configure_logging(logging.DEBUG)

    ctx.ensure_object(dict)
    ctx.obj["format"] = fmt.value if fmt != OutputFormat.AUTO else None
    ctx.obj["force"] = force
    ctx.obj["verbose"] = verbose


def _configure_logging(level: int) -> None:
    """Send ``argsh.*`` log records to stderr at *level*."""
    logger = logging.getLogger("argsh")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter("[debug] %(name)s: %(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level)


def _setup_signal_handlers() -> None:
    """Exit with status 130 on Ctrl-C instead of printing a traceback."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from argsh.config import get_data_dir

    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = get_data_dir() / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``argsh`` console script.

    Unhandled :class:`~argsh.exceptions.ArgshError` instances cause a clean
    exit with the error's ``exit_code``. All other exceptions produce a
    crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from argsh.exceptions import ArgshError
        from argsh.output import error

        if isinstance(exc, ArgshError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
