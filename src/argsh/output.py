"""Terminal output for the argsh CLI.

Two streams, two jobs:

* **stdout** carries what the user asked for: generated bash, completion
  candidates, ``inspect`` tables. ``eval "$(argsh compile ...)"`` reads it,
  so nothing else may ever be written there.
* **stderr** carries everything about the run: compiler diagnostics,
  status lines, hints and debug traces.

Rich styling is used only when stdout is a terminal and colour has not been
turned off by ``--no-color``, ``NO_COLOR`` or ``TERM=dumb``. Piped output
is always plain text.

:func:`~argsh.app.main_callback` builds one :class:`OutputManager` from the
global flags and installs it with :func:`set_output`; the rest of the code
calls the module-level helpers (:func:`info`, :func:`print_diagnostics`, ...).
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from argsh.models import Diagnostic


class OutputFormat(str, Enum):
    """How data on stdout is rendered.

    ``AUTO`` becomes ``RICH`` on an interactive, colour-capable terminal and
    ``PLAIN`` everywhere else. ``--json`` and ``--plain`` pick one directly.
    """

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Routes data to stdout and messages to stderr.

    Args:
        format: Requested format; ``AUTO`` is resolved at construction.
        no_color: Force plain, unstyled text on both streams.
        quiet: Hide status lines, hints and compiler warnings.
        verbose: Show ``[debug]`` lines.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format != OutputFormat.AUTO:
            self._format = format
        elif _is_tty() and not self._no_color:
            self._format = OutputFormat.RICH
        else:
            self._format = OutputFormat.PLAIN

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=self._format == OutputFormat.RICH,
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # ------------------------------------------------------------------ #
    # stdout
    # ------------------------------------------------------------------ #

    def print_data(self, text: str) -> None:
        """Write one line of *text* to stdout, unstyled."""
        print(text, file=sys.stdout, flush=True)

    def print_code(self, code: str) -> None:
        """Write generated bash to stdout.

        Syntax-highlighted on a terminal. In every other mode the exact text
        is written, with no trailing newline added, so the result can be
        ``eval``-ed or redirected byte for byte.
        """
        if self._format == OutputFormat.RICH:
            self._stdout.print(Syntax(code, "bash", theme="monokai", word_wrap=False))
            return
        sys.stdout.write(code)
        sys.stdout.flush()

    def print_json(self, data: Any) -> None:
        self.print_data(json.dumps(data, indent=2, ensure_ascii=False, default=str))

    def print_table(
        self,
        headers: list[str],
        rows: list[list[str]],
        title: Optional[str] = None,
    ) -> None:
        """Write rows to stdout.

        JSON mode emits a list of ``{header: cell}`` objects, plain mode one
        tab-separated line per row (header first), Rich mode a table.
        """
        if self._format == OutputFormat.JSON:
            self.print_json([dict(zip(headers, row)) for row in rows])
        elif self._format == OutputFormat.PLAIN:
            for line in [headers, *rows]:
                self.print_data("\t".join(line))
        else:
            table = Table(title=title, header_style="bold cyan")
            for header in headers:
                table.add_column(header)
            for row in rows:
                table.add_row(*map(escape, row))
            self._stdout.print(table)

    # ------------------------------------------------------------------ #
    # stderr
    # ------------------------------------------------------------------ #

    def _emit(self, text: str, style: Optional[str] = None, label: str = "") -> None:
        # Messages carry paths and user text, never markup.
        if self._no_color:
            print(f"{label}{text}", file=sys.stderr, flush=True)
        elif label:
            self._stderr.print(f"[{style}]{escape(label)}[/{style}]{escape(text)}")
        elif style:
            self._stderr.print(f"[{style}]{escape(text)}[/{style}]")
        else:
            self._stderr.print(escape(text))

    def info(self, message: str) -> None:
        if not self._quiet:
            self._emit(message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._emit(message, "green")

    def warning(self, message: str) -> None:
        """Shown even with ``--quiet``."""
        self._emit(message, "yellow", "Warning: ")

    def error(self, message: str) -> None:
        """Always shown."""
        self._emit(message, "bold red", "Error: ")

    def suggest(self, message: str) -> None:
        """Print a next-step hint such as a command to run."""
        if not self._quiet:
            self._emit(f"→ {message}", "dim")

    def debug(self, message: str) -> None:
        if self._verbose:
            self._emit(message, "dim", "[debug] ")

    def diagnostics(self, diagnostics: list[Diagnostic], source_name: str) -> None:
        """Print compiler diagnostics as ``name:line[:col]: severity: message``.

        That shape is what editors and ``grep -n`` understand. Warnings are
        dropped under ``--quiet``; errors never are.
        """
        for diag in diagnostics:
            if self._quiet and not diag.is_error:
                continue
            style = "bold red" if diag.is_error else "yellow"
            self._emit(diag.render(source_name), style)


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set to anything, or ``TERM`` is ``dumb``."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Process-wide manager
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed manager, creating a default one on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Drop the installed manager so the next call builds a fresh one."""
    global _output
    _output = None


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_code(code: str) -> None:
    get_output().print_code(code)


def print_json(data: Any) -> None:
    get_output().print_json(data)


def print_table(
    headers: list[str],
    rows: list[list[str]],
    title: Optional[str] = None,
) -> None:
    get_output().print_table(headers, rows, title)


def print_diagnostics(diagnostics: list[Diagnostic], source_name: str) -> None:
    get_output().diagnostics(diagnostics, source_name)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def suggest(message: str) -> None:
    get_output().suggest(message)


def debug(message: str) -> None:
    get_output().debug(message)
