"""Compile commands -- turn an annotated script into its bash parser.

Three single commands registered on the root app:

* ``argsh compile SCRIPT`` -- print the generated parser to stdout, meant
  for ``eval "$(argsh compile "$0")"`` at the end of the script.
* ``argsh build SCRIPT -o OUT`` -- write a standalone copy of the script
  with the parser inlined, so it runs without argsh installed.
* ``argsh check SCRIPT`` -- report diagnostics without generating code.

All three print diagnostics as ``script:line[:col]: severity: message`` on
stderr and exit with :data:`~argsh.exit_codes.EXIT_COMPILE_ERROR` when the
annotations contain errors.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Optional

import typer

from argsh.commands.common import compile_options, handle_errors, read_source, report
from argsh.compiler import check_source, compile_source
from argsh.output import debug, print_code, success, suggest

# ``eval "$(argsh compile "$0")"`` lines are replaced when inlining.
_EVAL_LINE_RE = re.compile(r"""^\s*eval\s+["']?\$\(\s*argsh\s+compile\b.*$""")


def compile_command(
    script: Path = typer.Argument(help="Annotated bash script."),
    prog: Optional[str] = typer.Option(
        None, "--prog", help="Program name for usage text (default: script file name)."
    ),
    prefix: Optional[str] = typer.Option(
        None, "--prefix", help="Prefix of the variables that receive parsed values."
    ),
    no_help: bool = typer.Option(
        False, "--no-help", help="Do not synthesize -h/--help."
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the parser to a file instead of stdout."
    ),
) -> None:
    """Compile SCRIPT's annotations into a bash argument parser.

    Example::

        argsh compile deploy.sh
        eval "$(argsh compile "$0")"
    """
    from argsh.config import atomic_write

    with handle_errors():
        options = compile_options(script, prog, prefix, no_help)
        result = compile_source(read_source(script), options)
        report(result, script)
        assert result.code is not None
        debug(f"Generated {result.code.count(chr(10))} lines for {len(result.tree.nodes)} commands")

        if output is not None:
            atomic_write(output, result.code)
            success(f"Wrote parser to {output}")
        else:
            print_code(result.code)


def build_command(
    script: Path = typer.Argument(help="Annotated bash script."),
    output: Path = typer.Option(
        ..., "--output", "-o", help="Path of the standalone script to write."
    ),
    prog: Optional[str] = typer.Option(
        None, "--prog", help="Program name for usage text (default: output file name)."
    ),
    prefix: Optional[str] = typer.Option(
        None, "--prefix", help="Prefix of the variables that receive parsed values."
    ),
    no_help: bool = typer.Option(
        False, "--no-help", help="Do not synthesize -h/--help."
    ),
) -> None:
    """Write a standalone, executable copy of SCRIPT with its parser inlined.

    Any ``eval "$(argsh compile ...)"`` line is dropped and the generated
    parser is appended to the end of the script.

    Example::

        argsh build deploy.sh -o dist/deploy
    """
    from argsh.config import atomic_write

    with handle_errors():
        source = read_source(script)
        options = compile_options(script, prog or output.name, prefix, no_help)
        result = compile_source(source, options)
        report(result, script)
        assert result.code is not None

        atomic_write(output, inline_parser(source, result.code), mode=0o755)
        success(f"Built {output}")


def check_command(
    script: Path = typer.Argument(help="Annotated bash script."),
) -> None:
    """Check SCRIPT's annotations without generating code.

    Example::

        argsh check deploy.sh && echo "annotations ok"
    """
    with handle_errors():
        result = check_source(read_source(script))
        report(result, script)
        if result.warnings:
            suggest(f"{len(result.warnings)} warning(s); the script still compiles.")
        else:
            success(f"{script}: no problems found")


def inline_parser(source: str, code: str) -> str:
    """Return *source* with the generated *code* appended in place of the eval line."""
    lines = [line for line in source.splitlines() if not _EVAL_LINE_RE.match(line)]
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines) + "\n\n" + code
