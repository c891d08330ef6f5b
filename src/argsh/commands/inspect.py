"""Inspect command -- show the command tree an annotated script declares.

Read-only: the script is lexed, built and validated but no code is
generated. Rich and plain modes print one table row per command; ``--json``
dumps the whole :class:`~argsh.models.CommandTree`.
"""

from __future__ import annotations

from pathlib import Path

import typer

from argsh.commands.common import handle_errors, read_source, report
from argsh.compiler import check_source
from argsh.models import Command, CommandTree
from argsh.output import OutputFormat, get_output, print_json, print_table


def inspect_command(
    script: Path = typer.Argument(help="Annotated bash script."),
) -> None:
    """Show the commands, aliases and parameters SCRIPT declares.

    Example::

        argsh inspect deploy.sh
        argsh --json inspect deploy.sh | jq '.nodes[].name'
    """
    with handle_errors():
        result = check_source(read_source(script))
        report(result, script)
        tree = result.tree

        if get_output().format == OutputFormat.JSON:
            print_json(tree.model_dump(mode="json"))
            return

        rows = [_row(tree, command) for command in tree.walk()]
        print_table(
            ["Command", "Aliases", "Function", "Parameters", "Help"],
            rows,
            title=str(script),
        )


def _row(tree: CommandTree, command: Command) -> list[str]:
    path = " ".join(tree.path(command)) or "(root)"
    params = " ".join(
        p.forms[0] if p.forms else f"<{p.name}>"
        for p in command.params
    )
    summary = command.help.split("\n", 1)[0]
    return [path, ", ".join(command.aliases), command.func or "", params, summary]
