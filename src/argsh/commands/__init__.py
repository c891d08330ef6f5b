"""Built-in CLI sub-commands for argsh.

This package groups all Typer sub-command modules that form the CLI's
top-level command tree:

* :mod:`~argsh.commands.build` -- ``compile``, ``build`` and ``check``:
  turn an annotated script into its bash parser, or just report problems.
* :mod:`~argsh.commands.inspect` -- show the command tree a script declares.
* :mod:`~argsh.commands.complete` -- the hidden ``complete`` command called
  by the shell driver, and the ``completion`` group that prints or installs
  that driver.
* :mod:`~argsh.commands.config` -- view and modify global settings.
* :mod:`~argsh.commands.common` -- source loading, option resolution and
  error reporting shared by the commands above.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``config`` and ``completion``) or a plain callback
function registered directly on the root app (for single commands like
``compile``).
"""
