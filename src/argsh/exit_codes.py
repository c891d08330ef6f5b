"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~argsh.exceptions.ArgshError` subclass.
Build scripts and editor integrations can inspect the exit code to
determine the failure class without parsing stderr.

Example::

    $ argsh check broken.sh
    broken.sh:4:1: error: duplicate command name 'build'
    $ echo $?
    3   # EXIT_COMPILE_ERROR -- the annotations were rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""argsh itself was invoked with invalid arguments."""

EXIT_COMPILE_ERROR = 3
"""The script's annotations produced at least one error diagnostic."""

EXIT_SOURCE_NOT_FOUND = 4
"""The input script could not be read."""

EXIT_GENERATION_ERROR = 5
"""An internal invariant failed while emitting code (a defect in argsh)."""

EXIT_HOOK_ERROR = 6
"""A candidate hook declared by the script could not be executed."""
