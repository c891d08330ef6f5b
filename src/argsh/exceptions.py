"""Exception hierarchy for argsh.

All exceptions inherit from :class:`ArgshError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`argsh.exit_codes`.
The top-level error handler in :func:`argsh.app.main` catches
``ArgshError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

The compiler stages themselves never raise for bad input: lexing,
descriptor parsing, tree building and validation report
:class:`~argsh.models.Diagnostic` entries instead. Exceptions are reserved
for the I/O wrapper and for defects.

Subclass hierarchy::

    ArgshError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- CompileError        (exit 3)
    +-- SourceNotFoundError (exit 4)
    +-- GenerationError     (exit 5)
    +-- HookError           (exit 6)
    +-- ConfigError         (exit 1)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from argsh.exit_codes import (
    EXIT_COMPILE_ERROR,
    EXIT_GENERATION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_HOOK_ERROR,
    EXIT_INVALID_USAGE,
    EXIT_SOURCE_NOT_FOUND,
)

if TYPE_CHECKING:
    from argsh.models import Diagnostic


class ArgshError(Exception):
    """Base exception for all argsh errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`argsh.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(ArgshError):
    """Raised for invalid argsh CLI arguments."""

    exit_code = EXIT_INVALID_USAGE


class CompileError(ArgshError):
    """Raised by the CLI wrapper when a script's annotations are rejected.

    Carries the full, line-sorted diagnostic list so the caller can print
    every problem in one pass.

    Args:
        message: Summary line (e.g. ``"3 errors in deploy.sh"``).
        diagnostics: All diagnostics collected by the pipeline.
    """

    exit_code = EXIT_COMPILE_ERROR

    def __init__(self, message: str, diagnostics: list[Diagnostic]):
        super().__init__(message)
        self.diagnostics = diagnostics


class SourceNotFoundError(ArgshError):
    """Raised when the input script does not exist or cannot be decoded."""

    exit_code = EXIT_SOURCE_NOT_FOUND


class GenerationError(ArgshError):
    """Raised when code generation hits a broken invariant.

    Generation only runs on validated trees, so this always indicates a
    bug in argsh rather than a problem with the user's script.
    """

    exit_code = EXIT_GENERATION_ERROR


class HookError(ArgshError):
    """Raised when a declared candidate hook cannot be run or times out."""

    exit_code = EXIT_HOOK_ERROR


class ConfigError(ArgshError):
    """Raised for configuration problems (invalid JSON, unknown keys, bad values)."""

    exit_code = EXIT_GENERIC_FAILURE
