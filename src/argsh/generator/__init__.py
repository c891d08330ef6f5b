"""Code generator -- nest directives into a command tree, check it, emit bash.

This sub-package is responsible for the second half of the argsh pipeline:
taking the directive tokens produced by :mod:`argsh.parser`, building a
:class:`~argsh.models.CommandTree`, validating it, and turning it into the
bash parser and the completion candidates for the annotated script.

Typical usage::

    from argsh.generator import build_command_tree, validate, generate

    tree, diagnostics = build_command_tree(tokens)
    diagnostics += validate(tree)
    if not any(d.is_error for d in diagnostics):
        code = generate(tree, CompileOptions(prog="deploy"))

Sub-modules:

* :mod:`~argsh.generator.command_tree` -- Scope tracking that attaches
  parameters, aliases and hooks to the command opened by ``@cmd`` and binds
  it to the next shell function.
* :mod:`~argsh.generator.validator` -- Uniqueness, ordering and value
  consistency checks over the finished tree.
* :mod:`~argsh.generator.param_mapper` -- Map each parameter descriptor to
  the ``case`` arms, bindings and runtime checks of the generated code.
* :mod:`~argsh.generator.bash` -- Assemble per-command parse and usage
  routines plus the top-level dispatcher.
* :mod:`~argsh.generator.completion` -- Replay the dispatcher over a partial
  command line and list the candidates for the word under the cursor.
"""

from argsh.generator.bash import generate
from argsh.generator.command_tree import build_command_tree
from argsh.generator.completion import (
    HookRunner,
    ScriptHookRunner,
    complete,
    render_completion_script,
)
from argsh.generator.validator import validate

__all__ = [
    "build_command_tree",
    "validate",
    "generate",
    "complete",
    "render_completion_script",
    "HookRunner",
    "ScriptHookRunner",
]
