"""End-to-end compile pipeline: source text in, bash and diagnostics out.

Each stage returns its output together with a list of diagnostics instead
of raising, so one call reports every problem in the script:

1. :func:`~argsh.parser.lexer.tokenize` -- directive tokens.
2. :func:`~argsh.generator.command_tree.build_command_tree` -- the command
   tree (descriptors are parsed here).
3. :func:`~argsh.generator.validator.validate` -- semantic checks.
4. :func:`~argsh.generator.bash.generate` -- only when no earlier stage
   reported an error.

Diagnostics from all stages are merged and sorted by source line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from argsh.generator.bash import generate
from argsh.generator.command_tree import build_command_tree
from argsh.generator.validator import validate
from argsh.models import (
    CommandTree,
    CompileOptions,
    Diagnostic,
    has_errors,
    sort_diagnostics,
)
from argsh.parser.lexer import tokenize

logger = logging.getLogger(__name__)


@dataclass
class CompileResult:
    """Outcome of compiling one script.

    ``code`` is ``None`` whenever ``diagnostics`` contains an error, and
    also for :func:`check_source`, which never generates.
    """

    tree: CommandTree
    code: Optional[str] = None
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not has_errors(self.diagnostics)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.is_error]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if not d.is_error]


def check_source(text: str) -> CompileResult:
    """Run every stage except code generation."""
    tokens, diagnostics = tokenize(text)
    logger.debug("lexed %d directive tokens", len(tokens))

    tree, tree_diagnostics = build_command_tree(tokens)
    diagnostics.extend(tree_diagnostics)
    diagnostics.extend(validate(tree))

    return CompileResult(tree=tree, diagnostics=sort_diagnostics(diagnostics))


def compile_source(text: str, options: Optional[CompileOptions] = None) -> CompileResult:
    """Compile annotated script *text* into its bash argument parser.

    Args:
        text: Full text of the annotated script.
        options: Code generation settings.

    Returns:
        A :class:`CompileResult`. Check :attr:`CompileResult.ok` (or
        ``code is not None``) before using the generated code.

    Example::

        result = compile_source(Path("deploy.sh").read_text(), CompileOptions(prog="deploy"))
        if result.ok:
            Path("deploy.gen.sh").write_text(result.code)
        else:
            for diag in result.diagnostics:
                print(diag.render("deploy.sh"))
    """
    result = check_source(text)
    if result.ok:
        result.code = generate(result.tree, options or CompileOptions())
    else:
        logger.debug("skipping generation: %d error(s)", len(result.errors))
    return result
