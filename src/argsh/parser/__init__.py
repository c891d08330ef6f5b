"""Annotation front end -- lex directive comments and parse parameter descriptors.

This sub-package is responsible for the first half of the argsh pipeline:
turning the text of an annotated bash script into a stream of
:class:`~argsh.models.DirectiveToken` objects and, for every ``@option``,
``@flag`` and ``@arg`` directive, a structured
:class:`~argsh.models.ParamDescriptor`.

Typical usage::

    from argsh.parser import tokenize, parse_descriptor

    tokens, diagnostics = tokenize(Path("deploy.sh").read_text())
    for token in tokens:
        if token.kind == DirectiveKind.OPTION:
            param, errors = parse_descriptor(token.kind, token.raw_args, token.line)

Sub-modules:

* :mod:`~argsh.parser.lexer` -- Line scanner that recognises ``# @tag``
  directives and shell function definitions, with continuation help text.
* :mod:`~argsh.parser.descriptor` -- Recursive-descent parser for the
  descriptor mini-grammar (``-f --foo! <FILE> help``), reporting the
  furthest column reached on failure.
"""

from argsh.parser.descriptor import parse_descriptor
from argsh.parser.lexer import AnnotationLexer, tokenize

__all__ = ["AnnotationLexer", "tokenize", "parse_descriptor"]
