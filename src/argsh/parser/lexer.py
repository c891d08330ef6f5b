"""Scan a script for annotation directives and shell function definitions.

The lexer is the first stage of the argsh pipeline. It walks the source
line by line and yields a :class:`~argsh.models.DirectiveToken` for every

* annotation line -- one or more ``#``, optional blanks, then ``@tag``
  followed by the tag's argument text, and
* shell function definition -- ``name()`` or ``function name`` -- which
  names the command opened by a preceding ``@cmd``.

Every other line is skipped. Text directives (``@describe``, ``@cmd``,
``@option``, ``@flag`` and ``@arg``) absorb the plain comment lines that
directly follow them; the continuation text is appended to ``raw_args``
after a newline so the descriptor parser can treat it as help.

Unknown tags and directives missing a mandatory argument are reported as
:class:`~argsh.models.Diagnostic` entries with stage ``lex`` and the line
is skipped, so one pass reports every problem in the file.
"""

from __future__ import annotations

import re
from typing import Iterator

from argsh.models import Diagnostic, DirectiveKind, DirectiveToken, Severity, Stage

# ``# @tag rest`` -- the directive marker must start the line.
_TAG_RE = re.compile(r"^(#+[ \t]*)@(\S*)(.*)$")

# ``# text`` or a bare ``#``; directive lines are excluded before matching.
_PLAIN_COMMENT_RE = re.compile(r"^#+[ \t]?(.*)$")

_FN_NAME = r"""[^\s"'`()\[\]{}<>$&\\;|]+"""
_FN_KEYWORD_RE = re.compile(rf"^\s*function\s+({_FN_NAME})")
_FN_PARENS_RE = re.compile(rf"^\s*({_FN_NAME})\s*\(\s*\)")

_NAME_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")
_FN_NAME_RE = re.compile(rf"^{_FN_NAME}$")

_TAGS: dict[str, DirectiveKind] = {
    kind.value: kind for kind in DirectiveKind if kind != DirectiveKind.FUNC
}

# Directives whose help text continues on following comment lines.
_CONTINUED = frozenset({
    DirectiveKind.DESCRIBE,
    DirectiveKind.COMMAND,
    DirectiveKind.OPTION,
    DirectiveKind.FLAG,
    DirectiveKind.POSITIONAL,
})

# Directives that are meaningless without an argument.
_NEEDS_ARGS = frozenset({
    DirectiveKind.ALIAS,
    DirectiveKind.OPTION,
    DirectiveKind.FLAG,
    DirectiveKind.POSITIONAL,
    DirectiveKind.ENV,
    DirectiveKind.BEFORE,
    DirectiveKind.AFTER,
})


class AnnotationLexer:
    """Lazy, restartable directive scanner over one source text.

    Iterating the lexer yields tokens in source order. Each new iteration
    starts from the top and clears :attr:`diagnostics`, so the lexer can be
    consumed more than once.

    Example::

        lexer = AnnotationLexer(Path("deploy.sh").read_text())
        tokens = list(lexer)
        for diag in lexer.diagnostics:
            print(diag.render("deploy.sh"))
    """

    def __init__(self, source: str) -> None:
        self._lines = source.splitlines()
        self.diagnostics: list[Diagnostic] = []

    def __iter__(self) -> Iterator[DirectiveToken]:
        self.diagnostics = []
        lines = self._lines
        idx = 0
        while idx < len(lines):
            line = lines[idx]
            line_no = idx + 1
            idx += 1

            tag_match = _TAG_RE.match(line)
            if tag_match:
                token = self._lex_tag(tag_match, line_no)
                if token is None:
                    continue
                if token.kind in _CONTINUED:
                    extra, consumed = _take_comment_lines(lines, idx)
                    idx += consumed
                    if extra:
                        token = token.model_copy(
                            update={"raw_args": f"{token.raw_args}\n{extra}"}
                        )
                yield token
                continue

            fn_name = _match_function(line)
            if fn_name is not None:
                yield DirectiveToken(kind=DirectiveKind.FUNC, raw_args=fn_name, line=line_no)

    def _lex_tag(self, match: re.Match[str], line_no: int) -> DirectiveToken | None:
        column = len(match.group(1)) + 1
        tag, rest = match.group(2), match.group(3)

        if not tag:
            self._report(line_no, column, "malformed directive: missing tag name after '@'")
            return None

        kind = _TAGS.get(tag)
        if kind is None:
            self._report(line_no, column, f"unknown directive '@{tag}'")
            return None

        if rest and not rest[0].isspace():
            self._report(line_no, column, f"malformed directive '@{tag}{rest.split()[0]}'")
            return None

        args = rest.strip()
        if kind in _NEEDS_ARGS and not args:
            self._report(line_no, column, f"'@{tag}' requires an argument")
            return None

        if kind == DirectiveKind.ALIAS:
            names = [n.strip() for n in args.split(",")]
            bad = [n for n in names if not _NAME_RE.match(n)]
            if bad:
                self._report(line_no, column, f"malformed alias list '{args}'")
                return None
        elif kind in (DirectiveKind.BEFORE, DirectiveKind.AFTER):
            if not _FN_NAME_RE.match(args):
                self._report(line_no, column, f"'@{tag}' expects a function name, got '{args}'")
                return None

        return DirectiveToken(kind=kind, raw_args=args, line=line_no)

    def _report(self, line: int, column: int, message: str) -> None:
        self.diagnostics.append(
            Diagnostic(
                line=line,
                column=column,
                message=message,
                severity=Severity.ERROR,
                stage=Stage.LEX,
            )
        )


def tokenize(source: str) -> tuple[list[DirectiveToken], list[Diagnostic]]:
    """Lex *source* completely and return ``(tokens, diagnostics)``."""
    lexer = AnnotationLexer(source)
    tokens = list(lexer)
    return tokens, lexer.diagnostics


def _match_function(line: str) -> str | None:
    """Return the function name defined on *line*, if any."""
    match = _FN_KEYWORD_RE.match(line) or _FN_PARENS_RE.match(line)
    if match:
        return match.group(1)
    return None


def _take_comment_lines(lines: list[str], start: int) -> tuple[str, int]:
    """Collect the plain comment lines beginning at index *start*.

    Returns the joined, stripped text and the number of lines consumed.
    """
    collected: list[str] = []
    for line in lines[start:]:
        if _TAG_RE.match(line) or line.startswith("#!"):
            break
        match = _PLAIN_COMMENT_RE.match(line)
        if not match:
            break
        collected.append(match.group(1))
    return "\n".join(collected).strip(), len(collected)
