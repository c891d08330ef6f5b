"""Parse the argument text of ``@option``, ``@flag`` and ``@arg`` directives.

The descriptor mini-grammar packs a parameter's whole definition into one
line::

    # @option -e --env![dev|prod] <NAME> $DEPLOY_ENV  Target environment
    # @flag   -v --verbose*                           More output
    # @arg    files+ <FILE>                           Files to process

Grammar summary:

* ``-x`` followed by whitespace declares a short form; ``--name`` (or the
  single-dash ``-name``) the long form. A lone ``-x`` is a short-only
  parameter.
* ``!`` required, ``*`` variadic (0..N), ``+`` variadic and required (1..N).
* ``=value`` (bare or quoted) attaches a default; ``=`fn``` a default computed
  by shell function ``fn`` at run time.
* ``[a|b|c]`` attaches a choice set, ``[=a|b|c]`` one whose first member is
  the default, ``[`fn`]`` choices produced by ``fn`` (``[?`fn`]`` skips
  run-time validation).
* ``<NAME>`` value notations; several on an option make it consume that many
  values per occurrence. For positionals, ``<name>`` / ``[name]`` in place of
  the bare name marks the parameter required / optional.
* ``$VAR`` binds an environment variable as fallback source.
* Everything after the next whitespace is help text.

The parser is a small recursive-descent parser over a cursor. Alternatives
are tried in a fixed order; on failure the cursor is rewound and the
furthest position any alternative reached is reported as the diagnostic
column. It never looks at sibling parameters -- cross-parameter rules
belong to :mod:`argsh.generator.validator`.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Optional

from argsh.models import (
    Diagnostic,
    DirectiveKind,
    ParamDescriptor,
    ParamKind,
    Severity,
    Stage,
)

_SHORT_EXCLUDED = frozenset(" \t\"'`()[]{}<>$&\\;|-")
_ENV_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_FN_NAME_RE = re.compile(r"""[^\s"'`()\[\]{}<>$&\\;|]+""")

_KIND_MAP: dict[DirectiveKind, ParamKind] = {
    DirectiveKind.OPTION: ParamKind.OPTION,
    DirectiveKind.FLAG: ParamKind.FLAG,
    DirectiveKind.POSITIONAL: ParamKind.POSITIONAL,
}


def _is_name_char(ch: str) -> bool:
    return bool(ch) and ch.isascii() and (ch.isalnum() or ch in "_-.")


def _is_short_char(ch: str) -> bool:
    return bool(ch) and ch.isascii() and not ch.isspace() and ch not in _SHORT_EXCLUDED


class _Mismatch(Exception):
    """Internal signal: the current grammar rule does not match."""


class _DescriptorParser:
    """Cursor over one descriptor line with furthest-failure tracking."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.furthest = 0
        self.expected = "a parameter descriptor"

    # -- cursor primitives ------------------------------------------------

    def _peek(self, offset: int = 0) -> str:
        idx = self.pos + offset
        return self.text[idx] if idx < len(self.text) else ""

    def _at_end(self) -> bool:
        return self.pos >= len(self.text)

    def _fail(self, expected: str) -> None:
        if self.pos >= self.furthest:
            self.furthest = self.pos
            self.expected = expected
        raise _Mismatch()

    def _eat(self, literal: str) -> bool:
        if self.text.startswith(literal, self.pos):
            self.pos += len(literal)
            return True
        return False

    def _expect(self, literal: str) -> None:
        if not self._eat(literal):
            self._fail(f"'{literal}'")

    def _spaces(self) -> int:
        start = self.pos
        while self._peek() in (" ", "\t") and not self._at_end():
            self.pos += 1
        return self.pos - start

    def _attempt(self, rule: Callable[[], Any]) -> Any:
        saved = self.pos
        try:
            return rule()
        except _Mismatch:
            self.pos = saved
            return None

    def _first_of(self, *rules: Callable[[], dict[str, Any]]) -> dict[str, Any]:
        for rule in rules:
            saved = self.pos
            try:
                return rule()
            except _Mismatch:
                self.pos = saved
        raise _Mismatch()

    # -- entry points -----------------------------------------------------

    def option(self) -> dict[str, Any]:
        return self._first_of(
            lambda: self._with_long(is_flag=False),
            lambda: self._short_only(is_flag=False),
        )

    def flag(self) -> dict[str, Any]:
        return self._first_of(
            lambda: self._with_long(is_flag=True),
            lambda: self._short_only(is_flag=True),
        )

    def positional(self) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        if self._eat("<"):
            fields["name"] = self._name()
            self._expect(">")
            fields["required"] = True
        elif self._eat("["):
            fields["name"] = self._name()
            self._expect("]")
        else:
            fields["name"] = self._name()
        self._modifiers(fields)
        fields["value_names"] = self._notations(limit=1)
        self._env(fields)
        fields["help"] = self._tail()
        return fields

    # -- rules --------------------------------------------------------------

    def _with_long(self, is_flag: bool) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        short = self._attempt(self._short_prefix)
        self._spaces()
        if self._eat("--"):
            dashes = "--"
        elif self._eat("-"):
            dashes = "-"
        else:
            self._fail("'-' or '--'")
        name = self._name()
        fields["name"] = name
        if dashes == "-" and len(name) == 1 and short is None:
            fields["short"] = f"-{name}"
        else:
            fields["short"] = short
            fields["long"] = f"{dashes}{name}"
        if is_flag:
            if self._eat("*"):
                fields["multiple"] = True
        else:
            self._modifiers(fields)
            fields["value_names"] = self._notations(limit=None)
        self._env(fields)
        fields["help"] = self._tail()
        return fields

    def _short_only(self, is_flag: bool) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        self._spaces()
        self._expect("-")
        ch = self._peek()
        if is_flag:
            if not _is_short_char(ch):
                self._fail("a short option character")
        elif not (ch.isascii() and (ch.isalnum() or ch == "_")) or _is_name_char(self._peek(1)):
            self._fail("a single-character short option")
        self.pos += 1
        fields["name"] = ch
        fields["short"] = f"-{ch}"
        if is_flag:
            if self._eat("*"):
                fields["multiple"] = True
        else:
            self._modifiers(fields)
            fields["value_names"] = self._notations(limit=None)
        self._env(fields)
        fields["help"] = self._tail()
        return fields

    def _short_prefix(self) -> str:
        self._expect("-")
        ch = self._peek()
        if not _is_short_char(ch):
            self._fail("a short option character")
        self.pos += 1
        if self._peek() not in (" ", "\t") or self._at_end():
            self._fail("whitespace after the short option")
        return f"-{ch}"

    def _name(self) -> str:
        start = self.pos
        while _is_name_char(self._peek()):
            self.pos += 1
        if self.pos == start:
            self._fail("a parameter name")
        return self.text[start:self.pos]

    def _modifiers(self, fields: dict[str, Any]) -> None:
        marker = self._peek()
        if marker == "!":
            fields["required"] = True
        elif marker == "*":
            fields["multiple"] = True
        elif marker == "+":
            fields["required"] = True
            fields["multiple"] = True
        if marker in ("!", "*", "+"):
            self.pos += 1

        seen_default = seen_choices = False
        while True:
            ch = self._peek()
            if ch == "=" and not seen_default:
                self._default(fields)
                seen_default = True
            elif ch == "[" and not seen_choices:
                if self._choices(fields):
                    if seen_default:
                        self._fail("a single default value")
                    seen_default = True
                seen_choices = True
            else:
                break

    def _default(self, fields: dict[str, Any]) -> None:
        self._expect("=")
        if self._peek() == "`":
            fields["default_fn"] = self._backtick_fn()
        elif self._peek() in ("'", '"'):
            fields["default"] = self._quoted()
        else:
            start = self.pos
            while not self._at_end() and not self._peek().isspace() and self._peek() != "[":
                self.pos += 1
            fields["default"] = self.text[start:self.pos]

    def _choices(self, fields: dict[str, Any]) -> bool:
        """Parse a ``[...]`` group; return True when it declared a default."""
        self._expect("[")
        if self._peek() == "`" or (self._peek() == "?" and self._peek(1) == "`"):
            validate = not self._eat("?")
            fields["choices_fn"] = self._backtick_fn()
            fields["validate_choices"] = validate
            self._expect("]")
            return False

        has_default = self._eat("=")
        values = [self._choice_value()]
        while self._eat("|"):
            values.append(self._choice_value())
        self._expect("]")
        fields["choices"] = values
        if has_default:
            fields["default"] = values[0]
            fields["required"] = False
        return has_default

    def _choice_value(self) -> str:
        ch = self._peek()
        if ch in ("=", "`"):
            self._fail("a choice value")
        if ch in ("'", '"'):
            return self._quoted()
        start = self.pos
        while not self._at_end() and self._peek() not in ("|", "]"):
            self.pos += 1
        return self.text[start:self.pos]

    def _quoted(self) -> str:
        quote = self._peek()
        self.pos += 1
        chars: list[str] = []
        while True:
            ch = self._peek()
            if not ch:
                self._fail(f"closing {quote}")
            self.pos += 1
            if ch == "\\" and self._peek() in (quote, "\\"):
                chars.append(self._peek())
                self.pos += 1
            elif ch == quote:
                return "".join(chars)
            else:
                chars.append(ch)

    def _backtick_fn(self) -> str:
        self._expect("`")
        match = _FN_NAME_RE.match(self.text, self.pos)
        if not match:
            self._fail("a function name")
        self.pos = match.end()
        self._expect("`")
        return match.group(0)

    def _notations(self, limit: Optional[int]) -> list[str]:
        names: list[str] = []
        while limit is None or len(names) < limit:
            saved = self.pos
            self._spaces()
            if self._peek() != "<":
                self.pos = saved
                break
            names.append(self._notation())
        return names

    def _notation(self) -> str:
        self._expect("<")
        start = self.pos
        depth = 1
        while True:
            ch = self._peek()
            if not ch:
                self._fail("closing '>'")
            self.pos += 1
            if ch == "<":
                depth += 1
            elif ch == ">":
                depth -= 1
                if depth == 0:
                    return self.text[start:self.pos - 1]

    def _env(self, fields: dict[str, Any]) -> None:
        saved = self.pos
        if not self._spaces() or self._peek() != "$":
            self.pos = saved
            return
        self.pos += 1
        match = _ENV_NAME_RE.match(self.text, self.pos)
        if not match:
            self._fail("an environment variable name")
        self.pos = match.end()
        if not self._at_end() and not self._peek().isspace():
            self._fail("whitespace after the environment variable")
        fields["env_var"] = match.group(0)

    def _tail(self) -> str:
        if self._at_end():
            return ""
        if not self._peek().isspace():
            self._fail("whitespace or end of descriptor")
        return self.text[self.pos:].strip()


def parse_descriptor(
    kind: DirectiveKind,
    raw_args: str,
    line: int = 0,
) -> tuple[Optional[ParamDescriptor], list[Diagnostic]]:
    """Parse the raw argument text of a parameter directive.

    Args:
        kind: :attr:`~DirectiveKind.OPTION`, :attr:`~DirectiveKind.FLAG`
            or :attr:`~DirectiveKind.POSITIONAL`.
        raw_args: The token's argument text. Anything after the first
            newline is continuation help text collected by the lexer.
        line: Source line of the directive, copied into the descriptor and
            any diagnostic.

    Returns:
        ``(descriptor, [])`` on success, or ``(None, [diagnostic])`` where the
        diagnostic's column points at the furthest position the grammar
        reached.

    Raises:
        ValueError: If *kind* is not a parameter directive kind.

    Example::

        >>> desc, _ = parse_descriptor(DirectiveKind.OPTION, "-f --foo=a <FOO> A foo")
        >>> desc.short, desc.long, desc.default, desc.help
        ('-f', '--foo', 'a', 'A foo')
    """
    param_kind = _KIND_MAP.get(kind)
    if param_kind is None:
        raise ValueError(f"not a parameter directive: {kind.value}")

    head, _, extra = raw_args.partition("\n")
    parser = _DescriptorParser(head)
    try:
        if param_kind == ParamKind.OPTION:
            fields = parser.option()
        elif param_kind == ParamKind.FLAG:
            fields = parser.flag()
        else:
            fields = parser.positional()
    except _Mismatch:
        column = parser.furthest + 1
        near = head[parser.furthest:parser.furthest + 16]
        message = (
            f"invalid @{kind.value} descriptor '{head}': "
            f"expected {parser.expected} at column {column}"
        )
        if near:
            message += f" near '{near}'"
        return None, [
            Diagnostic(
                line=line,
                column=column,
                message=message,
                severity=Severity.ERROR,
                stage=Stage.GRAMMAR,
            )
        ]

    help_text = "\n".join(part for part in (fields.pop("help"), extra) if part)
    descriptor = ParamDescriptor(
        kind=param_kind,
        line=line,
        help=help_text.strip(),
        **{k: v for k, v in fields.items() if v is not None},
    )
    return descriptor, []
