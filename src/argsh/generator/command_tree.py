"""Build a :class:`~argsh.models.CommandTree` from a directive token stream.

This is the third stage of the argsh pipeline. It consumes the lexer's
tokens in order and nests parameters, aliases, hooks and environment
bindings under the command they belong to.

**Scoping rules**

1. Directives before the first ``@cmd`` describe the root command (the
   whole script).
2. ``@cmd`` opens a *pending* command. Every following ``@alias``,
   ``@option``, ``@flag``, ``@arg``, ``@env``, ``@before`` and ``@after``
   attaches to it.
3. The next shell function definition names the pending command and
   closes it. A function name ``parent::child`` places the command under
   the already-declared command ``parent`` (nested as deep as needed);
   without ``::`` commands are flat children of the root.
4. A function named ``main`` outside any ``@cmd`` becomes the root's
   function.

Options and flags always precede positionals in a command's parameter
list; positional order is preserved.

Structural problems -- duplicate sibling names or aliases, unknown parent
paths, an ``@cmd`` without a function, directives stranded after a command
function -- are reported as ``tree`` diagnostics. The builder keeps going
after a problem so that one pass reports as much as possible; the offending
element is left out of the tree.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from argsh.models import (
    Command,
    CommandTree,
    Diagnostic,
    DirectiveKind,
    DirectiveToken,
    ParamDescriptor,
    Severity,
    Stage,
)
from argsh.parser.descriptor import parse_descriptor

logger = logging.getLogger(__name__)

_ENV_BINDING_RE = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)\s+(\S+)$")

_PARAM_KINDS = frozenset({
    DirectiveKind.OPTION,
    DirectiveKind.FLAG,
    DirectiveKind.POSITIONAL,
})


class _Scope(enum.Enum):
    ROOT = "root"
    CMD_START = "cmd_start"
    FN_END = "fn_end"


@dataclass
class _PendingCommand:
    """Metadata gathered between an ``@cmd`` and its function."""

    line: int
    help: str
    aliases: list[tuple[str, int]] = field(default_factory=list)
    params: list[ParamDescriptor] = field(default_factory=list)
    env_bindings: list[tuple[str, str, int]] = field(default_factory=list)
    before: Optional[str] = None
    after: Optional[str] = None

    def add_param(self, param: ParamDescriptor) -> None:
        # Reuse Command's ordering rule so options stay ahead of positionals.
        holder = Command(index=-1, params=self.params)
        holder.add_param(param)
        self.params = holder.params


class _TreeBuilder:
    def __init__(self) -> None:
        self.tree = CommandTree()
        self.diagnostics: list[Diagnostic] = []
        self.scope = _Scope.ROOT
        self.pending: Optional[_PendingCommand] = None
        self.root_env_bindings: list[tuple[str, str, int]] = []

    def _report(self, line: int, message: str, severity: Severity = Severity.ERROR) -> None:
        self.diagnostics.append(
            Diagnostic(line=line, message=message, severity=severity, stage=Stage.TREE)
        )

    # -- token dispatch -----------------------------------------------------

    def feed(self, token: DirectiveToken) -> None:
        kind = token.kind
        if kind == DirectiveKind.FUNC:
            self._on_function(token)
        elif kind == DirectiveKind.COMMAND:
            self._on_command(token)
        elif kind == DirectiveKind.DESCRIBE:
            self._on_describe(token)
        elif kind in (DirectiveKind.VERSION, DirectiveKind.AUTHOR):
            self._on_root_metadata(token)
        elif kind == DirectiveKind.ALIAS:
            self._on_alias(token)
        elif kind in _PARAM_KINDS:
            self._on_param(token)
        elif kind == DirectiveKind.ENV:
            self._on_env(token)
        elif kind in (DirectiveKind.BEFORE, DirectiveKind.AFTER):
            self._on_hook(token)
        else:  # pragma: no cover - DirectiveKind is a closed set
            raise AssertionError(f"unhandled directive kind {kind}")

    def finish(self) -> tuple[CommandTree, list[Diagnostic]]:
        if self.scope == _Scope.CMD_START and self.pending is not None:
            self._report(
                self.pending.line,
                "@cmd is not followed by a function definition",
            )
        self._bind_env(self.tree.root, self.root_env_bindings)
        return self.tree, self.diagnostics

    # -- handlers -----------------------------------------------------------

    def _stranded(self, token: DirectiveToken) -> bool:
        """Report directives that appear after a command function without a new @cmd."""
        if self.scope != _Scope.FN_END:
            return False
        self._report(
            token.line,
            f"'@{token.kind.value}' appears after a command function; "
            "start a new @cmd or move it into the script header",
        )
        return True

    def _on_describe(self, token: DirectiveToken) -> None:
        if self._stranded(token):
            return
        if self.scope == _Scope.ROOT:
            if self.tree.root.help:
                self._report(token.line, "duplicate @describe for the script", Severity.WARNING)
            self.tree.root.help = token.raw_args
        else:
            assert self.pending is not None
            self.pending.help = token.raw_args

    def _on_root_metadata(self, token: DirectiveToken) -> None:
        if self.scope != _Scope.ROOT:
            self._report(token.line, f"'@{token.kind.value}' is only allowed in the script header")
            return
        if token.kind == DirectiveKind.VERSION:
            self.tree.root.version = token.raw_args
        else:
            self.tree.root.author = token.raw_args

    def _on_command(self, token: DirectiveToken) -> None:
        if self.scope == _Scope.CMD_START and self.pending is not None:
            self._report(self.pending.line, "@cmd is not followed by a function definition")
        self.pending = _PendingCommand(line=token.line, help=token.raw_args)
        self.scope = _Scope.CMD_START

    def _on_alias(self, token: DirectiveToken) -> None:
        if self._stranded(token):
            return
        if self.scope == _Scope.ROOT:
            self._report(token.line, "@alias must follow a @cmd directive")
            return
        assert self.pending is not None
        for name in (n.strip() for n in token.raw_args.split(",")):
            self.pending.aliases.append((name, token.line))

    def _on_param(self, token: DirectiveToken) -> None:
        if self._stranded(token):
            return
        param, diagnostics = parse_descriptor(token.kind, token.raw_args, token.line)
        self.diagnostics.extend(diagnostics)
        if param is None:
            return
        if self.scope == _Scope.ROOT:
            self.tree.root.add_param(param)
        else:
            assert self.pending is not None
            self.pending.add_param(param)

    def _on_env(self, token: DirectiveToken) -> None:
        if self._stranded(token):
            return
        match = _ENV_BINDING_RE.match(token.raw_args)
        if not match:
            self._report(token.line, f"@env expects 'VARIABLE param', got '{token.raw_args}'")
            return
        binding = (match.group(1), match.group(2), token.line)
        if self.scope == _Scope.ROOT:
            self.root_env_bindings.append(binding)
        else:
            assert self.pending is not None
            self.pending.env_bindings.append(binding)

    def _on_hook(self, token: DirectiveToken) -> None:
        if self._stranded(token):
            return
        attr = "before" if token.kind == DirectiveKind.BEFORE else "after"
        target = self.tree.root if self.scope == _Scope.ROOT else self.pending
        assert target is not None
        if getattr(target, attr) is not None:
            self._report(token.line, f"duplicate '@{attr}' hook")
            return
        setattr(target, attr, token.raw_args)

    def _on_function(self, token: DirectiveToken) -> None:
        fn_name = token.raw_args
        if self.scope != _Scope.CMD_START:
            if fn_name == "main" and self.tree.root.func is None:
                self.tree.root.func = fn_name
            return

        pending = self.pending
        assert pending is not None
        self.pending = None
        self.scope = _Scope.FN_END

        parts = fn_name.split("::")
        if any(not part for part in parts):
            self._report(token.line, f"invalid command function name '{fn_name}'")
            return

        parent = self.tree.root
        for idx, part in enumerate(parts[:-1]):
            child = self.tree.find_child(parent, part)
            if child is None:
                missing = "::".join(parts[: idx + 1])
                self._report(
                    token.line,
                    f"unknown parent command '{missing}' for function '{fn_name}'; "
                    "declare the parent command first",
                )
                return
            parent = child

        name = parts[-1]
        if self.tree.find_child(parent, name) is not None:
            self._report(pending.line, f"duplicate command name '{_display(self.tree, parent, name)}'")
            return

        command = self.tree.add_child(
            parent,
            name,
            help=pending.help,
            params=pending.params,
            func=fn_name,
            before=pending.before,
            after=pending.after,
            line=pending.line,
        )
        logger.debug("bound command %s to function %s", name, fn_name)

        for alias, line in pending.aliases:
            if alias in command.aliases:
                self._report(line, f"duplicate alias '{alias}' for command '{name}'", Severity.WARNING)
                continue
            clash = self.tree.find_child(parent, alias)
            if clash is not None and clash.index != command.index:
                self._report(
                    line,
                    f"alias '{alias}' of command '{name}' conflicts with "
                    f"sibling command '{clash.name}'",
                )
                continue
            command.aliases.append(alias)

        self._bind_env(command, pending.env_bindings)

    def _bind_env(self, command: Command, bindings: list[tuple[str, str, int]]) -> None:
        for var, target, line in bindings:
            param = command.find_param(target)
            if param is None:
                self._report(line, f"@env binds {var} to unknown parameter '{target}'")
                continue
            if param.env_var is not None and param.env_var != var:
                self._report(
                    line,
                    f"parameter '{param.name}' was bound to ${param.env_var}; "
                    f"rebinding to ${var}",
                    Severity.WARNING,
                )
            param.env_var = var


def _display(tree: CommandTree, parent: Command, name: str) -> str:
    return " ".join([*tree.path(parent), name])


def build_command_tree(
    tokens: Iterable[DirectiveToken],
) -> tuple[CommandTree, list[Diagnostic]]:
    """Nest a directive stream into a command tree.

    Args:
        tokens: Directive tokens in source order, as produced by
            :class:`~argsh.parser.lexer.AnnotationLexer`.

    Returns:
        ``(tree, diagnostics)``. The tree is always well formed (rooted,
        unique child names per parent) even when diagnostics report
        problems; rejected elements are simply absent from it.

    Example::

        tokens, lex_diags = tokenize(source)
        tree, tree_diags = build_command_tree(tokens)
        for cmd in tree.walk():
            print(tree.path(cmd), [p.name for p in cmd.params])
    """
    builder = _TreeBuilder()
    for token in tokens:
        builder.feed(token)
    return builder.finish()
