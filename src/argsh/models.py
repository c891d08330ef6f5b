"""Canonical Pydantic models shared across all argsh modules.

This is the single source of truth for data shapes in the project. Every other
module imports from here rather than defining its own models. The models fall
into three groups:

**Configuration models** -- serialised as JSON in the user's config directory
or in a project-local ``argsh.json``:
    :class:`CompileOptions`, :class:`CompletionConfig`, :class:`OutputConfig`,
    and :class:`GlobalConfig`.

**Pipeline models** -- produced by one compiler stage and consumed by the
next:
    :class:`DirectiveKind`, :class:`DirectiveToken`, :class:`ParamDescriptor`,
    :class:`Command`, and :class:`CommandTree`.

**Diagnostics** -- :class:`Severity`, :class:`Stage` and
:class:`Diagnostic`, returned by every stage alongside its output.

The command tree is an arena: :class:`CommandTree` owns a flat ``nodes``
list, every :class:`Command` knows its own index and its parent's index, and
children are referenced by index. This keeps the tree free of reference
cycles and trivially serialisable with ``model_dump``.
"""

from __future__ import annotations

import enum
import re
from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Configuration ---


class CompileOptions(BaseModel):
    """Settings that shape the emitted bash code.

    Resolved by :func:`~argsh.config.resolve_config` from CLI flags,
    environment variables, ``./argsh.json`` and the global config.
    """

    prog: str = Field(
        default="script", description="Program name shown in usage text"
    )
    prefix: str = Field(
        default="argsh",
        pattern=r"^[A-Za-z_][A-Za-z0-9_]*$",
        description="Prefix of the shell variables that receive parsed values",
    )
    add_help: bool = Field(
        default=True, description="Synthesize -h/--help on every command"
    )
    add_version: bool = Field(
        default=True, description="Synthesize -V/--version when @version is set"
    )


class CompletionConfig(BaseModel):
    """Completion settings stored in :class:`GlobalConfig`."""

    hook_timeout: float = Field(
        default=5.0, gt=0, description="Seconds a candidate hook may run"
    )


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/argsh/config.json``.

    Loaded and saved by :func:`~argsh.config.load_global_config` and
    :func:`~argsh.config.save_global_config`. Fields here have the
    lowest precedence and can be overridden by project config, environment
    variables, or CLI flags. See :func:`~argsh.config.resolve_config`
    for the full precedence chain.
    """

    compile: CompileOptions = Field(default_factory=CompileOptions)
    completion: CompletionConfig = Field(default_factory=CompletionConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


# --- Diagnostics ---


class Severity(str, enum.Enum):
    """How serious a diagnostic is. Only errors block code generation."""

    ERROR = "error"
    WARNING = "warning"


class Stage(str, enum.Enum):
    """Pipeline stage that produced a diagnostic."""

    LEX = "lex"
    GRAMMAR = "grammar"
    TREE = "tree"
    VALIDATION = "validation"
    COMPLETION = "completion"


class Diagnostic(BaseModel):
    """A located problem found while compiling a script.

    ``line`` is 1-based and points at the directive that caused the
    problem. ``column`` is 1-based within the directive's argument text
    when the descriptor grammar can pinpoint it.
    """

    model_config = ConfigDict(frozen=True)

    line: int
    message: str
    severity: Severity = Severity.ERROR
    stage: Stage
    column: Optional[int] = None

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def render(self, source_name: str = "<source>") -> str:
        """Format as ``name:line[:col]: severity: message``."""
        location = f"{source_name}:{self.line}"
        if self.column is not None:
            location += f":{self.column}"
        return f"{location}: {self.severity.value}: {self.message}"


def sort_diagnostics(diagnostics: list[Diagnostic]) -> list[Diagnostic]:
    """Return *diagnostics* ordered by source line, stable within a line."""
    return sorted(diagnostics, key=lambda d: d.line)


def has_errors(diagnostics: list[Diagnostic]) -> bool:
    return any(d.is_error for d in diagnostics)


# --- Directive tokens ---


class DirectiveKind(str, enum.Enum):
    """Closed set of annotation kinds recognised by the lexer.

    The value is the tag as written after ``@`` in the script, except for
    :attr:`FUNC`, which stands for a shell function definition line.
    """

    DESCRIBE = "describe"
    VERSION = "version"
    AUTHOR = "author"
    COMMAND = "cmd"
    ALIAS = "alias"
    OPTION = "option"
    FLAG = "flag"
    POSITIONAL = "arg"
    ENV = "env"
    BEFORE = "before"
    AFTER = "after"
    FUNC = "function"


class DirectiveToken(BaseModel):
    """One lexed directive: its kind, raw argument text and source line."""

    model_config = ConfigDict(frozen=True)

    kind: DirectiveKind
    raw_args: str = ""
    line: int


# --- Parameters ---


class ParamKind(str, enum.Enum):
    OPTION = "option"
    FLAG = "flag"
    POSITIONAL = "positional"


class Arity(str, enum.Enum):
    """How many values a parameter accepts."""

    EXACTLY_ONE = "exactly_one"
    OPTIONAL = "optional"
    VARIADIC = "variadic"
    VARIADIC_REQUIRED = "variadic_required"


class ValueHint(str, enum.Enum):
    """Coarse value type, derived from the value notation (``<FILE>``, ``<NUM>``)."""

    STRING = "string"
    NUMBER = "number"
    PATH = "path"


_PATH_NOTATIONS = frozenset({"FILE", "PATH", "DIR", "DIRECTORY"})
_NUMBER_NOTATIONS = frozenset({"NUM", "NUMBER", "INT", "INTEGER", "FLOAT", "N"})

_SHELL_IDENT_RE = re.compile(r"[^A-Za-z0-9_]")


def value_hint_for(notation: Optional[str]) -> ValueHint:
    """Derive a :class:`ValueHint` from a value notation name."""
    if not notation:
        return ValueHint.STRING
    upper = notation.upper()
    if upper in _PATH_NOTATIONS:
        return ValueHint.PATH
    if upper in _NUMBER_NOTATIONS:
        return ValueHint.NUMBER
    return ValueHint.STRING


def shell_identifier(name: str) -> str:
    """Map *name* to the characters allowed in a bash variable name."""
    return _SHELL_IDENT_RE.sub("_", name)


class ParamDescriptor(BaseModel):
    """Structured form of one ``@option``, ``@flag`` or ``@arg`` directive.

    ``long`` keeps its dashes (``--foo`` or the single-dash ``-foo``) so the
    generator can match exactly what the script author declared. ``name`` is
    the canonical name: the long name without dashes, the short character,
    or the positional name.
    """

    name: str
    kind: ParamKind
    short: Optional[str] = Field(default=None, description="Short form, e.g. '-f'")
    long: Optional[str] = Field(default=None, description="Long form, e.g. '--foo'")
    required: bool = False
    multiple: bool = False
    default: Optional[str] = None
    default_fn: Optional[str] = None
    choices: list[str] = Field(default_factory=list)
    choices_fn: Optional[str] = None
    validate_choices: bool = True
    value_names: list[str] = Field(default_factory=list)
    env_var: Optional[str] = None
    help: str = ""
    line: int = 0

    @property
    def arity(self) -> Arity:
        if self.multiple:
            return Arity.VARIADIC_REQUIRED if self.required else Arity.VARIADIC
        return Arity.EXACTLY_ONE if self.required else Arity.OPTIONAL

    @property
    def is_positional(self) -> bool:
        return self.kind == ParamKind.POSITIONAL

    @property
    def is_flag(self) -> bool:
        return self.kind == ParamKind.FLAG

    @property
    def value_hint(self) -> ValueHint:
        return value_hint_for(self.value_names[0] if self.value_names else None)

    @property
    def values_per_occurrence(self) -> int:
        """Number of values an option consumes each time it appears."""
        if self.kind != ParamKind.OPTION:
            return 0
        return max(1, len(self.value_names))

    @property
    def forms(self) -> list[str]:
        """Every literal spelling of an option or flag, long form first."""
        return [f for f in (self.long, self.short) if f]

    def var_name(self, prefix: str) -> str:
        """Shell variable that receives this parameter's value."""
        return f"{prefix}_{shell_identifier(self.name)}"

    def notation(self) -> str:
        """Value placeholder used in usage text (``<FOO>``)."""
        if self.value_names:
            return " ".join(f"<{v}>" for v in self.value_names)
        return f"<{self.name.upper().replace('-', '_')}>"


# --- Command tree ---


class Command(BaseModel):
    """One node of the command tree.

    The root command (index 0) has an empty name and represents the whole
    script. ``children`` maps each child's name to its index in
    :attr:`CommandTree.nodes`, in declaration order.
    """

    index: int
    name: str = ""
    aliases: list[str] = Field(default_factory=list)
    help: str = ""
    params: list[ParamDescriptor] = Field(default_factory=list)
    children: dict[str, int] = Field(default_factory=dict)
    parent: Optional[int] = None
    func: Optional[str] = None
    before: Optional[str] = None
    after: Optional[str] = None
    version: Optional[str] = None
    author: Optional[str] = None
    line: int = 0

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def options(self) -> list[ParamDescriptor]:
        """Options and flags, in declaration order."""
        return [p for p in self.params if not p.is_positional]

    @property
    def positionals(self) -> list[ParamDescriptor]:
        return [p for p in self.params if p.is_positional]

    def add_param(self, param: ParamDescriptor) -> None:
        """Append *param*, keeping options and flags ahead of positionals."""
        if param.is_positional:
            self.params.append(param)
            return
        for idx, existing in enumerate(self.params):
            if existing.is_positional:
                self.params.insert(idx, param)
                return
        self.params.append(param)

    def find_param(self, name: str) -> Optional[ParamDescriptor]:
        """Look up a parameter by canonical name or any literal form."""
        for param in self.params:
            if name == param.name or name in param.forms:
                return param
        return None

    def find_option(self, form: str) -> Optional[ParamDescriptor]:
        """Look up an option or flag by one of its literal forms."""
        for param in self.options:
            if form in param.forms:
                return param
        return None


class CommandTree(BaseModel):
    """Arena of :class:`Command` nodes rooted at ``nodes[0]``."""

    nodes: list[Command] = Field(default_factory=lambda: [Command(index=0)])

    @property
    def root(self) -> Command:
        return self.nodes[0]

    def add_child(self, parent: Command, name: str, **fields) -> Command:
        """Create a child of *parent* named *name* and register it."""
        node = Command(index=len(self.nodes), name=name, parent=parent.index, **fields)
        self.nodes.append(node)
        parent.children[name] = node.index
        return node

    def children_of(self, command: Command) -> list[Command]:
        return [self.nodes[idx] for idx in command.children.values()]

    def parent_of(self, command: Command) -> Optional[Command]:
        if command.parent is None:
            return None
        return self.nodes[command.parent]

    def find_child(self, command: Command, token: str) -> Optional[Command]:
        """Resolve *token* against the names and aliases of *command*'s children."""
        idx = command.children.get(token)
        if idx is not None:
            return self.nodes[idx]
        for child in self.children_of(command):
            if token in child.aliases:
                return child
        return None

    def path(self, command: Command) -> list[str]:
        """Command names from the root (exclusive) down to *command*."""
        names: list[str] = []
        node: Optional[Command] = command
        seen: set[int] = set()
        while node is not None and not node.is_root:
            if node.index in seen:
                break
            seen.add(node.index)
            names.append(node.name)
            node = self.parent_of(node)
        return list(reversed(names))

    def walk(self) -> Iterator[Command]:
        """Yield every command depth-first, parents before children."""
        stack = [self.root]
        visited: set[int] = set()
        while stack:
            node = stack.pop()
            if node.index in visited:
                continue
            visited.add(node.index)
            yield node
            stack.extend(reversed(self.children_of(node)))
