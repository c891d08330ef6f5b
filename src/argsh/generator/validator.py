"""Semantic checks over a finished command tree.

:func:`validate` walks the tree depth-first and reports every violation it
finds, not just the first. Error-severity diagnostics block code generation;
warnings are passed through to the user.

Per command:

* no two parameters share a short form, long form, canonical name or shell
  variable name;
* at most one variadic positional, and it comes last;
* a default must be one of the declared choices;
* a required parameter cannot have a default;
* no required positional follows an optional one;
* flags take neither defaults nor choices;
* a ``number`` value hint needs a numeric default;
* aliases are unique among siblings and never shadow a sibling's name.

Across the tree, parent links must form no cycle and agree with the
``children`` maps.
"""

from __future__ import annotations

import re
from typing import Optional

from argsh.models import (
    Command,
    CommandTree,
    Diagnostic,
    ParamDescriptor,
    Severity,
    Stage,
    ValueHint,
    shell_identifier,
)

NUMBER_RE = re.compile(r"^-?[0-9]+(\.[0-9]+)?$")


def _diag(line: int, message: str, severity: Severity = Severity.ERROR) -> Diagnostic:
    return Diagnostic(line=line, message=message, severity=severity, stage=Stage.VALIDATION)


def command_label(tree: CommandTree, command: Command) -> str:
    """Human-readable name of *command* for messages (``'db migrate'``)."""
    path = tree.path(command)
    return f"command '{' '.join(path)}'" if path else "the script"


def validate(tree: CommandTree) -> list[Diagnostic]:
    """Check *tree* and return all diagnostics, ordered by source line.

    The tree is not modified.
    """
    diagnostics = _check_structure(tree)
    for command in tree.walk():
        diagnostics.extend(_check_params(tree, command))
        diagnostics.extend(_check_shadowing(tree, command))
        diagnostics.extend(_check_children(tree, command))
    return sorted(diagnostics, key=lambda d: d.line)


# ---------------------------------------------------------------------------
# Tree structure
# ---------------------------------------------------------------------------


def _check_structure(tree: CommandTree) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    if tree.root.parent is not None:
        diagnostics.append(_diag(tree.root.line, "the root command must not have a parent"))

    for node in tree.nodes:
        seen: set[int] = set()
        current: Optional[Command] = node
        while current is not None and current.parent is not None:
            if current.index in seen or not 0 <= current.parent < len(tree.nodes):
                diagnostics.append(
                    _diag(node.line, f"command '{node.name}' has a cyclic or dangling parent chain")
                )
                break
            seen.add(current.index)
            current = tree.nodes[current.parent]

        for name, idx in node.children.items():
            child = tree.nodes[idx] if 0 <= idx < len(tree.nodes) else None
            if child is None or child.parent != node.index or child.name != name:
                diagnostics.append(
                    _diag(node.line, f"child entry '{name}' does not point back at its parent")
                )
    return diagnostics


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------


def _check_params(tree: CommandTree, command: Command) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    where = command_label(tree, command)

    forms: dict[str, ParamDescriptor] = {}
    names: dict[str, ParamDescriptor] = {}
    variables: dict[str, ParamDescriptor] = {}
    env_vars: dict[str, ParamDescriptor] = {}

    for param in command.params:
        for form in param.forms:
            if form in forms:
                diagnostics.append(
                    _diag(param.line, f"duplicate option '{form}' in {where} (first declared on line {forms[form].line})")
                )
            else:
                forms[form] = param

        if param.name in names:
            diagnostics.append(
                _diag(param.line, f"duplicate parameter name '{param.name}' in {where}")
            )
        else:
            names[param.name] = param
            variable = shell_identifier(param.name)
            other = variables.get(variable)
            if other is not None:
                diagnostics.append(
                    _diag(
                        param.line,
                        f"parameters '{other.name}' and '{param.name}' in {where} "
                        f"map to the same shell variable suffix '{variable}'",
                    )
                )
            else:
                variables[variable] = param

        if param.env_var:
            if param.env_var in env_vars:
                diagnostics.append(
                    _diag(
                        param.line,
                        f"environment variable ${param.env_var} is bound to both "
                        f"'{env_vars[param.env_var].name}' and '{param.name}' in {where}",
                        Severity.WARNING,
                    )
                )
            else:
                env_vars[param.env_var] = param

        diagnostics.extend(_check_value_rules(param, where))

    diagnostics.extend(_check_positional_order(command.positionals, where))
    return diagnostics


def _check_value_rules(param: ParamDescriptor, where: str) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    label = f"'{param.name}' in {where}"
    has_default = param.default is not None or param.default_fn is not None

    if param.is_flag:
        if has_default:
            diagnostics.append(_diag(param.line, f"flag {label} cannot have a default value"))
        if param.choices or param.choices_fn:
            diagnostics.append(_diag(param.line, f"flag {label} cannot have choices"))
        return diagnostics

    if param.required and has_default:
        diagnostics.append(
            _diag(param.line, f"required parameter {label} cannot have a default value")
        )

    if param.choices and param.default is not None and param.default not in param.choices:
        allowed = ", ".join(param.choices)
        diagnostics.append(
            _diag(param.line, f"default '{param.default}' of {label} is not one of: {allowed}")
        )

    if (
        param.value_hint == ValueHint.NUMBER
        and param.default is not None
        and not NUMBER_RE.match(param.default)
    ):
        diagnostics.append(
            _diag(param.line, f"default '{param.default}' of {label} is not a number")
        )
    return diagnostics


def _check_positional_order(positionals: list[ParamDescriptor], where: str) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    variadic: Optional[ParamDescriptor] = None
    optional: Optional[ParamDescriptor] = None

    for param in positionals:
        if variadic is not None:
            if param.multiple:
                message = f"'{param.name}' is a second variadic positional in {where}"
            else:
                message = f"positional '{param.name}' follows variadic '{variadic.name}' in {where}"
            diagnostics.append(_diag(param.line, message))
        if param.required and optional is not None:
            diagnostics.append(
                _diag(
                    param.line,
                    f"required positional '{param.name}' follows optional "
                    f"'{optional.name}' in {where}",
                )
            )
        if param.multiple and variadic is None:
            variadic = param
        if not param.required and optional is None:
            optional = param
    return diagnostics


def _check_shadowing(tree: CommandTree, command: Command) -> list[Diagnostic]:
    """Warn when a parameter reuses a shell variable of an enclosing command.

    Each parse routine unsets its own variables first, so the inner
    parameter wipes the value the outer command already bound.
    """
    outer: dict[str, tuple[ParamDescriptor, Command]] = {}
    seen = {command.index}
    parent = command.parent
    # Broken chains are reported by _check_structure.
    while parent is not None and parent not in seen and 0 <= parent < len(tree.nodes):
        seen.add(parent)
        ancestor = tree.nodes[parent]
        for param in ancestor.params:
            outer.setdefault(shell_identifier(param.name), (param, ancestor))
        parent = ancestor.parent

    diagnostics: list[Diagnostic] = []
    for param in command.params:
        hit = outer.get(shell_identifier(param.name))
        if hit is None:
            continue
        other, owner = hit
        diagnostics.append(
            _diag(
                param.line,
                f"parameter '{param.name}' in {command_label(tree, command)} reuses the shell "
                f"variable of '{other.name}' in {command_label(tree, owner)} (line {other.line}); "
                "the outer value is lost when this command runs",
                Severity.WARNING,
            )
        )
    return diagnostics


# ---------------------------------------------------------------------------
# Subcommands
# ---------------------------------------------------------------------------


def _check_children(tree: CommandTree, command: Command) -> list[Diagnostic]:
    diagnostics: list[Diagnostic] = []
    children = tree.children_of(command)
    names = {child.name for child in children}
    claimed: dict[str, Command] = {}

    for child in children:
        for alias in child.aliases:
            if alias == child.name:
                diagnostics.append(
                    _diag(child.line, f"alias '{alias}' repeats the command's own name", Severity.WARNING)
                )
                continue
            if alias in names:
                diagnostics.append(
                    _diag(child.line, f"alias '{alias}' of '{child.name}' shadows a sibling command")
                )
                continue
            owner = claimed.get(alias)
            if owner is not None and owner.index != child.index:
                diagnostics.append(
                    _diag(
                        child.line,
                        f"alias '{alias}' is used by both '{owner.name}' and '{child.name}'",
                    )
                )
                continue
            claimed[alias] = child
    return diagnostics
