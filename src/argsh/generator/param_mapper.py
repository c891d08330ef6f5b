"""Map parameter descriptors to fragments of generated bash.

This module turns one :class:`~argsh.models.ParamDescriptor` into the pieces
of shell code that :mod:`argsh.generator.bash` stitches into a command's
parse routine: ``case`` arms that consume the parameter from argv, the
positional binding, the environment/default fallback, and the runtime checks.
It also renders the parameter's row of the usage text.

**Binding rules:**

* **Flags** bind ``1`` when present; counted flags (``-v*``) bind the
  number of occurrences. An unset variable means "not given".
* **Options** bind a scalar. Options that repeat (``*``/``+``) or take more
  than one value per occurrence (``--point <X> <Y>``) bind an array.
* **Positionals** bind a scalar, or an array when variadic.

Every fragment is a list of lines indented relative to its own block; the
caller adds the enclosing indentation.
"""

from __future__ import annotations

import shlex

from argsh.models import ParamDescriptor, ParamKind, ValueHint

INDENT = "    "


def shell_quote(text: str) -> str:
    """Quote *text* as a single bash word."""
    return shlex.quote(text)


def is_array(param: ParamDescriptor) -> bool:
    """Return whether *param* binds a bash array."""
    if param.is_flag:
        return False
    return param.multiple or param.values_per_occurrence > 1


def primary_form(param: ParamDescriptor) -> str:
    """The form used in messages: the long form when there is one."""
    return param.long or param.short or param.name


def value_label(param: ParamDescriptor) -> str:
    """Placeholder naming a positional's value (``FILE``)."""
    if param.value_names:
        return param.value_names[0]
    return param.name.upper().replace("-", "_").replace(".", "_")


def param_label(param: ParamDescriptor) -> str:
    """How runtime error messages refer to *param*."""
    if param.is_positional:
        return f"<{value_label(param)}>"
    if param.is_flag:
        return primary_form(param)
    return f"{primary_form(param)} {param.notation()}"


def usage_token(param: ParamDescriptor) -> str:
    """Token for the one-line ``USAGE:`` synopsis."""
    if param.is_positional:
        label = value_label(param)
        token = f"<{label}>" if param.required else f"[{label}]"
        return f"{token}..." if param.multiple else token
    token = param_label(param)
    return f"{token}..." if param.multiple else token


# ---------------------------------------------------------------------------
# Tokenization arms
# ---------------------------------------------------------------------------


def _patterns(forms: list[str], suffix: str = "") -> str:
    return "|".join(shell_quote(form + suffix) + ("*" if suffix else "") for form in forms)


def _duplicate_guard(param: ParamDescriptor, var: str) -> list[str]:
    if param.multiple:
        return []
    kind = "flag" if param.is_flag else "option"
    message = f"{kind} '{primary_form(param)}' cannot be used multiple times"
    return [f'[ -z "${{{var}+x}}" ] || _argsh_die {shell_quote(message)}']


def option_arms(param: ParamDescriptor, prefix: str) -> list[str]:
    """``case`` arms that consume a flag or option from ``$@``."""
    var = param.var_name(prefix)
    form = shell_quote(primary_form(param))
    lines: list[str] = []

    if param.is_flag:
        lines.append(f"{_patterns(param.forms)})")
        if param.multiple:
            lines.append(f"{INDENT}{var}=$(( ${{{var}:-0}} + 1 ))")
        else:
            lines.extend(INDENT + line for line in _duplicate_guard(param, var))
            lines.append(f"{INDENT}{var}=1")
        lines.append(f"{INDENT}shift")
        lines.append(f"{INDENT};;")
        message = f"flag '{primary_form(param)}' does not take a value"
        lines.append(f"{_patterns(param.forms, '=')})")
        lines.append(f"{INDENT}_argsh_die {shell_quote(message)}")
        lines.append(f"{INDENT};;")
        return lines

    count = param.values_per_occurrence
    array = is_array(param)
    guard = [INDENT + line for line in _duplicate_guard(param, var)]

    lines.append(f"{_patterns(param.forms)})")
    lines.append(f'{INDENT}_argsh_need_values {form} {count} "${{@:2}}"')
    lines.extend(guard)
    if not array:
        lines.append(f'{INDENT}{var}="$2"')
    elif param.multiple:
        lines.append(f'{INDENT}{var}+=("${{@:2:{count}}}")')
    else:
        lines.append(f'{INDENT}{var}=("${{@:2:{count}}}")')
    lines.append(f"{INDENT}shift {count + 1}")
    lines.append(f"{INDENT};;")

    lines.append(f"{_patterns(param.forms, '=')})")
    lines.extend(guard)
    if count == 1:
        if array:
            lines.append(f'{INDENT}{var}+=("${{1#*=}}")')
        else:
            lines.append(f'{INDENT}{var}="${{1#*=}}"')
        lines.append(f"{INDENT}shift")
    else:
        rest = count - 1
        assign = "+=" if param.multiple else "="
        lines.append(f'{INDENT}_argsh_value="${{1#*=}}"')
        lines.append(f"{INDENT}shift")
        lines.append(f'{INDENT}_argsh_need_values {form} {rest} "$@"')
        lines.append(f'{INDENT}{var}{assign}("$_argsh_value" "${{@:1:{rest}}}")')
        lines.append(f"{INDENT}shift {rest}")
    lines.append(f"{INDENT};;")
    return lines


def cluster_arm(short: str, takes_value: bool) -> list[str]:
    """Inner ``case`` arm that splits one short form off a ``-abc`` cluster.

    A flag is re-queued as ``-a -bc``; an option takes the rest of the
    cluster as its value (``-ovalue`` becomes ``-o=value``).
    """
    if takes_value:
        body = f'set -- {shell_quote(short + "=")}"${{1:2}}" "${{@:2}}"'
    else:
        body = f'set -- {shell_quote(short)} "-${{1:2}}" "${{@:2}}"'
    return [f"{shell_quote(short)})", INDENT + body, f"{INDENT};;"]


# ---------------------------------------------------------------------------
# Binding, fallbacks and checks
# ---------------------------------------------------------------------------


def positional_binding(param: ParamDescriptor, index: int, prefix: str) -> list[str]:
    """Bind *param* from ``_argsh_positionals`` starting at *index*."""
    var = param.var_name(prefix)
    if param.multiple:
        value = f'("${{_argsh_positionals[@]:{index}}}")'
    else:
        value = f'"${{_argsh_positionals[{index}]}}"'
    return [
        f'if [ "${{#_argsh_positionals[@]}}" -gt {index} ]; then',
        f"{INDENT}{var}={value}",
        "fi",
    ]


def fallback_lines(param: ParamDescriptor, prefix: str) -> list[str]:
    """Fill an unset *param* from its environment variable, then its default."""
    var = param.var_name(prefix)
    array = is_array(param)

    from_env: str | None = None
    env_test = ""
    if param.env_var:
        env = param.env_var
        if param.is_flag:
            env_test = f'[ -n "${{{env}:-}}" ] && [ "${{{env}}}" != 0 ] && [ "${{{env}}}" != false ]'
            from_env = f"{var}=1"
        else:
            env_test = f'[ -n "${{{env}+x}}" ]'
            from_env = f'{var}=("${{{env}}}")' if array else f'{var}="${{{env}}}"'

    if param.default_fn:
        value: str | None = f'"$({param.default_fn})"'
    elif param.default is not None:
        value = shell_quote(param.default)
    else:
        value = None
    from_default = None
    if value is not None:
        from_default = f"{var}=({value})" if array else f"{var}={value}"

    unset = f'[ -z "${{{var}+x}}" ]'
    if from_env and from_default:
        return [
            f"if {unset}; then",
            f"{INDENT}if {env_test}; then",
            f"{INDENT * 2}{from_env}",
            f"{INDENT}else",
            f"{INDENT * 2}{from_default}",
            f"{INDENT}fi",
            "fi",
        ]
    if from_env:
        return [f"if {unset} && {env_test}; then", INDENT + from_env, "fi"]
    if from_default:
        return [f"if {unset}; then", INDENT + from_default, "fi"]
    return []


def required_check(param: ParamDescriptor, prefix: str) -> list[str]:
    """Queue a "missing required" error when *param* ended up unset."""
    if not param.required:
        return []
    var = param.var_name(prefix)
    what = "argument" if param.is_positional else "option"
    message = f"missing required {what} '{param_label(param)}'"
    return [f'[ -n "${{{var}+x}}" ] || _argsh_error {shell_quote(message)}']


def value_checks(param: ParamDescriptor, prefix: str) -> list[str]:
    """Queue choice and number errors for every bound value of *param*."""
    if param.is_flag:
        return []
    label = shell_quote(param_label(param))
    checks: list[str] = []
    if param.choices:
        choices = " ".join(shell_quote(choice) for choice in param.choices)
        checks.append(f'_argsh_check_choice {label} "$_argsh_value" {choices}')
    elif param.choices_fn and param.validate_choices:
        checks.append(f'_argsh_check_fn_choice {label} "$_argsh_value" {param.choices_fn}')
    if param.value_hint == ValueHint.NUMBER:
        checks.append(f'_argsh_check_number {label} "$_argsh_value"')
    if not checks:
        return []

    var = param.var_name(prefix)
    if is_array(param):
        lines = [f'for _argsh_value in ${{{var}[@]+"${{{var}[@]}}"}}; do']
    else:
        lines = [
            f'if [ -n "${{{var}+x}}" ]; then',
            f'{INDENT}_argsh_value="${var}"',
        ]
    lines.extend(INDENT + check for check in checks)
    lines.append("done" if is_array(param) else "fi")
    return lines


# ---------------------------------------------------------------------------
# Usage text
# ---------------------------------------------------------------------------


def usage_row(param: ParamDescriptor) -> tuple[str, str]:
    """Return the ``(left, right)`` columns of *param*'s usage row."""
    if param.is_positional:
        left = usage_token(param)
    else:
        forms = f"{param.short}, {param.long}" if param.short and param.long else None
        if forms is None:
            forms = param.short or f"    {param.long}"
        left = forms if param.kind == ParamKind.FLAG else f"{forms} {param.notation()}"
        if param.multiple:
            left += "..."

    notes: list[str] = []
    if param.default is not None:
        notes.append(f"[default: {param.default}]")
    if param.choices:
        notes.append(f"[possible values: {', '.join(param.choices)}]")
    if param.env_var:
        notes.append(f"[env: {param.env_var}]")
    right = " ".join(part for part in [param.help, *notes] if part)
    return left, right
