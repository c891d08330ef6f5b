"""Emit the bash argument parser for a validated command tree.

The output is a self-contained block of bash that, appended to (or
``eval``-ed at the end of) the annotated script, parses ``"$@"`` and calls
the bound shell functions. It consists of:

1. The runtime helpers from ``templates/script.sh.j2`` (error collection,
   value checks).
2. One ``_argsh_parse_<index>`` routine per command. It tokenizes argv with a
   ``case`` loop, dispatches to a child routine when a subcommand name
   appears before any positional, binds positionals, applies environment and
   default fallbacks, queues validation errors and finally runs the command's
   ``@before`` hook, function and ``@after`` hook.
3. One ``_argsh_usage_<index>`` routine per command, printing help text that
   is fixed at compile time.
4. The ``_argsh_main`` dispatcher, which also answers completion hook calls
   (``ARGSH_HOOK=<fn>``).

Parsed values land in global variables named ``<prefix>_<param>`` so the
script's functions can read them. Generation is a pure function of the tree
and :class:`~argsh.models.CompileOptions`: identical inputs always give
byte-identical output.
"""

from __future__ import annotations

import logging
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from argsh import __version__
from argsh.exceptions import GenerationError
from argsh.generator import param_mapper as pm
from argsh.generator.validator import validate
from argsh.models import Command, CommandTree, CompileOptions

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"
"""Path to the Jinja2 template directory (``argsh/templates/``)."""

INDENT = pm.INDENT


def generate(tree: CommandTree, options: CompileOptions | None = None) -> str:
    """Generate the bash parser for *tree*.

    Args:
        tree: A command tree that passes :func:`~argsh.generator.validator.validate`.
        options: Code generation settings. Defaults to :class:`CompileOptions()`.

    Returns:
        The generated bash source, ending with ``_argsh_main "$@"``.

    Raises:
        GenerationError: If *tree* still has validation errors. Callers must
            validate first; reaching this is a bug in the caller.
    """
    options = options or CompileOptions()
    errors = [d for d in validate(tree) if d.is_error]
    if errors:
        raise GenerationError(
            f"refusing to generate code for an invalid command tree: {errors[0].message}"
        )

    routines: list[str] = []
    for command in tree.walk():
        routines.append(_parse_routine(tree, command, options))
        routines.append(_usage_routine(tree, command, options))

    env = create_jinja_env()
    template = env.get_template("script.sh.j2")
    code = template.render(
        version=__version__,
        prog=options.prog,
        routines=routines,
        hooks=[pm.shell_quote(name) for name in _completion_hooks(tree)],
    )
    logger.debug("generated %d lines of bash for %d commands", code.count("\n"), len(tree.nodes))
    return code


def create_jinja_env() -> Environment:
    """Create the Jinja2 environment for the bash templates.

    Autoescape is off for ``.sh.j2`` templates, which produce shell code, not
    HTML. Template comments are ``<%# ... #%>`` because bash's ``${#var}``
    would otherwise open a ``{# ... #}`` comment.
    """
    return Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=select_autoescape(disabled_extensions=("sh.j2",)),
        comment_start_string="<%#",
        comment_end_string="#%>",
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def _completion_hooks(tree: CommandTree) -> list[str]:
    """Names of every ``choices_fn`` in the tree, first occurrence first."""
    hooks: list[str] = []
    for command in tree.walk():
        for param in command.params:
            if param.choices_fn and param.choices_fn not in hooks:
                hooks.append(param.choices_fn)
    return hooks


def _indent(lines: list[str], level: int = 1) -> list[str]:
    prefix = INDENT * level
    return [prefix + line if line else line for line in lines]


def _help_forms(command: Command, options: CompileOptions) -> list[str]:
    if not options.add_help:
        return []
    return [form for form in ("-h", "--help") if command.find_option(form) is None]


def _version_forms(command: Command, options: CompileOptions) -> list[str]:
    if not (command.is_root and command.version and options.add_version):
        return []
    return [form for form in ("-V", "--version") if command.find_option(form) is None]


def _display_path(tree: CommandTree, command: Command, options: CompileOptions) -> str:
    return " ".join([options.prog, *tree.path(command)])


# ---------------------------------------------------------------------------
# Parse routine
# ---------------------------------------------------------------------------


def _parse_routine(tree: CommandTree, command: Command, options: CompileOptions) -> str:
    prefix = options.prefix
    children = tree.children_of(command)
    variables = [param.var_name(prefix) for param in command.params]

    body = ['local _argsh_value="" _argsh_next=""', "local _argsh_positionals=()"]
    if variables:
        body.append("unset " + " ".join(variables))
    body.append("_argsh_errors=()")
    body.append('while [ "$#" -gt 0 ]; do')
    body.append(INDENT + 'case "$1" in')
    body.extend(_indent(_token_arms(tree, command, options), 1))
    body.append(INDENT + "esac")
    body.append("done")

    for param in command.options:
        body.extend(pm.fallback_lines(param, prefix))
        body.extend(pm.required_check(param, prefix))
        body.extend(pm.value_checks(param, prefix))

    positional_block = _positional_block(command, prefix, bool(children))
    if children and positional_block:
        body.append('if [ -z "$_argsh_next" ]; then')
        body.extend(_indent(positional_block))
        body.append("fi")
    else:
        body.extend(positional_block)

    hint = _display_path(tree, command, options) if _help_forms(command, options) else ""
    body.append(f"_argsh_check_errors {pm.shell_quote(hint)}")

    if children:
        body.append('if [ -n "$_argsh_next" ]; then')
        body.append(INDENT + '"$_argsh_next" "$@"')
        body.append(INDENT + "return")
        body.append("fi")

    body.extend(_run_lines(command, bool(children)))

    lines = [f"_argsh_parse_{command.index}() {{", *_indent(body), "}"]
    return "\n".join(lines)


def _token_arms(tree: CommandTree, command: Command, options: CompileOptions) -> list[str]:
    """Arms of the ``case "$1"`` statement, in matching priority order."""
    arms: list[str] = []
    for param in command.options:
        arms.extend(pm.option_arms(param, options.prefix))

    help_forms = _help_forms(command, options)
    if help_forms:
        arms.append("|".join(pm.shell_quote(f) for f in help_forms) + ")")
        arms.append(f"{INDENT}_argsh_usage_{command.index}")
        arms.append(f"{INDENT}exit 0")
        arms.append(f"{INDENT};;")

    version_forms = _version_forms(command, options)
    if version_forms:
        arms.append("|".join(pm.shell_quote(f) for f in version_forms) + ")")
        banner = pm.shell_quote(f"{options.prog} {command.version}")
        arms.append(f"{INDENT}printf '%s\\n' {banner}")
        arms.append(f"{INDENT}exit 0")
        arms.append(f"{INDENT};;")

    arms.extend([
        "--)",
        f"{INDENT}shift",
        f'{INDENT}_argsh_positionals+=("$@")',
        f"{INDENT}break",
        f"{INDENT};;",
        "--*)",
        f"{INDENT}_argsh_die \"unknown option '${{1%%=*}}'\"",
        f"{INDENT};;",
    ])

    cluster = _cluster_arms(command, help_forms, version_forms)
    if cluster:
        arms.append("-[!-]?*)")
        arms.append(INDENT + 'case "${1:0:2}" in')
        arms.extend(_indent(cluster))
        arms.append(INDENT + "*)")
        arms.append(INDENT * 2 + "_argsh_die \"unknown option '${1:0:2}'\"")
        arms.append(INDENT * 2 + ";;")
        arms.append(INDENT + "esac")
        arms.append(INDENT + ";;")

    arms.extend([
        "-?*)",
        f"{INDENT}_argsh_die \"unknown option '$1'\"",
        f"{INDENT};;",
        "*)",
    ])
    arms.extend(_indent(_dispatch_lines(tree, command)))
    arms.extend([
        f'{INDENT}_argsh_positionals+=("$1")',
        f"{INDENT}shift",
        f"{INDENT};;",
    ])
    return arms


def _cluster_arms(command: Command, help_forms: list[str], version_forms: list[str]) -> list[str]:
    arms: list[str] = []
    for param in command.options:
        if param.short:
            arms.extend(pm.cluster_arm(param.short, takes_value=not param.is_flag))
    for synthesized in ("-h", "-V"):
        if synthesized in help_forms or synthesized in version_forms:
            arms.extend(pm.cluster_arm(synthesized, takes_value=False))
    return arms


def _dispatch_lines(tree: CommandTree, command: Command) -> list[str]:
    children = tree.children_of(command)
    if not children:
        return []
    lines = ['if [ "${#_argsh_positionals[@]}" -eq 0 ]; then', INDENT + 'case "$1" in']
    for child in children:
        names = "|".join(pm.shell_quote(name) for name in [child.name, *child.aliases])
        lines.extend(_indent([
            f"{names})",
            f"{INDENT}_argsh_next=_argsh_parse_{child.index}",
            f"{INDENT}shift",
            f"{INDENT}break",
            f"{INDENT};;",
        ]))
    lines.append(INDENT + "esac")
    lines.append("fi")
    return lines


def _positional_block(command: Command, prefix: str, has_children: bool) -> list[str]:
    positionals = command.positionals
    lines: list[str] = []
    for index, param in enumerate(positionals):
        lines.extend(pm.positional_binding(param, index, prefix))

    if not any(param.multiple for param in positionals):
        count = len(positionals)
        if has_children and count == 0:
            message = "unknown command '${_argsh_positionals[0]}'"
        else:
            message = f"unexpected argument '${{_argsh_positionals[{count}]}}'"
        lines.extend([
            f'if [ "${{#_argsh_positionals[@]}}" -gt {count} ]; then',
            f'{INDENT}_argsh_error "{message}"',
            "fi",
        ])

    for param in positionals:
        lines.extend(pm.fallback_lines(param, prefix))
        lines.extend(pm.required_check(param, prefix))
        lines.extend(pm.value_checks(param, prefix))
    return lines


def _run_lines(command: Command, has_children: bool) -> list[str]:
    if command.func is None:
        # Nothing to run: ask for a subcommand if there is one to choose.
        return [f"_argsh_usage_{command.index}", "exit 0"] if has_children else []
    lines: list[str] = []
    if command.before:
        lines.append(command.before)
    lines.append(f'{command.func} ${{_argsh_positionals[@]+"${{_argsh_positionals[@]}}"}}')
    if command.after:
        lines.append(command.after)
    return lines


# ---------------------------------------------------------------------------
# Usage routine
# ---------------------------------------------------------------------------


def _usage_routine(tree: CommandTree, command: Command, options: CompileOptions) -> str:
    text = usage_text(tree, command, options)
    delimiter = "__ARGSH_USAGE__"
    existing = set(text.splitlines())
    suffix = 0
    while delimiter in existing:
        suffix += 1
        delimiter = f"__ARGSH_USAGE_{suffix}__"
    lines = [
        f"_argsh_usage_{command.index}() {{",
        f"{INDENT}cat <<'{delimiter}'",
        text,
        delimiter,
        "}",
    ]
    return "\n".join(lines)


def usage_text(tree: CommandTree, command: Command, options: CompileOptions) -> str:
    """Render the ``--help`` text of *command*.

    Example output::

        deploy 1.2.0
        Ship the current build.

        USAGE: deploy [OPTIONS] <TARGET> <COMMAND>

        ARGS:
          <TARGET>  Where to deploy

        OPTIONS:
          -f, --force    Skip confirmation
          -h, --help     Print help
    """
    children = tree.children_of(command)
    help_forms = _help_forms(command, options)
    version_forms = _version_forms(command, options)
    sections: list[str] = []

    header: list[str] = []
    if command.is_root and command.version:
        header.append(f"{options.prog} {command.version}")
    if command.is_root and command.author:
        header.append(command.author)
    if command.help:
        header.append(command.help)
    if header:
        sections.append("\n".join(header))

    synopsis = [_display_path(tree, command, options)]
    optional_options = [p for p in command.options if not p.required]
    if optional_options or help_forms or version_forms:
        synopsis.append("[OPTIONS]")
    synopsis.extend(pm.usage_token(p) for p in command.options if p.required)
    synopsis.extend(pm.usage_token(p) for p in command.positionals)
    if children:
        synopsis.append("<COMMAND>" if command.func is None else "[COMMAND]")
    sections.append("USAGE: " + " ".join(synopsis))

    if command.positionals:
        rows = [pm.usage_row(p) for p in command.positionals]
        sections.append("ARGS:\n" + _format_rows(rows))

    option_rows = [pm.usage_row(p) for p in command.options]
    if help_forms:
        option_rows.append((_forms_column(help_forms), "Print help"))
    if version_forms:
        option_rows.append((_forms_column(version_forms), "Print version"))
    if option_rows:
        sections.append("OPTIONS:\n" + _format_rows(option_rows))

    if children:
        rows = [
            (", ".join([child.name, *child.aliases]), child.help.split("\n", 1)[0])
            for child in children
        ]
        sections.append("COMMANDS:\n" + _format_rows(rows))

    return "\n\n".join(sections)


def _forms_column(forms: list[str]) -> str:
    if len(forms) == 2:
        return ", ".join(forms)
    form = forms[0]
    return form if not form.startswith("--") else f"    {form}"


def _format_rows(rows: list[tuple[str, str]]) -> str:
    width = max(len(left) for left, _ in rows)
    out: list[str] = []
    for left, right in rows:
        help_lines = right.split("\n") if right else [""]
        out.append(f"  {left.ljust(width)}  {help_lines[0]}".rstrip())
        for extra in help_lines[1:]:
            out.append(f"  {'':{width}}  {extra}".rstrip())
    return "\n".join(out)
