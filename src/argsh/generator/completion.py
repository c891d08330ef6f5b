"""Compute shell completion candidates from a command tree.

:func:`complete` answers one completion request: given the words on the
command line and the index of the word under the cursor, it replays the
generated dispatcher over the words *before* the cursor to find the active
command, then lists what may come next:

* if the previous option still expects a value, that option's choices;
* if the partial word starts with ``-``, the active command's options that
  have not been used yet (long form preferred) followed by ``--help``;
  ``--name=`` prefixes complete the option's choices;
* otherwise the active command's subcommand names and aliases (only while
  no positional has been given) and the choices of the next positional.

Dynamic choices (``[`fn`]``) come from a :class:`HookRunner`. The default
:class:`ScriptHookRunner` runs the compiled script with ``ARGSH_HOOK=fn``
set, which makes the generated dispatcher call ``fn`` and exit.

Candidates keep declaration order and are filtered by the partial word.
Completion fails closed: any internal problem yields an empty candidate
list, and hook failures become warning diagnostics.

:func:`render_completion_script` produces the bash ``complete -F`` driver
that feeds ``COMP_WORDS`` to ``argsh complete``.
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Protocol

from argsh import __version__
from argsh.exceptions import HookError
from argsh.generator.bash import create_jinja_env
from argsh.generator.param_mapper import shell_quote
from argsh.models import (
    Command,
    CommandTree,
    Diagnostic,
    ParamDescriptor,
    Severity,
    Stage,
    shell_identifier,
)

logger = logging.getLogger(__name__)

HOOK_ENV_VAR = "ARGSH_HOOK"


class HookRunner(Protocol):
    """Calls a candidate hook by name and returns its output lines.

    Implementations raise :class:`~argsh.exceptions.HookError` when the hook
    cannot be run.
    """

    def __call__(self, fn: str, words: list[str]) -> list[str]: ...


class ScriptHookRunner:
    """Run candidate hooks by invoking the compiled script with ``bash``.

    Args:
        script: Path of the script that contains the generated parser.
        timeout: Seconds to wait for the hook before giving up.
    """

    def __init__(self, script: str | Path, timeout: float = 5.0) -> None:
        self.script = Path(script)
        self.timeout = timeout

    def __call__(self, fn: str, words: list[str]) -> list[str]:
        env = {**os.environ, HOOK_ENV_VAR: fn}
        try:
            proc = subprocess.run(
                ["bash", str(self.script), *words],
                env=env,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise HookError(f"hook '{fn}' timed out after {self.timeout:g}s") from exc
        except OSError as exc:
            raise HookError(f"cannot run hook '{fn}': {exc}") from exc

        if proc.returncode != 0:
            detail = proc.stderr.strip().splitlines()
            reason = detail[-1] if detail else f"exit status {proc.returncode}"
            raise HookError(f"hook '{fn}' failed: {reason}")
        return [line for line in proc.stdout.splitlines() if line]


@dataclass
class _CursorState:
    """Where the dispatcher stands after the words before the cursor."""

    command: Command
    used: set[str] = field(default_factory=set)
    positional_count: int = 0
    pending: Optional[ParamDescriptor] = None
    pending_values: int = 0
    options_ended: bool = False


def complete(
    tree: CommandTree,
    words: list[str],
    cword: int,
    hook_runner: Optional[HookRunner] = None,
    add_help: bool = True,
) -> tuple[list[str], list[Diagnostic]]:
    """List completion candidates for ``words[cword]``.

    Args:
        tree: A validated command tree.
        words: The command line split into words; ``words[0]`` is the
            program name. ``cword`` may equal ``len(words)`` when the cursor
            sits on a fresh, empty word.
        cword: Index of the word being completed.
        hook_runner: Runs ``[`fn`]`` candidate hooks. Without one, dynamic
            choices are skipped.
        add_help: Whether ``--help`` is offered (mirrors
            :attr:`~argsh.models.CompileOptions.add_help`).

    Returns:
        ``(candidates, diagnostics)``. Diagnostics only report hook failures.

    Example::

        complete(tree, ["deploy", "--ta"], 1)
        # -> (['--target'], [])
    """
    diagnostics: list[Diagnostic] = []
    try:
        words, cword, split = _join_equals(words, cword)
        candidates = _complete(tree, words, cword, hook_runner, add_help, diagnostics)
    except Exception:  # noqa: BLE001 - a broken completion must not break the shell
        logger.debug("completion failed for %r at %d", words, cword, exc_info=True)
        return [], diagnostics
    if split:
        # Readline only replaces the text after '=', so drop the option part.
        candidates = [c.partition("=")[2] for c in candidates]
    return candidates, diagnostics


def _join_equals(words: list[str], cword: int) -> tuple[list[str], int, bool]:
    """Undo bash's ``COMP_WORDBREAKS`` split of ``--opt=value``.

    Bash hands ``--env=d`` over as ``--env``, ``=``, ``d``. The words are
    joined back into ``--env=d`` and *cword* is moved to match. The flag in
    the result tells whether the word under the cursor was rejoined.
    """
    joined: list[str] = []
    new_cword = cword
    split = False
    i = 0
    while i < len(words):
        word = words[i]
        if word == "=" and joined and joined[-1].startswith("-") and "=" not in joined[-1]:
            start = i - 1
            joined[-1] += "="
            end = i
            if i + 1 < len(words) and i != cword and words[i + 1] != "=":
                joined[-1] += words[i + 1]
                end = i + 1
            if start <= cword <= end:
                new_cword = len(joined) - 1
                split = cword > start
            elif cword > end:
                new_cword -= end - start
            i = end + 1
            continue
        joined.append(word)
        i += 1
    return joined, new_cword, split


def _complete(
    tree: CommandTree,
    words: list[str],
    cword: int,
    hook_runner: Optional[HookRunner],
    add_help: bool,
    diagnostics: list[Diagnostic],
) -> list[str]:
    if cword < 1 or cword > len(words):
        return []
    current = words[cword] if cword < len(words) else ""
    state = _replay(tree, words[1:cword])
    hook_words = [*words[1:cword], current]

    def values_of(param: ParamDescriptor) -> list[str]:
        return _value_candidates(param, hook_words, hook_runner, diagnostics)

    if state.pending is not None:
        return _matching(values_of(state.pending), current)

    command = state.command
    if not state.options_ended and current.startswith("-"):
        name, eq, partial = current.partition("=")
        if eq:
            param = command.find_option(name)
            if param is None or param.is_flag:
                return []
            return [f"{name}={value}" for value in _matching(values_of(param), partial)]

        names = [
            param.long or param.short
            for param in command.options
            if param.multiple or param.name not in state.used
        ]
        if add_help and command.find_option("--help") is None:
            names.append("--help")
        return _matching([n for n in names if n], current)

    candidates: list[str] = []
    if state.positional_count == 0 and not state.options_ended:
        for child in tree.children_of(command):
            candidates.append(child.name)
            candidates.extend(child.aliases)
    positional = _positional_at(command, state.positional_count)
    if positional is not None:
        candidates.extend(values_of(positional))
    return _matching(candidates, current)


def _replay(tree: CommandTree, words: list[str]) -> _CursorState:
    """Walk *words* the way the generated parse routines do."""
    state = _CursorState(command=tree.root)
    for word in words:
        if state.pending is not None:
            state.pending_values -= 1
            if state.pending_values <= 0:
                state.pending = None
            continue
        if state.options_ended:
            state.positional_count += 1
            continue
        if word == "--":
            state.options_ended = True
        elif word.startswith("-") and len(word) > 1:
            _replay_option(state, word)
        else:
            child = tree.find_child(state.command, word) if state.positional_count == 0 else None
            if child is not None:
                state = _CursorState(command=child)
            else:
                state.positional_count += 1
    return state


def _replay_option(state: _CursorState, word: str) -> None:
    command = state.command
    name, eq, _ = word.partition("=")
    param = command.find_option(name)
    if param is not None:
        _expect_values(state, param, supplied=1 if eq else 0)
        return
    if word.startswith("--"):
        return
    # -abc cluster: flags until the first option, which takes the rest.
    for pos in range(1, len(word)):
        param = command.find_option("-" + word[pos])
        if param is None:
            return
        if not param.is_flag:
            _expect_values(state, param, supplied=1 if word[pos + 1:] else 0)
            return
        state.used.add(param.name)


def _expect_values(state: _CursorState, param: ParamDescriptor, supplied: int) -> None:
    state.used.add(param.name)
    if param.is_flag:
        return
    remaining = param.values_per_occurrence - supplied
    if remaining > 0:
        state.pending = param
        state.pending_values = remaining


def _positional_at(command: Command, index: int) -> Optional[ParamDescriptor]:
    positionals = command.positionals
    if index < len(positionals):
        return positionals[index]
    if positionals and positionals[-1].multiple:
        return positionals[-1]
    return None


def _value_candidates(
    param: ParamDescriptor,
    words: list[str],
    hook_runner: Optional[HookRunner],
    diagnostics: list[Diagnostic],
) -> list[str]:
    values = list(param.choices)
    if param.choices_fn and hook_runner is not None:
        try:
            values.extend(hook_runner(param.choices_fn, words))
        except HookError as exc:
            diagnostics.append(
                Diagnostic(
                    line=param.line,
                    message=str(exc),
                    severity=Severity.WARNING,
                    stage=Stage.COMPLETION,
                )
            )
    return values


def _matching(candidates: list[str], partial: str) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for candidate in candidates:
        if candidate.startswith(partial) and candidate not in seen:
            seen.add(candidate)
            result.append(candidate)
    return result


def render_completion_script(prog: str, script: str | Path) -> str:
    """Render the bash completion driver for *prog*.

    The driver registers a ``complete -F`` function that calls
    ``argsh complete <script> <cword> -- <words...>`` and falls back to file
    name completion when no candidates come back.

    Args:
        prog: Command name the completion is registered for.
        script: Path of the annotated script, as passed to ``argsh complete``.
    """
    env = create_jinja_env()
    template = env.get_template("completion.sh.j2")
    return template.render(
        version=__version__,
        prog=shell_quote(prog),
        script=shell_quote(str(script)),
        function=f"_argsh_complete_{shell_identifier(prog)}",
    )
