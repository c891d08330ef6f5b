"""Run generated parsers under a real bash.

Covers:
- Dispatch to subcommands, aliases and nested commands
- Scripts with options only finish without printing usage
- Option binding: separate values, ``=`` values, short clusters
- Runtime errors: bad choices, missing values, numbers, unknown input
- Environment variable fallbacks and defaults
- --help / --version handling
- Completion hooks invoked through ARGSH_HOOK
"""

from __future__ import annotations

import os
import shutil
import subprocess
from pathlib import Path

import pytest

from argsh.commands.build import inline_parser
from argsh.compiler import compile_source
from argsh.models import CompileOptions

pytestmark = pytest.mark.skipif(shutil.which("bash") is None, reason="bash is not installed")


def _build(source: str, path: Path, prog: str) -> Path:
    result = compile_source(source, CompileOptions(prog=prog))
    assert result.ok, [d.render() for d in result.diagnostics]
    path.write_text(inline_parser(source, result.code), encoding="utf-8")
    return path


def _run(script: Path, *args: str, **env: str) -> subprocess.CompletedProcess[str]:
    environ = {k: v for k, v in os.environ.items() if k not in ("DEPLOY_CONFIG", "ARGSH_HOOK")}
    environ.update(env)
    return subprocess.run(
        ["bash", str(script), *args],
        capture_output=True,
        text=True,
        env=environ,
        timeout=30,
    )


@pytest.fixture
def deploy(tmp_path: Path, deploy_source: str) -> Path:
    return _build(deploy_source, tmp_path / "deploy", "deploy")


# ---------------------------------------------------------------------------
# Dispatch and binding
# ---------------------------------------------------------------------------


class TestDispatch:
    def test_upload(self, deploy: Path) -> None:
        result = _run(deploy, "upload", "-e", "dev", "a.tar", "b.tar")
        assert result.returncode == 0, result.stderr
        assert result.stdout.splitlines() == [
            "env=dev retries=3 force=0 verbose=0 config=",
            "files=a.tar b.tar",
        ]

    def test_alias(self, deploy: Path) -> None:
        result = _run(deploy, "up", "--env=prod", "x")
        assert result.returncode == 0, result.stderr
        assert result.stdout.startswith("env=prod ")

    def test_root_options_before_command(self, deploy: Path) -> None:
        result = _run(deploy, "-v", "--config", "c.conf", "upload", "-e", "dev", "x")
        assert result.returncode == 0, result.stderr
        assert "verbose=1 config=c.conf" in result.stdout

    def test_nested_command(self, deploy: Path) -> None:
        result = _run(deploy, "db", "migrate")
        assert result.returncode == 0, result.stderr
        assert result.stdout == "migrate latest\n"

    def test_nested_with_hook_validated_value(self, deploy: Path) -> None:
        assert _run(deploy, "db", "migrate", "head").stdout == "migrate head\n"

        result = _run(deploy, "db", "migrate", "tail")
        assert result.returncode == 1
        assert "invalid value 'tail' for '<TARGET>' [possible values: head, base]" in result.stderr

    def test_parent_command_runs_without_child(self, deploy: Path) -> None:
        assert _run(deploy, "db").stdout == "db\n"

    def test_no_command_prints_usage(self, deploy: Path) -> None:
        result = _run(deploy)
        assert result.returncode == 0
        assert "USAGE: deploy" in result.stdout

    def test_options_only_script_finishes_quietly(self, tmp_path: Path) -> None:
        script = _build("# @flag --dry\n# @option --mode\n", tmp_path / "opts", "opts")
        result = _run(script, "--dry", "--mode", "fast")
        assert (result.returncode, result.stdout, result.stderr) == (0, "", "")
        assert _run(script, "--nope").returncode == 1


class TestClusters:
    def test_flag_then_option(self, deploy: Path) -> None:
        result = _run(deploy, "upload", "-fe", "dev", "x")
        assert result.returncode == 0, result.stderr
        assert "env=dev retries=3 force=1" in result.stdout

    def test_attached_value(self, deploy: Path) -> None:
        result = _run(deploy, "upload", "-eprod", "x")
        assert result.returncode == 0, result.stderr
        assert result.stdout.startswith("env=prod ")

    def test_repeated_counting_flag(self, deploy: Path) -> None:
        result = _run(deploy, "-vv", "upload", "-e", "dev", "x")
        assert "verbose=2" in result.stdout

    def test_cluster_equals_separate_flags(self, tmp_path: Path) -> None:
        source = '# @flag -a\n# @flag -b\nmain() {\n    echo "a=${argsh_a:-0} b=${argsh_b:-0}"\n}\n'
        script = _build(source, tmp_path / "ab", "ab")
        assert _run(script, "-ab").stdout == _run(script, "-a", "-b").stdout == "a=1 b=1\n"


class TestOptionVersusCommand:
    @pytest.fixture
    def script(self, tmp_path: Path) -> Path:
        source = (
            "# @option --bar\n"
            "main() {\n"
            '    echo "root bar=${argsh_bar:-}"\n'
            "}\n"
            "\n"
            "# @cmd Bar command\n"
            "bar() {\n"
            "    echo sub\n"
            "}\n"
        )
        return _build(source, tmp_path / "foo", "foo")

    def test_option_binds(self, script: Path) -> None:
        assert _run(script, "--bar", "value").stdout == "root bar=value\n"

    def test_bare_name_dispatches(self, script: Path) -> None:
        assert _run(script, "bar").stdout == "sub\n"


class TestArity:
    @pytest.fixture
    def script(self, tmp_path: Path) -> Path:
        source = (
            "# @option --pair <A> <B>\n"
            "main() {\n"
            '    printf \'%s\\n\' "${argsh_pair[@]}"\n'
            "}\n"
        )
        return _build(source, tmp_path / "pair", "pair")

    def test_exact(self, script: Path) -> None:
        result = _run(script, "--pair", "x", "y")
        assert result.returncode == 0, result.stderr
        assert result.stdout == "x\ny\n"

    @pytest.mark.parametrize("args", [["--pair"], ["--pair", "x"]])
    def test_too_few(self, script: Path, args: list[str]) -> None:
        result = _run(script, *args)
        assert result.returncode == 1
        assert "option '--pair' requires 2 values" in result.stderr

    def test_extra_value_is_positional(self, script: Path) -> None:
        result = _run(script, "--pair", "x", "y", "z")
        assert result.returncode == 1
        assert "unexpected argument 'z'" in result.stderr


# ---------------------------------------------------------------------------
# Runtime errors
# ---------------------------------------------------------------------------


class TestErrors:
    def test_invalid_choice(self, deploy: Path) -> None:
        result = _run(deploy, "upload", "-e", "staging", "x")
        assert result.returncode == 1
        assert result.stdout == ""
        assert (
            "error: invalid value 'staging' for '--env <ENV>' [possible values: dev, prod]"
            in result.stderr
        )

    def test_missing_values_reported_together(self, deploy: Path) -> None:
        result = _run(deploy, "upload")
        assert result.returncode == 1
        lines = result.stderr.splitlines()
        assert "error: missing required option '--env <ENV>'" in lines
        assert "error: missing required argument '<FILE>'" in lines
        assert "For more information, try 'deploy upload --help'." in lines

    def test_not_a_number(self, deploy: Path) -> None:
        result = _run(deploy, "upload", "-e", "dev", "-r", "many", "x")
        assert result.returncode == 1
        assert "invalid value 'many' for '--retries <NUM>': expected a number" in result.stderr

    def test_unknown_command(self, deploy: Path) -> None:
        result = _run(deploy, "nope")
        assert result.returncode == 1
        assert "error: unknown command 'nope'" in result.stderr

    def test_unknown_option(self, deploy: Path) -> None:
        result = _run(deploy, "upload", "--bogus")
        assert result.returncode == 1
        assert "error: unknown option '--bogus'" in result.stderr

    def test_flag_with_value(self, deploy: Path) -> None:
        result = _run(deploy, "upload", "--force=yes")
        assert result.returncode == 1
        assert "flag '--force' does not take a value" in result.stderr

    def test_single_option_repeated(self, deploy: Path) -> None:
        result = _run(deploy, "upload", "-e", "dev", "-e", "prod", "x")
        assert result.returncode == 1
        assert "option '--env' cannot be used multiple times" in result.stderr


# ---------------------------------------------------------------------------
# Fallbacks, help and hooks
# ---------------------------------------------------------------------------


class TestFallbacks:
    def test_env_var(self, deploy: Path) -> None:
        result = _run(deploy, "upload", "-e", "dev", "x", DEPLOY_CONFIG="/etc/deploy.conf")
        assert "config=/etc/deploy.conf" in result.stdout

    def test_flag_overrides_env(self, deploy: Path) -> None:
        result = _run(deploy, "-c", "cli.conf", "upload", "-e", "dev", "x", DEPLOY_CONFIG="env.conf")
        assert "config=cli.conf" in result.stdout


class TestHelpAndVersion:
    def test_root_help(self, deploy: Path) -> None:
        result = _run(deploy, "--help")
        assert result.returncode == 0
        assert "Ship builds to an environment." in result.stdout
        assert "USAGE: deploy" in result.stdout

    def test_command_help(self, deploy: Path) -> None:
        result = _run(deploy, "up", "-h")
        assert result.returncode == 0
        assert "USAGE: deploy upload" in result.stdout
        assert "[possible values: dev, prod]" in result.stdout

    def test_help_wins_over_errors(self, deploy: Path) -> None:
        assert _run(deploy, "upload", "--help").returncode == 0

    def test_version(self, deploy: Path) -> None:
        result = _run(deploy, "-V")
        assert result.returncode == 0
        assert result.stdout == "deploy 1.2.0\n"


class TestHooks:
    def test_hook_output(self, deploy: Path) -> None:
        result = _run(deploy, ARGSH_HOOK="_list_targets")
        assert result.returncode == 0
        assert result.stdout.splitlines() == ["head", "base"]

    def test_unknown_hook(self, deploy: Path) -> None:
        result = _run(deploy, ARGSH_HOOK="rm")
        assert result.returncode == 1
        assert "unknown completion hook 'rm'" in result.stderr
