"""Tests for the argsh command-line interface.

Covers:
- compile: stdout, --output, --prefix, diagnostics and exit codes
- build: standalone executable with the eval line replaced
- check: clean, warning-only and failing scripts
- inspect: plain table and --json tree
- complete / completion show / completion install
- config show / set / reset
- Global --version
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path

import pytest
from typer.testing import CliRunner

from argsh.app import app
from argsh.exit_codes import EXIT_COMPILE_ERROR, EXIT_INVALID_USAGE, EXIT_SOURCE_NOT_FOUND

runner = CliRunner()

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")


def _strip_ansi(text: str) -> str:
    return _ANSI_RE.sub("", text)


def _invoke(*args: str):
    return runner.invoke(app, ["--no-color", *args])


@pytest.fixture
def bad_script(tmp_path: Path) -> Path:
    path = tmp_path / "bad.sh"
    path.write_text("# @option --foo=x[a|b]\n# @arg a*\n# @arg b*\nmain() {\n}\n")
    return path


# ---------------------------------------------------------------------------
# compile
# ---------------------------------------------------------------------------


class TestCompile:
    def test_prints_code(self, isolated_config: Path, deploy_script: Path) -> None:
        result = _invoke("compile", str(deploy_script))
        assert result.exit_code == 0, result.output
        assert result.stdout.rstrip().endswith('_argsh_main "$@"')
        assert "for deploy.sh." in result.stdout

    def test_prog_and_prefix(self, isolated_config: Path, deploy_script: Path) -> None:
        result = _invoke("compile", str(deploy_script), "--prog", "ship", "--prefix", "opt")
        assert result.exit_code == 0, result.output
        assert "unset opt_env" in result.stdout
        assert "'ship 1.2.0'" in result.stdout

    def test_prefix_from_project_config(self, isolated_config: Path, deploy_script: Path) -> None:
        (isolated_config / "argsh.json").write_text('{"compile": {"prefix": "proj"}}')
        result = _invoke("compile", str(deploy_script))
        assert "unset proj_env" in result.stdout

    def test_no_help(self, isolated_config: Path, deploy_script: Path) -> None:
        result = _invoke("compile", str(deploy_script), "--no-help")
        assert "-h|--help)" not in result.stdout

    def test_output_file(self, isolated_config: Path, deploy_script: Path, tmp_path: Path) -> None:
        target = tmp_path / "out" / "parser.sh"
        result = _invoke("compile", str(deploy_script), "-o", str(target))
        assert result.exit_code == 0, result.output
        assert "_argsh_parse_0()" in target.read_text()
        assert "Wrote parser" in result.output

    def test_errors_exit_with_compile_code(self, isolated_config: Path, bad_script: Path) -> None:
        result = _invoke("compile", str(bad_script))
        assert result.exit_code == EXIT_COMPILE_ERROR
        output = _strip_ansi(result.output)
        assert f"{bad_script}:1: error: default 'x'" in output
        assert f"{bad_script}:3: error: 'b' is a second variadic" in output
        assert "2 errors in" in output
        assert "_argsh_main" not in output

    def test_missing_script(self, isolated_config: Path, tmp_path: Path) -> None:
        result = _invoke("compile", str(tmp_path / "nope.sh"))
        assert result.exit_code == EXIT_SOURCE_NOT_FOUND
        assert "Script not found" in result.output


# ---------------------------------------------------------------------------
# build
# ---------------------------------------------------------------------------


class TestBuild:
    def test_standalone_script(self, isolated_config: Path, deploy_script: Path, tmp_path: Path) -> None:
        target = tmp_path / "dist" / "deploy"
        result = _invoke("build", str(deploy_script), "-o", str(target))
        assert result.exit_code == 0, result.output

        text = target.read_text()
        assert os.access(target, os.X_OK)
        assert text.startswith("#!/usr/bin/env bash\n")
        assert "upload() {" in text
        assert 'eval "$(argsh compile' not in text
        assert text.rstrip().endswith('_argsh_main "$@"')
        assert "for deploy." in text

    def test_requires_output(self, isolated_config: Path, deploy_script: Path) -> None:
        result = _invoke("build", str(deploy_script))
        assert result.exit_code != 0

    def test_errors(self, isolated_config: Path, bad_script: Path, tmp_path: Path) -> None:
        target = tmp_path / "out"
        result = _invoke("build", str(bad_script), "-o", str(target))
        assert result.exit_code == EXIT_COMPILE_ERROR
        assert not target.exists()


# ---------------------------------------------------------------------------
# check / inspect
# ---------------------------------------------------------------------------


class TestCheck:
    def test_clean(self, isolated_config: Path, deploy_script: Path) -> None:
        result = _invoke("check", str(deploy_script))
        assert result.exit_code == 0
        assert "no problems found" in result.output

    def test_warnings(self, isolated_config: Path, tmp_path: Path) -> None:
        script = tmp_path / "warn.sh"
        script.write_text("# @cmd Go\n# @alias go\ngo() {\n}\n")
        result = _invoke("check", str(script))
        assert result.exit_code == 0
        assert "warning: alias 'go' repeats" in result.output
        assert "1 warning(s)" in result.output

    def test_quiet_hides_warnings(self, isolated_config: Path, tmp_path: Path) -> None:
        script = tmp_path / "warn.sh"
        script.write_text("# @cmd Go\n# @alias go\ngo() {\n}\n")
        result = _invoke("--quiet", "check", str(script))
        assert result.exit_code == 0
        assert "warning" not in result.output

    def test_errors(self, isolated_config: Path, bad_script: Path) -> None:
        result = _invoke("check", str(bad_script))
        assert result.exit_code == EXIT_COMPILE_ERROR


class TestInspect:
    def test_plain_table(self, isolated_config: Path, deploy_script: Path) -> None:
        result = _invoke("--plain", "inspect", str(deploy_script))
        assert result.exit_code == 0, result.output
        lines = result.stdout.splitlines()
        assert lines[0] == "Command\tAliases\tFunction\tParameters\tHelp"
        assert "(root)\t\t\t--verbose --config\tShip builds to an environment." in lines
        assert "upload\tup\tupload\t--env --retries --force <files>\tUpload a build" in lines
        assert any(line.startswith("db migrate\t") for line in lines)

    def test_json(self, isolated_config: Path, deploy_script: Path) -> None:
        result = _invoke("--json", "inspect", str(deploy_script))
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert [node["name"] for node in data["nodes"]] == ["", "upload", "db", "migrate"]
        assert data["nodes"][1]["aliases"] == ["up"]


# ---------------------------------------------------------------------------
# completion
# ---------------------------------------------------------------------------


class TestComplete:
    def test_candidates(self, isolated_config: Path, deploy_script: Path) -> None:
        result = _invoke("complete", str(deploy_script), "1", "--", "deploy", "")
        assert result.exit_code == 0, result.output
        assert result.stdout.splitlines() == ["upload", "up", "db"]

    def test_option_values(self, isolated_config: Path, deploy_script: Path) -> None:
        result = _invoke("complete", str(deploy_script), "3", "--", "deploy", "upload", "--env", "")
        assert result.stdout.splitlines() == ["dev", "prod"]

    def test_option_value_after_split_equals(self, isolated_config: Path, deploy_script: Path) -> None:
        result = _invoke("complete", str(deploy_script), "4", "--", "deploy", "upload", "--env", "=", "p")
        assert result.exit_code == 0, result.output
        assert result.stdout.splitlines() == ["prod"]

    def test_broken_script_is_silent(self, isolated_config: Path, bad_script: Path) -> None:
        result = _invoke("complete", str(bad_script), "1", "--", "bad", "")
        assert result.exit_code == 0
        assert result.stdout == ""

    def test_missing_script_is_silent(self, isolated_config: Path, tmp_path: Path) -> None:
        result = _invoke("complete", str(tmp_path / "nope.sh"), "1", "--", "x", "")
        assert result.exit_code == 0
        assert result.stdout == ""

    def test_show(self, isolated_config: Path, deploy_script: Path) -> None:
        result = _invoke("completion", "show", str(deploy_script), "--prog", "deploy")
        assert result.exit_code == 0, result.output
        assert "complete -F _argsh_complete_deploy deploy" in result.stdout
        assert str(deploy_script.resolve()) in result.stdout

    def test_install(
        self,
        isolated_config: Path,
        deploy_script: Path,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        home = tmp_path / "home"
        monkeypatch.setattr(Path, "home", classmethod(lambda cls: home))
        result = _invoke("completion", "install", str(deploy_script))
        assert result.exit_code == 0, result.output
        installed = home / ".bash_completion.d" / "deploy.sh"
        assert "complete -F _argsh_complete_deploy_sh deploy.sh" in installed.read_text()
        assert "source" in result.output


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


class TestConfigCommands:
    def test_show(self, isolated_config: Path) -> None:
        result = _invoke("--plain", "config", "show")
        assert result.exit_code == 0, result.output
        assert "compile.prefix\targsh" in result.stdout
        assert "completion.hook_timeout\t5.0" in result.stdout

    def test_show_json(self, isolated_config: Path) -> None:
        result = _invoke("--json", "--quiet", "config", "show")
        data = json.loads(result.stdout)
        assert data["compile"]["add_help"] is True

    def test_set(self, isolated_config: Path) -> None:
        from argsh.config import load_global_config

        assert _invoke("config", "set", "compile.prefix", "opt").exit_code == 0
        assert _invoke("config", "set", "compile.add_help", "false").exit_code == 0
        assert _invoke("config", "set", "completion.hook_timeout", "2.5").exit_code == 0

        config = load_global_config()
        assert config.compile.prefix == "opt"
        assert config.compile.add_help is False
        assert config.completion.hook_timeout == 2.5

    def test_set_unknown_key(self, isolated_config: Path) -> None:
        result = _invoke("config", "set", "compile.nope", "x")
        assert result.exit_code == EXIT_INVALID_USAGE
        assert "Unknown config key" in result.output

    def test_set_section_is_rejected(self, isolated_config: Path) -> None:
        result = _invoke("config", "set", "compile", "x")
        assert result.exit_code == EXIT_INVALID_USAGE

    def test_set_invalid_value(self, isolated_config: Path) -> None:
        result = _invoke("config", "set", "completion.hook_timeout", "soon")
        assert result.exit_code == EXIT_INVALID_USAGE
        assert "Expected number" in result.output

    def test_set_fails_validation(self, isolated_config: Path) -> None:
        result = _invoke("config", "set", "compile.prefix", "9bad")
        assert result.exit_code == EXIT_INVALID_USAGE
        assert "Validation error" in result.output

    def test_reset_with_force(self, isolated_config: Path) -> None:
        from argsh.config import load_global_config

        _invoke("config", "set", "compile.prefix", "opt")
        result = _invoke("--force", "config", "reset")
        assert result.exit_code == 0
        assert load_global_config().compile.prefix == "argsh"

    def test_reset_declined(self, isolated_config: Path) -> None:
        from argsh.config import load_global_config

        _invoke("config", "set", "compile.prefix", "opt")
        result = runner.invoke(app, ["--no-color", "config", "reset"], input="n\n")
        assert result.exit_code == 0
        assert load_global_config().compile.prefix == "opt"


class TestGlobalOptions:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.stdout.strip() == "argsh 0.3.0"

    def test_hidden_complete_not_listed(self) -> None:
        result = runner.invoke(app, ["--help"])
        output = _strip_ansi(result.stdout)
        assert "compile" in output
        assert "complete " not in output
