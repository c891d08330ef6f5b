"""Tests for argsh.generator.validator.

Covers:
- Duplicate forms, names and shell variables within a command
- Warnings for params that reuse an enclosing command's shell variable
- Positional ordering: one trailing variadic, no required after optional
- Defaults vs choices, required vs default, numeric defaults
- Flags with defaults or choices (programmatic trees)
- Alias rules among siblings
- Parent-chain cycles and inconsistent child maps
- Every violation is reported, sorted by line
"""

from __future__ import annotations

from argsh.generator.command_tree import build_command_tree
from argsh.generator.validator import command_label, validate
from argsh.models import CommandTree, ParamDescriptor, ParamKind, Severity, Stage
from argsh.parser.lexer import tokenize


def _validate(source: str):
    tokens, _ = tokenize(source)
    tree, tree_diags = build_command_tree(tokens)
    assert tree_diags == []
    return validate(tree)


def _errors(source: str) -> list[str]:
    return [d.message for d in _validate(source) if d.is_error]


class TestValidTrees:
    def test_fixture_is_valid(self, deploy_tree: CommandTree) -> None:
        assert validate(deploy_tree) == []

    def test_empty_tree(self) -> None:
        assert validate(CommandTree()) == []


class TestUniqueness:
    def test_duplicate_short_form(self) -> None:
        errors = _errors("# @option -f --file\n# @flag -f --force\n")
        assert len(errors) == 1
        assert "duplicate option '-f'" in errors[0]
        assert "first declared on line 1" in errors[0]

    def test_duplicate_name(self) -> None:
        errors = _errors("# @option --out\n# @arg out\n")
        assert errors == ["duplicate parameter name 'out' in the script"]

    def test_same_shell_variable(self) -> None:
        errors = _errors("# @option --dry-run\n# @flag --dry_run\n")
        assert "same shell variable suffix 'dry_run'" in errors[0]

    def test_same_names_in_sibling_commands_are_fine(self) -> None:
        source = (
            "# @cmd Go\n# @flag --force\ngo() {\n}\n"
            "# @cmd Stop\n# @flag --force\nstop() {\n}\n"
        )
        assert _validate(source) == []

    def test_child_reusing_ancestor_variable_warns(self) -> None:
        source = (
            "# @option --env\n"
            "# @cmd Db\n"
            "db() {\n"
            "}\n"
            "# @cmd Migrate\n"
            "# @option --env\n"
            "db::migrate() {\n"
        )
        diagnostics = _validate(source)
        assert [(d.line, d.severity) for d in diagnostics] == [(6, Severity.WARNING)]
        assert "reuses the shell variable of 'env' in the script (line 1)" in diagnostics[0].message
        assert "command 'db migrate'" in diagnostics[0].message

    def test_env_bound_twice_warns(self) -> None:
        diagnostics = _validate("# @option --a $TOKEN\n# @option --b $TOKEN\n")
        assert [d.severity for d in diagnostics] == [Severity.WARNING]


class TestPositionalOrder:
    def test_two_variadics(self) -> None:
        errors = _errors("# @arg a*\n# @arg b*\n")
        assert errors == ["'b' is a second variadic positional in the script"]

    def test_positional_after_variadic(self) -> None:
        errors = _errors("# @arg files*\n# @arg last\n")
        assert errors == ["positional 'last' follows variadic 'files' in the script"]

    def test_required_after_optional(self) -> None:
        errors = _errors("# @arg [first]\n# @arg <second>\n")
        assert errors == ["required positional 'second' follows optional 'first' in the script"]

    def test_required_then_variadic_is_fine(self) -> None:
        assert _validate("# @arg <src>\n# @arg rest*\n") == []


class TestValueRules:
    def test_default_not_in_choices(self) -> None:
        errors = _errors("# @option --foo=x[a|b]\n")
        assert errors == ["default 'x' of 'foo' in the script is not one of: a, b"]

    def test_default_in_choices(self) -> None:
        assert _validate("# @option --foo=a[a|b]\n") == []

    def test_required_with_default(self) -> None:
        errors = _errors("# @option --name!=x\n")
        assert errors == ["required parameter 'name' in the script cannot have a default value"]

    def test_required_positional_with_default(self) -> None:
        assert len(_errors("# @arg name!=x\n")) == 1

    def test_numeric_default(self) -> None:
        assert _validate("# @option --count=10 <NUM>\n") == []
        assert _validate("# @option --ratio=-0.5 <FLOAT>\n") == []

    def test_non_numeric_default(self) -> None:
        errors = _errors("# @option --count=ten <NUM>\n")
        assert errors == ["default 'ten' of 'count' in the script is not a number"]

    def test_flag_with_default(self) -> None:
        tree = CommandTree()
        tree.root.add_param(
            ParamDescriptor(name="x", kind=ParamKind.FLAG, long="--x", default="1", line=3)
        )
        diagnostics = validate(tree)
        assert [d.message for d in diagnostics] == ["flag 'x' in the script cannot have a default value"]
        assert diagnostics[0].stage == Stage.VALIDATION
        assert diagnostics[0].line == 3

    def test_flag_with_choices(self) -> None:
        tree = CommandTree()
        tree.root.add_param(
            ParamDescriptor(name="x", kind=ParamKind.FLAG, long="--x", choices=["a"])
        )
        assert "cannot have choices" in validate(tree)[0].message


class TestAliases:
    def test_alias_shadows_sibling(self) -> None:
        tree = CommandTree()
        tree.add_child(tree.root, "a", aliases=["b"], line=1)
        tree.add_child(tree.root, "b", line=2)
        messages = [d.message for d in validate(tree)]
        assert messages == ["alias 'b' of 'a' shadows a sibling command"]

    def test_alias_used_twice(self) -> None:
        tree = CommandTree()
        tree.add_child(tree.root, "a", aliases=["x"], line=1)
        tree.add_child(tree.root, "b", aliases=["x"], line=2)
        messages = [d.message for d in validate(tree)]
        assert messages == ["alias 'x' is used by both 'a' and 'b'"]

    def test_alias_equal_to_own_name_warns(self) -> None:
        diagnostics = _validate("# @cmd Go\n# @alias go\ngo() {\n")
        assert [(d.severity, d.message) for d in diagnostics] == [
            (Severity.WARNING, "alias 'go' repeats the command's own name")
        ]

    def test_same_alias_under_different_parents(self) -> None:
        tree = CommandTree()
        a = tree.add_child(tree.root, "a")
        b = tree.add_child(tree.root, "b")
        tree.add_child(a, "run", aliases=["r"])
        tree.add_child(b, "run", aliases=["r"])
        assert validate(tree) == []


class TestStructure:
    def test_cycle(self) -> None:
        tree = CommandTree()
        a = tree.add_child(tree.root, "a", line=1)
        b = tree.add_child(a, "b", line=2)
        a.parent = b.index
        messages = [d.message for d in validate(tree)]
        assert any("cyclic or dangling parent chain" in m for m in messages)

    def test_child_map_mismatch(self) -> None:
        tree = CommandTree()
        tree.add_child(tree.root, "a")
        tree.root.children["ghost"] = 1
        messages = [d.message for d in validate(tree)]
        assert "child entry 'ghost' does not point back at its parent" in messages


class TestReporting:
    def test_all_violations_sorted_by_line(self) -> None:
        source = (
            "# @option --foo=x[a|b]\n"
            "# @cmd Go\n"
            "# @option --name!=y\n"
            "# @arg a*\n"
            "# @arg b*\n"
            "go() {\n"
        )
        diagnostics = _validate(source)
        assert [d.line for d in diagnostics] == [1, 3, 5]
        assert all(d.is_error for d in diagnostics)

    def test_messages_name_the_command(self) -> None:
        errors = _errors("# @cmd Go\n# @arg a*\n# @arg b*\ngo() {\n")
        assert errors == ["'b' is a second variadic positional in command 'go'"]

    def test_command_label(self, deploy_tree: CommandTree) -> None:
        db = deploy_tree.find_child(deploy_tree.root, "db")
        migrate = deploy_tree.find_child(db, "migrate")
        assert command_label(deploy_tree, migrate) == "command 'db migrate'"
        assert command_label(deploy_tree, deploy_tree.root) == "the script"
