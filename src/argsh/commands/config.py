"""Config commands -- view and modify global configuration.

Provides the ``argsh config`` sub-command group for reading, updating, and
resetting the user's global configuration file
(:class:`~argsh.models.GlobalConfig`). Settings are persisted in the argsh
config directory and control defaults such as the variable prefix, help
synthesis, and the completion hook timeout.
"""

from __future__ import annotations

from typing import Any

import typer

from argsh.commands.common import handle_errors
from argsh.exceptions import InvalidUsageError
from argsh.output import OutputFormat, get_output, info, print_json, print_table, success


config_app = typer.Typer(no_args_is_help=True)


def _flatten(data: dict[str, Any], prefix: str = "") -> list[list[str]]:
    rows: list[list[str]] = []
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            rows.extend(_flatten(value, f"{dotted}."))
        else:
            rows.append([dotted, str(value)])
    return rows


@config_app.command("show")
def config_show() -> None:
    """Show current configuration.

    Prints the config directory path followed by every setting, one
    ``key value`` row per line (or the raw object with ``--json``).

    Example::

        argsh config show
        argsh --json config show
    """
    from argsh.config import get_config_dir, load_global_config

    with handle_errors():
        config = load_global_config()
        info(f"Config directory: {get_config_dir()}")
        data = config.model_dump(mode="json")
        if get_output().format == OutputFormat.JSON:
            print_json(data)
        else:
            print_table(["Key", "Value"], _flatten(data), title="argsh configuration")


def _coerce(key: str, current: Any, value: str) -> Any:
    """Coerce *value* to the type of the field's *current* value."""
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes", "on")
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError:
            raise InvalidUsageError(f"Expected integer for {key}, got: {value}") from None
    if isinstance(current, float):
        try:
            return float(value)
        except ValueError:
            raise InvalidUsageError(f"Expected number for {key}, got: {value}") from None
    return value


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'compile.prefix')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to match the
    existing field's type (bool, int, float, or str) and the updated
    config is validated against :class:`~argsh.models.GlobalConfig`
    before saving. Invalid keys and values exit with code 2.

    Example::

        argsh config set compile.prefix opt
        argsh config set compile.add_help false
        argsh config set completion.hook_timeout 2.5
    """
    from pydantic import ValidationError

    from argsh.config import load_global_config, save_global_config
    from argsh.models import GlobalConfig

    with handle_errors():
        data = load_global_config().model_dump(mode="json")

        # Navigate the dot-separated key path.
        keys = key.split(".")
        target = data
        for k in keys[:-1]:
            if k not in target or not isinstance(target[k], dict):
                raise InvalidUsageError(f"Invalid config key: {key}")
            target = target[k]

        final_key = keys[-1]
        if final_key not in target or isinstance(target[final_key], dict):
            raise InvalidUsageError(f"Unknown config key: {key}")

        coerced = _coerce(key, target[final_key], value)
        target[final_key] = coerced

        try:
            new_config = GlobalConfig.model_validate(data)
        except ValidationError as exc:
            raise InvalidUsageError(f"Validation error: {exc}") from None

        save_global_config(new_config)
        success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(
    ctx: typer.Context,
) -> None:
    """Reset configuration to defaults.

    Replaces the persisted global config with a fresh
    :class:`~argsh.models.GlobalConfig`. Asks for confirmation unless
    ``--force`` is active.

    Example::

        argsh config reset
        argsh --force config reset
    """
    from argsh.config import save_global_config
    from argsh.models import GlobalConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
