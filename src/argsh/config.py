"""Where argsh keeps its settings and how they are combined.

Settings come from five layers, highest first: command-line flags,
``ARGSH_*`` environment variables, ``./argsh.json`` in the working
directory, the user's ``config.json`` and the model defaults.
:func:`resolve_config` folds them into one validated
:class:`~argsh.models.GlobalConfig`.

The user file lives in ``$XDG_CONFIG_HOME/argsh`` on Linux and the BSDs and
in ``~/.argsh`` elsewhere. Every file argsh writes, including the scripts
produced by ``argsh build``, goes through :func:`atomic_write`.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from argsh.exceptions import ConfigError
from argsh.models import GlobalConfig

_APP_NAME = "argsh"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "argsh.json"

_TRUTHY = frozenset({"1", "true", "yes", "on"})


# --- Directories ---


def _is_xdg_platform() -> bool:
    system = platform.system()
    return system == "Linux" or system.endswith("BSD")


def _xdg_dir(env_var: str, *fallback: str) -> Path:
    value = os.environ.get(env_var, "")
    if value:
        return Path(value) / _APP_NAME
    return Path.home().joinpath(*fallback, _APP_NAME)


def get_config_dir() -> Path:
    """Directory holding ``config.json``; created on first use.

    ``$XDG_CONFIG_HOME/argsh`` (``~/.config/argsh``) on XDG platforms,
    ``~/.argsh`` on macOS and Windows.
    """
    if _is_xdg_platform():
        path = _xdg_dir("XDG_CONFIG_HOME", ".config")
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Directory for crash logs; created on first use.

    ``$XDG_DATA_HOME/argsh`` (``~/.local/share/argsh``) on XDG platforms,
    ``~/.argsh/logs`` elsewhere.
    """
    if _is_xdg_platform():
        path = _xdg_dir("XDG_DATA_HOME", ".local", "share")
    else:
        path = Path.home() / f".{_APP_NAME}" / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Writing files ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Replace *path* with *data* in one rename.

    The text goes to a hidden temporary file next to *path*, is synced, gets
    *mode* (e.g. ``0o755`` for built scripts) and is then moved over the
    target. Readers see either the old file or the complete new one. The
    temporary file is removed when anything fails.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = tempfile.NamedTemporaryFile(
        mode="w",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
        encoding="utf-8",
    )
    try:
        with tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        if mode is not None:
            os.chmod(tmp.name, mode)
        os.replace(tmp.name, path)
    except BaseException:
        try:
            os.unlink(tmp.name)
        except OSError:
            pass
        raise


# --- User config ---


def _global_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Read the user's ``config.json``; defaults when the file is absent.

    Raises:
        ConfigError: The file is not valid JSON or does not validate.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        return GlobalConfig.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    atomic_write(_global_config_path(), json.dumps(config.model_dump(mode="json"), indent=2) + "\n")


# --- Project-local config ---


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./argsh.json``.

    Project-local config sits between global config and environment variables
    in the precedence chain. It has the shape of
    :class:`~argsh.models.GlobalConfig` but every key is optional, e.g.
    ``{"compile": {"prefix": "opt"}}``.

    Returns:
        The parsed JSON as a dict, or ``None`` if the file does not exist.

    Raises:
        ConfigError: If the file exists but is not a JSON object.
    """
    path = Path.cwd() / _PROJECT_CONFIG_FILENAME
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid project config at {path}: expected a JSON object")
    return data


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


# --- Precedence resolution ---


def resolve_config(
    cli_prefix: Optional[str] = None,
    cli_no_help: Optional[bool] = None,
    cli_format: Optional[str] = None,
) -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. CLI flags (``cli_prefix``, ``cli_no_help``, ``cli_format``)
        2. Environment variables (``ARGSH_PREFIX``, ``ARGSH_NO_HELP``,
           ``ARGSH_HOOK_TIMEOUT``)
        3. Project config (``./argsh.json``)
        4. User config (``~/.config/argsh/config.json``)
        5. Defaults

    Raises:
        ConfigError: If any layer supplies an invalid value.
    """
    # 5 + 4. Load base global config (fills in defaults automatically)
    data = load_global_config().model_dump(mode="json")

    # 3. Layer in project-local config
    project = load_project_config()
    if project is not None:
        data = _deep_merge(data, project)

    # 2. Environment variables
    env_prefix = os.environ.get("ARGSH_PREFIX")
    if env_prefix:
        data["compile"]["prefix"] = env_prefix
    env_no_help = os.environ.get("ARGSH_NO_HELP")
    if env_no_help:
        data["compile"]["add_help"] = env_no_help.lower() not in _TRUTHY
    env_timeout = os.environ.get("ARGSH_HOOK_TIMEOUT")
    if env_timeout:
        data["completion"]["hook_timeout"] = env_timeout

    # 1. CLI flags (highest precedence)
    if cli_prefix is not None:
        data["compile"]["prefix"] = cli_prefix
    if cli_no_help:
        data["compile"]["add_help"] = False
    if cli_format is not None:
        data["output"]["format"] = cli_format

    try:
        return GlobalConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
