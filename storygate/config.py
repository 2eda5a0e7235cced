"""Configuration management for storygate.

This module provides hierarchical configuration with the following precedence
(highest to lowest):
1. CLI argument
2. Environment variable (STORYGATE_<KEY>)
3. Project-level config (.storygate.yaml next to package.json)
4. Built-in default

Usage:
    from storygate.config import get_setting, resolve_settings

    # Get a single raw setting with full precedence resolution
    port = get_setting("port", cli_value=cli_port, project_root=root)

    # Resolve every setting into a typed Settings object
    settings = resolve_settings(root, port=cli_port)
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from storygate.errors import ConfigInvalidStructureError, ConfigParseError, ConfigValueError

# Config file name (in the project root)
CONFIG_FILENAME = ".storygate.yaml"

DEFAULTS: dict[str, Any] = {
    "host": "127.0.0.1",
    "port": 6006,
    "poll_interval": 1.0,
    "startup_attempts": 30,
    "live_test_timeout": 60.0,
    "tool_timeout": 300.0,
    "server_command": "npm run storybook",
    "lint_command": "npx eslint",
    "typecheck_command": "npx tsc --noEmit",
    "live_test_command": "npx test-storybook",
    "tsconfig_base": None,
}

KNOWN_SETTINGS: frozenset[str] = frozenset(DEFAULTS)

_INT_KEYS = frozenset({"port", "startup_attempts"})
_FLOAT_KEYS = frozenset({"poll_interval", "live_test_timeout", "tool_timeout"})
_COMMAND_KEYS = frozenset(
    {"server_command", "lint_command", "typecheck_command", "live_test_command"}
)


@dataclass(frozen=True)
class Settings:
    """Typed, fully resolved settings for one validation run.

    Attributes:
        host: Host the preview server listens on.
        port: Port the preview server binds; readiness is probed here.
        poll_interval: Seconds between readiness probes.
        startup_attempts: Number of readiness probes before giving up.
        live_test_timeout: Seconds the live-test invocation may run.
        tool_timeout: Seconds a lint or type-check invocation may run.
        server_command: Command starting the preview server.
        lint_command: Style checker command; the story path is appended.
        typecheck_command: Type checker command; --project is appended.
        live_test_command: Live-test command; story path and --url are appended.
        tsconfig_base: Config the scoped tsconfig extends (None = auto-detect).
    """

    host: str = DEFAULTS["host"]
    port: int = DEFAULTS["port"]
    poll_interval: float = DEFAULTS["poll_interval"]
    startup_attempts: int = DEFAULTS["startup_attempts"]
    live_test_timeout: float = DEFAULTS["live_test_timeout"]
    tool_timeout: float = DEFAULTS["tool_timeout"]
    server_command: tuple[str, ...] = tuple(shlex.split(DEFAULTS["server_command"]))
    lint_command: tuple[str, ...] = tuple(shlex.split(DEFAULTS["lint_command"]))
    typecheck_command: tuple[str, ...] = tuple(shlex.split(DEFAULTS["typecheck_command"]))
    live_test_command: tuple[str, ...] = tuple(shlex.split(DEFAULTS["live_test_command"]))
    tsconfig_base: str | None = None

    @property
    def server_url(self) -> str:
        """URL the live-test tool is pointed at."""
        return f"http://{self.host}:{self.port}"


def get_config_path(project_root: Path) -> Path:
    """Get the path to the config file for a project.

    Args:
        project_root: Directory holding package.json.

    Returns:
        Path to .storygate.yaml
    """
    return project_root / CONFIG_FILENAME


def load_config(project_root: Path) -> dict[str, Any]:
    """Load configuration from .storygate.yaml.

    Args:
        project_root: Directory holding package.json.

    Returns:
        Config dictionary. Returns empty dict if file doesn't exist.

    Raises:
        ConfigParseError: If the file is not valid YAML.
        ConfigInvalidStructureError: If the document is not a mapping.
    """
    config_file = get_config_path(project_root)

    if not config_file.exists():
        return {}

    content = config_file.read_text()
    if not content.strip():
        return {}

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigParseError(str(config_file), str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigInvalidStructureError(
            str(config_file), f"expected a mapping, got {type(data).__name__}"
        )
    return data


def save_config(project_root: Path, config: dict[str, Any]) -> None:
    """Save configuration to .storygate.yaml.

    Args:
        project_root: Directory holding package.json.
        config: Config dictionary to save.
    """
    content = yaml.safe_dump(config, default_flow_style=False, sort_keys=False)
    get_config_path(project_root).write_text(content)


def _get_env_var_name(key: str) -> str:
    """Convert a setting key to environment variable name.

    Args:
        key: Setting key (e.g., "live_test_timeout")

    Returns:
        Environment variable name (e.g., "STORYGATE_LIVE_TEST_TIMEOUT")
    """
    return f"STORYGATE_{key.upper()}"


def get_setting(
    key: str,
    cli_value: Any | None = None,
    project_root: Path | None = None,
    config: dict[str, Any] | None = None,
) -> Any | None:
    """Resolve a raw setting value with full precedence.

    Precedence (highest to lowest):
    1. CLI argument (cli_value)
    2. Environment variable (STORYGATE_<KEY>)
    3. Project config (.storygate.yaml)
    4. None (the caller applies the built-in default)

    Args:
        key: Setting key (e.g., "port")
        cli_value: Value passed via CLI argument (highest precedence)
        project_root: Project root for loading the config file
        config: Already-loaded config, to avoid re-reading the file

    Returns:
        Resolved value, or None if not set at any level.
    """
    if cli_value is not None:
        return cli_value

    env_value = os.environ.get(_get_env_var_name(key))
    if env_value is not None:
        return env_value

    if config is None:
        if project_root is None:
            return None
        config = load_config(project_root)

    return config.get(key)


def _coerce(key: str, value: Any) -> Any:
    """Convert a raw setting (YAML scalar, env string, CLI value) to its type."""
    if key in _COMMAND_KEYS:
        if isinstance(value, str):
            parts = shlex.split(value)
        elif isinstance(value, (list, tuple)):
            parts = [str(part) for part in value]
        else:
            raise ConfigValueError(key, value, "a command string or list")
        if not parts:
            raise ConfigValueError(key, value, "a non-empty command")
        return tuple(parts)

    if key in _INT_KEYS:
        if isinstance(value, bool):
            raise ConfigValueError(key, value, "an integer")
        try:
            number = int(value)
        except (TypeError, ValueError) as e:
            raise ConfigValueError(key, value, "an integer") from e
        if key == "port" and not 0 < number < 65536:
            raise ConfigValueError(key, value, "a port between 1 and 65535")
        if key == "startup_attempts" and number < 1:
            raise ConfigValueError(key, value, "at least 1")
        return number

    if key in _FLOAT_KEYS:
        if isinstance(value, bool):
            raise ConfigValueError(key, value, "a number")
        try:
            number = float(value)
        except (TypeError, ValueError) as e:
            raise ConfigValueError(key, value, "a number") from e
        if number < 0 or (key != "poll_interval" and number == 0):
            raise ConfigValueError(key, value, "a positive number")
        return number

    return None if value is None else str(value)


def resolve_settings(project_root: Path | None = None, **cli_values: Any) -> Settings:
    """Resolve every known setting into a Settings object.

    Args:
        project_root: Project root for loading .storygate.yaml.
        **cli_values: CLI overrides keyed by setting name. None means unset.

    Returns:
        Settings with precedence applied and values coerced.

    Raises:
        ConfigError: If the config file or a value is invalid.
    """
    unknown = set(cli_values) - KNOWN_SETTINGS
    if unknown:
        raise TypeError(f"Unknown settings: {', '.join(sorted(unknown))}")

    config = load_config(project_root) if project_root is not None else {}
    resolved: dict[str, Any] = {}
    for key in sorted(KNOWN_SETTINGS):
        value = get_setting(key, cli_value=cli_values.get(key), config=config)
        if value is None:
            value = DEFAULTS[key]
        resolved[key] = _coerce(key, value)
    return Settings(**resolved)


def list_settings(project_root: Path | None = None) -> dict[str, dict[str, Any]]:
    """List all settings with their resolved values and sources.

    Args:
        project_root: Project root for loading the config file.

    Returns:
        Dict mapping setting keys to {"value": ..., "source": ...} where source
        is "env", "project" or "default".
    """
    config = load_config(project_root) if project_root is not None else {}
    result: dict[str, dict[str, Any]] = {}

    for key in sorted(KNOWN_SETTINGS):
        if _get_env_var_name(key) in os.environ:
            source = "env"
        elif key in config:
            source = "project"
        else:
            source = "default"
        value = get_setting(key, config=config)
        result[key] = {
            "value": DEFAULTS[key] if value is None else value,
            "source": source,
        }

    return result
