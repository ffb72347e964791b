"""Configuration management for the MakanX map engine.

This module provides TOML-based configuration support with CLI override capability.

Configuration priority: CLI args > user config > default config
"""

from __future__ import annotations

import argparse
import importlib.resources
import sys
import tomllib
from dataclasses import dataclass, fields
from dataclasses import replace as dataclass_replace
from pathlib import Path
from typing import Any, NamedTuple

from .types import ScaleBounds
from .viewport import ViewProfile


class ConfigurationError(Exception):
    """Raised when configuration validation fails.

    Attributes:
        errors: List of validation error messages.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__(f"Configuration validation failed: {'; '.join(errors)}")


class DefaultConfigError(Exception):
    """Raised when the bundled default configuration cannot be loaded."""

    def __init__(self, message: str) -> None:
        super().__init__(f"Failed to load default configuration: {message}")


class ConfigOverride(NamedTuple):
    """A value in the user config that differs from the default."""

    key: str
    default_value: Any
    new_value: Any


@dataclass
class ClientConfig:
    """Engine configuration.

    All fields are required. Default values are loaded from default.toml.
    """

    # Remote API
    api_base_url: str
    request_timeout: float

    # Gestures and zoom
    tap_move_px: float
    view_min_scale: float
    view_max_scale: float
    author_min_scale: float
    author_max_scale: float
    focus_scale: float
    zoom_step: float
    wheel_sensitivity: float
    default_map_size: float

    # Editing
    min_booth_size: float
    autosave_debounce_ms: int

    # Polling (seconds)
    order_poll_interval: float
    wait_time_poll_interval: float
    vendor_orders_poll_interval: float

    # UI state
    notification_ttl: float
    storage_path: str | None

    # Logging settings
    log_dir: str | None
    log_level_console: str
    log_json_console: bool
    log_rotation: str | None
    log_retention: str | None

    @property
    def autosave_debounce(self) -> float:
        return self.autosave_debounce_ms / 1000.0

    def viewing_profile(self) -> ViewProfile:
        return ViewProfile(
            bounds=ScaleBounds(self.view_min_scale, self.view_max_scale),
            zoom_step=self.zoom_step,
            wheel_sensitivity=self.wheel_sensitivity,
            focus_scale=self.focus_scale,
            tap_move_px=self.tap_move_px,
            default_map_size=self.default_map_size,
        )

    def authoring_profile(self) -> ViewProfile:
        return ViewProfile(
            bounds=ScaleBounds(self.author_min_scale, self.author_max_scale),
            zoom_step=self.zoom_step,
            wheel_sensitivity=self.wheel_sensitivity,
            focus_scale=self.focus_scale,
            max_fit_scale=1.0,
            tap_move_px=self.tap_move_px,
            default_map_size=self.default_map_size,
        )


_VALID_KEYS: set[str] = {f.name for f in fields(ClientConfig)}

# Empty strings in TOML mean "not set" for these
_OPTIONAL_KEYS = ("storage_path", "log_dir", "log_rotation", "log_retention")

_POSITIVE_FIELDS = (
    "request_timeout",
    "tap_move_px",
    "view_min_scale",
    "author_min_scale",
    "focus_scale",
    "zoom_step",
    "wheel_sensitivity",
    "default_map_size",
    "min_booth_size",
    "autosave_debounce_ms",
    "order_poll_interval",
    "wait_time_poll_interval",
    "vendor_orders_poll_interval",
    "notification_ttl",
)

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def load_default_toml_data() -> dict[str, Any]:
    """Load the default.toml data from the bundled package resource.

    Raises:
        DefaultConfigError: If default.toml cannot be found or parsed.
    """
    try:
        files = importlib.resources.files("makanx_map")
        content = files.joinpath("default.toml").read_bytes()
        return tomllib.loads(content.decode("utf-8"))
    except FileNotFoundError as e:
        raise DefaultConfigError(f"default.toml not found in package: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise DefaultConfigError(f"Invalid TOML syntax in default.toml: {e}") from e
    except OSError as e:
        raise DefaultConfigError(f"Failed to read default.toml: {e}") from e


def load_config_from_toml(path: Path) -> dict[str, Any]:
    """Load configuration from TOML file.

    Raises:
        FileNotFoundError: If the configuration file does not exist.
        tomllib.TOMLDecodeError: If the TOML syntax is invalid.
    """
    with open(path, "rb") as f:
        return tomllib.load(f)


def process_toml_config(toml_data: dict[str, Any]) -> dict[str, Any]:
    """Keep known keys only, mapping empty optional strings to None."""
    result: dict[str, Any] = {}
    for key, value in toml_data.items():
        if key not in _VALID_KEYS:
            continue
        if key in _OPTIONAL_KEYS and value == "":
            value = None
        result[key] = value
    return result


def get_unknown_keys(toml_data: dict[str, Any]) -> list[str]:
    return [key for key in toml_data if key not in _VALID_KEYS]


def validate_config(config: ClientConfig) -> list[str]:
    """Validate configuration values.

    Returns:
        List of error messages. Empty list if configuration is valid.
    """
    errors: list[str] = []

    if not config.api_base_url.startswith(("http://", "https://")):
        errors.append(
            f"api_base_url must start with http:// or https://, got {config.api_base_url!r}"
        )

    for field_name in _POSITIVE_FIELDS:
        value = getattr(config, field_name)
        if value <= 0:
            errors.append(f"{field_name} must be positive, got {value}")

    # Scale bounds
    if config.view_min_scale >= config.view_max_scale:
        errors.append(
            f"view_min_scale ({config.view_min_scale}) must be less than "
            f"view_max_scale ({config.view_max_scale})"
        )
    elif not config.view_min_scale <= config.focus_scale <= config.view_max_scale:
        errors.append(
            f"focus_scale must be between {config.view_min_scale} and "
            f"{config.view_max_scale}, got {config.focus_scale}"
        )
    if config.author_min_scale >= config.author_max_scale:
        errors.append(
            f"author_min_scale ({config.author_min_scale}) must be less than "
            f"author_max_scale ({config.author_max_scale})"
        )

    if config.log_level_console.upper() not in VALID_LOG_LEVELS:
        errors.append(
            f"log_level_console must be one of {VALID_LOG_LEVELS}, "
            f"got {config.log_level_console}"
        )

    return errors


def load_default_config() -> ClientConfig:
    """Load the default configuration from the bundled default.toml.

    Raises:
        DefaultConfigError: If default.toml cannot be loaded or is incomplete.
    """
    toml_data = load_default_toml_data()
    config_data = process_toml_config(toml_data)

    missing = _VALID_KEYS - set(config_data.keys())
    if missing:
        raise DefaultConfigError(
            f"Missing required fields in default.toml: {', '.join(sorted(missing))}"
        )
    try:
        return ClientConfig(**config_data)
    except TypeError as e:
        raise DefaultConfigError(f"Invalid field types in default.toml: {e}") from e


def merge_cli_args(config: ClientConfig, args: argparse.Namespace) -> ClientConfig:
    """Merge explicitly provided CLI arguments into config."""
    updates: dict[str, Any] = {}

    if getattr(args, "api_base_url", None) is not None:
        updates["api_base_url"] = args.api_base_url
    if getattr(args, "storage_path", None) is not None:
        updates["storage_path"] = str(args.storage_path)

    # Logging settings from CLI
    if getattr(args, "log_dir", None) is not None:
        updates["log_dir"] = str(args.log_dir)
    if getattr(args, "log_level_console", None) is not None:
        updates["log_level_console"] = args.log_level_console
    if getattr(args, "log_json_console", False):
        updates["log_json_console"] = True
    if getattr(args, "log_rotation", None) is not None:
        updates["log_rotation"] = args.log_rotation
    if getattr(args, "log_retention", None) is not None:
        updates["log_retention"] = args.log_retention

    if not updates:
        return config
    return dataclass_replace(config, **updates)


def create_config_from_args(
    args: argparse.Namespace,
) -> tuple[ClientConfig, list[ConfigOverride]]:
    """Build the effective config: defaults, then ``--config`` file, then CLI flags.

    Returns:
        Tuple of (ClientConfig instance, list of ConfigOverride from the user file).

    Raises:
        DefaultConfigError: If default.toml cannot be loaded (fatal).
        FileNotFoundError: If specified user config file does not exist.
        tomllib.TOMLDecodeError: If config file has invalid TOML syntax.
        ConfigurationError: If configuration validation fails.
    """
    config = load_default_config()
    overrides: list[ConfigOverride] = []

    if getattr(args, "config", None) is not None:
        user_config_path = Path(args.config)
        toml_data = load_config_from_toml(user_config_path)

        # Using stderr since logging is not configured yet
        unknown = get_unknown_keys(toml_data)
        if unknown:
            print(f"WARNING: Unknown keys in {user_config_path}:", file=sys.stderr)
            for key in unknown:
                print(f"  - {key}", file=sys.stderr)

        config_data = process_toml_config(toml_data)
        for key, new_value in config_data.items():
            default_value = getattr(config, key)
            if default_value != new_value:
                overrides.append(ConfigOverride(key, default_value, new_value))
        if config_data:
            config = dataclass_replace(config, **config_data)

    config = merge_cli_args(config, args)

    errors = validate_config(config)
    if errors:
        raise ConfigurationError(errors)

    return config, overrides
