"""
Configuration settings management for arrvault.

This module handles loading, validating, and saving configuration settings
from YAML files with support for environment variable overrides.

Configuration is loaded from ~/.arrvault/config.yaml by default, with the
path overridable via the ARRVAULT_CONFIG environment variable.
"""

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from arrvault.crypto.codec import CODECS, PBKDF2_ITERATIONS

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".arrvault"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"

MIN_KDF_ITERATIONS = 10_000


@dataclass
class CodecConfig:
    """Encryption settings for new backups."""

    version: str = "v2"
    kdf_iterations: int = PBKDF2_ITERATIONS


@dataclass
class Settings:
    """
    Complete arrvault configuration settings.

    Attributes:
        data_dir: Directory holding the section store files.
        backup_dir: Default directory for new backups.
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR).
        codec: Encryption settings for new backups.
    """

    data_dir: str = str(DEFAULT_CONFIG_DIR / "data")
    backup_dir: str = str(DEFAULT_CONFIG_DIR / "backups")
    log_level: str = "INFO"

    codec: CodecConfig = field(default_factory=CodecConfig)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


def get_config_path() -> Path:
    """
    Get the configuration file path.

    Returns the path from ARRVAULT_CONFIG environment variable if set,
    otherwise returns the default path (~/.arrvault/config.yaml).
    """
    env_path = os.environ.get("ARRVAULT_CONFIG")
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_FILE


def load_config(config_path: Path | None = None) -> Settings:
    """
    Load configuration from YAML file.

    Reads configuration from the specified path (or default if not provided),
    applies environment variable overrides, and validates the configuration.

    Args:
        config_path: Optional path to configuration file. If not provided,
                    uses ARRVAULT_CONFIG environment variable or default path.

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If the configuration file cannot be read or
                          contains invalid settings.
    """
    if config_path is None:
        config_path = get_config_path()

    settings = Settings()

    if config_path.exists():
        try:
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigurationError("Config file must contain a mapping")

        settings = _apply_config_data(settings, config_data)

    settings = _apply_environment_overrides(settings)

    _validate_config(settings)

    return settings


def save_config(settings: Settings, config_path: Path | None = None) -> None:
    """
    Save configuration to YAML file.

    Raises:
        ConfigurationError: If the configuration cannot be written.
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    config_data = _settings_to_dict(settings)

    try:
        with open(config_path, "w") as f:
            yaml.safe_dump(config_data, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigurationError(f"Cannot write config file: {e}") from e


def _apply_config_data(settings: Settings, data: dict[str, Any]) -> Settings:
    """Apply configuration data from parsed YAML to settings."""
    arrvault_data = data.get("arrvault") or {}

    if "data_dir" in arrvault_data:
        settings.data_dir = str(Path(str(arrvault_data["data_dir"])).expanduser())
    if "backup_dir" in arrvault_data:
        settings.backup_dir = str(Path(str(arrvault_data["backup_dir"])).expanduser())
    if "log_level" in arrvault_data:
        settings.log_level = str(arrvault_data["log_level"]).upper()

    codec = data.get("codec") or {}
    if "version" in codec:
        settings.codec.version = str(codec["version"])
    if "kdf_iterations" in codec:
        try:
            settings.codec.kdf_iterations = int(codec["kdf_iterations"])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"kdf_iterations must be an integer: {codec['kdf_iterations']!r}"
            ) from e

    return settings


def _apply_environment_overrides(settings: Settings) -> Settings:
    """Apply environment variable overrides to settings."""
    env_map: dict[str, tuple[str, Callable[[str], Any]]] = {
        "ARRVAULT_DATA_DIR": ("data_dir", str),
        "ARRVAULT_BACKUP_DIR": ("backup_dir", str),
        "ARRVAULT_LOG_LEVEL": ("log_level", str.upper),
        "ARRVAULT_CODEC": ("codec.version", str),
        "ARRVAULT_KDF_ITERATIONS": ("codec.kdf_iterations", int),
    }

    for env_var, (attr_path, converter) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            try:
                converted = converter(value)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {env_var}: {value!r}") from e
            _set_nested_attr(settings, attr_path, converted)

    return settings


def _set_nested_attr(obj: Any, path: str, value: Any) -> None:
    """Set a nested attribute on an object using dot notation."""
    parts = path.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    setattr(obj, parts[-1], value)


def _validate_config(settings: Settings) -> None:
    """
    Validate configuration settings.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if settings.log_level not in valid_log_levels:
        raise ConfigurationError(
            f"Invalid log_level: {settings.log_level}. "
            f"Must be one of: {', '.join(sorted(valid_log_levels))}"
        )

    if settings.codec.version not in CODECS:
        raise ConfigurationError(
            f"Invalid codec version: {settings.codec.version}. "
            f"Must be one of: {', '.join(CODECS)}"
        )

    if settings.codec.kdf_iterations < MIN_KDF_ITERATIONS:
        raise ConfigurationError(
            f"kdf_iterations must be at least {MIN_KDF_ITERATIONS:,}"
        )


def _settings_to_dict(settings: Settings) -> dict[str, Any]:
    """Convert Settings instance to dictionary for YAML serialization."""
    return {
        "arrvault": {
            "data_dir": settings.data_dir,
            "backup_dir": settings.backup_dir,
            "log_level": settings.log_level,
        },
        "codec": {
            "version": settings.codec.version,
            "kdf_iterations": settings.codec.kdf_iterations,
        },
    }
