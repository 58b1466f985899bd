# provisioner/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the provisioner.

Builds the immutable ProvisioningManifest, applying this order of
precedence (later wins):
1. Pydantic model defaults
2. Environment variables (PROVISION_ prefix, nested with "__")
3. YAML configuration file
4. Command-line arguments

The environment file (KEY=value lines) is read last and stored on the
manifest as a plain mapping. It is handed to child processes explicitly;
the provisioner's own os.environ is never modified.
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import dotenv_values
from pydantic import ValidationError

from provisioner.config_models import ProvisioningManifest
from provisioner.errors import ConfigurationError, EnvironmentFileError

module_logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "config.yaml"
DEFAULT_ENV_FILE_NAME = ".env"

# CLI dest -> path inside the manifest dict
CLI_FIELD_MAP: Dict[str, tuple] = {
    "db_dialect": ("database", "dialect"),
    "db_host": ("database", "host"),
    "db_port": ("database", "port"),
    "db_name": ("database", "database"),
    "db_user": ("database", "user"),
    "db_password": ("database", "password"),
    "service_user": ("service_user",),
    "env_file": ("env_file",),
    "readiness_port": ("readiness", "port"),
    "readiness_interval": ("readiness", "interval_seconds"),
    "readiness_attempts": ("readiness", "max_attempts"),
    "default_runtime_version": ("default_runtime_version",),
}


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively updates ``source`` with ``overrides``. Nested dictionaries are
    merged; ``None`` values in ``overrides`` never replace an existing value.
    """
    for key, value in overrides.items():
        if (
            isinstance(value, dict)
            and key in source
            and isinstance(source[key], dict)
        ):
            source[key] = _deep_update(source[key], value)
        elif value is not None:
            source[key] = value
        elif key not in source:
            source[key] = value
    return source


def _read_yaml(
    config_path: Path, required: bool, logger_to_use: logging.Logger
) -> Dict[str, Any]:
    if not config_path.is_file():
        if required:
            raise ConfigurationError(
                f"Configuration file '{config_path}' not found."
            )
        logger_to_use.info(
            f"Configuration file '{config_path}' not found. Using defaults, environment variables, and CLI args."
        )
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Could not parse YAML config file '{config_path}': {e}"
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Could not read config file '{config_path}': {e}"
        ) from e

    if yaml_data is None:
        return {}
    if not isinstance(yaml_data, dict):
        raise ConfigurationError(
            f"Config file '{config_path}' does not contain a YAML mapping."
        )
    logger_to_use.info(f"Loaded configuration from {config_path}")
    return yaml_data


def _cli_overrides(cli_args: argparse.Namespace) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for dest, path in CLI_FIELD_MAP.items():
        value = getattr(cli_args, dest, None)
        if value is None:
            continue
        target = overrides
        for part in path[:-1]:
            target = target.setdefault(part, {})
        target[path[-1]] = value
    return overrides


def _resolve_relative_paths(values: Dict[str, Any], base_dir: Path) -> None:
    for project in values.get("projects") or []:
        if isinstance(project, dict) and project.get("directory"):
            directory = Path(project["directory"]).expanduser()
            if not directory.is_absolute():
                directory = base_dir / directory
            project["directory"] = directory
    env_file = values.get("env_file")
    if env_file:
        env_path = Path(env_file).expanduser()
        if not env_path.is_absolute():
            env_path = base_dir / env_path
        values["env_file"] = env_path


def _default_env_file(values: Dict[str, Any]) -> Optional[Path]:
    """The schema project's .env, which is where the migration tool expects it."""
    for project in values.get("projects") or []:
        if isinstance(project, dict) and project.get("has_schema"):
            return Path(project["directory"]) / DEFAULT_ENV_FILE_NAME
    return None


def load_environment_file(
    env_file: Optional[Path],
    required: bool,
    current_logger: Optional[logging.Logger] = None,
) -> Dict[str, str]:
    """
    Reads KEY=value lines from ``env_file``. Comment lines are ignored.

    Raises:
        EnvironmentFileError: The file is missing and ``required`` is set.
    """
    logger_to_use = current_logger if current_logger else module_logger
    if env_file is None:
        if required:
            logger_to_use.warning(
                "An environment file is required but none is configured and no "
                "project has a schema. Continuing without one."
            )
        return {}
    if not env_file.is_file():
        if required:
            raise EnvironmentFileError(env_file)
        logger_to_use.info(f"Environment file {env_file} not found. Skipping.")
        return {}

    values = {
        key: value
        for key, value in dotenv_values(env_file).items()
        if value is not None
    }
    logger_to_use.info(f"Environment variables loaded from {env_file}")
    return values


def load_manifest(
    cli_args: Optional[argparse.Namespace] = None,
    config_file_path: str = DEFAULT_CONFIG_FILE,
    config_required: bool = False,
    current_logger: Optional[logging.Logger] = None,
) -> ProvisioningManifest:
    """
    Loads and freezes the provisioning manifest.

    Args:
        cli_args: Parsed command-line arguments (from argparse).
        config_file_path: Path to the YAML configuration file.
        config_required: Fail when the YAML file does not exist.
        current_logger: Optional logger to use instead of the module logger.

    Returns:
        The fully resolved ProvisioningManifest.

    Raises:
        ConfigurationError: Unreadable or invalid configuration.
        EnvironmentFileError: Required environment file is missing.
    """
    logger_to_use = current_logger if current_logger else module_logger

    try:
        values = ProvisioningManifest().model_dump()
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid PROVISION_* environment variables: {e}"
        ) from e

    config_path = Path(config_file_path).expanduser()
    values = _deep_update(
        values, _read_yaml(config_path, config_required, logger_to_use)
    )
    if cli_args is not None:
        values = _deep_update(values, _cli_overrides(cli_args))

    _resolve_relative_paths(values, config_path.resolve().parent)

    env_file = values.get("env_file") or _default_env_file(values)
    file_environment = load_environment_file(
        Path(env_file) if env_file else None,
        bool(values.get("env_file_required", True)),
        logger_to_use,
    )
    values["env_file"] = env_file
    values["environment"] = {**(values.get("environment") or {}), **file_environment}

    try:
        manifest = ProvisioningManifest(**values)
    except ValidationError as e:
        logger_to_use.error(f"Configuration validation failed: {e}")
        raise ConfigurationError(f"Configuration error: {e}") from e

    logger_to_use.debug("Successfully loaded and validated the provisioning manifest")
    return manifest
