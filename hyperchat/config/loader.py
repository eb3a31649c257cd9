"""
Configuration loader for Hyperchat.

This module loads YAML configuration files, merges their service entries
onto the built-in service catalog, and validates the result with Pydantic
models.

Functions:
    load_config: Main entrypoint, loads and validates hyperchat.yaml
    resolve_config_path: Pick the explicit path or $HYPERCHAT_CONFIG
    merge_services: Merge partial YAML service entries onto the defaults
"""

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from hyperchat.exceptions import ConfigFileNotFoundError, ConfigValidationError

from .constants import CONFIG_ENV_VAR
from .schema import DEFAULT_SERVICE_DATA, HyperchatConfig

logger = logging.getLogger(__name__)


def resolve_config_path(config_path: str | Path | None) -> Path | None:
    """
    Resolve which configuration file to load.

    Args:
        config_path: Explicit path from the CLI, or None

    Returns:
        The explicit path, else the path named by $HYPERCHAT_CONFIG,
        else None (use built-in defaults)
    """
    if config_path is not None:
        return Path(config_path)

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)

    return None


def merge_services(overrides: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Merge YAML service entries onto the built-in catalog by id.

    Entries whose id matches a built-in service update only the fields they
    name. Entries with a new id are appended as-is and must therefore be
    complete. Built-in services that the YAML does not mention are kept.

    Args:
        overrides: Raw service dicts from the YAML file

    Returns:
        List of raw service dicts ready for validation

    Raises:
        ConfigValidationError: If an entry is not a mapping or has no id

    Example:
        >>> merged = merge_services([{"id": "claude", "enabled": True}])
        >>> [s["id"] for s in merged if s.get("enabled", True)]
        ['chatgpt', 'perplexity', 'google', 'claude']
    """
    merged: dict[str, dict[str, Any]] = {
        data["id"]: dict(data) for data in DEFAULT_SERVICE_DATA
    }

    for index, entry in enumerate(overrides):
        if not isinstance(entry, dict):
            raise ConfigValidationError(
                f"services[{index}] must be a mapping, got: {type(entry).__name__}"
            )
        service_id = entry.get("id")
        if not service_id:
            raise ConfigValidationError(f"services[{index}] is missing 'id'")

        if service_id in merged:
            merged[service_id].update(entry)
            logger.debug(f"Merged configuration overrides for service: {service_id}")
        else:
            merged[service_id] = dict(entry)
            logger.debug(f"Added custom service: {service_id}")

    return list(merged.values())


def load_config(config_path: str | Path | None = None) -> HyperchatConfig:
    """
    Load hyperchat.yaml and validate it.

    This function:
    1. Resolves the path (explicit, $HYPERCHAT_CONFIG, or none)
    2. Loads YAML with yaml.safe_load
    3. Merges service entries onto the built-in catalog
    4. Validates the result with HyperchatConfig

    Args:
        config_path: Path to a YAML file, or None for defaults/environment

    Returns:
        Validated HyperchatConfig

    Raises:
        ConfigFileNotFoundError: If the resolved file doesn't exist
        ConfigValidationError: If YAML is invalid or validation fails

    Example:
        >>> config = load_config()  # built-in services
        >>> [s.id for s in config.enabled_services()]
        ['chatgpt', 'perplexity', 'google']
    """
    resolved = resolve_config_path(config_path)

    raw_config: Any = {}
    if resolved is not None:
        if not resolved.exists():
            raise ConfigFileNotFoundError(f"Configuration file not found: {resolved}")

        try:
            with resolved.open(encoding="utf-8") as f:
                raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Invalid YAML syntax in {resolved}: {e}") from e
        except OSError as e:
            raise ConfigValidationError(
                f"Failed to read configuration file {resolved}: {e}"
            ) from e

        # An empty file means "all defaults"
        if raw_config is None:
            raw_config = {}

        if not isinstance(raw_config, dict):
            raise ConfigValidationError(
                f"Configuration root must be a mapping in {resolved}"
            )

    source = str(resolved) if resolved is not None else "built-in defaults"

    raw_services = raw_config.get("services") or []
    if not isinstance(raw_services, list):
        raise ConfigValidationError(f"'services' must be a list in {source}")

    data = dict(raw_config)
    data["services"] = merge_services(raw_services)

    try:
        config = HyperchatConfig.model_validate(data)
    except ValidationError as e:
        # Format validation errors in a user-friendly way
        error_messages = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            error_messages.append(f"  - {loc}: {msg}")

        raise ConfigValidationError(
            f"Configuration validation failed in {source}:\n"
            + "\n".join(error_messages)
        ) from e

    logger.info(
        f"Loaded configuration from {source}: "
        f"{len(config.enabled_services())} enabled service(s)"
    )
    return config
