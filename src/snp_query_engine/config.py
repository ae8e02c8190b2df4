"""Configuration file support for snp-query-engine."""

import logging
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

from .models import DEFAULT_PAGE_SIZE

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

CONFIG_SECTION = "snp_query_engine"


@dataclass
class EngineConfig:
    """Tunables for loading and querying the SNP dataset."""

    batch_size: int = 500
    page_size: int = DEFAULT_PAGE_SIZE
    chunk_size: int = 65536
    timeout: float = 300.0
    follow_redirects: bool = True
    log_level: str = "INFO"


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


def _require_positive_int(config_dict: dict[str, Any], key: str) -> None:
    if key not in config_dict:
        return
    value = config_dict[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigValidationError(f"{key} must be an integer, got {type(value).__name__}")
    if value <= 0:
        raise ConfigValidationError(f"{key} must be positive, got {value}")


def validate_config(config_dict: dict[str, Any]) -> None:
    """Validate configuration values.

    Raises:
        ConfigValidationError: If any configuration value is invalid.
    """
    for key in ("batch_size", "page_size", "chunk_size"):
        _require_positive_int(config_dict, key)

    if "timeout" in config_dict:
        timeout = config_dict["timeout"]
        if isinstance(timeout, bool) or not isinstance(timeout, int | float):
            raise ConfigValidationError(
                f"timeout must be a number, got {type(timeout).__name__}"
            )
        if timeout <= 0:
            raise ConfigValidationError(f"timeout must be positive, got {timeout}")

    if "follow_redirects" in config_dict:
        if not isinstance(config_dict["follow_redirects"], bool):
            raise ConfigValidationError("follow_redirects must be a boolean")

    if "log_level" in config_dict:
        log_level = config_dict["log_level"]
        if not isinstance(log_level, str):
            raise ConfigValidationError(
                f"log_level must be a string, got {type(log_level).__name__}"
            )
        if log_level.upper() not in VALID_LOG_LEVELS:
            raise ConfigValidationError(
                f"log_level must be one of {VALID_LOG_LEVELS}, got '{log_level}'"
            )


def load_config(config_path: Path, overrides: dict[str, Any] | None = None) -> EngineConfig:
    """Load configuration from a TOML file.

    Args:
        config_path: Path to the TOML configuration file.
        overrides: Optional dict of values to override loaded config.

    Returns:
        EngineConfig instance with loaded values.

    Raises:
        FileNotFoundError: If the config file doesn't exist.
        ConfigValidationError: If any configuration value is invalid.
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "rb") as f:
        toml_data = tomllib.load(f)

    config_dict = dict(toml_data.get(CONFIG_SECTION, {}))

    if overrides:
        config_dict.update(overrides)

    validate_config(config_dict)

    valid_fields = {f.name for f in fields(EngineConfig)}
    ignored = sorted(set(config_dict) - valid_fields)
    if ignored:
        logger.warning("Ignoring unknown configuration keys: %s", ", ".join(ignored))

    filtered_config = {k: v for k, v in config_dict.items() if k in valid_fields}
    if "log_level" in filtered_config:
        filtered_config["log_level"] = filtered_config["log_level"].upper()

    return EngineConfig(**filtered_config)
