"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
configuration file (~/.npilookup/config.yaml), and turns the result into a
validated ClientConfig.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from npilookup.domain.models.config import (
    DEFAULT_BACKOFF_MULTIPLIER,
    DEFAULT_BASE_URL,
    DEFAULT_CACHE_SWEEP_INTERVAL_SECONDS,
    DEFAULT_CACHE_TTL_SECONDS,
    DEFAULT_INITIAL_DELAY_SECONDS,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_DELAY_SECONDS,
    DEFAULT_MAX_RETRIES,
    DEFAULT_TIMEOUT_SECONDS,
    ClientConfig,
    RetryPolicy,
)

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".npilookup"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "NPILOOKUP_"

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _flatten(data: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flattens nested YAML mappings into dotted keys ({'a': {'b': 1}} -> {'a.b': 1})."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(_flatten(value, f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def env_var_name(key: str) -> str:
    """Environment variable consulted for a dotted key ('cache.enabled' -> NPILOOKUP_CACHE_ENABLED)."""
    return f"{ENV_PREFIX}{key.upper().replace('.', '_')}"


def _coerce(value: str) -> Any:
    if value.lower() == 'true':
        return True
    if value.lower() == 'false':
        return False
    try:
        if '.' in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None, force: bool = False) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
        force: Reload even if configuration was already loaded.
    """
    global _config, _loaded
    if _loaded and not force:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, 'r') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (Medium priority)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug(".env file not found at or above current directory.")

    # 3. Environment Variables (Highest priority) are handled in get_config

    _loaded = True
    logger.info("Configuration loading process completed.")


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by dotted key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (NPILOOKUP_ + upper-cased key, dots as underscores)
    3. YAML config
    4. Default value

    Args:
        key: The configuration key, e.g. 'retry.max_retries'
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = env_var_name(key)
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None

# --- Convenience Functions ---

def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def get_retry_policy() -> RetryPolicy:
    """Builds the RetryPolicy from 'retry.*' settings."""
    return RetryPolicy(
        max_retries=int(get_config('retry.max_retries', DEFAULT_MAX_RETRIES)),
        initial_delay=float(get_config('retry.initial_delay_seconds', DEFAULT_INITIAL_DELAY_SECONDS)),
        max_delay=float(get_config('retry.max_delay_seconds', DEFAULT_MAX_DELAY_SECONDS)),
        backoff_multiplier=float(get_config('retry.backoff_multiplier', DEFAULT_BACKOFF_MULTIPLIER)),
    )


def build_client_config(**overrides: Any) -> ClientConfig:
    """Builds a validated ClientConfig from the loaded settings.

    Keyword overrides (e.g. from CLI flags) win over every other source.

    Raises:
        ValueError: If any resulting value is invalid.
    """
    values: Dict[str, Any] = {
        'base_url': str(get_config('npi.base_url', DEFAULT_BASE_URL)),
        'timeout_seconds': float(get_config('npi.timeout_seconds', DEFAULT_TIMEOUT_SECONDS)),
        'retry': get_retry_policy(),
        'cache_enabled': _as_bool(get_config('cache.enabled', False)),
        'cache_ttl_seconds': float(get_config('cache.ttl_seconds', DEFAULT_CACHE_TTL_SECONDS)),
        'cache_sweep_interval_seconds': float(
            get_config('cache.sweep_interval_seconds', DEFAULT_CACHE_SWEEP_INTERVAL_SECONDS)
        ),
        'max_concurrency': int(get_config('batch.max_concurrency', DEFAULT_MAX_CONCURRENCY)),
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    config = ClientConfig(**values)
    logger.debug(f"Built client config: {config}")
    return config


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")
