"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
YAML configuration file (~/.chatbridge/config.yaml). Keys are dotted
('api.timeout'); the matching environment variable is the key upper-cased
with dots replaced by underscores ('API_TIMEOUT').
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from chatbridge.domain.models.api import (
    DEFAULT_BACKOFF_EXPONENT,
    DEFAULT_BASE_DELAY_MS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MIN_INTERVAL_MS,
    RetryPolicy,
)
from chatbridge.infrastructure.http.config import ClientConfig

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".chatbridge"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

DEFAULT_BASE_URL = "https://hereco-backend.azurewebsites.net"
DEFAULT_TIMEOUT_MS = 10000
DEFAULT_CACHE_TTL_SECONDS = 5 * 60
DEFAULT_CACHE_DIR = Path.home() / ".chatbridge_cache"
DEFAULT_CHAT_MODEL = "gemini-1.5-flash"
DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.7

# --- Global Configuration Store (Simple Approach) ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flattens nested YAML mappings into dotted keys."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, prefix=f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


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
            with open(config_file, 'r', encoding='utf-8') as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a mapping.")
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
        logger.debug("No .env file found at or above the current directory.")

    # 3. Environment Variables (Highest priority) are handled in get_config
    _loaded = True
    logger.debug("Configuration loading process completed.")


def env_key_for(key: str) -> str:
    return key.upper().replace('.', '_')


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


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable
    3. YAML config
    4. Default value

    Args:
        key: The dotted configuration key
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    env_key = env_key_for(key)
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def set_config(key: str, value: Any) -> None:
    """Sets a configuration value for the current process.

    Args:
        key: Configuration key (e.g., 'logging.level')
        value: Value to set
    """
    logger.debug(f"Setting config: {key} = {value!r}")
    _config[key] = value


# --- Convenience Functions ---

def _get_int(key: str, default: int) -> int:
    value = get_config(key, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid integer for '{key}': {value!r}. Using default {default}.")
        return default


def _get_float(key: str, default: float) -> float:
    value = get_config(key, default)
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid number for '{key}': {value!r}. Using default {default}.")
        return default


def get_base_url() -> str:
    return str(get_config('backend.api_url', DEFAULT_BASE_URL)).rstrip('/')


def get_retry_policy() -> RetryPolicy:
    try:
        return RetryPolicy(
            max_attempts=_get_int('api.retry_attempts', DEFAULT_MAX_ATTEMPTS),
            base_delay_ms=_get_int('api.retry_delay', DEFAULT_BASE_DELAY_MS),
            backoff_exponent=_get_int('api.backoff_exponent', DEFAULT_BACKOFF_EXPONENT),
        )
    except ValueError as e:
        logger.warning(f"Invalid retry settings: {e} Using default retry policy.")
        return RetryPolicy()


def get_client_config() -> ClientConfig:
    """Builds the API client configuration from the loaded settings."""
    return ClientConfig(
        base_url=get_base_url(),
        timeout_ms=_get_int('api.timeout', DEFAULT_TIMEOUT_MS),
        min_request_interval_ms=_get_int('api.min_request_interval', DEFAULT_MIN_INTERVAL_MS),
        retry_policy=get_retry_policy(),
    )


def get_cache_ttl() -> int:
    return _get_int('cache.ttl_seconds', DEFAULT_CACHE_TTL_SECONDS)


def get_cache_dir() -> Optional[Path]:
    """Directory for the L2 disk cache; the literal 'none' disables it."""
    value = get_config('cache.dir', str(DEFAULT_CACHE_DIR))
    if value is None or str(value).lower() == 'none':
        return None
    return Path(str(value)).expanduser()


def get_chat_model() -> str:
    return str(get_config('chat.model', DEFAULT_CHAT_MODEL))


def get_max_tokens() -> int:
    return _get_int('chat.max_tokens', DEFAULT_MAX_TOKENS)


def get_temperature() -> float:
    return _get_float('chat.temperature', DEFAULT_TEMPERATURE)


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


# Load configuration when the module is imported
load_configuration()
