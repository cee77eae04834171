"""
Configuration management for WsQueue.

Loads YAML configuration from file with sensible defaults and validation.
Supports environment variable substitution using ${ENV_VAR} syntax.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml

from wsqueue.exceptions import InvalidConfigurationError
from wsqueue.logging_config import get_logger

logger = get_logger(__name__)


def _expand_env_vars(value: Any) -> Any:
    """
    Recursively expand environment variables in configuration values.

    Supports ${ENV_VAR} syntax with optional default values: ${ENV_VAR:default}

    Args:
        value: Configuration value (string, dict, list, or other)

    Returns:
        Value with environment variables expanded

    Examples:
        "${WSQUEUE_LOG_LEVEL}" -> value of WSQUEUE_LOG_LEVEL env var
        "${WSQUEUE_LOG_LEVEL:INFO}" -> value of WSQUEUE_LOG_LEVEL or "INFO" if not set
    """
    if isinstance(value, str):
        # Pattern matches ${VAR} or ${VAR:default}
        pattern = r'\$\{([^}:]+)(?::([^}]*))?\}'

        def replace_env_var(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    else:
        return value


@dataclass
class TransportConfig:
    """Settings handed to the websockets transport.

    ``ping_interval``, ``ping_timeout`` and ``max_size`` accept None to
    disable keepalive pings, the pong deadline or the message size limit.
    """

    open_timeout: float = 10.0
    close_timeout: float = 10.0
    ping_interval: Optional[float] = 20.0
    ping_timeout: Optional[float] = 20.0
    max_size: Optional[int] = 2 ** 20


@dataclass
class ClientConfig:
    """Connection adapter configuration."""

    subprotocols: List[str] = field(default_factory=list)


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    json_format: bool = True


@dataclass
class WsQueueConfig:
    """Main WsQueue configuration."""

    transport: TransportConfig = field(default_factory=TransportConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_default_config_path() -> str:
    """Get the default configuration file path."""
    return os.path.expanduser("~/.wsqueue/config.yaml")


def get_default_config() -> WsQueueConfig:
    """
    Get default configuration with sensible defaults.

    Returns:
        WsQueueConfig: Default configuration object
    """
    return WsQueueConfig(
        transport=TransportConfig(),
        client=ClientConfig(),
        logging=LoggingConfig(),
    )


def load_config(config_path: Optional[str] = None) -> WsQueueConfig:
    """
    Load configuration from YAML file with validation.

    If config file is not found, returns default configuration.
    If config file is malformed or invalid, raises InvalidConfigurationError.

    Args:
        config_path: Path to configuration file. If None, uses default path.

    Returns:
        WsQueueConfig: Loaded and validated configuration

    Raises:
        InvalidConfigurationError: If configuration is invalid or malformed
    """
    if config_path is None:
        config_path = get_default_config_path()

    config_path = os.path.expanduser(config_path)

    if not os.path.exists(config_path):
        logger.info(f"Configuration file not found at {config_path}, using defaults")
        return get_default_config()

    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f)
        logger.debug(f"Loaded configuration from {config_path}")
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration file '{config_path}': {e}", exc_info=True)
        raise InvalidConfigurationError(
            f"Failed to parse YAML configuration file '{config_path}': {e}"
        )
    except OSError as e:
        logger.error(f"Failed to read configuration file '{config_path}': {e}", exc_info=True)
        raise InvalidConfigurationError(
            f"Failed to read configuration file '{config_path}': {e}"
        )

    if config_data is None:
        logger.info(f"Configuration file {config_path} is empty, using defaults")
        return get_default_config()

    if not isinstance(config_data, dict):
        raise InvalidConfigurationError(
            f"Configuration file '{config_path}' must contain a mapping at the top level"
        )

    config_data = _expand_env_vars(config_data)
    logger.debug("Expanded environment variables in configuration")

    try:
        config = _build_config_from_dict(config_data)
        _validate_config(config)
        logger.info(f"Successfully loaded and validated configuration from {config_path}")
        return config
    except InvalidConfigurationError:
        raise
    except (TypeError, ValueError, AttributeError) as e:
        logger.error(f"Invalid configuration in '{config_path}': {e}", exc_info=True)
        raise InvalidConfigurationError(
            f"Invalid configuration in '{config_path}': {e}"
        )


def _optional(value: Any, convert) -> Any:
    """Convert a value unless it is None (YAML ``null`` disables the setting)."""
    if value is None:
        return None
    return convert(value)


def _parse_bool(value: Any) -> bool:
    # Env-expanded values arrive as strings.
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _build_config_from_dict(config_data: Dict[str, Any]) -> WsQueueConfig:
    """
    Build WsQueueConfig from dictionary loaded from YAML.

    Merges user configuration with defaults.

    Args:
        config_data: Dictionary loaded from YAML file

    Returns:
        WsQueueConfig: Configuration object
    """
    default_config = get_default_config()

    transport_data = config_data.get('transport') or {}
    defaults = default_config.transport
    transport = TransportConfig(
        open_timeout=float(transport_data.get('open_timeout', defaults.open_timeout)),
        close_timeout=float(transport_data.get('close_timeout', defaults.close_timeout)),
        ping_interval=_optional(transport_data.get('ping_interval', defaults.ping_interval), float),
        ping_timeout=_optional(transport_data.get('ping_timeout', defaults.ping_timeout), float),
        max_size=_optional(transport_data.get('max_size', defaults.max_size), int),
    )

    client_data = config_data.get('client') or {}
    subprotocols = client_data.get('subprotocols', default_config.client.subprotocols)
    if isinstance(subprotocols, str):
        subprotocols = [p.strip() for p in subprotocols.split(',') if p.strip()]
    client = ClientConfig(subprotocols=[str(p) for p in subprotocols])

    logging_data = config_data.get('logging') or {}
    logging = LoggingConfig(
        level=str(logging_data.get('level', default_config.logging.level)),
        file=os.path.expanduser(str(logging_data.get('file', default_config.logging.file))),
        json_format=_parse_bool(logging_data.get('json_format', default_config.logging.json_format)),
    )

    return WsQueueConfig(transport=transport, client=client, logging=logging)


def _validate_config(config: WsQueueConfig) -> None:
    """
    Validate configuration values.

    Args:
        config: Configuration to validate

    Raises:
        InvalidConfigurationError: If configuration is invalid
    """
    if config.transport.open_timeout <= 0:
        raise InvalidConfigurationError(
            f"open_timeout must be positive, got {config.transport.open_timeout}"
        )
    if config.transport.close_timeout <= 0:
        raise InvalidConfigurationError(
            f"close_timeout must be positive, got {config.transport.close_timeout}"
        )
    if config.transport.ping_interval is not None and config.transport.ping_interval <= 0:
        raise InvalidConfigurationError(
            f"ping_interval must be positive or null, got {config.transport.ping_interval}"
        )
    if config.transport.ping_timeout is not None and config.transport.ping_timeout <= 0:
        raise InvalidConfigurationError(
            f"ping_timeout must be positive or null, got {config.transport.ping_timeout}"
        )
    if config.transport.max_size is not None and config.transport.max_size < 1:
        raise InvalidConfigurationError(
            f"max_size must be at least 1 or null, got {config.transport.max_size}"
        )

    for protocol in config.client.subprotocols:
        if not protocol or any(c.isspace() for c in protocol):
            raise InvalidConfigurationError(
                f"subprotocols must be non-empty tokens without whitespace, got '{protocol}'"
            )

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.logging.level.upper() not in valid_log_levels:
        raise InvalidConfigurationError(
            f"logging level must be one of {valid_log_levels}, "
            f"got '{config.logging.level}'"
        )
