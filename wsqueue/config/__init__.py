"""
Configuration management for WsQueue.

Handles loading and validation of configuration files.
"""

from wsqueue.config.settings import (
    ClientConfig,
    LoggingConfig,
    TransportConfig,
    WsQueueConfig,
    get_default_config,
    get_default_config_path,
    load_config,
)

__all__ = [
    "ClientConfig",
    "LoggingConfig",
    "TransportConfig",
    "WsQueueConfig",
    "get_default_config",
    "get_default_config_path",
    "load_config",
]
