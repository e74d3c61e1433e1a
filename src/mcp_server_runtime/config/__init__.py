"""Configuration management."""

from .settings import Config, HttpConfig, ServerConfig, ServerInfoConfig, create_default_config, load_config

__all__ = [
    "Config",
    "HttpConfig",
    "ServerConfig",
    "ServerInfoConfig",
    "load_config",
    "create_default_config",
]
