"""Configuration module."""

from .settings import ChainConfig, HttpConfig, LoggingConfig, Settings, clear_settings_cache, get_settings

__all__ = [
    "Settings",
    "HttpConfig",
    "LoggingConfig",
    "ChainConfig",
    "get_settings",
    "clear_settings_cache",
]
