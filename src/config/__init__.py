"""
Configuration loader: reads config.yaml, validates it against JSON Schema,
falls back to environment variables for the wallet and API URL.
"""

from config.loader import (
    ApiConfig,
    AppConfig,
    ConfigError,
    LoggingConfig,
    OutputConfig,
    RateLimitConfig,
    load_config,
)

__all__ = [
    "ApiConfig",
    "AppConfig",
    "ConfigError",
    "LoggingConfig",
    "OutputConfig",
    "RateLimitConfig",
    "load_config",
]
