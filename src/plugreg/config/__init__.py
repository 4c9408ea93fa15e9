"""Configuration module for plugreg.

This module provides:
- Pydantic models for configuration validation
- YAML config file loading and discovery
- Default configuration values
- Environment variable expansion
- Clear error messages for config issues
"""

from plugreg.config.defaults import DEFAULT_CONFIG
from plugreg.config.loader import (
    CacheConfig,
    Config,
    ConfigError,
    ConfigSyntaxError,
    ConfigValidationError,
    LoggingConfig,
    get_config_path,
    load_config,
)

__all__ = [
    "Config",
    "CacheConfig",
    "ConfigError",
    "ConfigSyntaxError",
    "ConfigValidationError",
    "LoggingConfig",
    "DEFAULT_CONFIG",
    "get_config_path",
    "load_config",
]
