"""Sanitizer configuration loading and validation."""

from hotwire_control.configs.loader import (
    ConfigError,
    SanitizerConfig,
    default_sanitizer_config,
    load_sanitizer_config,
)

__all__ = [
    "ConfigError",
    "SanitizerConfig",
    "default_sanitizer_config",
    "load_sanitizer_config",
]
