"""
Configuration error hierarchy for Pathway (2025).

Exception Hierarchy
-------------------
ConfigError (base)
├── ConfigValidationError (type or bounds failures on a tunable)
└── ConfigInitializationError (YAML directory could not be loaded)
"""


class ConfigError(Exception):
    """
    Base exception for all configuration-related errors.

    Example
    -------
    >>> try:
    ...     manager = ConfigManager.from_directory()
    ... except ConfigError as e:
    ...     logger.error(f"Config load failed: {e}")
    """


class ConfigValidationError(ConfigError):
    """Raised when a configuration value has the wrong type or is out of range."""


class ConfigInitializationError(ConfigError):
    """
    Raised when ConfigManager cannot load its YAML defaults.

    This is a startup error; the process should not continue with a
    partially parsed configuration tree.
    """


__all__ = [
    "ConfigError",
    "ConfigValidationError",
    "ConfigInitializationError",
]
