"""Configuration system exceptions."""


class ConfigError(Exception):
    """Base exception for configuration errors."""

    pass


class ModelNotFoundError(ConfigError):
    """No model registered under the requested key."""

    pass


class ToolSetNotFoundError(ConfigError):
    """No tool set registered under the requested key."""

    pass
