"""
Configuration for reloop.

- Global settings from environment variables
- Configuration exceptions
"""

from reloop.config.exceptions import ConfigError, ModelNotFoundError, ToolSetNotFoundError
from reloop.config.schema import StepConfig
from reloop.config.settings import ReloopSettings, settings

__all__ = [
    "ReloopSettings",
    "StepConfig",
    "settings",
    "ConfigError",
    "ModelNotFoundError",
    "ToolSetNotFoundError",
]
