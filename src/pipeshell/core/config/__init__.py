"""
Configuration Management Package

Provides Pydantic-based configuration models and management for pipeshell.
"""

from pipeshell.core.config.models import AppConfig, PipelineConfig, LoggingConfig
from pipeshell.core.config.manager import ConfigManager

__all__ = [
    "AppConfig",
    "PipelineConfig",
    "LoggingConfig",
    "ConfigManager",
]
