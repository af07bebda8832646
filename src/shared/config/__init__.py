"""Configuration management module.

This module provides:
- Environment-based configuration with validation
- Service-specific settings classes
- Cached settings access via get_settings()
"""

from .settings import (
    Environment,
    LivenessSettings,
    LogFormat,
    LogLevel,
    PipelineSettings,
    ProvisionerSettings,
    Settings,
    StoreSettings,
    ToolSettings,
    get_settings,
)

__all__ = [
    # Main settings
    "Settings",
    "get_settings",
    # Enums
    "Environment",
    "LogLevel",
    "LogFormat",
    # Component settings
    "StoreSettings",
    "LivenessSettings",
    "ToolSettings",
    "PipelineSettings",
    # Service-specific settings
    "ProvisionerSettings",
]
