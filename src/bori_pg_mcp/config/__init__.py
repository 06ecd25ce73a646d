"""Configuration management module."""

from bori_pg_mcp.config.settings import (
    DEFAULT_DATABASE,
    LOCAL_BIND_HOST,
    MANAGED_DATABASES,
    DatabaseConfig,
    ObservabilityConfig,
    SecurityConfig,
    Settings,
    SSHConfig,
    get_settings,
    reset_settings,
)

__all__ = [
    "DEFAULT_DATABASE",
    "LOCAL_BIND_HOST",
    "MANAGED_DATABASES",
    "DatabaseConfig",
    "ObservabilityConfig",
    "SecurityConfig",
    "Settings",
    "SSHConfig",
    "get_settings",
    "reset_settings",
]
