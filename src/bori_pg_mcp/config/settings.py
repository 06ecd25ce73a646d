"""Configuration management for the Bori PostgreSQL MCP Server.

This module defines all configuration settings using Pydantic for validation
and type safety. Configuration is loaded from environment variables (and an
optional ``.env`` file) with sensible defaults.
"""

from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Fixed, ordered set of databases served by this server. Clients are returned
# in this order on both the tunnel and the direct path.
MANAGED_DATABASES: tuple[str, ...] = ("haksa_sis", "canvas_production")
DEFAULT_DATABASE = "canvas_production"

LOCAL_BIND_HOST = "127.0.0.1"


class DatabaseConfig(BaseSettings):
    """PostgreSQL connection configuration shared by all managed databases."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    host: str = Field(default="localhost", description="Database host as seen from the SSH server")
    port: int = Field(default=5432, ge=1, le=65535, description="Database port")
    user: str = Field(default="postgres", description="Database user")
    password: str = Field(default="", description="Database password")

    # Connection pool settings
    min_pool_size: int = Field(default=1, ge=1, le=100, description="Minimum pool size")
    max_pool_size: int = Field(default=5, ge=1, le=100, description="Maximum pool size")
    pool_timeout: float = Field(
        default=30.0, ge=1.0, le=300.0, description="Pool acquire timeout in seconds"
    )
    command_timeout: float = Field(
        default=30.0, ge=1.0, le=300.0, description="Command execution timeout in seconds"
    )

    def dsn_for(self, database: str, host: str, port: int) -> str:
        """Build PostgreSQL DSN for one database at the given address."""
        return f"postgresql://{self.user}:{self.password}@{host}:{port}/{database}"

    def safe_dsn_for(self, database: str, host: str, port: int) -> str:
        """Build DSN with masked password for logging."""
        return f"postgresql://{self.user}:***@{host}:{port}/{database}"


class SSHConfig(BaseSettings):
    """SSH bastion configuration. Leaving ``host`` unset selects a direct connection."""

    model_config = SettingsConfigDict(env_prefix="SSH_")

    host: str | None = Field(default=None, description="SSH server host")
    port: int = Field(default=22, ge=1, le=65535, description="SSH server port")
    user: str = Field(default="", description="SSH user")
    password: SecretStr | None = Field(default=None, description="SSH password")
    private_key_path: str | None = Field(default=None, description="Path to SSH private key")
    passphrase: SecretStr | None = Field(default=None, description="Private key passphrase")

    local_port: int = Field(
        default=0, ge=0, le=65535, description="Local proxy port (0 lets the kernel choose)"
    )
    known_hosts: str | None = Field(
        default=None, description="known_hosts file; host keys are not verified when unset"
    )
    connect_timeout: float = Field(
        default=15.0, ge=1.0, le=300.0, description="SSH connect timeout in seconds"
    )
    forward_timeout: float = Field(
        default=10.0, ge=1.0, le=300.0, description="Local proxy setup timeout in seconds"
    )
    keepalive_interval: float = Field(
        default=30.0, ge=0.0, le=3600.0, description="SSH keepalive interval (0 disables)"
    )
    buffer_size: int = Field(
        default=65536, ge=1024, le=1048576, description="Read size when bridging streams"
    )

class SecurityConfig(BaseSettings):
    """Query execution limits."""

    model_config = SettingsConfigDict(env_prefix="SECURITY_")

    max_rows: int = Field(default=10000, ge=1, le=100000, description="Maximum rows to return")
    max_execution_time: float = Field(
        default=30.0, ge=1.0, le=300.0, description="Maximum query execution time in seconds"
    )
    readonly_role: str | None = Field(
        default=None, description="PostgreSQL role to switch to for read-only access"
    )
    safe_search_path: str = Field(
        default="public", description="Safe search_path to set during query execution"
    )


class ObservabilityConfig(BaseSettings):
    """Observability and monitoring configuration."""

    model_config = SettingsConfigDict(env_prefix="OBSERVABILITY_")

    metrics_enabled: bool = Field(default=False, description="Enable Prometheus metrics")
    metrics_port: int = Field(
        default=9090, ge=1024, le=65535, description="Metrics HTTP server port"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_format: Literal["json", "text"] = Field(default="text", description="Log format")


class Settings(BaseSettings):
    """Main application settings aggregating all config sections."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Nested configurations
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    ssh: SSHConfig = Field(default_factory=SSHConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create global settings instance.

    Returns:
        Settings: The global settings instance.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset global settings instance. Useful for testing."""
    global _settings
    _settings = None
