"""Connection models for reaching the managed PostgreSQL databases.

This module defines the arguments needed to open a connection (directly or
through an SSH bastion) and the endpoints database clients are pointed at.
"""

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from bori_pg_mcp.config.settings import Settings


class ConnectionArgs(BaseModel):
    """Everything needed to reach the databases, optionally through SSH.

    Exactly one SSH credential form is used: the private key when
    ``ssh_private_key_path`` is set, otherwise the password. Having neither
    is reported by the tunnel negotiator, not at construction time.
    """

    model_config = ConfigDict(frozen=True)

    db_host_remote: str = Field(..., description="Database host as seen from the SSH server")
    db_port_remote: int = Field(default=5432, ge=1, le=65535, description="Database port")
    db_user: str = Field(..., description="Database user")
    db_password: str = Field(default="", description="Database password")

    ssh_host: str | None = Field(default=None, description="SSH server host")
    ssh_port: int = Field(default=22, ge=1, le=65535, description="SSH server port")
    ssh_user: str = Field(default="", description="SSH user")
    ssh_password: SecretStr | None = Field(default=None, description="SSH password")
    ssh_private_key_path: str | None = Field(default=None, description="SSH private key path")
    ssh_passphrase: SecretStr | None = Field(default=None, description="Private key passphrase")

    @property
    def uses_tunnel(self) -> bool:
        """Whether an SSH host was given."""
        return bool(self.ssh_host)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectionArgs":
        """Build connection arguments from application settings."""
        return cls(
            db_host_remote=settings.database.host,
            db_port_remote=settings.database.port,
            db_user=settings.database.user,
            db_password=settings.database.password,
            ssh_host=settings.ssh.host,
            ssh_port=settings.ssh.port,
            ssh_user=settings.ssh.user,
            ssh_password=settings.ssh.password,
            ssh_private_key_path=settings.ssh.private_key_path,
            ssh_passphrase=settings.ssh.passphrase,
        )


class DirectEndpoint(BaseModel):
    """Database address used when no tunnel is requested."""

    model_config = ConfigDict(frozen=True)

    host: str
    port: int


class TunnelEndpoint(BaseModel):
    """Local proxy address and the remote database it forwards to."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(..., description="Local bind address")
    port: int = Field(..., description="Local bind port")
    remote_host: str = Field(..., description="Database host as seen from the SSH server")
    remote_port: int = Field(..., description="Database port as seen from the SSH server")

    def __str__(self) -> str:
        return f"{self.host}:{self.port} -> {self.remote_host}:{self.remote_port}"
