"""Custom exceptions and error codes for the Bori PostgreSQL MCP Server.

This module defines a hierarchy of exceptions for different error scenarios
and error codes for structured error reporting. Tunnel and client errors
carry the connection stage that failed so startup failures can be reported
as "which stage, and why".
"""

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes for the application."""

    # Client errors (4xx)
    VALIDATION_FAILED = "validation_failed"

    # Connection setup errors
    MISSING_CREDENTIALS = "missing_credentials"
    KEY_READ_FAILURE = "key_read_failure"
    SSH_CONNECT_FAILURE = "ssh_connect_failure"
    FORWARD_FAILURE = "forward_failure"
    LOCAL_LISTEN_FAILURE = "local_listen_failure"
    ACQUISITION_FAILURE = "acquisition_failure"

    # Server errors (5xx)
    INTERNAL_ERROR = "internal_error"
    DATABASE_ERROR = "database_error"
    EXECUTION_TIMEOUT = "execution_timeout"


class ConnectionStage(StrEnum):
    """Stage of the connection sequence an error belongs to."""

    CREDENTIALS = "credential"
    SSH = "SSH transport"
    FORWARDING = "forwarding"
    ACQUISITION = "acquisition"


class BoriMcpError(Exception):
    """Base exception for all Bori PostgreSQL MCP Server errors.

    All custom exceptions in this application should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize base error.

        Args:
            message: Human-readable error message.
            code: Error code identifier.
            details: Optional additional context.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code}, message={self.message!r})"


class ValidationError(BoriMcpError):
    """Exception raised for invalid requests (unknown database, bad resource URI)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code=ErrorCode.VALIDATION_FAILED, details=details)


class DatabaseError(BoriMcpError):
    """Exception raised for database operation failures."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code=ErrorCode.DATABASE_ERROR, details=details)


class ExecutionTimeoutError(BoriMcpError):
    """Exception raised when query execution exceeds timeout."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code=ErrorCode.EXECUTION_TIMEOUT, details=details)


class TunnelError(BoriMcpError):
    """Base exception for failures while establishing the SSH tunnel.

    Attributes:
        stage: Connection stage that failed.
    """

    stage: ConnectionStage = ConnectionStage.SSH

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = {"stage": str(self.stage), **(details or {})}
        super().__init__(message=message, code=code, details=details)


class MissingCredentialsError(TunnelError):
    """Neither an SSH password nor a private key path was supplied.

    Raised before any network I/O takes place.
    """

    stage = ConnectionStage.CREDENTIALS

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code=ErrorCode.MISSING_CREDENTIALS, details=details)


class KeyReadError(TunnelError):
    """The SSH private key could not be read, parsed or decrypted."""

    stage = ConnectionStage.CREDENTIALS

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code=ErrorCode.KEY_READ_FAILURE, details=details)


class SSHConnectError(TunnelError):
    """The SSH server was unreachable or rejected authentication."""

    stage = ConnectionStage.SSH

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code=ErrorCode.SSH_CONNECT_FAILURE, details=details)


class ForwardError(TunnelError):
    """Forwarding could not be set up after a successful SSH session."""

    stage = ConnectionStage.FORWARDING

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code=ErrorCode.FORWARD_FAILURE, details=details)


class LocalListenError(TunnelError):
    """The local proxy listener could not bind its port."""

    stage = ConnectionStage.FORWARDING

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code=ErrorCode.LOCAL_LISTEN_FAILURE, details=details)


class ClientError(BoriMcpError):
    """Base exception for database client construction failures."""

    stage: ConnectionStage = ConnectionStage.ACQUISITION


class ClientAcquisitionError(ClientError):
    """A pooled client could not be acquired for one of the managed databases.

    Attributes:
        database: Name of the database whose acquisition failed first.
    """

    def __init__(
        self,
        message: str,
        database: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.database = database
        details = {"stage": str(self.stage), "database": database, **(details or {})}
        super().__init__(message=message, code=ErrorCode.ACQUISITION_FAILURE, details=details)
