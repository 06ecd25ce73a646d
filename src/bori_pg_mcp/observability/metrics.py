"""Prometheus metrics collector for the Bori PostgreSQL MCP Server.

This module implements metrics collection using prometheus_client, tracking
SSH sessions, bridged tunnel channels, client acquisition and query requests.
"""

from prometheus_client import Counter, Gauge, Histogram, start_http_server


class MetricsCollector:
    """Centralized metrics collector using Prometheus client.

    Metrics Categories:
    - Tunnel metrics: SSH session attempts, bridged channels, bytes forwarded
    - Client metrics: pooled client acquisitions per database
    - Query metrics: request counts and durations

    Example:
        >>> metrics = MetricsCollector()
        >>> metrics.increment_ssh_session(status="success")
        >>> with metrics.query_duration.time():
        ...     await executor.execute("SELECT 1")
    """

    _instance: "MetricsCollector | None" = None

    def __new__(cls) -> "MetricsCollector":
        """Ensure singleton instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialize_metrics()
        return cls._instance

    def _initialize_metrics(self) -> None:
        # Tunnel Metrics
        self.ssh_sessions: Counter = Counter(
            "bori_pg_mcp_ssh_sessions_total",
            "Total number of SSH session attempts",
            labelnames=["status"],
        )

        self.tunnel_channels: Counter = Counter(
            "bori_pg_mcp_tunnel_channels_total",
            "Total number of forwarded channels opened for local connections",
            labelnames=["status"],
        )

        self.tunnel_channels_active: Gauge = Gauge(
            "bori_pg_mcp_tunnel_channels_active",
            "Number of local connections currently bridged to a forwarded channel",
        )

        self.tunnel_bytes: Counter = Counter(
            "bori_pg_mcp_tunnel_bytes_total",
            "Bytes copied through the local proxy",
            labelnames=["direction"],
        )

        # Client Metrics
        self.client_acquisitions: Counter = Counter(
            "bori_pg_mcp_client_acquisitions_total",
            "Pooled client acquisitions at startup",
            labelnames=["database", "status"],
        )

        # Query Metrics
        self.query_requests: Counter = Counter(
            "bori_pg_mcp_query_requests_total",
            "Total number of query requests processed",
            labelnames=["status", "database"],
        )

        self.query_duration: Histogram = Histogram(
            "bori_pg_mcp_query_duration_seconds",
            "Read-only query execution duration in seconds",
            buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0),
        )

    def start_metrics_server(self, port: int) -> None:
        """Start the Prometheus metrics HTTP server.

        Args:
            port: Port number to listen on for metrics scraping.
        """
        start_http_server(port)

    def increment_ssh_session(self, status: str) -> None:
        """Increment SSH session counter.

        Args:
            status: Outcome (success, rejected, timeout, error, lost).
        """
        self.ssh_sessions.labels(status=status).inc()

    def channel_opened(self) -> None:
        """Record a forwarded channel bridged to a local connection."""
        self.tunnel_channels.labels(status="success").inc()
        self.tunnel_channels_active.inc()

    def channel_failed(self) -> None:
        """Record a forwarded channel the SSH server refused to open."""
        self.tunnel_channels.labels(status="error").inc()

    def channel_closed(self) -> None:
        """Record the end of a bridged connection."""
        self.tunnel_channels_active.dec()

    def add_tunnel_bytes(self, direction: str, count: int) -> None:
        """Count bytes copied through the proxy.

        Args:
            direction: "upstream" (local to remote) or "downstream".
            count: Number of bytes.
        """
        self.tunnel_bytes.labels(direction=direction).inc(count)

    def increment_client_acquisition(self, database: str, status: str) -> None:
        """Increment client acquisition counter.

        Args:
            database: Database name.
            status: Outcome (success, error).
        """
        self.client_acquisitions.labels(database=database, status=status).inc()

    def increment_query_request(self, status: str, database: str) -> None:
        """Increment query request counter.

        Args:
            status: Query status (success, error, timeout).
            database: Target database name.
        """
        self.query_requests.labels(status=status, database=database).inc()


# Singleton instance
metrics = MetricsCollector()
