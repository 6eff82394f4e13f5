"""
Prometheus metrics for the scheduled jobs.

Metrics exported:
- stock_alerts_digest_runs_total: Digest runs by frequency and status
- stock_alerts_digest_duration_seconds: Digest run duration histogram
- stock_alerts_digest_emails_total: Digest e-mails by outcome
- stock_alerts_digest_alerts_marked_total: Alerts moved to sent
- stock_alerts_digest_errors_total: Errors recorded during digest runs
- stock_alerts_digest_last_success_timestamp: Unix time of the last clean run
- stock_alerts_sessions_deleted_total: Expired sessions removed
"""

from typing import Optional

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    CollectorRegistry,
    start_http_server,
)

from stock_alerts.core.models import DigestJobResult
from stock_alerts.utils.logger import get_logger

logger = get_logger(__name__)


class DigestMetrics:
    """
    Prometheus collectors for digest and cleanup jobs.

    Pass a dedicated ``CollectorRegistry`` in tests; the default registry only
    accepts each metric name once per process.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        kwargs = {"registry": registry} if registry is not None else {}
        self.registry = registry

        self.runs_total = Counter(
            "stock_alerts_digest_runs_total",
            "Total digest runs",
            ["frequency", "status"],
            **kwargs,
        )

        self.duration = Histogram(
            "stock_alerts_digest_duration_seconds",
            "Digest run duration in seconds",
            ["frequency"],
            buckets=[0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
            **kwargs,
        )

        self.emails_total = Counter(
            "stock_alerts_digest_emails_total",
            "Digest e-mails by outcome",
            ["frequency", "outcome"],
            **kwargs,
        )

        self.alerts_marked_total = Counter(
            "stock_alerts_digest_alerts_marked_total",
            "Alerts marked as sent after delivery",
            ["frequency"],
            **kwargs,
        )

        self.errors_total = Counter(
            "stock_alerts_digest_errors_total",
            "Errors recorded during digest runs",
            ["frequency", "kind"],
            **kwargs,
        )

        self.last_success = Gauge(
            "stock_alerts_digest_last_success_timestamp",
            "Unix timestamp of the last digest run without errors",
            ["frequency"],
            **kwargs,
        )

        self.sessions_deleted_total = Counter(
            "stock_alerts_sessions_deleted_total",
            "Expired sessions removed",
            **kwargs,
        )

        logger.debug("Prometheus metrics initialized")

    def track_digest(self, result: DigestJobResult) -> None:
        """Record the outcome of a completed digest run."""
        frequency = result.frequency.value
        status = "partial" if result.has_errors else "success"

        self.runs_total.labels(frequency=frequency, status=status).inc()
        self.duration.labels(frequency=frequency).observe(result.duration_ms / 1000)
        self.emails_total.labels(frequency=frequency, outcome="sent").inc(result.emails_sent)
        self.emails_total.labels(frequency=frequency, outcome="failed").inc(result.emails_failed)
        self.alerts_marked_total.labels(frequency=frequency).inc(result.alerts_marked_sent)

        for failure in result.failures:
            self.errors_total.labels(frequency=frequency, kind=failure.kind).inc()

        if not result.has_errors:
            self.last_success.labels(frequency=frequency).set(result.completed_at.timestamp())

    def track_digest_failure(self, frequency: str, duration_seconds: float) -> None:
        """Record a run that aborted before producing a result."""
        self.runs_total.labels(frequency=frequency, status="failed").inc()
        self.duration.labels(frequency=frequency).observe(duration_seconds)

    def track_session_cleanup(self, deleted_count: int) -> None:
        self.sessions_deleted_total.inc(deleted_count)


def start_metrics_server(port: int, registry: Optional[CollectorRegistry] = None) -> None:
    """Expose /metrics on ``port`` from a background thread."""
    if registry is not None:
        start_http_server(port, registry=registry)
    else:
        start_http_server(port)
    logger.info(f"Prometheus metrics server listening on port {port}")
