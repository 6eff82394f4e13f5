"""
Expired session cleanup job.
"""

from datetime import datetime, timezone
from typing import Optional

from stock_alerts.core.interfaces import SessionRepository
from stock_alerts.core.models import SessionCleanupResult
from stock_alerts.monitoring.prometheus_metrics import DigestMetrics
from stock_alerts.services.scheduler import DEFAULT_INTERVAL_MS, RecurringJobScheduler, SchedulerOptions
from stock_alerts.utils.logger import get_logger

logger = get_logger(__name__)


async def run_session_cleanup(session_repo: SessionRepository,
                              metrics: Optional[DigestMetrics] = None) -> SessionCleanupResult:
    """Delete sessions whose expiry has passed."""
    started_at = datetime.now(timezone.utc)

    deleted_count = await session_repo.delete_expired()

    if deleted_count > 0:
        logger.info(f"Cleaned up {deleted_count} expired sessions")
    if metrics:
        metrics.track_session_cleanup(deleted_count)

    return SessionCleanupResult(
        deleted_count=deleted_count,
        started_at=started_at,
        completed_at=datetime.now(timezone.utc),
    )


def create_session_cleanup_scheduler(session_repo: SessionRepository,
                                     interval_ms: Optional[int] = None,
                                     run_on_start: Optional[bool] = None,
                                     metrics: Optional[DigestMetrics] = None) -> RecurringJobScheduler:
    """Scheduler that sweeps expired sessions, hourly and once at start by default."""
    options = SchedulerOptions(
        interval_ms=DEFAULT_INTERVAL_MS if interval_ms is None else interval_ms,
        run_on_start=True if run_on_start is None else run_on_start,
    )

    async def session_cleanup_job() -> SessionCleanupResult:
        return await run_session_cleanup(session_repo, metrics)

    return RecurringJobScheduler(session_cleanup_job, options, name="session_cleanup")
