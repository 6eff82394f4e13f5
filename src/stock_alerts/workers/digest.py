"""
Digest job.

Collects pending alerts per tenant and user, mails each user one digest and
marks the delivered alerts as sent.

Failure handling:
- anything that goes wrong inside one tenant is recorded against that tenant
  and the run moves on to the next one
- a structured send failure (``success=False``) is counted and recorded,
  the user's alerts stay pending and the next user is processed
- failing to list tenants aborts the whole run
"""

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Awaitable, List, Optional, Sequence, Tuple, Union

from sqlalchemy.ext.asyncio import async_sessionmaker

from stock_alerts.core.interfaces import (
    AlertRepository,
    EmailClient,
    SkippedThresholdCounter,
    TenantRepository,
    UserRepository,
)
from stock_alerts.core.models import (
    Alert,
    DigestFailure,
    DigestFrequency,
    DigestJobResult,
    DigestRunState,
    Tenant,
    User,
)
from stock_alerts.database.repositories import (
    SqlAlertRepository,
    SqlTenantRepository,
    SqlThresholdRepository,
    SqlUserRepository,
)
from stock_alerts.monitoring.prometheus_metrics import DigestMetrics
from stock_alerts.monitoring.sentry_config import set_tenant_context
from stock_alerts.notifications.templates.digest import compose_digest_email
from stock_alerts.services.billing.threshold_limits import ThresholdLimitService
from stock_alerts.utils.config import AlertsConfig
from stock_alerts.utils.exceptions import (
    DigestError,
    MarkSentError,
    SendError,
    TenantFetchError,
    ThresholdGateError,
    error_message,
)
from stock_alerts.utils.logger import get_logger

logger = get_logger(__name__)

DigestJob = Callable[[], Awaitable[DigestJobResult]]


@dataclass
class DigestDependencies:
    """Everything a digest run talks to."""
    tenant_repo: TenantRepository
    user_repo: UserRepository
    alert_repo: AlertRepository
    email_client: EmailClient
    threshold_limit_service: SkippedThresholdCounter
    config: Optional[AlertsConfig] = None

    @property
    def app_url(self) -> Optional[str]:
        return self.config.app_url if self.config else None

    @classmethod
    def from_session_factory(cls, session_factory: async_sessionmaker,
                             config: AlertsConfig,
                             email_client: EmailClient) -> "DigestDependencies":
        """Wire the SQLAlchemy repositories around one session factory."""
        user_repo = SqlUserRepository(session_factory)
        threshold_repo = SqlThresholdRepository(session_factory)

        return cls(
            tenant_repo=SqlTenantRepository(session_factory),
            user_repo=user_repo,
            alert_repo=SqlAlertRepository(session_factory),
            email_client=email_client,
            threshold_limit_service=ThresholdLimitService(user_repo, threshold_repo),
            config=config,
        )


def group_alerts_by_user(alerts: Sequence[Alert], users: Sequence[User]) -> List[Tuple[User, List[Alert]]]:
    """
    Pair each digest-enabled user with their alerts.

    Matching is by ``user_id`` only. The result follows the order of
    ``users``; users without alerts are left out, and alerts belonging to
    anyone else are ignored.
    """
    by_user = {user.id: [] for user in users}

    for alert in alerts:
        if alert.user_id in by_user:
            by_user[alert.user_id].append(alert)

    return [(user, by_user[user.id]) for user in users if by_user[user.id]]


async def _deliver_user_digest(deps: DigestDependencies,
                               tenant: Tenant,
                               user: User,
                               alerts: List[Alert],
                               state: DigestRunState) -> None:
    try:
        skipped_count = await deps.threshold_limit_service.get_skipped_count(user.id)
    except Exception as e:
        raise ThresholdGateError(error_message(e), tenant.id, user.id) from e

    email = compose_digest_email(
        tenant.display_name,
        user,
        alerts,
        skipped_count=skipped_count,
        app_url=deps.app_url,
    )

    try:
        result = await deps.email_client.send_email(email.to, email.subject, email.html)
    except Exception as e:
        raise SendError(error_message(e), tenant.id, user.id, recipient=email.to) from e

    if not result.success:
        reason = result.error or "Unknown error"
        state.emails_failed += 1
        state.record_failure(
            DigestFailure(kind="send", tenant_id=tenant.id, message=reason,
                          user_id=user.id, recipient=email.to),
            f"Failed to send email to {email.to}: {reason}",
        )
        logger.warning(f"Digest for user {user.id} not delivered: {reason}")
        return

    state.emails_sent += 1

    alert_ids = [alert.id for alert in alerts]
    try:
        await deps.alert_repo.mark_as_sent(alert_ids)
    except Exception as e:
        raise MarkSentError(error_message(e), tenant.id, user.id, alert_ids=alert_ids) from e

    state.alerts_marked_sent += len(alert_ids)
    logger.debug(f"Digest sent to user {user.id} with {len(alert_ids)} alerts")


async def _process_tenant(deps: DigestDependencies,
                          tenant: Tenant,
                          frequency: DigestFrequency,
                          state: DigestRunState) -> None:
    set_tenant_context(tenant.id, tenant.client_name)

    try:
        users = await deps.user_repo.get_with_digest_enabled(tenant.id, frequency)
    except Exception as e:
        raise TenantFetchError(error_message(e), tenant.id) from e

    if not users:
        return

    try:
        pending_alerts = await deps.alert_repo.get_pending_by_tenant(tenant.id)
    except Exception as e:
        raise TenantFetchError(error_message(e), tenant.id) from e

    if not pending_alerts:
        return

    groups = group_alerts_by_user(pending_alerts, users)
    if not groups:
        return

    state.tenants_processed += 1

    for user, user_alerts in groups:
        await _deliver_user_digest(deps, tenant, user, user_alerts, state)


async def run_digest_job(deps: DigestDependencies,
                         frequency: Union[DigestFrequency, str] = DigestFrequency.DAILY) -> DigestJobResult:
    """
    Run one digest pass over all active tenants.

    Raises:
        ValueError: If ``frequency`` is not daily or weekly.
        Exception: Whatever listing the active tenants raises.
    """
    frequency = DigestFrequency(frequency)
    if frequency not in DigestFrequency.schedulable():
        raise ValueError(f"Digest frequency must be one of {[f.value for f in DigestFrequency.schedulable()]}")

    state = DigestRunState(frequency=frequency, started_at=datetime.now(timezone.utc))

    tenants = await deps.tenant_repo.get_active_tenants()
    logger.debug(f"Processing {len(tenants)} active tenants for {frequency.value} digest")

    for tenant in tenants:
        try:
            await _process_tenant(deps, tenant, frequency, state)
        except DigestError as e:
            state.record_failure(
                DigestFailure(kind=e.kind, tenant_id=tenant.id, message=error_message(e),
                              user_id=e.user_id, recipient=getattr(e, "recipient", None)),
                f"Error processing tenant {tenant.id}: {error_message(e)}",
            )
            logger.error(f"Digest failed for tenant {tenant.id} ({e.kind}): {error_message(e)}")
        except Exception as e:
            state.record_failure(
                DigestFailure(kind="tenant", tenant_id=tenant.id, message=error_message(e)),
                f"Error processing tenant {tenant.id}: {error_message(e)}",
            )
            logger.error(f"Digest failed for tenant {tenant.id}: {error_message(e)}", exc_info=True)

    return state.freeze(datetime.now(timezone.utc))


def create_digest_job(deps: DigestDependencies,
                      frequency: Union[DigestFrequency, str] = DigestFrequency.DAILY,
                      metrics: Optional[DigestMetrics] = None) -> DigestJob:
    """
    Wrap ``run_digest_job`` for a scheduler.

    The returned coroutine function logs the outcome and re-raises anything
    that aborts the run.
    """
    frequency = DigestFrequency(frequency)

    async def digest_job() -> DigestJobResult:
        logger.info(f"Starting scheduled {frequency.value} digest job...")
        start_time = time.monotonic()

        try:
            result = await run_digest_job(deps, frequency)
        except Exception as e:
            logger.error(f"Digest job failed: {error_message(e)}", exc_info=True)
            if metrics:
                metrics.track_digest_failure(frequency.value, time.monotonic() - start_time)
            raise

        logger.info(
            f"Digest job completed: tenants={result.tenants_processed}, "
            f"sent={result.emails_sent}, failed={result.emails_failed}, "
            f"alerts_marked={result.alerts_marked_sent}, duration={result.duration_ms}ms"
        )

        if result.errors:
            logger.warning(
                f"Digest job completed with {len(result.errors)} errors: {'; '.join(result.errors)}"
            )

        if metrics:
            metrics.track_digest(result)

        return result

    digest_job.__name__ = f"{frequency.value}_digest_job"
    return digest_job
