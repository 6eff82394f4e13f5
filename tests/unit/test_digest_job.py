"""
Unit tests for the digest job
"""
from unittest.mock import MagicMock

import pytest
from prometheus_client import CollectorRegistry

from stock_alerts.core.interfaces import SendEmailResult
from stock_alerts.core.models import DigestFrequency
from stock_alerts.monitoring.prometheus_metrics import DigestMetrics
from stock_alerts.utils.config import AlertsConfig
from stock_alerts.workers.digest import create_digest_job, group_alerts_by_user, run_digest_job


def _config(**kwargs) -> AlertsConfig:
    return AlertsConfig(_env_file=None, **kwargs)


class TestGroupAlertsByUser:
    """Test grouping of pending alerts"""

    def test_follows_user_order(self, make_user, make_alert):
        """Groups come out in the order of the user list"""
        ana, ben = make_user("ana"), make_user("ben")
        alerts = [make_alert("ben"), make_alert("ana"), make_alert("ben")]

        groups = group_alerts_by_user(alerts, [ana, ben])

        assert [user.id for user, _ in groups] == ["ana", "ben"]
        assert [a.id for a in groups[1][1]] == [alerts[0].id, alerts[2].id]

    def test_skips_users_without_alerts(self, make_user, make_alert):
        groups = group_alerts_by_user([make_alert("ana")], [make_user("ana"), make_user("ben")])

        assert [user.id for user, _ in groups] == ["ana"]

    def test_ignores_alerts_of_other_users(self, make_user, make_alert):
        """No e-mail based fallback matching"""
        ana = make_user("ana", email="shared@example.com")
        stranger_alert = make_alert("someone-else")

        assert group_alerts_by_user([stranger_alert], [ana]) == []


class TestRunDigestJobEmptyRuns:
    """Runs that have nothing to send"""

    @pytest.mark.asyncio
    async def test_no_tenants(self, build_deps, email_client):
        result = await run_digest_job(build_deps())

        assert result.tenants_processed == 0
        assert result.emails_sent == 0
        assert result.emails_failed == 0
        assert result.alerts_marked_sent == 0
        assert result.errors == ()
        email_client.send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_tenant_without_digest_users(self, build_deps, make_tenant, make_alert, email_client):
        deps = build_deps([make_tenant()], users=[], alerts=[make_alert()])

        result = await run_digest_job(deps)

        assert result.tenants_processed == 0
        assert result.errors == ()
        email_client.send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_tenant_without_pending_alerts(self, build_deps, make_tenant, make_user, email_client):
        deps = build_deps([make_tenant()], users=[make_user()], alerts=[])

        result = await run_digest_job(deps)

        assert result.tenants_processed == 0
        assert result.emails_sent == 0
        assert result.errors == ()

    @pytest.mark.asyncio
    async def test_alert_for_user_outside_digest_list(self, build_deps, make_tenant, make_user,
                                                      make_alert, email_client):
        """The alert stays pending and the tenant does not count"""
        deps = build_deps(
            [make_tenant()],
            users=[make_user("ana")],
            alerts=[make_alert("weekly-user")],
        )

        result = await run_digest_job(deps)

        assert result.tenants_processed == 0
        assert result.emails_sent == 0
        assert deps.alert_repo.marked_ids == []
        email_client.send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_users_with_other_frequency_are_not_mailed(self, build_deps, make_tenant, make_user,
                                                            make_alert, email_client):
        deps = build_deps(
            [make_tenant()],
            users=[make_user("ana", digest_frequency=DigestFrequency.WEEKLY)],
            alerts=[make_alert("ana")],
        )

        result = await run_digest_job(deps, DigestFrequency.DAILY)

        assert result.emails_sent == 0
        assert deps.user_repo.calls == [("tenant-1", DigestFrequency.DAILY)]


class TestRunDigestJobDelivery:
    """Successful and failed deliveries"""

    @pytest.mark.asyncio
    async def test_one_user_many_alerts(self, build_deps, make_tenant, make_user, make_alert, email_client):
        alerts = [make_alert("ana") for _ in range(4)]
        deps = build_deps([make_tenant()], users=[make_user("ana")], alerts=alerts)

        result = await run_digest_job(deps)

        email_client.send_email.assert_awaited_once()
        assert result.tenants_processed == 1
        assert result.emails_sent == 1
        assert result.alerts_marked_sent == 4
        assert deps.alert_repo.marked_batches == [[a.id for a in alerts]]
        assert result.errors == ()

    @pytest.mark.asyncio
    async def test_message_content(self, build_deps, make_tenant, make_user, make_alert, email_client):
        user = make_user("ana", notification_email="compras@example.com")
        deps = build_deps([make_tenant(name="Bodega Sur")], users=[user], alerts=[make_alert("ana")])

        await run_digest_job(deps)

        to, subject, html = email_client.send_email.await_args.args
        assert to == "compras@example.com"
        assert subject == "Resumen de Alertas - Bodega Sur"
        assert "Bodega Sur" in html

    @pytest.mark.asyncio
    async def test_tenant_without_name_uses_fallback(self, build_deps, make_tenant, make_user,
                                                     make_alert, email_client):
        deps = build_deps([make_tenant(name=None)], users=[make_user()], alerts=[make_alert()])

        await run_digest_job(deps)

        _, subject, _ = email_client.send_email.await_args.args
        assert subject == "Resumen de Alertas - Tu empresa"

    @pytest.mark.asyncio
    async def test_structured_send_failure(self, build_deps, make_tenant, make_user, make_alert, email_client):
        email_client.send_email.return_value = SendEmailResult(success=False, error="Invalid recipient")
        deps = build_deps([make_tenant()], users=[make_user("ana")], alerts=[make_alert("ana")])

        result = await run_digest_job(deps)

        assert result.emails_failed == 1
        assert result.emails_sent == 0
        assert result.alerts_marked_sent == 0
        assert deps.alert_repo.marked_ids == []
        assert result.errors == ("Failed to send email to ana@example.com: Invalid recipient",)
        assert result.failures[0].kind == "send"
        assert result.failures[0].recipient == "ana@example.com"

    @pytest.mark.asyncio
    async def test_structured_send_failure_without_message(self, build_deps, make_tenant, make_user,
                                                           make_alert, email_client):
        email_client.send_email.return_value = SendEmailResult(success=False)
        deps = build_deps([make_tenant()], users=[make_user("ana")], alerts=[make_alert("ana")])

        result = await run_digest_job(deps)

        assert result.errors == ("Failed to send email to ana@example.com: Unknown error",)

    @pytest.mark.asyncio
    async def test_send_failure_does_not_stop_other_users(self, build_deps, make_tenant, make_user,
                                                          make_alert, email_client):
        email_client.send_email.side_effect = [
            SendEmailResult(success=False, error="bounced"),
            SendEmailResult(success=True, id="msg-2"),
        ]
        ben_alert = make_alert("ben")
        deps = build_deps(
            [make_tenant()],
            users=[make_user("ana"), make_user("ben")],
            alerts=[make_alert("ana"), ben_alert],
        )

        result = await run_digest_job(deps)

        assert result.emails_failed == 1
        assert result.emails_sent == 1
        assert deps.alert_repo.marked_ids == [ben_alert.id]

    @pytest.mark.asyncio
    async def test_skipped_count_reaches_email(self, build_deps, make_tenant, make_user, make_alert,
                                               email_client):
        deps = build_deps(
            [make_tenant()],
            users=[make_user("ana")],
            alerts=[make_alert("ana")],
            skipped_counts={"ana": 3},
            config=_config(app_url="https://app.example.com/"),
        )

        await run_digest_job(deps)

        _, _, html = email_client.send_email.await_args.args
        assert "Tienes 3 umbrales" in html
        assert 'href="https://app.example.com/settings/billing"' in html

    @pytest.mark.asyncio
    async def test_no_upgrade_link_without_app_url(self, build_deps, make_tenant, make_user, make_alert,
                                                   email_client):
        deps = build_deps(
            [make_tenant()],
            users=[make_user("ana")],
            alerts=[make_alert("ana")],
            skipped_counts={"ana": 3},
            config=_config(),
        )

        await run_digest_job(deps)

        _, _, html = email_client.send_email.await_args.args
        assert "Tienes 3 umbrales" in html
        assert "/settings/billing" not in html

    @pytest.mark.asyncio
    async def test_every_user_with_alerts_gets_a_body(self, build_deps, make_tenant, make_user, make_alert,
                                                      email_client):
        users = [make_user("ana"), make_user("luis"), make_user("sofia")]
        alerts = [make_alert("ana"), make_alert("luis"), make_alert("sofia"), make_alert("sofia")]
        deps = build_deps([make_tenant()], users=users, alerts=alerts)

        result = await run_digest_job(deps)

        assert email_client.send_email.await_count == 3
        for call in email_client.send_email.await_args_list:
            assert call.args[2].startswith("<!DOCTYPE html>")
        assert result.emails_sent == 3
        assert result.alerts_marked_sent == 4


class TestRunDigestJobIsolation:
    """Per-tenant fault isolation"""

    @pytest.mark.asyncio
    async def test_two_tenants_counts_sum(self, build_deps, make_tenant, make_user, make_alert, email_client):
        deps = build_deps(
            [make_tenant("t1"), make_tenant("t2")],
            users=[make_user("ana", "t1"), make_user("ben", "t2")],
            alerts=[make_alert("ana", "t1"), make_alert("ana", "t1"), make_alert("ben", "t2")],
        )

        result = await run_digest_job(deps)

        assert result.tenants_processed == 2
        assert result.emails_sent == 2
        assert result.alerts_marked_sent == 3

    @pytest.mark.asyncio
    async def test_failing_tenant_does_not_block_next(self, build_deps, make_tenant, make_user,
                                                      make_alert, email_client):
        deps = build_deps(
            [make_tenant("t1"), make_tenant("t2")],
            users=[make_user("ana", "t1"), make_user("ben", "t2")],
            alerts=[make_alert("ana", "t1"), make_alert("ben", "t2")],
            user_errors={"t1": RuntimeError("connection reset")},
        )

        result = await run_digest_job(deps)

        assert result.tenants_processed == 1
        assert result.emails_sent == 1
        assert result.errors == ("Error processing tenant t1: connection reset",)
        assert "t1: connection reset" in result.errors[0]
        assert result.failures[0].kind == "tenant_fetch"

    @pytest.mark.asyncio
    async def test_exception_without_message(self, build_deps, make_tenant, make_user, email_client):
        deps = build_deps(
            [make_tenant("t1")],
            users=[make_user("ana", "t1")],
            user_errors={"t1": RuntimeError()},
        )

        result = await run_digest_job(deps)

        assert result.errors == ("Error processing tenant t1: Unknown error",)

    @pytest.mark.asyncio
    async def test_send_exception_abandons_rest_of_tenant(self, build_deps, make_tenant, make_user,
                                                          make_alert, email_client):
        email_client.send_email.side_effect = [
            ConnectionError("socket closed"),
            SendEmailResult(success=True, id="msg-3"),
        ]
        deps = build_deps(
            [make_tenant("t1"), make_tenant("t2")],
            users=[make_user("ana", "t1"), make_user("ben", "t1"), make_user("cid", "t2")],
            alerts=[make_alert("ana", "t1"), make_alert("ben", "t1"), make_alert("cid", "t2")],
        )

        result = await run_digest_job(deps)

        # ben is never attempted, cid in the next tenant is
        assert email_client.send_email.await_count == 2
        assert email_client.send_email.await_args_list[1].args[0] == "cid@example.com"
        assert result.emails_sent == 1
        assert result.emails_failed == 0
        assert result.errors == ("Error processing tenant t1: socket closed",)
        assert result.failures[0].kind == "send"

    @pytest.mark.asyncio
    async def test_gate_failure_sends_nothing_for_tenant(self, build_deps, make_tenant, make_user,
                                                         make_alert, email_client):
        deps = build_deps(
            [make_tenant("t1")],
            users=[make_user("ana", "t1")],
            alerts=[make_alert("ana", "t1")],
            gate_error=RuntimeError("billing unavailable"),
        )

        result = await run_digest_job(deps)

        email_client.send_email.assert_not_awaited()
        assert result.tenants_processed == 1
        assert result.emails_sent == 0
        assert result.errors == ("Error processing tenant t1: billing unavailable",)
        assert result.failures[0].kind == "gate"
        assert result.failures[0].user_id == "ana"

    @pytest.mark.asyncio
    async def test_mark_sent_failure_keeps_alerts_pending(self, build_deps, make_tenant, make_user,
                                                          make_alert, email_client):
        deps = build_deps(
            [make_tenant("t1")],
            users=[make_user("ana", "t1")],
            alerts=[make_alert("ana", "t1")],
            mark_error=RuntimeError("deadlock detected"),
        )

        result = await run_digest_job(deps)

        assert result.emails_sent == 1
        assert result.alerts_marked_sent == 0
        assert result.errors == ("Error processing tenant t1: deadlock detected",)
        assert result.failures[0].kind == "mark_sent"

    @pytest.mark.asyncio
    async def test_tenant_listing_failure_propagates(self, build_deps):
        deps = build_deps(tenant_error=RuntimeError("database is down"))

        with pytest.raises(RuntimeError, match="database is down"):
            await run_digest_job(deps)

    @pytest.mark.asyncio
    async def test_rejects_none_frequency(self, build_deps):
        with pytest.raises(ValueError):
            await run_digest_job(build_deps(), DigestFrequency.NONE)


class TestCreateDigestJob:
    """Test the schedulable wrapper"""

    @pytest.mark.asyncio
    async def test_returns_run_result(self, build_deps, make_tenant, make_user, make_alert, email_client):
        deps = build_deps([make_tenant()], users=[make_user("ana")], alerts=[make_alert("ana")])
        job = create_digest_job(deps)

        result = await job()

        assert result.emails_sent == 1
        assert result.frequency == DigestFrequency.DAILY
        assert job.__name__ == "daily_digest_job"

    @pytest.mark.asyncio
    async def test_accepts_frequency_string(self, build_deps, make_tenant, make_user, make_alert):
        user = make_user("ana", digest_frequency=DigestFrequency.WEEKLY)
        deps = build_deps([make_tenant()], users=[user], alerts=[make_alert("ana")])

        result = await create_digest_job(deps, "weekly")()

        assert result.frequency == DigestFrequency.WEEKLY
        assert result.emails_sent == 1

    @pytest.mark.asyncio
    async def test_rethrows_global_failure(self, build_deps):
        metrics = MagicMock()
        job = create_digest_job(build_deps(tenant_error=RuntimeError("boom")), metrics=metrics)

        with pytest.raises(RuntimeError, match="boom"):
            await job()

        metrics.track_digest_failure.assert_called_once()
        metrics.track_digest.assert_not_called()

    @pytest.mark.asyncio
    async def test_records_metrics(self, build_deps, make_tenant, make_user, make_alert, email_client):
        registry = CollectorRegistry()
        metrics = DigestMetrics(registry)
        email_client.send_email.side_effect = [
            SendEmailResult(success=True, id="a"),
            SendEmailResult(success=False, error="bounced"),
        ]
        deps = build_deps(
            [make_tenant()],
            users=[make_user("ana"), make_user("ben")],
            alerts=[make_alert("ana"), make_alert("ana"), make_alert("ben")],
        )

        await create_digest_job(deps, metrics=metrics)()

        def sample(name, **labels):
            return registry.get_sample_value(name, labels)

        assert sample("stock_alerts_digest_runs_total", frequency="daily", status="partial") == 1.0
        assert sample("stock_alerts_digest_emails_total", frequency="daily", outcome="sent") == 1.0
        assert sample("stock_alerts_digest_emails_total", frequency="daily", outcome="failed") == 1.0
        assert sample("stock_alerts_digest_alerts_marked_total", frequency="daily") == 2.0
        assert sample("stock_alerts_digest_errors_total", frequency="daily", kind="send") == 1.0

    @pytest.mark.asyncio
    async def test_job_matches_direct_run(self, build_deps, make_tenant, make_user, make_alert):
        """Scheduled and direct runs produce the same counters"""
        alerts = [make_alert("ana"), make_alert("ana")]

        direct = await run_digest_job(build_deps([make_tenant()], [make_user("ana")], alerts))
        wrapped = await create_digest_job(build_deps([make_tenant()], [make_user("ana")], alerts))()

        assert wrapped.tenants_processed == direct.tenants_processed
        assert wrapped.emails_sent == direct.emails_sent
        assert wrapped.alerts_marked_sent == direct.alerts_marked_sent
        assert wrapped.errors == direct.errors
