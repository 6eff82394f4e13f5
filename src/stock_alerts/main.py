"""
Command-line interface for Stock Alerts.

Runs the background schedulers (daily/weekly digests, session cleanup) as a
long-lived process, or single jobs on demand for cron-style deployments and
manual operation.
"""

import argparse
import asyncio
import json
import os
import signal
import sys
from typing import List, Optional

from dotenv import load_dotenv

from stock_alerts.core.models import DigestFrequency
from stock_alerts.database.connection import Database, close_db, get_database
from stock_alerts.database.repositories import SqlSessionRepository
from stock_alerts.monitoring import DigestMetrics, setup_sentry, start_metrics_server
from stock_alerts.notifications.email_client import create_email_client
from stock_alerts.services.scheduler import (
    BaseJobScheduler,
    CronJobScheduler,
    RecurringJobScheduler,
    SchedulerOptions,
)
from stock_alerts.utils.config import AlertsConfig, get_config, validate_configuration
from stock_alerts.utils.exceptions import StockAlertsError
from stock_alerts.utils.logger import get_logger, setup_logging
from stock_alerts.workers.digest import DigestDependencies, create_digest_job
from stock_alerts.workers.session_cleanup import create_session_cleanup_scheduler, run_session_cleanup


cli_logger = get_logger(__name__)


def build_schedulers(config: AlertsConfig,
                     deps: DigestDependencies,
                     session_repo: SqlSessionRepository,
                     metrics: Optional[DigestMetrics] = None) -> List[BaseJobScheduler]:
    """Create (but do not start) every scheduler the service runs."""
    schedulers: List[BaseJobScheduler] = []

    daily_job = create_digest_job(deps, DigestFrequency.DAILY, metrics)
    if config.digest_interval_minutes and config.digest_enabled:
        schedulers.append(RecurringJobScheduler(
            daily_job,
            SchedulerOptions(interval_ms=config.digest_interval_minutes * 60 * 1000, run_on_start=False),
            name="daily_digest",
        ))
    else:
        schedulers.append(CronJobScheduler(
            daily_job,
            hour=config.digest_hour,
            minute=config.digest_minute,
            enabled=config.digest_enabled,
            name="daily_digest",
        ))

    schedulers.append(CronJobScheduler(
        create_digest_job(deps, DigestFrequency.WEEKLY, metrics),
        hour=config.digest_hour,
        minute=config.digest_minute,
        day_of_week=config.weekly_digest_day,
        enabled=config.digest_enabled,
        name="weekly_digest",
    ))

    schedulers.append(create_session_cleanup_scheduler(
        session_repo,
        interval_ms=config.session_cleanup_interval_ms,
        metrics=metrics,
    ))

    return schedulers


class StockAlertsCLI:
    """Command-line interface for Stock Alerts operations."""

    def __init__(self):
        self.config: Optional[AlertsConfig] = None
        self.database: Optional[Database] = None
        self.email_client = None

    def _init_services(self) -> None:
        """Initialize services (lazy loading)."""
        if self.config:
            return

        self.config = get_config()
        setup_sentry(self.config.sentry_dsn, self.config.sentry_environment)
        self.database = get_database(self.config.database_url, echo=self.config.debug_mode)
        self.email_client = create_email_client(self.config)
        cli_logger.info("Services initialized successfully")

    async def _shutdown(self) -> None:
        if self.email_client is not None:
            await self.email_client.aclose()
        if self.database is not None:
            await close_db()
            self.database = None

    def _digest_dependencies(self) -> DigestDependencies:
        return DigestDependencies.from_session_factory(
            self.database.session_factory,
            self.config,
            self.email_client,
        )

    async def cmd_run(self, args) -> int:
        """Run all schedulers until SIGINT/SIGTERM."""
        self._init_services()

        metrics = None
        if self.config.metrics_port:
            metrics = DigestMetrics()
            start_metrics_server(self.config.metrics_port)

        schedulers = build_schedulers(
            self.config,
            self._digest_dependencies(),
            SqlSessionRepository(self.database.session_factory),
            metrics,
        )

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except NotImplementedError:
                # Windows event loops
                pass

        for scheduler in schedulers:
            scheduler.start()

        cli_logger.info(f"Stock Alerts running with {len(schedulers)} schedulers")

        try:
            await stop_event.wait()
        finally:
            cli_logger.info("Shutting down schedulers...")
            for scheduler in schedulers:
                scheduler.stop()
            for scheduler in schedulers:
                await scheduler.wait_idle()
            await self._shutdown()

        return 0

    async def cmd_digest(self, args) -> int:
        """Run one digest pass and print its summary."""
        self._init_services()

        job = create_digest_job(self._digest_dependencies(), args.frequency)
        try:
            result = await job()
        finally:
            await self._shutdown()

        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return 1 if result.has_errors else 0

    async def cmd_cleanup_sessions(self, args) -> int:
        self._init_services()

        try:
            result = await run_session_cleanup(SqlSessionRepository(self.database.session_factory))
        finally:
            await self._shutdown()

        print(f"Deleted {result.deleted_count} expired sessions")
        return 0

    async def cmd_init_db(self, args) -> int:
        self._init_services()

        try:
            await self.database.init_db()
        finally:
            await self._shutdown()

        print("Database tables created")
        return 0

    async def cmd_config(self, args) -> int:
        if args.config_action == "validate":
            validation_result = validate_configuration()
            if validation_result["valid"]:
                print("Configuration is valid")
                print(json.dumps(validation_result["summary"], indent=2))
                return 0
            print(f"Configuration validation failed: {validation_result['error']}")
            return 1

        print(json.dumps(get_config().summary(), indent=2))
        return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="stock-alerts",
        description="Stock Alerts - scheduled alert digests and maintenance jobs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  stock-alerts run                        # Start all schedulers
  stock-alerts digest --frequency weekly  # Send the weekly digest now
  stock-alerts cleanup-sessions           # Remove expired sessions
  stock-alerts init-db                    # Create database tables
  stock-alerts config validate            # Validate configuration
        """
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Override LOG_LEVEL"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("run", help="Run all schedulers until interrupted")

    digest_parser = subparsers.add_parser("digest", help="Run one digest pass")
    digest_parser.add_argument(
        "--frequency",
        choices=[f.value for f in DigestFrequency.schedulable()],
        default=DigestFrequency.DAILY.value,
        help="Digest frequency to process (default: daily)"
    )

    subparsers.add_parser("cleanup-sessions", help="Delete expired sessions")
    subparsers.add_parser("init-db", help="Create database tables")

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_parser.add_argument(
        "config_action",
        choices=["validate", "show"],
        help="Configuration action to perform"
    )

    return parser


async def async_main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)

    load_dotenv()
    if args.log_level:
        os.environ["LOG_LEVEL"] = args.log_level
    setup_logging()

    if not args.command:
        parser.print_help()
        return 1

    cli = StockAlertsCLI()
    handlers = {
        "run": cli.cmd_run,
        "digest": cli.cmd_digest,
        "cleanup-sessions": cli.cmd_cleanup_sessions,
        "init-db": cli.cmd_init_db,
        "config": cli.cmd_config,
    }

    try:
        return await handlers[args.command](args)
    except StockAlertsError as e:
        cli_logger.error(f"{args.command} failed: {e}")
        print(f"Operation failed: {e.message}")
        return 1
    except Exception as e:
        cli_logger.error(f"{args.command} failed: {e}", exc_info=True)
        print(f"Operation failed: {e}")
        return 1


def main() -> None:
    """Entry point for console script."""
    try:
        exit_code = asyncio.run(async_main())
    except KeyboardInterrupt:
        print("\nInterrupted")
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
