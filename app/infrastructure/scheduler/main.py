"""
Scheduler module for the workspace engine.

Hosts the lifecycle reaper, the invitation-expiry sweep and the role cache
reconciliation pass.

Standalone Usage:
    python -m app.infrastructure.scheduler.main
"""

import asyncio
import logging
import signal
from datetime import timezone

from apscheduler.jobstores.base import BaseJobStore
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.jobstores.sqlalchemy import SQLAlchemyJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import scheduler_logger, settings


logging.getLogger("apscheduler").setLevel(logging.INFO)

JOBSTORE = "workspaces"


def _sync_database_url() -> str:
    """Convert the async DATABASE_URL to a synchronous one for APScheduler.

    Only modifies the driver scheme (before ://) so the rest of the URL
    (including any percent-encoded password) is preserved exactly.
    """
    scheme, rest = settings.DATABASE_URL.split("://", 1)
    scheme = scheme.replace("+asyncpg", "").replace("+aiosqlite", "")
    return f"{scheme}://{rest}"


def _build_jobstore() -> BaseJobStore:
    """SQLAlchemy job store, or memory when the database is in-memory SQLite."""
    url = _sync_database_url()
    if url.startswith("sqlite") and ":memory:" in url:
        return MemoryJobStore()
    return SQLAlchemyJobStore(url=url, tablename="scheduler_workspace_jobs")


scheduler = AsyncIOScheduler(
    jobstores={JOBSTORE: _build_jobstore()},
    timezone=timezone.utc,
)


def schedule_reap_archived_workspaces_job(interval_minutes: int = 5) -> None:
    """
    Schedule the reaper that deletes archived workspaces past their deadline.
    """
    from app.infrastructure.scheduler.jobs import reap_archived_workspaces

    scheduler_logger.info(
        f"Scheduling 'reap_archived_workspaces' job to run every {interval_minutes} minutes"
    )
    scheduler.add_job(
        reap_archived_workspaces,
        trigger=IntervalTrigger(minutes=interval_minutes, timezone=timezone.utc),
        replace_existing=True,
        id="reap_archived_workspaces_job",
        jobstore=JOBSTORE,
        misfire_grace_time=60 * 5,
        max_instances=1,
        coalesce=True,
    )
    scheduler_logger.info("'reap_archived_workspaces' job scheduled successfully.")


def schedule_expire_invitations_job(interval_minutes: int = 60) -> None:
    from app.infrastructure.scheduler.jobs import expire_invitations

    scheduler_logger.info(
        f"Scheduling 'expire_invitations' job to run every {interval_minutes} minutes"
    )
    scheduler.add_job(
        expire_invitations,
        trigger=IntervalTrigger(minutes=interval_minutes, timezone=timezone.utc),
        replace_existing=True,
        id="expire_invitations_job",
        jobstore=JOBSTORE,
        misfire_grace_time=60 * 15,
        coalesce=True,
    )
    scheduler_logger.info("'expire_invitations' job scheduled successfully.")


def schedule_reconcile_role_cache_job(interval_minutes: int = 360) -> None:
    from app.infrastructure.scheduler.jobs import reconcile_role_cache

    scheduler_logger.info(
        f"Scheduling 'reconcile_role_cache' job to run every {interval_minutes} minutes"
    )
    scheduler.add_job(
        reconcile_role_cache,
        trigger=IntervalTrigger(minutes=interval_minutes, timezone=timezone.utc),
        replace_existing=True,
        id="reconcile_role_cache_job",
        jobstore=JOBSTORE,
        misfire_grace_time=60 * 60,
        max_instances=1,
        coalesce=True,
    )
    scheduler_logger.info("'reconcile_role_cache' job scheduled successfully.")


def initialize_scheduler() -> None:
    """
    Initialize the scheduler by scheduling all required jobs.

    This function should be called during application startup to ensure
    that all scheduled tasks are registered and ready to run.
    """
    schedule_reap_archived_workspaces_job(
        interval_minutes=settings.REAPER_INTERVAL_MINUTES
    )
    schedule_expire_invitations_job(
        interval_minutes=settings.INVITATION_EXPIRY_INTERVAL_MINUTES
    )
    schedule_reconcile_role_cache_job(
        interval_minutes=settings.ROLE_CACHE_RECONCILE_INTERVAL_MINUTES
    )


async def main() -> None:
    """
    Main entry point for standalone scheduler execution.

    Starts the scheduler and runs until interrupted.
    """
    from app.core.db import dispose_db
    from app.core.services.event_publisher import register_publisher
    from app.infrastructure.messaging import publish_event

    shutdown_event = asyncio.Event()

    def handle_shutdown(signum, frame):
        scheduler_logger.info(f"Received signal {signum}, initiating shutdown...")
        shutdown_event.set()

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    scheduler_logger.info("Starting standalone scheduler...")

    try:
        # Reaper deletions still publish activity and notifications
        register_publisher(publish_event)

        scheduler_logger.info("Starting scheduler...")
        scheduler.start()
        scheduler_logger.info("Scheduler started successfully. Waiting for jobs...")
        initialize_scheduler()  # Schedule jobs after starting the scheduler
        await shutdown_event.wait()

    except Exception as e:
        scheduler_logger.exception(f"Scheduler error: {e}")
        raise

    finally:
        scheduler_logger.info("Shutting down scheduler...")

        if scheduler.running:
            scheduler.shutdown(wait=True)
            scheduler_logger.info("Scheduler stopped successfully.")

        await dispose_db()
        scheduler_logger.info("Scheduler shutdown complete.")


if __name__ == "__main__":
    asyncio.run(main())
