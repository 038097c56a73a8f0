from app.apps.workspaces.services import (
    invitation_service,
    lifecycle_service,
    membership_service,
)
from app.core.config import scheduler_logger
from app.core.db import AsyncSessionLocal


async def reap_archived_workspaces() -> dict[str, int] | None:
    """
    Periodic task to permanently delete archived workspaces whose grace
    period has elapsed.

    Each workspace is deleted in its own transaction; one failure is logged
    and does not stop the sweep.
    """
    scheduler_logger.info("Starting sweep of expired archived workspaces")
    try:
        async with AsyncSessionLocal() as session:
            result = await lifecycle_service.reap_expired_workspaces(session)
    except Exception as e:
        scheduler_logger.error(f"Reaper sweep aborted: {type(e).__name__} - {e}")
        return None

    scheduler_logger.info(
        f"Completed sweep of archived workspaces. Deleted {result['deleted']}, "
        f"skipped {result['skipped']}, failed {result['failed']}."
    )
    return result


async def expire_invitations() -> int | None:
    """
    Periodic task to mark pending invitations past their deadline as expired.
    """
    scheduler_logger.info("Starting expiration of overdue invitations")
    try:
        async with AsyncSessionLocal.begin() as session:
            expired_count = await invitation_service.expire_invitations(
                session, commit_self=False
            )
    except Exception as e:
        scheduler_logger.error(
            f"Invitation expiry failed: {type(e).__name__} - {e}"
        )
        return None

    scheduler_logger.info(
        f"Completed expiration of invitations. Expired {expired_count} record(s)."
    )
    return expired_count


async def reconcile_role_cache() -> dict[str, int] | None:
    """
    Periodic task to rebuild role cache entries from workspace owners and
    member rows.
    """
    scheduler_logger.info("Starting role cache reconciliation")
    try:
        async with AsyncSessionLocal.begin() as session:
            counts = await membership_service.reconcile_role_cache(
                session, commit_self=False
            )
    except Exception as e:
        scheduler_logger.error(
            f"Role cache reconciliation failed: {type(e).__name__} - {e}"
        )
        return None

    scheduler_logger.info(f"Completed role cache reconciliation: {counts}")
    return counts
