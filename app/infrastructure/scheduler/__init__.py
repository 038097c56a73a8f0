from app.infrastructure.scheduler.jobs import (
    expire_invitations,
    reap_archived_workspaces,
    reconcile_role_cache,
)
from app.infrastructure.scheduler.main import scheduler, initialize_scheduler

__all__ = [
    "scheduler",
    "expire_invitations",
    "reap_archived_workspaces",
    "reconcile_role_cache",
    "initialize_scheduler",
]
