"""
Activity log model.

Rows are written by the ``workspace_activity`` queue consumer, never on the
request path, so a failed log write can never revert a workspace mutation.
"""

from uuid import UUID

from sqlalchemy import JSON, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db.models.base import BaseModel


class ActivityLog(BaseModel):
    __tablename__ = "activity_logs"

    actor_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        index=True,
        comment="User that performed the action (no FK: actors may be deleted)",
    )

    action: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )

    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
    )

    entity_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
    )

    entity_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
    )

    entity_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    workspace_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        nullable=True,
        index=True,
        comment="Workspace the action belongs to (kept after the workspace is deleted)",
    )

    severity: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="info",
    )

    metadata_: Mapped[dict | None] = mapped_column(
        "metadata",
        JSON,
        nullable=True,
    )
