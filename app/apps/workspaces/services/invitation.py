"""
Invitation lifecycle.

Invitations are created pending and move exactly once to accepted,
declined, cancelled or expired. Every transition is a conditional UPDATE on
``status = pending``, so concurrent callers cannot both win.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.apps.workspaces.db.crud import (
    workspace_db,
    workspace_invitation_db,
    workspace_member_db,
)
from app.apps.workspaces.db.models import (
    Workspace,
    WorkspaceInvitation,
    WorkspaceMember,
)
from app.apps.workspaces.exceptions import (
    InvalidInvitationRoleException,
    InvitationAlreadyExistsException,
    InvitationNotFoundException,
    InvitationNotPendingException,
    MemberAlreadyExistsException,
    PermissionDeniedException,
    WorkspaceArchivedException,
    WorkspaceNotFoundException,
)
from app.apps.workspaces.services import side_effects
from app.apps.workspaces.services.membership import membership_service
from app.apps.workspaces.services.permissions import (
    CAN_MANAGE_MEMBERS,
    has_role,
    permission_service,
)
from app.core.config import invitation_logger, settings
from app.core.db.crud import user_db
from app.core.db.models import User
from app.core.enums import (
    ActivityAction,
    BulkInviteStatus,
    InvitationStatus,
    InvitationType,
    MemberRole,
    NotificationType,
)
from app.core.exceptions.types import (
    BadRequestException,
    DatabaseException,
    ExpiredInvitationException,
    IdentityMismatchException,
    InvalidStateException,
)
from app.core.utils import generate_invitation_token, hmac_hash_token


@dataclass
class BulkInviteResult:
    """Outcome of inviting one address in a bulk invite."""

    email: str
    status: BulkInviteStatus
    invitation_id: UUID | None = None
    error: str | None = None


class InvitationService:
    """Service for workspace invitations."""

    def _generate_secure_token(self) -> tuple[str, str]:
        """
        Generate an invitation token and its storage hash.

        Returns:
            Tuple of (raw_token, token_hash).
        """
        raw_token = generate_invitation_token()
        return raw_token, hmac_hash_token(raw_token)

    def build_invitation_link(self, token: str) -> str:
        return f"{settings.FRONTEND_URL.rstrip('/')}/invitations/{token}"

    def _invitations_page_link(self) -> str:
        return f"{settings.FRONTEND_URL.rstrip('/')}/invitations"

    async def _get_by_token(
        self, session: AsyncSession, token: str
    ) -> WorkspaceInvitation:
        invitation = await workspace_invitation_db.get_by_token_hash(
            session, hmac_hash_token(token)
        )
        if not invitation:
            raise InvitationNotFoundException()
        return invitation

    async def _get_by_id(
        self, session: AsyncSession, invitation_id: UUID
    ) -> WorkspaceInvitation:
        invitation = await workspace_invitation_db.get_by_id(session, invitation_id)
        if not invitation:
            raise InvitationNotFoundException()
        return invitation

    async def _get_workspace(
        self, session: AsyncSession, workspace_id: UUID
    ) -> Workspace:
        workspace = await workspace_db.get_by_id(session, workspace_id)
        if not workspace:
            raise WorkspaceNotFoundException()
        return workspace

    def _check_identity(self, invitation: WorkspaceInvitation, user: User) -> None:
        """Email invitations may only be used by the addressed identity."""
        if invitation.email is None:
            return
        if invitation.email.lower() != user.email.lower():
            invitation_logger.warning(
                f"Identity mismatch on invitation {invitation.id}: "
                f"addressed to {invitation.email}, presented by {user.email}"
            )
            raise IdentityMismatchException()

    async def _require_manager(
        self,
        session: AsyncSession,
        invitation: WorkspaceInvitation,
        actor_id: UUID,
    ) -> None:
        """Require the inviter, or an admin or higher of the target workspace."""
        if invitation.invited_by_id == actor_id:
            return
        workspace = await workspace_db.get_by_id(session, invitation.target_id)
        if workspace is None:
            raise PermissionDeniedException(
                "Only the inviter can manage this invitation."
            )
        await permission_service.require_role(
            session,
            workspace,
            actor_id,
            MemberRole.ADMIN,
            "Only the inviter or a workspace admin can manage this invitation.",
        )

    # ========================================================================
    # Create
    # ========================================================================

    async def create_invitation(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        inviter: User,
        email: str | None = None,
        role: MemberRole = MemberRole.MEMBER,
        expires_in_days: int | None = None,
        message: str | None = None,
        commit_self: bool = True,
    ) -> tuple[WorkspaceInvitation, str]:
        """
        Invite someone to a workspace, by email or as an open link.

        Args:
            session: Database session.
            workspace_id: Workspace ID.
            inviter: User sending the invitation.
            email: Invitee email, or None for a single-use link invitation.
            role: Role granted on acceptance (admin or member).
            expires_in_days: Lifetime of the invitation, defaults to
                ``INVITATION_EXPIRY_DAYS``.
            message: Optional personal message.
            commit_self: Whether to commit the transaction.

        Returns:
            Tuple of (invitation, raw_token). The raw token is not stored
            and cannot be recovered later.

        Raises:
            WorkspaceNotFoundException: If workspace not found.
            WorkspaceArchivedException: If the workspace is archived.
            PermissionDeniedException: If inviter lacks permission.
            InvalidInvitationRoleException: If role is owner.
            MemberAlreadyExistsException: If the email belongs to the owner or a member.
            InvitationAlreadyExistsException: If a pending invitation exists.
        """
        workspace = await self._get_workspace(session, workspace_id)
        if not workspace.is_active:
            raise WorkspaceArchivedException()

        if role == MemberRole.OWNER:
            raise InvalidInvitationRoleException()

        inviter_role = await permission_service.get_role(
            session, workspace, inviter.id
        )
        can_invite = has_role(
            inviter_role, MemberRole.ADMIN
        ) or await permission_service.has_permission(
            session, workspace, inviter.id, CAN_MANAGE_MEMBERS
        )
        if not can_invite:
            raise PermissionDeniedException("Only admins can invite members.")
        if role == MemberRole.ADMIN and inviter_role != MemberRole.OWNER:
            raise PermissionDeniedException("Only the owner can invite admins.")

        now = datetime.now(timezone.utc)
        invited_user: User | None = None

        if email is not None:
            email = email.strip().lower()
            invited_user = await user_db.get_by_email(session, email)
            if invited_user is not None and (
                invited_user.id == workspace.owner_id
                or await workspace_member_db.get_member(
                    session, workspace.id, invited_user.id
                )
            ):
                raise MemberAlreadyExistsException()

            existing = await workspace_invitation_db.get_pending_invitation(
                session, email, workspace.id
            )
            if existing and existing.is_expired(now):
                # Stale pending row still holds the per-email slot
                await workspace_invitation_db.transition(
                    session,
                    existing.id,
                    InvitationStatus.EXPIRED,
                    commit_self=False,
                )
            elif existing:
                raise InvitationAlreadyExistsException()

        days = expires_in_days or settings.INVITATION_EXPIRY_DAYS
        if days < 1:
            raise BadRequestException("Invitations must be valid for at least a day.")

        raw_token, token_hash = self._generate_secure_token()
        workspace_id = workspace.id
        try:
            # The pending-invitation index settles a race the read above missed
            async with session.begin_nested():
                invitation = await workspace_invitation_db.create(
                    session,
                    {
                        "type": InvitationType.WORKSPACE,
                        "target_id": workspace_id,
                        "target_name": workspace.name,
                        "invited_by_id": inviter.id,
                        "email": email,
                        "invited_user_id": invited_user.id if invited_user else None,
                        "role": role,
                        "token_hash": token_hash,
                        "status": InvitationStatus.PENDING,
                        "message": message,
                        "expires_at": now + timedelta(days=days),
                    },
                    commit_self=False,
                )
        except DatabaseException as e:
            if email is not None and e.is_integrity_error:
                invitation_logger.info(
                    f"Concurrent pending invitation for {email} to workspace "
                    f"{workspace_id}"
                )
                raise InvitationAlreadyExistsException() from e
            raise

        if commit_self:
            await session.commit()
        else:
            await session.flush()

        kind = f"to {email}" if email else "as a link"
        invitation_logger.info(
            f"Invitation {invitation.id} created {kind} for workspace "
            f"{workspace.id} by {inviter.id} (role {role.value})"
        )

        await side_effects.record_activity(
            inviter.id,
            ActivityAction.INVITATION_SEND,
            f"Invited {email or 'a link holder'} to '{workspace.name}' as {role.value}",
            workspace.id,
            entity_type="invitation",
            entity_id=invitation.id,
            entity_name=workspace.name,
            metadata={"email": email, "role": role, "link": email is None},
        )
        if email is not None:
            await side_effects.send_invitation_email(
                email=email,
                inviter_name=inviter.display_name,
                workspace_name=workspace.name,
                role=role.value.title(),
                invitation_link=self.build_invitation_link(raw_token),
                expires_at=invitation.expires_at,
            )
        if invited_user is not None:
            await side_effects.notify(
                invited_user.id,
                NotificationType.INVITATION_RECEIVED,
                "New workspace invitation",
                f"{inviter.display_name} invited you to join '{workspace.name}'.",
                {"invitation_id": invitation.id, "workspace_id": workspace.id},
            )

        return invitation, raw_token

    async def bulk_invite(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        inviter: User,
        emails: Sequence[str],
        role: MemberRole = MemberRole.MEMBER,
        expires_in_days: int | None = None,
        message: str | None = None,
        commit_self: bool = True,
    ) -> list[BulkInviteResult]:
        """
        Send email invitations to several addresses at once.

        Each address is invited in its own savepoint. An address that
        already belongs to a member or already has a pending invitation is
        reported and skipped; the other addresses are still invited.
        Problems with the workspace itself, such as a missing permission
        or an archived workspace, fail the whole call.

        Args:
            session: Database session.
            workspace_id: Workspace ID.
            inviter: User sending the invitations.
            emails: Addresses to invite; duplicates are invited once.
            role: Role granted on acceptance (admin or member).
            expires_in_days: Lifetime of each invitation.
            message: Optional personal message.
            commit_self: Whether to commit the transaction.

        Returns:
            One result per distinct address, in the order given.

        Raises:
            BadRequestException: If no address or too many addresses are given.
        """
        addresses = list(dict.fromkeys(e.strip().lower() for e in emails))
        if not addresses:
            raise BadRequestException("At least one email address is required.")
        if len(addresses) > settings.MAX_BULK_INVITES:
            raise BadRequestException(
                f"At most {settings.MAX_BULK_INVITES} addresses can be invited at once."
            )

        results: list[BulkInviteResult] = []
        for email in addresses:
            try:
                async with session.begin_nested():
                    invitation, _ = await self.create_invitation(
                        session,
                        workspace_id,
                        inviter,
                        email=email,
                        role=role,
                        expires_in_days=expires_in_days,
                        message=message,
                        commit_self=False,
                    )
            except MemberAlreadyExistsException as e:
                results.append(
                    BulkInviteResult(
                        email, BulkInviteStatus.ALREADY_MEMBER, error=e.message
                    )
                )
                continue
            except InvitationAlreadyExistsException as e:
                results.append(
                    BulkInviteResult(
                        email, BulkInviteStatus.ALREADY_PENDING, error=e.message
                    )
                )
                continue
            results.append(
                BulkInviteResult(
                    email, BulkInviteStatus.SENT, invitation_id=invitation.id
                )
            )

        if commit_self:
            await session.commit()

        sent = sum(1 for r in results if r.status == BulkInviteStatus.SENT)
        invitation_logger.info(
            f"Bulk invite to workspace {workspace_id} by {inviter.id}: "
            f"{sent} of {len(results)} sent"
        )
        return results

    # ========================================================================
    # Read
    # ========================================================================

    async def get_invitation(
        self,
        session: AsyncSession,
        token: str,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> WorkspaceInvitation:
        """
        Look up an invitation by its token.

        A pending invitation found past its deadline is moved to expired
        before the error is raised; pass ``commit_self=True`` to keep that
        transition.

        Raises:
            InvitationNotFoundException: If no invitation has this token.
            ExpiredInvitationException: If the invitation has expired.
        """
        invitation = await self._get_by_token(session, token)
        now = now or datetime.now(timezone.utc)

        if invitation.is_pending and invitation.is_expired(now):
            expired = await workspace_invitation_db.transition(
                session, invitation.id, InvitationStatus.EXPIRED, commit_self=False
            )
            if commit_self:
                await session.commit()
            else:
                await session.flush()
            if expired:
                invitation_logger.info(
                    f"Invitation {invitation.id} expired on read"
                )
            raise ExpiredInvitationException()

        if invitation.status == InvitationStatus.EXPIRED:
            raise ExpiredInvitationException()

        return invitation

    async def list_workspace_invitations(
        self,
        session: AsyncSession,
        workspace_id: UUID,
        actor_id: UUID,
        status: InvitationStatus | None = None,
    ) -> Sequence[WorkspaceInvitation]:
        """
        List a workspace's invitations, newest first.

        Raises:
            WorkspaceNotFoundException: If workspace not found.
            PermissionDeniedException: If the actor is below admin.
        """
        workspace = await self._get_workspace(session, workspace_id)
        await permission_service.require_role(
            session,
            workspace,
            actor_id,
            MemberRole.ADMIN,
            "Only admins can view invitations.",
        )
        return await workspace_invitation_db.get_target_invitations(
            session, workspace.id, status
        )

    async def list_user_invitations(
        self,
        session: AsyncSession,
        user: User,
    ) -> Sequence[WorkspaceInvitation]:
        """List live pending invitations addressed to the user's email."""
        return await workspace_invitation_db.get_user_pending_invitations(
            session, user.email
        )

    # ========================================================================
    # Transitions
    # ========================================================================

    async def accept_invitation(
        self,
        session: AsyncSession,
        token: str,
        user: User,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> tuple[WorkspaceInvitation, WorkspaceMember]:
        """
        Redeem an invitation and materialise the membership.

        Acceptance is single-use for both email and link invitations: a
        second call on the same token fails with InvitationNotPendingException.

        Args:
            session: Database session.
            token: Invitation token.
            user: User accepting the invitation.
            now: Reference time, defaults to the current UTC time.
            commit_self: Whether to commit the transaction.

        Returns:
            Tuple of (invitation, member).

        Raises:
            InvitationNotFoundException: If no invitation has this token.
            InvitationNotPendingException: If the invitation is no longer pending.
            ExpiredInvitationException: If the deadline has passed.
            IdentityMismatchException: If the invitation is addressed to another email.
            WorkspaceNotFoundException: If the workspace was deleted meanwhile.
            WorkspaceArchivedException: If the workspace is archived.
            LimitExceededException: If the workspace is full.
        """
        invitation = await self._get_by_token(session, token)
        now = now or datetime.now(timezone.utc)

        if not invitation.is_pending:
            raise InvitationNotPendingException()
        if invitation.is_expired(now):
            raise ExpiredInvitationException()
        self._check_identity(invitation, user)

        workspace = await workspace_db.get_by_id(session, invitation.target_id)
        if not workspace:
            raise WorkspaceNotFoundException(
                "The workspace for this invitation no longer exists."
            )
        if not workspace.is_active:
            raise WorkspaceArchivedException()

        invitation_id = invitation.id
        role = invitation.role
        invited_by_id = invitation.invited_by_id
        invited_user_id = invitation.invited_user_id or user.id

        # A failed membership write must also undo the status change
        async with session.begin_nested():
            won = await workspace_invitation_db.transition(
                session,
                invitation_id,
                InvitationStatus.ACCEPTED,
                {"accepted_at": now, "invited_user_id": invited_user_id},
                commit_self=False,
            )
            if not won:
                invitation_logger.info(
                    f"Invitation {invitation_id} was redeemed concurrently"
                )
                raise InvitationNotPendingException()

            member, created = await membership_service.add_member(
                session,
                workspace,
                user.id,
                role=role,
                invited_by_id=invited_by_id,
                commit_self=False,
            )

        if commit_self:
            await session.commit()
        else:
            await session.flush()
        await session.refresh(invitation)

        invitation_logger.info(
            f"User {user.id} accepted invitation {invitation.id} and joined "
            f"workspace {workspace.id}"
        )

        await side_effects.record_activity(
            user.id,
            ActivityAction.INVITATION_ACCEPT,
            f"{user.display_name} accepted an invitation to '{workspace.name}'",
            workspace.id,
            entity_type="invitation",
            entity_id=invitation.id,
            entity_name=workspace.name,
        )
        if created:
            await side_effects.record_activity(
                user.id,
                ActivityAction.WORKSPACE_MEMBER_ADD,
                f"{user.display_name} joined '{workspace.name}' as {member.role.value}",
                workspace.id,
                entity_type="member",
                entity_id=user.id,
                entity_name=user.display_name,
                metadata={"role": member.role, "invitation_id": invitation.id},
            )
            await side_effects.notify(
                invitation.invited_by_id,
                NotificationType.MEMBER_JOINED,
                "Invitation accepted",
                f"{user.display_name} joined '{workspace.name}'.",
                {"workspace_id": workspace.id, "user_id": user.id},
            )

        return invitation, member

    async def decline_invitation(
        self,
        session: AsyncSession,
        token: str,
        user: User,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> WorkspaceInvitation:
        """
        Decline an email invitation as its addressee.

        Raises:
            InvitationNotFoundException: If no invitation has this token.
            InvitationNotPendingException: If the invitation is no longer pending.
            ExpiredInvitationException: If the deadline has passed.
            InvalidStateException: If this is a link invitation.
            IdentityMismatchException: If the invitation is addressed to another email.
        """
        invitation = await self._get_by_token(session, token)
        now = now or datetime.now(timezone.utc)

        if not invitation.is_pending:
            raise InvitationNotPendingException()
        if invitation.is_expired(now):
            raise ExpiredInvitationException()
        if invitation.is_link:
            raise InvalidStateException("Link invitations cannot be declined.")
        self._check_identity(invitation, user)

        declined = await workspace_invitation_db.transition(
            session,
            invitation.id,
            InvitationStatus.DECLINED,
            {
                "declined_at": now,
                "invited_user_id": invitation.invited_user_id or user.id,
            },
            commit_self=False,
        )
        if not declined:
            raise InvitationNotPendingException()

        if commit_self:
            await session.commit()
        else:
            await session.flush()
        await session.refresh(invitation)

        invitation_logger.info(f"User {user.id} declined invitation {invitation.id}")

        await side_effects.record_activity(
            user.id,
            ActivityAction.INVITATION_DECLINE,
            f"{user.display_name} declined an invitation to '{invitation.target_name}'",
            invitation.target_id,
            entity_type="invitation",
            entity_id=invitation.id,
            entity_name=invitation.target_name,
        )
        await side_effects.notify(
            invitation.invited_by_id,
            NotificationType.INVITATION_DECLINED,
            "Invitation declined",
            f"{user.display_name} declined your invitation to '{invitation.target_name}'.",
            {"invitation_id": invitation.id, "workspace_id": invitation.target_id},
        )

        return invitation

    async def cancel_invitation(
        self,
        session: AsyncSession,
        invitation_id: UUID,
        actor: User,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> WorkspaceInvitation:
        """
        Cancel a pending invitation as its inviter or a workspace admin.

        Raises:
            InvitationNotFoundException: If invitation not found.
            PermissionDeniedException: If the actor may not manage it.
            InvitationNotPendingException: If the invitation is no longer pending.
        """
        invitation = await self._get_by_id(session, invitation_id)
        await self._require_manager(session, invitation, actor.id)

        if not invitation.is_pending:
            raise InvitationNotPendingException()

        now = now or datetime.now(timezone.utc)
        cancelled = await workspace_invitation_db.transition(
            session,
            invitation.id,
            InvitationStatus.CANCELLED,
            {"cancelled_at": now},
            commit_self=False,
        )
        if not cancelled:
            raise InvitationNotPendingException()

        if commit_self:
            await session.commit()
        else:
            await session.flush()
        await session.refresh(invitation)

        invitation_logger.info(f"Invitation {invitation.id} cancelled by {actor.id}")

        await side_effects.record_activity(
            actor.id,
            ActivityAction.INVITATION_CANCEL,
            f"Cancelled the invitation for {invitation.email or 'a link'} "
            f"to '{invitation.target_name}'",
            invitation.target_id,
            entity_type="invitation",
            entity_id=invitation.id,
            entity_name=invitation.target_name,
        )

        return invitation

    async def send_reminder(
        self,
        session: AsyncSession,
        invitation_id: UUID,
        actor: User,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> WorkspaceInvitation:
        """
        Re-send a pending email invitation.

        The stored token hash cannot be turned back into a link, so the
        reminder points the invitee at their invitation inbox.

        Raises:
            InvitationNotFoundException: If invitation not found.
            PermissionDeniedException: If the actor may not manage it.
            InvitationNotPendingException: If the invitation is no longer pending.
            ExpiredInvitationException: If the deadline has passed.
            InvalidStateException: If this is a link invitation.
        """
        invitation = await self._get_by_id(session, invitation_id)
        await self._require_manager(session, invitation, actor.id)

        now = now or datetime.now(timezone.utc)
        if not invitation.is_pending:
            raise InvitationNotPendingException()
        if invitation.is_expired(now):
            raise ExpiredInvitationException()
        if invitation.is_link:
            raise InvalidStateException("Link invitations have no recipient to remind.")

        updated = await workspace_invitation_db.update_by_conditions(
            session,
            [
                WorkspaceInvitation.id == invitation.id,
                WorkspaceInvitation.status == InvitationStatus.PENDING,
                WorkspaceInvitation.expires_at > now,
            ],
            {
                "reminders_sent": WorkspaceInvitation.reminders_sent + 1,
                "last_reminder_at": now,
            },
            commit_self=False,
        )
        if updated != 1:
            raise InvitationNotPendingException()

        if commit_self:
            await session.commit()
        else:
            await session.flush()
        await session.refresh(invitation)

        invitation_logger.info(
            f"Reminder {invitation.reminders_sent} sent for invitation {invitation.id}"
        )

        await side_effects.send_invitation_email(
            email=invitation.email,  # type: ignore[arg-type]
            inviter_name=actor.display_name,
            workspace_name=invitation.target_name,
            role=invitation.role.value.title(),
            invitation_link=self._invitations_page_link(),
            expires_at=invitation.expires_at,
            reminder=True,
        )
        await side_effects.record_activity(
            actor.id,
            ActivityAction.INVITATION_REMIND,
            f"Sent a reminder to {invitation.email}",
            invitation.target_id,
            entity_type="invitation",
            entity_id=invitation.id,
            entity_name=invitation.target_name,
            metadata={"reminders_sent": invitation.reminders_sent},
        )

        return invitation

    async def extend_expiration(
        self,
        session: AsyncSession,
        invitation_id: UUID,
        days: int,
        actor: User,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> WorkspaceInvitation:
        """
        Push a pending invitation's deadline forward.

        The reminder counter is left untouched.

        Raises:
            BadRequestException: If ``days`` is outside 1..MAX_INVITATION_EXTENSION_DAYS.
            InvitationNotFoundException: If invitation not found.
            PermissionDeniedException: If the actor may not manage it.
            InvitationNotPendingException: If the invitation is no longer pending.
            ExpiredInvitationException: If the deadline has already passed.
        """
        if not 1 <= days <= settings.MAX_INVITATION_EXTENSION_DAYS:
            raise BadRequestException(
                f"Extension must be between 1 and "
                f"{settings.MAX_INVITATION_EXTENSION_DAYS} days."
            )

        invitation = await self._get_by_id(session, invitation_id)
        await self._require_manager(session, invitation, actor.id)

        now = now or datetime.now(timezone.utc)
        if not invitation.is_pending:
            raise InvitationNotPendingException()
        if invitation.is_expired(now):
            raise ExpiredInvitationException()

        previous_expiry = invitation.expires_at
        new_expiry = previous_expiry + timedelta(days=days)
        updated = await workspace_invitation_db.update_by_conditions(
            session,
            [
                WorkspaceInvitation.id == invitation.id,
                WorkspaceInvitation.status == InvitationStatus.PENDING,
                WorkspaceInvitation.expires_at > now,
            ],
            {"expires_at": new_expiry},
            commit_self=False,
        )
        if updated != 1:
            raise InvitationNotPendingException()

        if commit_self:
            await session.commit()
        else:
            await session.flush()
        await session.refresh(invitation)

        invitation_logger.info(
            f"Invitation {invitation.id} extended by {days} days to "
            f"{new_expiry.isoformat()}"
        )

        await side_effects.record_activity(
            actor.id,
            ActivityAction.INVITATION_EXTEND,
            f"Extended the invitation for {invitation.email or 'a link'} by {days} days",
            invitation.target_id,
            entity_type="invitation",
            entity_id=invitation.id,
            entity_name=invitation.target_name,
            metadata={"previous_expires_at": previous_expiry, "expires_at": new_expiry},
        )

        return invitation

    async def expire_invitations(
        self,
        session: AsyncSession,
        now: datetime | None = None,
        commit_self: bool = True,
    ) -> int:
        """
        Mark every pending invitation past its deadline as expired.

        Returns:
            Number of invitations expired.
        """
        count = await workspace_invitation_db.expire_old_invitations(
            session, now=now, commit_self=commit_self
        )
        if count:
            invitation_logger.info(f"Expired {count} pending invitations")
        return count


invitation_service = InvitationService()


__all__ = [
    "BulkInviteResult",
    "InvitationService",
    "invitation_service",
]
