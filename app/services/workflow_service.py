"""
Workflow Service

State machines for ideas and content drafts.

Every transition follows the same sequence: read the row inside the
caller's organization, check the transition table and the actor's role,
then write the new status, the history row and (for revision requests)
the feedback row as one unit of work. The status write is conditional on
the status that was read, so two racing transitions cannot both succeed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.roles import ADMIN_ROLES, CREATOR_ROLES, REVIEWER_ROLES, MembershipRole
from app.exceptions import (
    AccessDeniedError,
    ConcurrentModificationError,
    DraftNotFoundError,
    IdeaNotFoundError,
    InvalidTransitionError,
    ValidationError,
)
from app.models.content_draft import TERMINAL_DRAFT_STATUSES, ContentDraft, DraftStatus
from app.models.feedback import Feedback, FeedbackCategory, FeedbackPriority
from app.models.idea import Idea, IdeaStatus
from app.models.membership import OrganizationMembership
from app.models.user import User
from app.models.workflow import WorkflowAction, WorkflowEntity, WorkflowHistory
from app.services.access_filter import can_view_draft_status, scoped_filter, visible_statuses
from app.services.notification_service import NotificationKind, Notifier, NullNotifier
from app.services.repository import ScopedRepository
from app.services.tenancy import OrganizationContext

logger = logging.getLogger(__name__)


# ============== Transition Tables ==============

IDEA_TRANSITIONS: dict[tuple[IdeaStatus, WorkflowAction], IdeaStatus] = {
    (IdeaStatus.PENDING, WorkflowAction.APPROVE_IDEA): IdeaStatus.APPROVED,
    (IdeaStatus.PENDING, WorkflowAction.REJECT_IDEA): IdeaStatus.REJECTED,
}

_IDEA_ACTION_FOR_TARGET = {
    IdeaStatus.APPROVED: WorkflowAction.APPROVE_IDEA,
    IdeaStatus.REJECTED: WorkflowAction.REJECT_IDEA,
}

# A target of None means the draft is removed
DRAFT_TRANSITIONS: dict[tuple[DraftStatus, WorkflowAction], DraftStatus | None] = {
    (DraftStatus.DRAFT, WorkflowAction.SUBMIT): DraftStatus.AWAITING_FEEDBACK,
    (DraftStatus.AWAITING_FEEDBACK, WorkflowAction.APPROVE): DraftStatus.APPROVED,
    (DraftStatus.AWAITING_FEEDBACK, WorkflowAction.REQUEST_REVISION): DraftStatus.AWAITING_REVISION,
    (DraftStatus.AWAITING_FEEDBACK, WorkflowAction.REJECT): DraftStatus.REJECTED,
    (DraftStatus.AWAITING_REVISION, WorkflowAction.RESUBMIT): DraftStatus.AWAITING_FEEDBACK,
    (DraftStatus.APPROVED, WorkflowAction.PUBLISH_SUCCEEDED): DraftStatus.PUBLISHED,
    (DraftStatus.DRAFT, WorkflowAction.DELETE): None,
    (DraftStatus.AWAITING_FEEDBACK, WorkflowAction.DELETE): None,
    (DraftStatus.AWAITING_REVISION, WorkflowAction.DELETE): None,
    (DraftStatus.APPROVED, WorkflowAction.DELETE): None,
}

# Actions the creator of a draft (or an admin) performs
CREATOR_ACTIONS = frozenset({WorkflowAction.SUBMIT, WorkflowAction.RESUBMIT, WorkflowAction.DELETE})

# Actions a client (or an admin) performs
REVIEWER_ACTIONS = frozenset({WorkflowAction.APPROVE, WorkflowAction.REQUEST_REVISION, WorkflowAction.REJECT})

# Performed by the publish coordinator, never requested directly
SYSTEM_ACTIONS = frozenset({WorkflowAction.PUBLISH_SUCCEEDED})

_NOTIFY_ON_DRAFT_ACTION = {
    WorkflowAction.REQUEST_REVISION: NotificationKind.REVISION_REQUESTED,
    WorkflowAction.APPROVE: NotificationKind.DRAFT_APPROVED,
    WorkflowAction.REJECT: NotificationKind.DRAFT_REJECTED,
}

# Actions after which a pending scheduled publish has nothing left to do
_UNSCHEDULE_ON_DRAFT_ACTION = frozenset(
    {WorkflowAction.DELETE, WorkflowAction.REJECT, WorkflowAction.PUBLISH_SUCCEEDED}
)


def is_action_permitted(action: WorkflowAction, role: MembershipRole, is_creator: bool) -> bool:
    """Role guard for a draft action, independent of the draft's status."""
    if action in SYSTEM_ACTIONS:
        return False
    if action in REVIEWER_ACTIONS:
        return role in REVIEWER_ROLES
    if action in CREATOR_ACTIONS:
        return role in ADMIN_ROLES or is_creator
    return False


def permitted_actions(status: DraftStatus, role: MembershipRole, is_creator: bool) -> list[WorkflowAction]:
    """Actions an actor may request on a draft currently in ``status``."""
    return [
        action
        for (source, action) in DRAFT_TRANSITIONS
        if source == status and is_action_permitted(action, role, is_creator)
    ]


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a draft transition; ``draft`` is None after deletion."""

    action: WorkflowAction
    from_status: DraftStatus
    to_status: DraftStatus | None
    draft: ContentDraft | None
    feedback: Feedback | None = None


# (draft_id, organization_id, run_at, scheduled_by)
PublishScheduler = Callable[[int, int, datetime, int], None]
# (draft_id) -> whether a pending job was removed
PublishCanceller = Callable[[int], bool]


class WorkflowService:
    """Service for idea review and the content-draft lifecycle."""

    def __init__(
        self,
        db: AsyncSession,
        context: OrganizationContext,
        notifier: Notifier | None = None,
        publish_scheduler: PublishScheduler | None = None,
        publish_canceller: PublishCanceller | None = None,
    ):
        self.db = db
        self.context = context
        self.repo = ScopedRepository(db, context)
        self.notifier = notifier or NullNotifier()
        self.publish_scheduler = publish_scheduler
        self.publish_canceller = publish_canceller

    # ============== Idea Review ==============

    async def review_idea(
        self,
        idea_id: int,
        target_status: IdeaStatus,
        comment: str | None = None,
        expected_status: IdeaStatus | None = None,
    ) -> Idea:
        """Move an idea out of Pending. Only clients and admins may review."""
        idea = await self.repo.get(Idea, idea_id)
        if idea is None:
            raise IdeaNotFoundError(idea_id)

        current = idea.status
        if expected_status is not None and expected_status != current:
            raise ConcurrentModificationError("Idea", idea_id, expected_status.value)

        action = _IDEA_ACTION_FOR_TARGET.get(IdeaStatus(target_status))
        if action is None or (current, action) not in IDEA_TRANSITIONS:
            raise InvalidTransitionError("Idea", current.value, IdeaStatus(target_status).value)

        if self.context.role not in REVIEWER_ROLES:
            raise AccessDeniedError(
                "Only clients and admins may review ideas",
                details={"role": self.context.role.value, "action": action.value},
            )

        new_status = IDEA_TRANSITIONS[(current, action)]
        idea = await asyncio.shield(self._write_idea_transition(idea_id, current, new_status, action, comment))

        logger.info(
            "Idea %d: %s -> %s by user %d (org %d)",
            idea_id,
            current.value,
            new_status.value,
            self.context.principal_id,
            self.context.organization_id,
        )
        if idea.created_by_id:
            await self._notify_user(
                idea.created_by_id,
                NotificationKind.IDEA_REVIEWED,
                {"idea_title": idea.title, "status": new_status.value, "comment": comment},
            )
        return idea

    async def _write_idea_transition(
        self,
        idea_id: int,
        current: IdeaStatus,
        new_status: IdeaStatus,
        action: WorkflowAction,
        comment: str | None,
    ) -> Idea:
        try:
            idea = await self.repo.update(Idea, idea_id, {"status": new_status}, expected_status=current)
            self._record_history(WorkflowEntity.IDEA, idea_id, action, current.value, new_status.value, comment)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return idea

    # ============== Draft Lifecycle ==============

    async def create_draft(self, idea_id: int, body: str, content_type=None) -> ContentDraft:
        """Start a new revision of an approved idea in the Draft state."""
        if self.context.role not in CREATOR_ROLES:
            raise AccessDeniedError("Only creative staff and admins may create drafts")
        if not body or not body.strip():
            raise ValidationError("Draft body cannot be empty", field="body")

        idea = await self.repo.get(Idea, idea_id)
        if idea is None:
            raise IdeaNotFoundError(idea_id)
        if idea.status != IdeaStatus.APPROVED:
            raise InvalidTransitionError("Idea", idea.status.value, "create_draft")

        result = await self.db.execute(
            select(func.max(ContentDraft.version)).where(
                scoped_filter(self.context, ContentDraft, ContentDraft.idea_id == idea_id).clause()
            )
        )
        next_version = (result.scalar() or 0) + 1

        try:
            draft = self.repo.create(
                ContentDraft,
                idea_id=idea_id,
                created_by_id=self.context.principal_id,
                body=body,
                content_type=content_type or idea.content_type,
                status=DraftStatus.DRAFT,
                version=next_version,
            )
            await self.db.flush()
            self._record_history(
                WorkflowEntity.CONTENT_DRAFT, draft.id, WorkflowAction.CREATE, None, DraftStatus.DRAFT.value
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.db.refresh(draft)

        logger.info("Draft %d (v%d) created for idea %d in org %d", draft.id, next_version, idea_id, idea.organization_id)
        return draft

    async def get_draft(self, draft_id: int) -> ContentDraft:
        """Load a draft the caller is allowed to see."""
        draft = await self.repo.get(ContentDraft, draft_id)
        if draft is None or not can_view_draft_status(self.context, draft.status):
            raise DraftNotFoundError(draft_id)
        return draft

    async def list_drafts(
        self,
        idea_id: int | None = None,
        status: DraftStatus | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[ContentDraft]:
        criteria = [ContentDraft.status.in_(visible_statuses(self.context.role))]
        if idea_id is not None:
            criteria.append(ContentDraft.idea_id == idea_id)
        if status is not None:
            criteria.append(ContentDraft.status == status)
        return await self.repo.find(
            ContentDraft,
            *criteria,
            order_by=(ContentDraft.created_at.desc(), ContentDraft.id.desc()),
            offset=skip,
            limit=limit,
        )

    async def get_active_draft(self, idea_id: int) -> ContentDraft | None:
        """The most recent non-terminal draft of an idea visible to the caller."""
        statuses = visible_statuses(self.context.role) - TERMINAL_DRAFT_STATUSES
        drafts = await self.repo.find(
            ContentDraft,
            ContentDraft.idea_id == idea_id,
            ContentDraft.status.in_(statuses),
            order_by=(ContentDraft.version.desc(), ContentDraft.id.desc()),
            limit=1,
        )
        return drafts[0] if drafts else None

    def available_actions(self, draft: ContentDraft) -> list[WorkflowAction]:
        return permitted_actions(draft.status, self.context.role, draft.created_by_id == self.context.principal_id)

    async def get_available_transitions(self, draft_id: int) -> list[dict]:
        """Get available transitions for a draft based on its status and the caller's role."""
        draft = await self.get_draft(draft_id)
        return [
            {
                "action": action.value,
                "from_status": draft.status.value,
                "to_status": target.value if (target := DRAFT_TRANSITIONS[(draft.status, action)]) else None,
                "requires_notes": action == WorkflowAction.REQUEST_REVISION,
            }
            for action in self.available_actions(draft)
        ]

    async def submit(self, draft_id: int, expected_status: DraftStatus | None = None) -> TransitionResult:
        return await self.execute_transition(draft_id, WorkflowAction.SUBMIT, expected_status=expected_status)

    async def approve(
        self, draft_id: int, comment: str | None = None, expected_status: DraftStatus | None = None
    ) -> TransitionResult:
        return await self.execute_transition(
            draft_id, WorkflowAction.APPROVE, comment=comment, expected_status=expected_status
        )

    async def request_revision(
        self,
        draft_id: int,
        notes: str,
        priority: FeedbackPriority = FeedbackPriority.MEDIUM,
        expected_status: DraftStatus | None = None,
    ) -> TransitionResult:
        return await self.execute_transition(
            draft_id,
            WorkflowAction.REQUEST_REVISION,
            comment=notes,
            priority=priority,
            expected_status=expected_status,
        )

    async def reject(
        self, draft_id: int, comment: str | None = None, expected_status: DraftStatus | None = None
    ) -> TransitionResult:
        return await self.execute_transition(
            draft_id, WorkflowAction.REJECT, comment=comment, expected_status=expected_status
        )

    async def resubmit(self, draft_id: int, expected_status: DraftStatus | None = None) -> TransitionResult:
        return await self.execute_transition(draft_id, WorkflowAction.RESUBMIT, expected_status=expected_status)

    async def delete_draft(self, draft_id: int, expected_status: DraftStatus | None = None) -> TransitionResult:
        return await self.execute_transition(draft_id, WorkflowAction.DELETE, expected_status=expected_status)

    async def execute_transition(
        self,
        draft_id: int,
        action: WorkflowAction,
        comment: str | None = None,
        priority: FeedbackPriority = FeedbackPriority.MEDIUM,
        expected_status: DraftStatus | None = None,
    ) -> TransitionResult:
        """Execute a caller-requested draft transition."""
        action = WorkflowAction(action)
        draft = await self.get_draft(draft_id)
        current = draft.status

        if expected_status is not None and DraftStatus(expected_status) != current:
            raise ConcurrentModificationError("ContentDraft", draft_id, DraftStatus(expected_status).value)

        if (current, action) not in DRAFT_TRANSITIONS:
            raise InvalidTransitionError("ContentDraft", current.value, action.value)

        is_creator = draft.created_by_id == self.context.principal_id
        if not is_action_permitted(action, self.context.role, is_creator):
            raise AccessDeniedError(
                f"Your role may not perform '{action.value}' on this draft",
                details={"role": self.context.role.value, "action": action.value},
            )

        if action == WorkflowAction.REQUEST_REVISION and (comment is None or not comment.strip()):
            raise ValidationError("Revision notes are required when requesting a revision", field="notes")

        result = await asyncio.shield(self._write_draft_transition(draft, action, comment, priority))
        await self._after_draft_transition(result, draft, comment)
        return result

    async def mark_published(self, draft_id: int, channels: list[str]) -> ContentDraft:
        """Approved -> Published, invoked by the publish coordinator after a successful delivery."""
        draft = await self.repo.get(ContentDraft, draft_id)
        if draft is None:
            raise DraftNotFoundError(draft_id)
        if (draft.status, WorkflowAction.PUBLISH_SUCCEEDED) not in DRAFT_TRANSITIONS:
            raise InvalidTransitionError("ContentDraft", draft.status.value, WorkflowAction.PUBLISH_SUCCEEDED.value)

        result = await asyncio.shield(
            self._write_draft_transition(
                draft,
                WorkflowAction.PUBLISH_SUCCEEDED,
                "Published to " + ", ".join(channels),
                FeedbackPriority.MEDIUM,
            )
        )
        await self._after_draft_transition(result, draft, None, channels=channels)
        return result.draft

    async def _write_draft_transition(
        self,
        draft: ContentDraft,
        action: WorkflowAction,
        comment: str | None,
        priority: FeedbackPriority,
    ) -> TransitionResult:
        """The write phase: status, history and feedback commit together or not at all."""
        current = draft.status
        target = DRAFT_TRANSITIONS[(current, action)]
        draft_id = draft.id
        feedback = None
        try:
            if target is None:
                await self.repo.delete(ContentDraft, draft_id, expected_status=current)
                updated = None
            else:
                values = {"status": target}
                if target == DraftStatus.PUBLISHED:
                    values["published_at"] = datetime.now(timezone.utc)
                updated = await self.repo.update(ContentDraft, draft_id, values, expected_status=current)

            self._record_history(
                WorkflowEntity.CONTENT_DRAFT,
                draft_id,
                action,
                current.value,
                target.value if target else None,
                comment,
            )
            if action == WorkflowAction.REQUEST_REVISION:
                feedback = self.repo.create(
                    Feedback,
                    draft_id=draft_id,
                    author_id=self.context.principal_id,
                    body=comment.strip(),
                    category=FeedbackCategory.REVISION_REQUEST,
                    priority=priority,
                    actionable=True,
                )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if target is None:
            self.db.expunge(draft)

        logger.info(
            "ContentDraft %d: %s -> %s via %s by user %d (org %d)",
            draft_id,
            current.value,
            target.value if target else "deleted",
            action.value,
            self.context.principal_id,
            self.context.organization_id,
        )
        return TransitionResult(action=action, from_status=current, to_status=target, draft=updated, feedback=feedback)

    async def _after_draft_transition(
        self,
        result: TransitionResult,
        draft: ContentDraft,
        comment: str | None,
        channels: list[str] | None = None,
    ) -> None:
        """Notifications and scheduling; failures here never undo the transition."""
        idea = await self.repo.get(Idea, draft.idea_id)
        payload = {
            "idea_title": idea.title if idea else "",
            "version": draft.version,
            "notes": comment,
            "comment": comment,
            "channels": channels or [],
            "organization_slug": self.context.organization_slug,
        }

        if result.action in (WorkflowAction.SUBMIT, WorkflowAction.RESUBMIT):
            for email in await self._client_emails():
                await self._send(NotificationKind.DRAFT_SUBMITTED, email, payload)
        elif result.action in _NOTIFY_ON_DRAFT_ACTION and draft.created_by_id:
            await self._notify_user(draft.created_by_id, _NOTIFY_ON_DRAFT_ACTION[result.action], payload)
        elif result.action == WorkflowAction.PUBLISH_SUCCEEDED and draft.created_by_id:
            await self._notify_user(draft.created_by_id, NotificationKind.DRAFT_PUBLISHED, payload)

        if result.action == WorkflowAction.APPROVE and idea is not None:
            self._maybe_schedule_publish(draft.id, idea)
        elif result.action in _UNSCHEDULE_ON_DRAFT_ACTION:
            self._cancel_scheduled_publish(draft.id)

    def _maybe_schedule_publish(self, draft_id: int, idea: Idea) -> None:
        if self.publish_scheduler is None or idea.publishing_datetime is None:
            return
        run_at = idea.publishing_datetime
        if run_at.tzinfo is None:
            run_at = run_at.replace(tzinfo=timezone.utc)
        if run_at <= datetime.now(timezone.utc):
            return
        try:
            self.publish_scheduler(draft_id, self.context.organization_id, run_at, self.context.principal_id)
        except Exception:
            logger.exception("Failed to schedule publish of draft %d", draft_id)

    def _cancel_scheduled_publish(self, draft_id: int) -> None:
        if self.publish_canceller is None:
            return
        try:
            if self.publish_canceller(draft_id):
                logger.info("Pending scheduled publish of draft %d dropped", draft_id)
        except Exception:
            logger.exception("Failed to cancel scheduled publish of draft %d", draft_id)

    # ============== History ==============

    async def get_history(self, entity_type: WorkflowEntity, entity_id: int) -> list[WorkflowHistory]:
        """Get workflow history for an idea or draft, newest first."""
        if entity_type == WorkflowEntity.CONTENT_DRAFT:
            draft = await self.repo.get(ContentDraft, entity_id)
            if draft is not None and not can_view_draft_status(self.context, draft.status):
                raise DraftNotFoundError(entity_id)
        return await self.repo.find(
            WorkflowHistory,
            WorkflowHistory.entity_type == entity_type,
            WorkflowHistory.entity_id == entity_id,
            order_by=(WorkflowHistory.created_at.desc(), WorkflowHistory.id.desc()),
        )

    # ============== Private Methods ==============

    def _record_history(
        self,
        entity_type: WorkflowEntity,
        entity_id: int,
        action: WorkflowAction,
        from_status: str | None,
        to_status: str | None,
        comment: str | None = None,
    ) -> WorkflowHistory:
        return self.repo.create(
            WorkflowHistory,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            from_status=from_status,
            to_status=to_status,
            actor_id=self.context.principal_id,
            comment=comment,
        )

    async def _client_emails(self) -> list[str]:
        result = await self.db.execute(
            select(User.email)
            .join(OrganizationMembership, OrganizationMembership.user_id == User.id)
            .where(
                scoped_filter(
                    self.context,
                    OrganizationMembership,
                    OrganizationMembership.role == MembershipRole.CLIENT,
                    OrganizationMembership.is_active.is_(True),
                ).clause()
            )
        )
        return [email for email in result.scalars().all() if email]

    async def _notify_user(self, user_id: int, kind: NotificationKind, payload: dict) -> None:
        user = await self.db.get(User, user_id)
        if user is None or not user.email:
            return
        await self._send(kind, user.email, {"organization_slug": self.context.organization_slug, **payload})

    async def _send(self, kind: NotificationKind, recipient: str, payload: dict) -> None:
        try:
            await self.notifier.notify(kind, recipient, payload)
        except Exception:
            logger.exception("Notifier raised for %s to %s", kind.value, recipient)
