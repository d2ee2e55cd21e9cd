"""
Idea Service

Creation and editing of content ideas. Review (Pending -> Approved or
Rejected) lives in the workflow service.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.constants.roles import ADMIN_ROLES, CREATOR_ROLES
from app.exceptions import (
    AccessDeniedError,
    DeliveryPlanNotFoundError,
    IdeaNotFoundError,
    ImmutableResourceError,
    ValidationError,
)
from app.models.content_draft import LOCKING_DRAFT_STATUSES, ContentDraft
from app.models.delivery_plan import CLOSED_PLAN_STATUSES, DeliveryPlan
from app.models.idea import ContentType, Idea, IdeaStatus, MediaType
from app.models.workflow import WorkflowAction, WorkflowEntity, WorkflowHistory
from app.services.repository import ScopedRepository
from app.services.tenancy import OrganizationContext

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"title", "description", "content_type", "media_type", "publishing_datetime"})


class IdeaService:
    def __init__(self, db: AsyncSession, context: OrganizationContext):
        self.db = db
        self.context = context
        self.repo = ScopedRepository(db, context)

    async def create_idea(
        self,
        title: str,
        description: str | None = None,
        content_type: ContentType = ContentType.SOCIAL_MEDIA_POST,
        media_type: MediaType | None = None,
        publishing_datetime: datetime | None = None,
        delivery_plan_id: int | None = None,
    ) -> Idea:
        """Propose a new idea; it starts Pending."""
        if self.context.role not in CREATOR_ROLES:
            raise AccessDeniedError("Only creative staff and admins may create ideas")
        if not title or not title.strip():
            raise ValidationError("Idea title cannot be empty", field="title")
        if delivery_plan_id is not None:
            await self._check_plan_open(delivery_plan_id)

        try:
            idea = self.repo.create(
                Idea,
                created_by_id=self.context.principal_id,
                title=title.strip(),
                description=description,
                content_type=ContentType(content_type),
                media_type=MediaType(media_type) if media_type else None,
                publishing_datetime=publishing_datetime,
                delivery_plan_id=delivery_plan_id,
                status=IdeaStatus.PENDING,
            )
            await self.db.flush()
            self.repo.create(
                WorkflowHistory,
                entity_type=WorkflowEntity.IDEA,
                entity_id=idea.id,
                action=WorkflowAction.CREATE,
                from_status=None,
                to_status=IdeaStatus.PENDING.value,
                actor_id=self.context.principal_id,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.db.refresh(idea)

        logger.info("Idea %d created in org %d by user %d", idea.id, idea.organization_id, self.context.principal_id)
        return idea

    async def get_idea(self, idea_id: int) -> Idea:
        idea = await self.repo.get(Idea, idea_id)
        if idea is None:
            raise IdeaNotFoundError(idea_id)
        return idea

    async def list_ideas(
        self,
        status: IdeaStatus | None = None,
        delivery_plan_id: int | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Idea]:
        criteria = []
        if status is not None:
            criteria.append(Idea.status == IdeaStatus(status))
        if delivery_plan_id is not None:
            criteria.append(Idea.delivery_plan_id == delivery_plan_id)
        return await self.repo.find(
            Idea, *criteria, order_by=(Idea.created_at.desc(), Idea.id.desc()), offset=skip, limit=limit
        )

    async def is_locked(self, idea_id: int) -> bool:
        """True once any draft of the idea has been approved or published."""
        return (
            await self.repo.count(
                ContentDraft,
                ContentDraft.idea_id == idea_id,
                ContentDraft.status.in_(LOCKING_DRAFT_STATUSES),
            )
            > 0
        )

    async def update_idea(self, idea_id: int, updates: dict, expected_version: int | None = None) -> Idea:
        """
        Edit an idea's content fields.

        Admins may edit until a draft is approved; the creator may edit
        only while the idea is still Pending.
        """
        idea = await self.get_idea(idea_id)

        is_admin = self.context.role in ADMIN_ROLES
        is_creator = idea.created_by_id == self.context.principal_id
        if not is_admin:
            if not is_creator or self.context.role not in CREATOR_ROLES:
                raise AccessDeniedError("Only the creator or an admin may edit this idea")
            if idea.status != IdeaStatus.PENDING:
                raise ImmutableResourceError(
                    "Ideas can only be edited while pending review",
                    details={"idea_id": idea_id, "status": idea.status.value},
                )

        if await self.is_locked(idea_id):
            raise ImmutableResourceError(
                "Idea is locked because a draft has been approved; create a new revision instead",
                details={"idea_id": idea_id},
            )

        unknown = set(updates) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        values = {k: v for k, v in updates.items() if v is not None}
        if "title" in values:
            if not str(values["title"]).strip():
                raise ValidationError("Idea title cannot be empty", field="title")
            values["title"] = values["title"].strip()
        if "content_type" in values:
            values["content_type"] = ContentType(values["content_type"])
        if "media_type" in values:
            values["media_type"] = MediaType(values["media_type"])
        if not values:
            return idea

        try:
            idea = await self.repo.update(Idea, idea_id, values, expected_version=expected_version)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Idea %d updated (%s) in org %d", idea_id, ", ".join(sorted(values)), self.context.organization_id)
        return idea

    async def delete_idea(self, idea_id: int) -> None:
        """Delete an idea that has no drafts."""
        idea = await self.get_idea(idea_id)
        if self.context.role not in ADMIN_ROLES and idea.created_by_id != self.context.principal_id:
            raise AccessDeniedError("Only the creator or an admin may delete this idea")
        if await self.repo.count(ContentDraft, ContentDraft.idea_id == idea_id) > 0:
            raise ImmutableResourceError(
                "Ideas with drafts cannot be deleted",
                details={"idea_id": idea_id},
            )

        status = idea.status
        try:
            await self.repo.delete(Idea, idea_id, expected_status=status)
            self.repo.create(
                WorkflowHistory,
                entity_type=WorkflowEntity.IDEA,
                entity_id=idea_id,
                action=WorkflowAction.DELETE,
                from_status=status.value,
                to_status=None,
                actor_id=self.context.principal_id,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        self.db.expunge(idea)
        logger.info("Idea %d deleted from org %d", idea_id, self.context.organization_id)

    async def _check_plan_open(self, plan_id: int) -> None:
        plan = await self.repo.get(DeliveryPlan, plan_id)
        if plan is None:
            raise DeliveryPlanNotFoundError(plan_id)
        if plan.status in CLOSED_PLAN_STATUSES:
            raise ValidationError("Cannot add ideas to a closed delivery plan", field="delivery_plan_id")
