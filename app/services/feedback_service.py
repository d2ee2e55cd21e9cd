"""
Feedback Service

Review comments on content drafts. Feedback is append-only; revision
requests are written by the workflow service together with the status
change.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import AccessDeniedError, DraftNotFoundError, ValidationError
from app.models.content_draft import ContentDraft
from app.models.feedback import Feedback, FeedbackCategory, FeedbackPriority
from app.permissions_config.permissions import PROVIDE_FEEDBACK
from app.services.access_filter import can_view_draft_status
from app.services.repository import ScopedRepository
from app.services.tenancy import OrganizationContext

logger = logging.getLogger(__name__)


class FeedbackService:
    def __init__(self, db: AsyncSession, context: OrganizationContext):
        self.db = db
        self.context = context
        self.repo = ScopedRepository(db, context)

    async def _get_visible_draft(self, draft_id: int) -> ContentDraft:
        draft = await self.repo.get(ContentDraft, draft_id)
        if draft is None or not can_view_draft_status(self.context, draft.status):
            raise DraftNotFoundError(draft_id)
        return draft

    async def add_feedback(
        self,
        draft_id: int,
        body: str,
        rating: int | None = None,
        category: FeedbackCategory = FeedbackCategory.GENERAL,
        priority: FeedbackPriority = FeedbackPriority.MEDIUM,
        actionable: bool = False,
    ) -> Feedback:
        """Add a review comment to a draft."""
        if not self.context.has_permission(PROVIDE_FEEDBACK):
            raise AccessDeniedError("Your role may not leave feedback")
        if not body or not body.strip():
            raise ValidationError("Feedback cannot be empty", field="body")
        if rating is not None and not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5", field="rating")
        category = FeedbackCategory(category)
        if category == FeedbackCategory.REVISION_REQUEST:
            raise ValidationError("Use the request-revision transition to ask for a revision", field="category")

        await self._get_visible_draft(draft_id)

        try:
            feedback = self.repo.create(
                Feedback,
                draft_id=draft_id,
                author_id=self.context.principal_id,
                body=body.strip(),
                rating=rating,
                category=category,
                priority=FeedbackPriority(priority),
                actionable=actionable,
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        await self.db.refresh(feedback)

        logger.info("Feedback %d added to draft %d by user %d", feedback.id, draft_id, self.context.principal_id)
        return feedback

    async def list_feedback(self, draft_id: int, actionable_only: bool = False) -> list[Feedback]:
        await self._get_visible_draft(draft_id)
        criteria = [Feedback.draft_id == draft_id]
        if actionable_only:
            criteria.append(Feedback.actionable.is_(True))
        return await self.repo.find(Feedback, *criteria, order_by=(Feedback.created_at.asc(), Feedback.id.asc()))
