"""
End-to-end content lifecycle

An idea goes from proposal through one revision round to a published
post, with the other organization unable to see any of it.
"""

import pytest
from sqlalchemy import select

from app.exceptions import DraftNotFoundError
from app.models.content_draft import DraftStatus
from app.models.delivery import DeliveryRecord, DeliveryStatus
from app.models.feedback import Feedback
from app.models.idea import IdeaStatus
from app.services.channels import ChannelRegistry
from app.services.idea_service import IdeaService
from app.services.publish_service import PublishCoordinator
from app.services.workflow_service import WorkflowService
from app.utils.retry import RetryPolicy
from utils.mocks import FakeChannel, receipt


async def test_idea_to_published_post(db, contexts, linkedin_connection, notifier, sleep):
    creator = WorkflowService(db, contexts.member, notifier=notifier)
    client = WorkflowService(db, contexts.client, notifier=notifier)

    idea = await IdeaService(db, contexts.member).create_idea(title="Product launch teaser")
    assert idea.status == IdeaStatus.PENDING

    idea = await client.review_idea(idea.id, IdeaStatus.APPROVED, comment="Love it")
    assert idea.status == IdeaStatus.APPROVED

    draft = await creator.create_draft(idea.id, "Something big is coming. A long intro follows here...")
    assert draft.status == DraftStatus.DRAFT

    draft = (await creator.submit(draft.id)).draft
    assert draft.status == DraftStatus.AWAITING_FEEDBACK

    draft = (await client.request_revision(draft.id, "shorten intro")).draft
    assert draft.status == DraftStatus.AWAITING_REVISION

    feedback = (await db.execute(select(Feedback).where(Feedback.draft_id == draft.id))).scalars().all()
    assert [(f.body, f.actionable) for f in feedback] == [("shorten intro", True)]

    draft = (await creator.resubmit(draft.id)).draft
    assert draft.status == DraftStatus.AWAITING_FEEDBACK

    draft = (await client.approve(draft.id)).draft
    assert draft.status == DraftStatus.APPROVED

    linkedin = FakeChannel("linkedin", [receipt("urn:li:share:2026")])
    coordinator = PublishCoordinator(
        db,
        contexts.member,
        registry=ChannelRegistry({"linkedin": linkedin}),
        retry_policy=RetryPolicy(),
        notifier=notifier,
        sleep=sleep,
    )
    results = await coordinator.publish(draft.id)
    assert [r.succeeded for r in results] == [True]

    draft = await creator.get_draft(draft.id)
    assert draft.status == DraftStatus.PUBLISHED
    assert draft.published_at is not None

    records = (await db.execute(select(DeliveryRecord).where(DeliveryRecord.draft_id == draft.id))).scalars().all()
    assert [(r.status, r.external_id) for r in records] == [(DeliveryStatus.SUCCESS, "urn:li:share:2026")]

    assert notifier.kinds() == [
        "idea_reviewed",
        "draft_submitted",
        "revision_requested",
        "draft_submitted",
        "draft_approved",
        "draft_published",
    ]

    with pytest.raises(DraftNotFoundError):
        await WorkflowService(db, contexts.outsider).get_draft(draft.id)
