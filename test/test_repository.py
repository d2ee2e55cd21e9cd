"""
Tests for the organization-scoped repository
"""

import pytest

from app.exceptions import ConcurrentModificationError
from app.models.content_draft import ContentDraft, DraftStatus
from app.models.idea import Idea, IdeaStatus
from app.services.repository import ScopedRepository


class TestScopedReads:
    async def test_get_is_scoped(self, db, contexts, driver):
        idea = await driver.pending_idea()
        assert (await ScopedRepository(db, contexts.member).get(Idea, idea.id)).id == idea.id
        assert await ScopedRepository(db, contexts.outsider).get(Idea, idea.id) is None

    async def test_find_and_count(self, db, contexts, driver):
        await driver.pending_idea("One")
        await driver.pending_idea("Two")
        repo = ScopedRepository(db, contexts.member)

        ideas = await repo.find(Idea, order_by=Idea.title)
        assert [i.title for i in ideas] == ["One", "Two"]
        assert await repo.count(Idea) == 2
        assert await repo.count(Idea, Idea.title == "Two") == 1
        assert await ScopedRepository(db, contexts.outsider).count(Idea) == 0

    async def test_find_paginates(self, db, contexts, driver):
        for title in ("A", "B", "C"):
            await driver.pending_idea(title)
        page = await ScopedRepository(db, contexts.member).find(Idea, order_by=Idea.title, offset=1, limit=1)
        assert [i.title for i in page] == ["B"]


class TestScopedWrites:
    async def test_create_stamps_organization(self, db, contexts, tenants):
        repo = ScopedRepository(db, contexts.member)
        idea = repo.create(Idea, title="Scoped", created_by_id=tenants.member.id)
        await db.commit()
        assert idea.organization_id == tenants.acme.id

    async def test_create_in_other_organization_is_refused(self, db, contexts, tenants):
        with pytest.raises(ValueError):
            ScopedRepository(db, contexts.member).create(Idea, title="Sneaky", organization_id=tenants.globex.id)

    async def test_update_bumps_row_version(self, db, contexts, driver):
        idea = await driver.pending_idea()
        repo = ScopedRepository(db, contexts.member)

        updated = await repo.update(Idea, idea.id, {"title": "Renamed"}, expected_version=1)
        await db.commit()
        assert updated.title == "Renamed"
        assert updated.row_version == 2

    async def test_stale_version_raises(self, db, contexts, driver):
        idea = await driver.pending_idea()
        repo = ScopedRepository(db, contexts.member)
        await repo.update(Idea, idea.id, {"title": "First"}, expected_version=1)
        await db.commit()

        with pytest.raises(ConcurrentModificationError):
            await repo.update(Idea, idea.id, {"title": "Second"}, expected_version=1)

    async def test_stale_status_raises(self, db, contexts, driver):
        idea = await driver.pending_idea()
        with pytest.raises(ConcurrentModificationError) as exc_info:
            await ScopedRepository(db, contexts.client).update(
                Idea, idea.id, {"status": IdeaStatus.REJECTED}, expected_status=IdeaStatus.APPROVED
            )
        assert exc_info.value.details["expected_status"] == "approved"

    async def test_update_across_organizations_matches_nothing(self, db, contexts, driver):
        idea = await driver.pending_idea()
        idea_id = idea.id
        with pytest.raises(ConcurrentModificationError):
            await ScopedRepository(db, contexts.outsider).update(Idea, idea_id, {"title": "Hijacked"})
        await db.rollback()

        reloaded = await db.get(Idea, idea_id, populate_existing=True)
        assert reloaded.title != "Hijacked"

    async def test_organization_id_cannot_change(self, db, contexts, driver, tenants):
        idea = await driver.pending_idea()
        with pytest.raises(ValueError):
            await ScopedRepository(db, contexts.member).update(Idea, idea.id, {"organization_id": tenants.globex.id})

    async def test_conditional_delete(self, db, contexts, driver):
        draft = await driver.draft(DraftStatus.DRAFT)
        draft_id = draft.id
        repo = ScopedRepository(db, contexts.member)

        with pytest.raises(ConcurrentModificationError):
            await repo.delete(ContentDraft, draft_id, expected_status=DraftStatus.APPROVED)
        await db.rollback()

        await repo.delete(ContentDraft, draft_id, expected_status=DraftStatus.DRAFT)
        await db.commit()
        assert await repo.count(ContentDraft, ContentDraft.id == draft_id) == 0
