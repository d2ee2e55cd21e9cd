"""
Pytest configuration and fixtures for ContentFlow tests

Every test gets its own SQLite database file, so services can be driven
through several independent sessions the way concurrent requests would.
"""

import os
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

# Settings are read at import time; configure them before importing the app
os.environ["DATABASE_URL"] = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["ENABLE_EMAIL_NOTIFICATIONS"] = "false"
os.environ["ENABLE_SCHEDULER"] = "false"
os.environ["JSON_LOGS"] = "false"

import pytest  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

import app.models  # noqa: E402, F401
from app.constants.roles import MembershipRole  # noqa: E402
from app.database import Base  # noqa: E402
from app.models.channel_connection import ChannelConnection  # noqa: E402
from app.models.content_draft import DraftStatus  # noqa: E402
from app.models.delivery import PublishChannel  # noqa: E402
from app.models.idea import IdeaStatus  # noqa: E402
from app.models.membership import OrganizationMembership  # noqa: E402
from app.models.organization import Organization, SubscriptionStatus, SubscriptionTier  # noqa: E402
from app.models.user import User  # noqa: E402
from app.services.idea_service import IdeaService  # noqa: E402
from app.services.tenancy import Principal, TenancyResolver  # noqa: E402
from app.services.workflow_service import WorkflowService  # noqa: E402
from utils.mocks import RecordingNotifier, RecordingSleep  # noqa: E402

ROLES_IN_ACME = (
    MembershipRole.OWNER,
    MembershipRole.ADMIN,
    MembershipRole.MANAGER,
    MembershipRole.MEMBER,
    MembershipRole.CLIENT,
    MembershipRole.VIEWER,
)


# ============== Database ==============


@pytest.fixture
async def engine(tmp_path):
    """A fresh SQLite database file with the full schema."""
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'contentflow_test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


# ============== Tenants ==============


@pytest.fixture
async def tenants(db) -> SimpleNamespace:
    """
    Two organizations and their people.

    acme: one user per membership role
    globex: a single member ("outsider" from acme's point of view)
    plus a platform admin with no memberships at all
    """
    acme = Organization(
        name="Acme Corp",
        slug="acme",
        subscription_tier=SubscriptionTier.pro,
        subscription_status=SubscriptionStatus.active,
        max_users=25,
    )
    globex = Organization(
        name="Globex",
        slug="globex",
        subscription_tier=SubscriptionTier.free,
        subscription_status=SubscriptionStatus.active,
        max_users=5,
    )
    db.add_all([acme, globex])
    await db.flush()

    users = {}
    for role in ROLES_IN_ACME:
        user = User(name=f"Acme {role.value}", email=f"{role.value}@acme.test")
        db.add(user)
        users[role.value] = user
    outsider = User(name="Globex member", email="member@globex.test")
    platform_admin = User(name="Support", email="support@contentflow.test", is_platform_admin=True)
    db.add_all([outsider, platform_admin])
    await db.flush()

    for role in ROLES_IN_ACME:
        db.add(OrganizationMembership(user_id=users[role.value].id, organization_id=acme.id, role=role))
    db.add(OrganizationMembership(user_id=outsider.id, organization_id=globex.id, role=MembershipRole.MEMBER))
    await db.commit()

    return SimpleNamespace(acme=acme, globex=globex, outsider=outsider, platform_admin=platform_admin, **users)


async def resolve_context(db, user: User, selector=None):
    principal = Principal(user_id=user.id, email=user.email, is_platform_admin=user.is_platform_admin)
    return await TenancyResolver(db).resolve(principal, selector)


@pytest.fixture
async def contexts(db, tenants) -> SimpleNamespace:
    """Resolved organization contexts for every acme role, the outsider and the platform admin."""
    resolved = {role.value: await resolve_context(db, getattr(tenants, role.value)) for role in ROLES_IN_ACME}
    return SimpleNamespace(
        outsider=await resolve_context(db, tenants.outsider),
        platform=await resolve_context(db, tenants.platform_admin, tenants.acme.id),
        **resolved,
    )


# ============== Workflow Helpers ==============


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def sleep():
    return RecordingSleep()


class WorkflowDriver:
    """Moves ideas and drafts into a desired state through the real services."""

    def __init__(self, db, contexts):
        self.db = db
        self.contexts = contexts

    async def pending_idea(self, title: str = "Quarterly newsletter", **kwargs):
        return await IdeaService(self.db, self.contexts.member).create_idea(title=title, **kwargs)

    async def approved_idea(self, title: str = "Quarterly newsletter", **kwargs):
        idea = await self.pending_idea(title, **kwargs)
        return await WorkflowService(self.db, self.contexts.client).review_idea(idea.id, IdeaStatus.APPROVED)

    async def draft(self, status: DraftStatus = DraftStatus.DRAFT, body: str = "Our first draft", idea=None):
        """A draft created by the acme member and walked to ``status``."""
        if idea is None:
            idea = await self.approved_idea()
        creator = WorkflowService(self.db, self.contexts.member)
        reviewer = WorkflowService(self.db, self.contexts.client)

        draft = await creator.create_draft(idea.id, body)
        if status == DraftStatus.DRAFT:
            return draft
        draft = (await creator.submit(draft.id)).draft
        if status == DraftStatus.AWAITING_FEEDBACK:
            return draft
        if status == DraftStatus.AWAITING_REVISION:
            return (await reviewer.request_revision(draft.id, "Shorten the intro")).draft
        if status == DraftStatus.REJECTED:
            return (await reviewer.reject(draft.id)).draft
        draft = (await reviewer.approve(draft.id)).draft
        if status == DraftStatus.APPROVED:
            return draft
        if status == DraftStatus.PUBLISHED:
            return await WorkflowService(self.db, self.contexts.admin).mark_published(draft.id, ["linkedin"])
        raise ValueError(f"Unsupported status: {status}")


@pytest.fixture
def driver(db, contexts):
    return WorkflowDriver(db, contexts)


@pytest.fixture
async def linkedin_connection(db, tenants):
    """An active LinkedIn connection for acme."""
    connection = ChannelConnection(
        organization_id=tenants.acme.id,
        channel=PublishChannel.LINKEDIN,
        access_token="acme-token",
        account_urn="urn:li:organization:1001",
        expires_at=datetime.now(timezone.utc) + timedelta(days=30),
    )
    db.add(connection)
    await db.commit()
    return connection


@pytest.fixture
async def twitter_connection(db, tenants):
    connection = ChannelConnection(
        organization_id=tenants.acme.id,
        channel=PublishChannel.TWITTER,
        access_token="acme-twitter-token",
        account_urn="acme_official",
    )
    db.add(connection)
    await db.commit()
    return connection
