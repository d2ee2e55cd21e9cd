"""initial_schema

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18 00:00:00.000000

Baseline for the content workflow:
  - users, organizations and organization memberships
  - ideas, content drafts, feedback and workflow history
  - delivery plans, channel connections and delivery records
"""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic
revision: str = "a1b2c3d4e5f6"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None

# SQLAlchemy persists enum member names
CONTENT_TYPES = ("NEWSLETTER", "BLOG_POST", "SOCIAL_MEDIA_POST", "WEBSITE_COPY", "EMAIL_CAMPAIGN")
PUBLISH_CHANNELS = ("LINKEDIN", "TWITTER", "FACEBOOK")


def _org_fk() -> sa.Column:
    return sa.Column(
        "organization_id",
        sa.Integer(),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(200), nullable=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_platform_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("slug", sa.String(100), nullable=False),
        sa.Column(
            "subscription_tier",
            sa.Enum("free", "pro", "enterprise", name="subscriptiontier"),
            nullable=False,
        ),
        sa.Column(
            "subscription_status",
            sa.Enum("active", "trialing", "past_due", "suspended", "cancelled", name="subscriptionstatus"),
            nullable=False,
        ),
        sa.Column("max_users", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("max_storage_mb", sa.Integer(), nullable=False, server_default="1024"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_organizations_id", "organizations", ["id"])
    op.create_index("ix_organizations_slug", "organizations", ["slug"], unique=True)
    op.create_index("idx_organization_status", "organizations", ["subscription_status"])

    op.create_table(
        "organization_memberships",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        _org_fk(),
        sa.Column(
            "role",
            sa.Enum("OWNER", "ADMIN", "MANAGER", "MEMBER", "CLIENT", "VIEWER", name="membershiprole"),
            nullable=False,
        ),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        sa.Column("joined_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_organization_memberships_id", "organization_memberships", ["id"])
    op.create_index("ix_organization_memberships_user_id", "organization_memberships", ["user_id"])
    op.create_index("ix_organization_memberships_organization_id", "organization_memberships", ["organization_id"])
    op.create_index("ix_memberships_user_org", "organization_memberships", ["user_id", "organization_id"], unique=True)
    op.create_index("ix_memberships_org_active", "organization_memberships", ["organization_id", "is_active"])

    op.create_table(
        "delivery_plans",
        sa.Column("id", sa.Integer(), nullable=False),
        _org_fk(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("DRAFT", "ACTIVE", "COMPLETED", "CANCELLED", name="deliveryplanstatus"),
            nullable=False,
        ),
        sa.Column("target_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_delivery_plans_id", "delivery_plans", ["id"])
    op.create_index("ix_delivery_plans_organization_id", "delivery_plans", ["organization_id"])
    op.create_index("ix_delivery_plans_org_status", "delivery_plans", ["organization_id", "status"])

    op.create_table(
        "ideas",
        sa.Column("id", sa.Integer(), nullable=False),
        _org_fk(),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "delivery_plan_id",
            sa.Integer(),
            sa.ForeignKey("delivery_plans.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("content_type", sa.Enum(*CONTENT_TYPES, name="contenttype"), nullable=False),
        sa.Column(
            "media_type",
            sa.Enum(
                "PHOTO", "GRAPH_OR_INFOGRAPHIC", "VIDEO", "SOCIAL_CARD", "POLL", "CAROUSEL", name="mediatype"
            ),
            nullable=True,
        ),
        sa.Column("publishing_datetime", sa.DateTime(), nullable=True),
        sa.Column("status", sa.Enum("PENDING", "APPROVED", "REJECTED", name="ideastatus"), nullable=False),
        sa.Column("row_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ideas_id", "ideas", ["id"])
    op.create_index("ix_ideas_organization_id", "ideas", ["organization_id"])
    op.create_index("ix_ideas_created_by_id", "ideas", ["created_by_id"])
    op.create_index("ix_ideas_delivery_plan_id", "ideas", ["delivery_plan_id"])
    op.create_index("ix_ideas_org_status", "ideas", ["organization_id", "status"])

    op.create_table(
        "content_drafts",
        sa.Column("id", sa.Integer(), nullable=False),
        _org_fk(),
        sa.Column("idea_id", sa.Integer(), sa.ForeignKey("ideas.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column(
            "content_type",
            postgresql.ENUM(*CONTENT_TYPES, name="contenttype", create_type=False),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "DRAFT",
                "AWAITING_FEEDBACK",
                "AWAITING_REVISION",
                "APPROVED",
                "REJECTED",
                "PUBLISHED",
                name="draftstatus",
            ),
            nullable=False,
        ),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("row_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("published_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_content_drafts_id", "content_drafts", ["id"])
    op.create_index("ix_content_drafts_organization_id", "content_drafts", ["organization_id"])
    op.create_index("ix_content_drafts_idea_id", "content_drafts", ["idea_id"])
    op.create_index("ix_content_drafts_created_by_id", "content_drafts", ["created_by_id"])
    op.create_index("ix_drafts_org_status", "content_drafts", ["organization_id", "status"])
    op.create_index("ix_drafts_idea_version", "content_drafts", ["idea_id", "version"])

    op.create_table(
        "feedback",
        sa.Column("id", sa.Integer(), nullable=False),
        _org_fk(),
        sa.Column("draft_id", sa.Integer(), sa.ForeignKey("content_drafts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column(
            "category",
            sa.Enum(
                "GENERAL",
                "CONTENT",
                "TONE",
                "STRUCTURE",
                "VISUAL",
                "COMPLIANCE",
                "REVISION_REQUEST",
                name="feedbackcategory",
            ),
            nullable=False,
        ),
        sa.Column("priority", sa.Enum("LOW", "MEDIUM", "HIGH", name="feedbackpriority"), nullable=False),
        sa.Column("actionable", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_feedback_id", "feedback", ["id"])
    op.create_index("ix_feedback_organization_id", "feedback", ["organization_id"])
    op.create_index("ix_feedback_draft_id", "feedback", ["draft_id"])
    op.create_index("ix_feedback_author_id", "feedback", ["author_id"])
    op.create_index("ix_feedback_draft_created", "feedback", ["draft_id", "created_at"])

    op.create_table(
        "workflow_history",
        sa.Column("id", sa.Integer(), nullable=False),
        _org_fk(),
        sa.Column("entity_type", sa.Enum("IDEA", "CONTENT_DRAFT", name="workflowentity"), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column(
            "action",
            sa.Enum(
                "APPROVE_IDEA",
                "REJECT_IDEA",
                "CREATE",
                "SUBMIT",
                "APPROVE",
                "REQUEST_REVISION",
                "REJECT",
                "RESUBMIT",
                "PUBLISH_SUCCEEDED",
                "DELETE",
                name="workflowaction",
            ),
            nullable=False,
        ),
        sa.Column("from_status", sa.String(50), nullable=True),
        sa.Column("to_status", sa.String(50), nullable=True),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_workflow_history_id", "workflow_history", ["id"])
    op.create_index("ix_workflow_history_organization_id", "workflow_history", ["organization_id"])
    op.create_index("ix_workflow_history_actor_id", "workflow_history", ["actor_id"])
    op.create_index(
        "ix_workflow_history_entity_created", "workflow_history", ["entity_type", "entity_id", "created_at"]
    )

    op.create_table(
        "channel_connections",
        sa.Column("id", sa.Integer(), nullable=False),
        _org_fk(),
        sa.Column("channel", sa.Enum(*PUBLISH_CHANNELS, name="publishchannel"), nullable=False),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("account_urn", sa.String(255), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("connected_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_channel_connections_id", "channel_connections", ["id"])
    op.create_index("ix_channel_connections_organization_id", "channel_connections", ["organization_id"])
    op.create_index("ix_channel_connections_org_channel", "channel_connections", ["organization_id", "channel"])

    op.create_table(
        "delivery_records",
        sa.Column("id", sa.Integer(), nullable=False),
        _org_fk(),
        sa.Column("draft_id", sa.Integer(), sa.ForeignKey("content_drafts.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "channel",
            postgresql.ENUM(*PUBLISH_CHANNELS, name="publishchannel", create_type=False),
            nullable=False,
        ),
        sa.Column("status", sa.Enum("SUCCESS", "FAILED", name="deliverystatus"), nullable=False),
        sa.Column("external_id", sa.String(255), nullable=True),
        sa.Column("external_url", sa.String(2048), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("attempt", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_delivery_records_id", "delivery_records", ["id"])
    op.create_index("ix_delivery_records_organization_id", "delivery_records", ["organization_id"])
    op.create_index("ix_delivery_records_draft_id", "delivery_records", ["draft_id"])
    op.create_index("ix_delivery_records_draft_channel", "delivery_records", ["draft_id", "channel", "created_at"])
    op.create_index("ix_delivery_records_status", "delivery_records", ["status"])


def downgrade() -> None:
    for table in (
        "delivery_records",
        "channel_connections",
        "workflow_history",
        "feedback",
        "content_drafts",
        "ideas",
        "delivery_plans",
        "organization_memberships",
        "organizations",
        "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    if bind.dialect.name == "postgresql":
        for enum_name in (
            "deliverystatus",
            "publishchannel",
            "workflowaction",
            "workflowentity",
            "feedbackpriority",
            "feedbackcategory",
            "draftstatus",
            "ideastatus",
            "mediatype",
            "contenttype",
            "deliveryplanstatus",
            "membershiprole",
            "subscriptionstatus",
            "subscriptiontier",
        ):
            sa.Enum(name=enum_name).drop(bind, checkfirst=True)
