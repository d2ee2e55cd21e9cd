"""
Access Filter

Builds organization-scoped query predicates. A predicate can only be
obtained from an OrganizationContext, so no storage query built through
this module can omit the organization_id equality check.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import and_, select
from sqlalchemy.sql.elements import ColumnElement

from app.constants.roles import MembershipRole
from app.models.content_draft import DraftStatus
from app.services.tenancy import OrganizationContext

# Reviewers and viewers never see work that has not been submitted yet
_CLIENT_VISIBLE_DRAFT_STATUSES = frozenset(
    {
        DraftStatus.AWAITING_FEEDBACK,
        DraftStatus.AWAITING_REVISION,
        DraftStatus.APPROVED,
        DraftStatus.REJECTED,
        DraftStatus.PUBLISHED,
    }
)

_ROLE_VISIBLE_DRAFT_STATUSES = {
    MembershipRole.OWNER: frozenset(DraftStatus),
    MembershipRole.ADMIN: frozenset(DraftStatus),
    MembershipRole.MANAGER: frozenset(DraftStatus),
    MembershipRole.MEMBER: frozenset(DraftStatus),
    MembershipRole.CLIENT: _CLIENT_VISIBLE_DRAFT_STATUSES,
    MembershipRole.VIEWER: _CLIENT_VISIBLE_DRAFT_STATUSES,
}


@dataclass(frozen=True)
class QueryPredicate:
    """An immutable, organization-scoped conjunction of SQL criteria."""

    model: type
    organization_id: int
    criteria: tuple[ColumnElement, ...] = ()

    def clause(self) -> ColumnElement:
        return and_(self.model.organization_id == self.organization_id, *self.criteria)

    def and_where(self, *criteria: ColumnElement) -> QueryPredicate:
        """Return a new predicate with additional criteria."""
        return QueryPredicate(self.model, self.organization_id, self.criteria + tuple(criteria))


def scoped_filter(context: OrganizationContext, model: type, *extra: ColumnElement) -> QueryPredicate:
    """Conjoin ``model.organization_id == context.organization_id`` with caller criteria."""
    if not hasattr(model, "organization_id"):
        raise TypeError(f"{model.__name__} is not organization-scoped")
    return QueryPredicate(model=model, organization_id=context.organization_id, criteria=tuple(extra))


def scoped_select(context: OrganizationContext, model: type, *extra: ColumnElement):
    """A SELECT over ``model`` already restricted to the context's organization."""
    return select(model).where(scoped_filter(context, model, *extra).clause())


def visible_statuses(role: MembershipRole) -> frozenset[DraftStatus]:
    """Draft statuses a member with ``role`` may read."""
    return _ROLE_VISIBLE_DRAFT_STATUSES.get(MembershipRole(role), _CLIENT_VISIBLE_DRAFT_STATUSES)


def can_view_draft_status(context: OrganizationContext, status: DraftStatus) -> bool:
    return status in visible_statuses(context.role)
