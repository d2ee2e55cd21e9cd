"""Constants package for ContentFlow."""

from .roles import (
    ADMIN_ROLES,
    CREATOR_ROLES,
    DEFAULT_ROLE,
    PLANNER_ROLES,
    REVIEWER_ROLES,
    ROLE_HIERARCHY,
    MembershipRole,
    is_higher_role,
)

__all__ = [
    "MembershipRole",
    "DEFAULT_ROLE",
    "ROLE_HIERARCHY",
    "ADMIN_ROLES",
    "REVIEWER_ROLES",
    "CREATOR_ROLES",
    "PLANNER_ROLES",
    "is_higher_role",
]
