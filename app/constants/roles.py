"""
Role Constants for ContentFlow

Membership roles are always scoped to one organization. The platform
super-admin flag lives on the user and is not a membership role.
"""

from enum import Enum


class MembershipRole(str, Enum):
    """Enumeration of organization membership roles."""

    OWNER = "owner"
    ADMIN = "admin"
    MANAGER = "manager"
    MEMBER = "member"  # creative staff
    CLIENT = "client"  # client-side reviewer
    VIEWER = "viewer"


# Default role for new members
DEFAULT_ROLE = MembershipRole.MEMBER

# Role hierarchy for organization administration (higher number = more authority)
ROLE_HIERARCHY = {
    MembershipRole.VIEWER: 0,
    MembershipRole.CLIENT: 1,
    MembershipRole.MEMBER: 1,
    MembershipRole.MANAGER: 2,
    MembershipRole.ADMIN: 3,
    MembershipRole.OWNER: 4,
}

# "Admin" in workflow guards
ADMIN_ROLES = frozenset({MembershipRole.OWNER, MembershipRole.ADMIN})

# May approve, reject or request revisions
REVIEWER_ROLES = frozenset({MembershipRole.CLIENT}) | ADMIN_ROLES

# May create ideas and drafts
CREATOR_ROLES = frozenset({MembershipRole.MEMBER, MembershipRole.MANAGER}) | ADMIN_ROLES

# May manage delivery plans
PLANNER_ROLES = frozenset({MembershipRole.MANAGER}) | ADMIN_ROLES


def is_higher_role(role1: str, role2: str) -> bool:
    """
    Check if role1 has higher organizational authority than role2.

    Unknown roles rank below every known role.
    """
    try:
        hierarchy1 = ROLE_HIERARCHY[MembershipRole(role1)]
    except ValueError:
        hierarchy1 = -1
    try:
        hierarchy2 = ROLE_HIERARCHY[MembershipRole(role2)]
    except ValueError:
        hierarchy2 = -1
    return hierarchy1 > hierarchy2
