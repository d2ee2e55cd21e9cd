from app.constants.roles import MembershipRole

# Permission names carried on every OrganizationContext
VIEW_CONTENT = "content:view"
VIEW_ALL_DRAFTS = "draft:view_all"
CREATE_IDEA = "idea:create"
REVIEW_IDEA = "idea:review"
CREATE_DRAFT = "draft:create"
REVIEW_DRAFT = "draft:review"
PUBLISH_DRAFT = "draft:publish"
PROVIDE_FEEDBACK = "feedback:create"
MANAGE_PLANS = "plan:manage"
MANAGE_MEMBERS = "organization:manage_members"
MANAGE_ORGANIZATION = "organization:manage"

# Role permissions with inheritance support
ROLE_PERMISSIONS = {
    MembershipRole.VIEWER: [VIEW_CONTENT],
    MembershipRole.CLIENT: [VIEW_CONTENT, REVIEW_IDEA, REVIEW_DRAFT, PROVIDE_FEEDBACK],
    MembershipRole.MEMBER: [VIEW_CONTENT, VIEW_ALL_DRAFTS, CREATE_IDEA, CREATE_DRAFT, PUBLISH_DRAFT, PROVIDE_FEEDBACK],
    MembershipRole.MANAGER: [MANAGE_PLANS],  # Manager extends member permissions
    MembershipRole.ADMIN: [REVIEW_IDEA, REVIEW_DRAFT, MANAGE_MEMBERS],  # Admin extends manager permissions
    MembershipRole.OWNER: [MANAGE_ORGANIZATION],  # Owner extends admin permissions
}

# Each role inherits everything from the role it extends
_INHERITS = {
    MembershipRole.MANAGER: MembershipRole.MEMBER,
    MembershipRole.ADMIN: MembershipRole.MANAGER,
    MembershipRole.OWNER: MembershipRole.ADMIN,
}


def get_role_permissions(role: MembershipRole | str) -> frozenset[str]:
    """
    Returns the permissions for a given role, including inherited permissions.
    """
    try:
        role = MembershipRole(role)
    except ValueError as e:
        raise ValueError(f"Invalid role: {role}") from e

    permissions: set[str] = set()
    current: MembershipRole | None = role
    while current is not None:
        permissions.update(ROLE_PERMISSIONS[current])
        current = _INHERITS.get(current)
    return frozenset(permissions)
