from fastapi import Depends

from app.auth import get_organization_context
from app.exceptions import AccessDeniedError
from app.services.tenancy import OrganizationContext


def permission_required(permission: str):
    async def checker(context: OrganizationContext = Depends(get_organization_context)) -> OrganizationContext:
        if context.has_permission(permission):
            return context
        raise AccessDeniedError(
            "You don't have permission to perform this action.",
            details={"required_permission": permission, "role": context.role.value},
        )

    return checker
