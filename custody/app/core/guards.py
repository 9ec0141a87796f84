"""
Security guards for role-based access control.
"""

from typing import List
from fastapi import Depends, HTTPException, status
from custody.app.models.enums import ActorRole
from custody.app.core.dependencies import get_current_actor
from custody.app.domain.custody.actor import Actor


def require_role(allowed_roles: List[ActorRole]):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.get("/admin/summary")
        async def summary(admin: Actor = Depends(require_role([ActorRole.ADMIN]))):
            ...

    Args:
        allowed_roles: Roles allowed to access the endpoint

    Returns:
        FastAPI dependency returning the authenticated Actor

    Raises:
        HTTPException 403 if the stored role is not in allowed_roles
    """
    async def role_checker(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join([r.value for r in allowed_roles])}"
            )

        return actor

    return role_checker


require_customer = require_role([ActorRole.CUSTOMER])
require_rider = require_role([ActorRole.RIDER])
require_admin = require_role([ActorRole.ADMIN])
