from fastapi import Depends

from medquote.middleware.auth import get_current_user
from medquote.models.user import User
from medquote.services.guards import check_role


def require_roles(*allowed_roles: str):
    """
    FastAPI dependency factory for role-based access control.

    Usage:
        @router.post("/products")
        async def create_product(
            current_user: User = Depends(get_current_user),
            _auth: None = Depends(require_roles("admin")),
        ):
    """
    async def check_role_dependency(current_user: User = Depends(get_current_user)):
        check_role(
            current_user,
            *allowed_roles,
            message=(
                f"Role '{current_user.role}' cannot perform this action. "
                f"Required: {', '.join(allowed_roles)}"
            ),
        )
        return None

    return check_role_dependency
