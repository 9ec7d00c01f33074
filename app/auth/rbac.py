from typing import Dict

from fastapi import Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser

ADMIN_ROLES = ("SUPER_ADMIN", "PLATFORM_ADMIN")


def check_permission(module: str, action: str):
    """
    Dependency factory to enforce a specific permission.

    Example:
        Depends(check_permission("users", "import"))
    """

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> None:
        if any(role in ADMIN_ROLES for role in current_user.roles):
            return
        permissions: Dict[str, Dict[str, bool]] = current_user.permissions or {}
        module_perms = permissions.get(module, {})
        if not module_perms.get(action, False):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )

    return _checker
