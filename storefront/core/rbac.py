"""
Role-Based Access Control (RBAC) dependencies.

Customers and admins are separate account tables; both authenticate with a
bearer JWT whose ``role`` claim tells them apart.
"""
from enum import Enum
from typing import Optional
from fastapi import HTTPException, status, Depends

from storefront.core.security import get_token_payload


class Role(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


# Role hierarchy: higher index = more permissions
ROLE_HIERARCHY = {
    Role.CUSTOMER: 0,
    Role.ADMIN: 1,
    Role.SUPERADMIN: 2,
}


def has_permission(user_role: Role, required_role: Role) -> bool:
    """Check if user role has sufficient permissions."""
    return ROLE_HIERARCHY.get(user_role, -1) >= ROLE_HIERARCHY.get(required_role, 0)


def _parse_role(raw: Optional[str]) -> Optional[Role]:
    try:
        return Role(raw)
    except ValueError:
        return None


class RBACChecker:
    """Dependency for checking role-based access."""

    def __init__(self, required_role: Role):
        self.required_role = required_role

    async def __call__(self, payload: dict = Depends(get_token_payload)) -> dict:
        if payload.get("sub") is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token: missing user identifier (sub)",
            )

        user_role = _parse_role(payload.get("role"))
        if user_role is None or not has_permission(user_role, self.required_role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {self.required_role.value}",
            )

        return {
            "sub": str(payload["sub"]),
            "role": user_role,
            "email": payload.get("email"),
            "username": payload.get("username"),
        }


require_customer = RBACChecker(Role.CUSTOMER)
require_admin = RBACChecker(Role.ADMIN)
