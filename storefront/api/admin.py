"""
Admin authentication API routes.
Admin accounts are separate from customers and receive shorter-lived tokens.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from storefront.db.session import get_db
from storefront.db.models import AdminUser, AuditLog
from storefront.core.security import verify_password, create_access_token
from storefront.core.rbac import require_admin
from storefront.core.csrf import csrf_protect
from storefront.core.rate_limit import RateLimit
from storefront.core.config import settings

router = APIRouter(prefix="/api/admin", tags=["Admin"])

auth_rate_limit = RateLimit("auth")
admin_rate_limit = RateLimit("admin")


# ============= SCHEMAS =============

class AdminLoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    password: str = Field(..., min_length=1, max_length=128)


class AdminTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: dict


class AdminResponse(BaseModel):
    id: str
    username: str
    role: str
    last_login: Optional[datetime] = None

    model_config = {"from_attributes": True}


# ============= ROUTES =============

@router.post(
    "/auth/login",
    response_model=AdminTokenResponse,
    dependencies=[Depends(auth_rate_limit), Depends(csrf_protect)],
)
async def admin_login(
    request: Request,
    login_data: AdminLoginRequest,
    db: Session = Depends(get_db)
):
    """Authenticate an admin and return a JWT."""
    admin = db.query(AdminUser).filter(AdminUser.username == login_data.username).first()

    if not admin or not verify_password(login_data.password, admin.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )

    if not admin.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is disabled",
        )

    admin.last_login = datetime.now(timezone.utc)

    db.add(AuditLog(
        actor_type="admin",
        actor_id=admin.id,
        action="login",
        entity_type="admin",
        entity_id=admin.id,
        ip_address=request.client.host if request.client else None,
    ))
    db.commit()

    token = create_access_token(
        {"sub": admin.id, "username": admin.username, "role": admin.role},
        expires_delta=timedelta(minutes=settings.ADMIN_TOKEN_EXPIRE_MINUTES),
    )

    return AdminTokenResponse(
        access_token=token,
        expires_in=settings.ADMIN_TOKEN_EXPIRE_MINUTES * 60,
        user={"id": admin.id, "username": admin.username, "role": admin.role},
    )


@router.get(
    "/auth/verify",
    response_model=AdminResponse,
    dependencies=[Depends(admin_rate_limit), Depends(csrf_protect)],
)
async def verify_admin(
    user_context: dict = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Confirm the bearer token belongs to an active admin."""
    admin = db.query(AdminUser).filter(AdminUser.id == user_context["sub"]).first()
    if not admin or not admin.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin account not found or disabled",
        )
    return admin
