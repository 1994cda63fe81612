"""
Customer authentication API routes.
"""
import re
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Request
from pydantic import BaseModel, EmailStr, field_validator, Field
from sqlalchemy.orm import Session
from sqlalchemy import func

from storefront.db.session import get_db
from storefront.db.models import Customer, AuditLog
from storefront.core.security import verify_password, get_password_hash, create_access_token
from storefront.core.rbac import Role, require_customer
from storefront.core.csrf import csrf_protect
from storefront.core.rate_limit import RateLimit
from storefront.core.config import settings

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

auth_rate_limit = RateLimit("auth")


# ============= SCHEMAS =============

class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., max_length=128)


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=10, max_length=128)
    name: str = Field(..., min_length=2, max_length=255)
    company: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)

    @field_validator('password')
    @classmethod
    def validate_password(cls, v: str) -> str:
        if not re.search(r'[A-Za-z]', v):
            raise ValueError('Password must contain at least one letter')
        if not re.search(r'[0-9]', v):
            raise ValueError('Password must contain at least one number')
        return v


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: dict


class CustomerResponse(BaseModel):
    id: str
    name: str
    email: str
    company: Optional[str]
    phone: Optional[str]

    model_config = {"from_attributes": True}


def _issue_token(customer: Customer) -> TokenResponse:
    token = create_access_token({
        "sub": customer.id,
        "email": customer.email,
        "role": Role.CUSTOMER.value,
    })
    return TokenResponse(
        access_token=token,
        expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        user={
            "id": customer.id,
            "name": customer.name,
            "email": customer.email,
            "company": customer.company,
        },
    )


# ============= ROUTES =============

@router.post(
    "/login",
    response_model=TokenResponse,
    dependencies=[Depends(auth_rate_limit), Depends(csrf_protect)],
)
async def login(
    request: Request,
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """Authenticate a customer and return a JWT."""
    customer = db.query(Customer).filter(func.lower(Customer.email) == login_data.email.lower()).first()

    if not customer or not verify_password(login_data.password, customer.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    if not customer.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account is disabled",
        )

    customer.last_login = datetime.now(timezone.utc)

    db.add(AuditLog(
        actor_type="customer",
        actor_id=customer.id,
        action="login",
        entity_type="customer",
        entity_id=customer.id,
        ip_address=request.client.host if request.client else None,
    ))
    db.commit()

    return _issue_token(customer)


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=201,
    dependencies=[Depends(auth_rate_limit), Depends(csrf_protect)],
)
async def register(
    request: Request,
    register_data: RegisterRequest,
    db: Session = Depends(get_db)
):
    """Register a new customer account."""
    if not settings.ALLOW_PUBLIC_REGISTRATION:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Public registration is disabled. Contact an administrator.",
        )

    email = register_data.email.lower()
    existing = db.query(Customer).filter(func.lower(Customer.email) == email).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered",
        )

    customer = Customer(
        name=register_data.name.strip(),
        email=email,
        hashed_password=get_password_hash(register_data.password),
        company=register_data.company,
        phone=register_data.phone,
    )
    db.add(customer)
    db.flush()

    db.add(AuditLog(
        actor_type="customer",
        actor_id=customer.id,
        action="register",
        entity_type="customer",
        entity_id=customer.id,
        ip_address=request.client.host if request.client else None,
    ))
    db.commit()

    return _issue_token(customer)


@router.get("/me", response_model=CustomerResponse)
async def get_current_customer(
    user_context: dict = Depends(require_customer),
    db: Session = Depends(get_db)
):
    """Get the authenticated customer."""
    customer = db.query(Customer).filter(Customer.id == user_context["sub"]).first()
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer
