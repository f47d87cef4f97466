"""Authentication routes.

Provides password authentication:
- POST /auth/login: Verify credentials and get JWT token
"""
from fastapi import APIRouter, Depends, Request, status
from pydantic import Field
from sqlalchemy.orm import Session

from carwash.api.dependencies import client_ip
from carwash.api.schemas import CamelModel
from carwash.lib.db import get_db
from carwash.lib.rate_limiter import LoginRateLimiter, get_login_rate_limiter
from carwash.services.auth_service import AuthService


router = APIRouter(prefix="/auth", tags=["Authentication"])


# Request/Response Models
class LoginRequest(CamelModel):
    """Login payload."""
    email: str = Field(
        ...,
        description="Email address",
        examples=["user@example.com"]
    )
    password: str = Field(..., min_length=1, description="Account password")


class LoginResponse(CamelModel):
    """Login response with JWT token."""
    token: str = Field(..., description="JWT access token")
    user_id: str = Field(..., description="User UUID")
    role: str = Field(..., description="User role (CUSTOMER, STAFF, ADMIN)")


# Dependency to get AuthService
def get_auth_service(
    db: Session = Depends(get_db),
    rate_limiter: LoginRateLimiter = Depends(get_login_rate_limiter),
) -> AuthService:
    """Get AuthService instance with database session and rate limiter."""
    return AuthService(db, rate_limiter)


# Routes
@router.post(
    "/login",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    summary="Login",
    description="Verify email and password and receive JWT access token"
)
def login(
    body: LoginRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Log in with email and password.

    Args:
        body: Email and password
        request: Incoming request (client IP feeds the rate limiter)
        auth_service: Injected auth service

    Returns:
        JWT token, user id and role

    Raises:
        401: Invalid email or password
        429: Too many failed attempts
    """
    result = auth_service.login(body.email, body.password, client_ip(request))
    return LoginResponse(**result)
