from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Request, Response, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.database import get_db
from app.dependencies.auth import get_current_user
from app.dependencies.rate_limit import rate_limit
from app.schemas.auth import (
    ForgotPasswordRequest,
    LoginRequest,
    PatientRegisterRequest,
    RefreshTokenRequest,
    ResetPasswordRequest,
)
from app.services.auth_service import AuthService
from app.utils.errors import BadRequest
from app.utils.helpers import get_client_ip

router = APIRouter(prefix="/auth", tags=["authentication"])


def _set_access_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=settings.ACCESS_TOKEN_COOKIE,
        value=token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
        secure=settings.ENV == "production",
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    request: Request,
    body: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit),
):
    """
    Patient self-registration
    - Validate the form (any failure gives one generic message)
    - Create user + patient profile
    - Send verification link
    """
    try:
        payload = PatientRegisterRequest.model_validate(body)
    except ValidationError:
        raise BadRequest("Błąd walidacji danych rejestracji.")
    return AuthService.register_patient(db, request, payload)


@router.get("/verify-email")
async def verify_email(token: Optional[str] = None, db: Session = Depends(get_db)):
    return AuthService.verify_email(db, token)


@router.post("/login")
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit),
):
    """Email/password login. The access token is also set as an httpOnly cookie."""
    result = AuthService.login(
        db=db,
        email=payload.email,
        password=payload.password,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
    )
    _set_access_cookie(response, result["accessToken"])
    return result


@router.post("/refresh")
async def refresh_tokens(
    payload: RefreshTokenRequest,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit),
):
    """Exchange a valid refresh token for a new access + refresh token pair (rotation)."""
    result = AuthService.refresh_tokens(
        db=db,
        refresh_token=payload.refreshToken or "",
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
    )
    _set_access_cookie(response, result["accessToken"])
    return result


@router.post("/logout")
async def logout(
    response: Response,
    current_user=Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Revoke the current session"""
    result = AuthService.logout(db, current_user["sub"], current_user["jti"])
    response.delete_cookie(settings.ACCESS_TOKEN_COOKIE)
    return result


@router.post("/forgot-password")
async def forgot_password(
    payload: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit),
):
    return AuthService.send_password_reset(db, payload.email)


@router.post("/reset-password")
async def reset_password(
    payload: ResetPasswordRequest,
    db: Session = Depends(get_db),
    _: None = Depends(rate_limit),
):
    return AuthService.reset_password(db, payload.token, payload.password)


@router.get("/me")
async def me(current_user=Depends(get_current_user), db: Session = Depends(get_db)):
    return AuthService.me(db, current_user["sub"])
