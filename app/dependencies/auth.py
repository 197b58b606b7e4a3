from typing import Iterable, Mapping, Optional
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from datetime import datetime, timezone
from app.core.config import settings
from app.core.database import get_db
from app.core.permissions import has_permissions
from app.core.security import decode_token
from app.models.user import User
from app.models.session import UserSession
from app.utils.errors import Unauthorized, Forbidden

security = HTTPBearer(auto_error=False)


def extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.ACCESS_TOKEN_COOKIE)


def get_current_user_from_token(
    token: str,
    db: Session,
):
    """
    Verify a JWT access token against its session row and return the payload.
    """
    payload = decode_token(token)

    if payload is None or payload.get("type") is not None:
        raise Unauthorized()

    user_id = payload.get("sub")
    jti = payload.get("jti")
    if not user_id or not jti:
        raise Unauthorized()

    # Check if token is revoked
    session = db.query(UserSession).filter(
        UserSession.user_id == user_id,
        UserSession.token_jti == jti,
        UserSession.is_revoked == False,  # noqa: E712
    ).first()

    if not session:
        raise Unauthorized()

    now = datetime.now(timezone.utc).replace(tzinfo=None)
    if session.expires_at and session.expires_at < now:
        raise Unauthorized()

    user = db.query(User).filter(User.id == user_id).first()
    if not user or user.is_banned():
        raise Unauthorized()

    # Role is read from the row so admin role changes apply immediately
    return {
        **payload,
        "sub": user.id,
        "role": user.role,
        "email": user.email,
        "name": user.name,
        "jti": jti,
    }

async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
):
    """Verify JWT token (bearer header or cookie) and return current user"""
    token = extract_token(request, credentials)
    if not token:
        raise Unauthorized()
    return get_current_user_from_token(token, db)


def require_permissions(permissions: Mapping[str, Iterable[str]]):
    """Dependency factory: the session user must hold every listed action."""

    async def checker(current_user=Depends(get_current_user)):
        if not has_permissions(current_user.get("role"), permissions):
            raise Forbidden()
        return current_user

    return checker
