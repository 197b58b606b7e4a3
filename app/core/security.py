"""Password hashing and JWT helpers shared by the auth layer."""
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from passlib.context import CryptContext
import secrets
import hashlib
from app.core.config import settings

REFRESH = "refresh"
PASSWORD_RESET = "password_reset"
EMAIL_VERIFICATION = "email_verification"

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")


def hash_password(password: str) -> str:
    if not password or not isinstance(password, str):
        raise ValueError("Password must be a non-empty string")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not isinstance(plain_password, str) or not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        return False


def generate_random_password() -> str:
    """Throwaway password for accounts that finish setup via the reset link."""
    return secrets.token_urlsafe(24) + "aA1!"


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _encode(claims: Dict[str, Any], lifetime: timedelta) -> tuple[str, str]:
    """Sign claims with an expiry and a fresh jti; returns (token, jti)."""
    jti = secrets.token_urlsafe(32)
    claims = {**claims, "exp": datetime.now(timezone.utc) + lifetime, "jti": jti}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM), jti


def create_access_token(
    user_id: str,
    email: str,
    role: str,
    expires_delta: Optional[timedelta] = None,
) -> tuple[str, str]:
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _encode({"sub": str(user_id), "email": email, "role": role}, lifetime)


def create_refresh_token(user_id: str) -> tuple[str, str]:
    return _encode(
        {"sub": str(user_id), "type": REFRESH},
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def create_password_reset_token(user_id: str, expires_minutes: Optional[int] = None) -> tuple[str, str]:
    return _encode(
        {"sub": str(user_id), "type": PASSWORD_RESET},
        timedelta(minutes=expires_minutes or settings.PASSWORD_RESET_EXPIRE_MINUTES),
    )


def create_email_verification_token(email: str) -> str:
    token, _ = _encode(
        {"email": email, "type": EMAIL_VERIFICATION},
        timedelta(hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS),
    )
    return token


def decode_token(token: str, token_type: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """Verify signature and expiry. With token_type, the `type` claim must match too."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if token_type is not None and payload.get("type") != token_type:
        return None
    return payload
