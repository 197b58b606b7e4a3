from datetime import datetime, timedelta, timezone
from typing import Optional
import logging

from fastapi import Request
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.constants import UserRole
from app.core.security import (
    hash_password, verify_password, create_access_token,
    create_refresh_token, decode_token, hash_token,
    EMAIL_VERIFICATION, PASSWORD_RESET, REFRESH,
)
from app.models.patient import Patient
from app.models.session import UserSession
from app.models.user import User
from app.services.audit_service import AuditService
from app.services.notification_service import NotificationService
from app.utils.db_errors import is_unique_violation
from app.utils.errors import (
    BadRequest, Unauthorized, InvalidCredentialsError, UserNotFoundError,
    UserAlreadyExistsError, UserNotVerifiedError, UserBannedError, Conflict, ServerError,
)
from app.utils.pesel import birth_date_from_pesel, encrypt_pesel, pesel_hmac
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)

REGISTERED_MESSAGE = "Rejestracja powiodła się. Sprawdź swoją skrzynkę email, aby potwierdzić konto."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AuthService:

    @staticmethod
    def register_patient(db: Session, request: Optional[Request], payload) -> dict:
        """
        Create a patient account
        - user row (unverified) plus patient profile in one transaction
        - verification link sent by email
        """
        email = payload.email.strip().lower()
        if db.query(User.id).filter(User.email == email).first():
            raise UserAlreadyExistsError()

        user = User(
            name=f"{payload.name} {payload.surname}".strip(),
            email=email,
            password_hash=hash_password(payload.password),
            role=UserRole.PATIENT.value,
            email_verified=False,
        )
        db.add(user)
        try:
            db.flush()
            patient = Patient(
                user_id=user.id,
                first_name=payload.name,
                last_name=payload.surname,
                pesel=encrypt_pesel(payload.pesel),
                pesel_hmac=pesel_hmac(payload.pesel),
                date_of_birth=birth_date_from_pesel(payload.pesel),
                phone=payload.phone,
                address=payload.address,
            )
            db.add(patient)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            logger.error(f"Patient registration failed for {email}: {e}")
            if is_unique_violation(e):
                raise UserAlreadyExistsError()
            raise ServerError("Błąd tworzenia profilu pacjenta.")

        db.refresh(user)
        AuditService.record(
            db, request, user.id,
            "Zarejestrowano nowe konto pacjenta i wysłano link weryfikacyjny.",
        )
        NotificationService.send_email_verification(user.email, user.name)

        return {
            "status": "ok",
            "patient": {
                "userId": user.id,
                "firstName": payload.name,
                "lastName": payload.surname,
                "pesel": payload.pesel,
                "phone": payload.phone,
                "address": payload.address,
                "email": user.email,
                "createdAt": user.created_at,
            },
            "message": REGISTERED_MESSAGE,
        }

    @staticmethod
    def verify_email(db: Session, token: Optional[str]) -> dict:
        if not token:
            raise BadRequest("Brak tokenu weryfikacyjnego")

        payload = decode_token(token)
        if payload is None:
            raise Unauthorized("Nie udało się zweryfikować tokenu.")

        email = payload.get("email")
        if not email or decode_token(token, EMAIL_VERIFICATION) is None:
            raise BadRequest("Nieprawidłowy token.")

        user = db.query(User).filter(User.email == email.lower()).first()
        if not user:
            raise UserNotFoundError()
        if user.email_verified:
            raise Conflict("Adres e-mail jest już zweryfikowany.")

        user.email_verified = True
        db.commit()
        return {"status": "ok", "emailVerified": True}

    @staticmethod
    def _open_session(db: Session, user: User, ip_address: str, user_agent: str) -> dict:
        access_token, access_jti = create_access_token(
            user_id=user.id,
            email=user.email,
            role=user.role,
        )
        refresh_token, refresh_jti = create_refresh_token(user.id)

        now = _utcnow()
        db.add(UserSession(
            user_id=user.id,
            token_jti=access_jti,
            refresh_jti=refresh_jti,
            refresh_token_hash=hash_token(refresh_token),
            ip_address=ip_address,
            user_agent=user_agent,
            expires_at=now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_expires_at=now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        ))
        db.commit()

        return {
            "accessToken": access_token,
            "refreshToken": refresh_token,
            "tokenType": "bearer",
            "expiresIn": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            "user": AuthService.user_view(user),
        }

    @staticmethod
    def user_view(user: User) -> dict:
        return {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "role": user.role,
            "emailVerified": user.email_verified,
            "image": user.image,
        }

    @staticmethod
    def login(db: Session, email: str, password: str, ip_address: str, user_agent: str = "") -> dict:
        """
        Email/password login
        - Verify credentials, verification and ban state
        - Create access & refresh tokens
        - Track session
        """
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if not user or not verify_password(password, user.password_hash or ""):
            raise InvalidCredentialsError()

        if not user.email_verified:
            raise UserNotVerifiedError()

        if user.is_banned():
            raise UserBannedError()

        return AuthService._open_session(db, user, ip_address, user_agent)

    @staticmethod
    def refresh_tokens(db: Session, refresh_token: str, ip_address: str, user_agent: str = "") -> dict:
        """Rotate a refresh token: new jti, new hash, new access token."""
        payload = decode_token(refresh_token or "", REFRESH)
        if not payload or not payload.get("jti"):
            raise Unauthorized()

        session = db.query(UserSession).filter(
            UserSession.user_id == payload.get("sub"),
            UserSession.refresh_jti == payload["jti"],
            UserSession.is_revoked == False,  # noqa: E712
        ).first()
        if not session:
            raise Unauthorized()

        now = _utcnow()
        if session.refresh_expires_at and session.refresh_expires_at < now:
            AuthService._revoke(session, "refresh_expired")
            db.commit()
            raise Unauthorized()

        if session.refresh_token_hash != hash_token(refresh_token):
            AuthService._revoke(session, "refresh_mismatch")
            db.commit()
            raise Unauthorized()

        user = db.query(User).filter(User.id == session.user_id).first()
        if not user or user.is_banned():
            raise Unauthorized()

        access_token, access_jti = create_access_token(user_id=user.id, email=user.email, role=user.role)
        new_refresh_token, new_refresh_jti = create_refresh_token(user.id)

        session.token_jti = access_jti
        session.refresh_jti = new_refresh_jti
        session.refresh_token_hash = hash_token(new_refresh_token)
        session.expires_at = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        session.refresh_expires_at = now + timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS)
        session.ip_address = ip_address
        session.user_agent = user_agent
        db.commit()

        return {
            "accessToken": access_token,
            "refreshToken": new_refresh_token,
            "tokenType": "bearer",
            "expiresIn": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            "user": AuthService.user_view(user),
        }

    @staticmethod
    def _revoke(session: UserSession, reason: str) -> None:
        session.is_revoked = True
        session.revoked_at = _utcnow()
        session.revoked_reason = reason

    @staticmethod
    def logout(db: Session, user_id: str, jti: str) -> dict:
        session = db.query(UserSession).filter(
            UserSession.user_id == user_id,
            UserSession.token_jti == jti,
        ).first()
        if session and not session.is_revoked:
            AuthService._revoke(session, "logout")
            db.commit()
        return {"status": "ok"}

    @staticmethod
    def revoke_all_sessions(db: Session, user_id: str, reason: str) -> int:
        """Revoke every open session of a user. The caller commits."""
        sessions = db.query(UserSession).filter(
            UserSession.user_id == user_id,
            UserSession.is_revoked == False,  # noqa: E712
        ).all()
        for session in sessions:
            AuthService._revoke(session, reason)
        return len(sessions)

    @staticmethod
    def send_password_reset(db: Session, email: str) -> dict:
        """Mail a reset link. Unknown addresses get the same answer."""
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if user and not user.is_banned():
            NotificationService.send_password_reset(user.email, user.name, user.id)
        else:
            logger.info(f"Password reset requested for unknown or banned account {email}")
        return {
            "status": "ok",
            "message": "Jeśli konto istnieje, wysłaliśmy link do zmiany hasła.",
        }

    @staticmethod
    def reset_password(db: Session, token: str, new_password: str) -> dict:
        payload = decode_token(token, PASSWORD_RESET)
        if not payload:
            raise BadRequest("Link do zmiany hasła jest nieprawidłowy lub wygasł.")

        user = db.query(User).filter(User.id == payload.get("sub")).first()
        if not user:
            raise UserNotFoundError()

        user.password_hash = hash_password(new_password)
        # Reaching the inbox proves the address
        user.email_verified = True
        AuthService.revoke_all_sessions(db, user.id, "password_reset")
        db.commit()
        return {"status": "ok", "message": "Hasło zostało zmienione."}

    @staticmethod
    def me(db: Session, user_id: str) -> dict:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise UserNotFoundError()
        return AuthService.user_view(user)
