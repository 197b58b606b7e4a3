"""Auth endpoints integration tests."""

import random

import pytest
from sqlalchemy import event

from app.core.database import engine
from app.core.security import create_email_verification_token, create_password_reset_token
from app.models.audit import Log
from app.models.patient import Patient
from app.models.user import User
from tests.factories import PASSWORD, auth_headers, make_user, unique_email


def _registration(**overrides):
    body = {
        "email": unique_email("patient"),
        "name": "Jan",
        "surname": "Nowak",
        "pesel": "022708" + "".join(random.choice("0123456789") for _ in range(5)),
        "phone": "+48600100200",
        "password": PASSWORD,
        "address": "ul. Krótka 5, Warszawa",
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_register_creates_patient_and_sends_verification(async_client, db_session, sent_emails):
    body = _registration()
    r = await async_client.post("/api/auth/register", json=body)
    assert r.status_code == 201, r.text
    data = r.json()
    assert data["status"] == "ok"
    assert data["patient"]["email"] == body["email"]

    user = db_session.query(User).filter(User.email == body["email"]).first()
    assert user.role == "user"
    assert user.email_verified is False
    patient = db_session.query(Patient).filter(Patient.user_id == user.id).first()
    # Month 27 encodes 2002-07
    assert patient.date_of_birth.isoformat() == "2002-07-08"
    assert patient.pesel_hmac

    assert any(e["to"] == body["email"] for e in sent_emails)
    assert db_session.query(Log).filter(Log.user_id == user.id).count() == 1


@pytest.mark.asyncio
async def test_register_rejects_invalid_and_unknown_fields(async_client):
    r = await async_client.post("/api/auth/register", json=_registration(name="J"))
    assert r.status_code == 400, r.text
    assert r.json()["detail"] == "Błąd walidacji danych rejestracji."

    r = await async_client.post("/api/auth/register", json=_registration(role="admin"))
    assert r.status_code == 400, r.text

    r = await async_client.post("/api/auth/register", json=_registration(password="short"))
    assert r.status_code == 400, r.text


@pytest.mark.asyncio
async def test_register_duplicate_email_conflicts(async_client):
    body = _registration()
    r = await async_client.post("/api/auth/register", json=body)
    assert r.status_code == 201, r.text

    r = await async_client.post("/api/auth/register", json=_registration(email=body["email"]))
    assert r.status_code == 409, r.text
    assert r.json()["detail"] == "Użytkownik o tym adresie email już istnieje."


@pytest.mark.asyncio
async def test_verify_email_flow(async_client, db_session):
    user = make_user(db_session, verified=False)

    r = await async_client.get("/api/auth/verify-email")
    assert r.status_code == 400, r.text
    assert r.json()["detail"] == "Brak tokenu weryfikacyjnego"

    r = await async_client.get("/api/auth/verify-email", params={"token": "garbage"})
    assert r.status_code == 401, r.text

    token = create_email_verification_token(user.email)
    r = await async_client.get("/api/auth/verify-email", params={"token": token})
    assert r.status_code == 200, r.text
    assert r.json() == {"status": "ok", "emailVerified": True}

    r = await async_client.get("/api/auth/verify-email", params={"token": token})
    assert r.status_code == 409, r.text

    r = await async_client.get(
        "/api/auth/verify-email",
        params={"token": create_email_verification_token(unique_email("ghost"))},
    )
    assert r.status_code == 404, r.text


@pytest.mark.asyncio
async def test_login_refresh_and_logout(async_client, db_session):
    user = make_user(db_session)

    r = await async_client.post("/api/auth/login", json={"email": user.email, "password": "wrong"})
    assert r.status_code == 401, r.text

    r = await async_client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert r.status_code == 200, r.text
    tokens = r.json()
    assert "access_token" in r.cookies
    headers = {"Authorization": f"Bearer {tokens['accessToken']}"}

    r = await async_client.get("/api/auth/me", headers=headers)
    assert r.status_code == 200, r.text
    assert r.json()["email"] == user.email

    r = await async_client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert r.status_code == 200, r.text
    rotated = r.json()
    assert rotated["refreshToken"] != tokens["refreshToken"]

    # The old refresh token is single use
    r = await async_client.post("/api/auth/refresh", json={"refreshToken": tokens["refreshToken"]})
    assert r.status_code == 401, r.text

    new_headers = {"Authorization": f"Bearer {rotated['accessToken']}"}
    r = await async_client.post("/api/auth/logout", headers=new_headers)
    assert r.status_code == 200, r.text

    r = await async_client.get("/api/auth/me", headers=new_headers)
    assert r.status_code == 401, r.text


@pytest.mark.asyncio
async def test_login_requires_verified_email(async_client, db_session):
    user = make_user(db_session, verified=False)
    r = await async_client.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
    assert r.status_code == 403, r.text


@pytest.mark.asyncio
async def test_password_reset_revokes_sessions(async_client, db_session, sent_emails):
    user = make_user(db_session)
    headers = auth_headers(db_session, user)

    r = await async_client.post("/api/auth/forgot-password", json={"email": user.email})
    assert r.status_code == 200, r.text
    assert any(e["to"] == user.email for e in sent_emails)

    r = await async_client.post("/api/auth/forgot-password", json={"email": unique_email("nobody")})
    assert r.status_code == 200, r.text

    token, _ = create_password_reset_token(user.id)
    r = await async_client.post("/api/auth/reset-password", json={"token": token, "password": "Nowe!Haslo4567"})
    assert r.status_code == 200, r.text

    r = await async_client.get("/api/auth/me", headers=headers)
    assert r.status_code == 401, r.text

    r = await async_client.post("/api/auth/login", json={"email": user.email, "password": "Nowe!Haslo4567"})
    assert r.status_code == 200, r.text


@pytest.mark.asyncio
async def test_rate_limit_blocks_bursts(async_client, monkeypatch):
    from app.core.config import settings

    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr(settings, "RATE_LIMIT_REQUESTS", 2)
    payload = {"email": unique_email("burst")}
    for _ in range(2):
        r = await async_client.post("/api/auth/forgot-password", json=payload)
        assert r.status_code == 200, r.text
    r = await async_client.post("/api/auth/forgot-password", json=payload)
    assert r.status_code == 429, r.text


@pytest.mark.asyncio
async def test_malformed_authorization_header_is_rejected(async_client):
    r = await async_client.get("/api/auth/me", headers={"Authorization": "Token abc"})
    assert r.status_code == 401, r.text


@pytest.mark.asyncio
async def test_authenticated_request_checks_session_once(async_client, db_session):
    user = make_user(db_session)
    headers = auth_headers(db_session, user)
    statements = []

    def capture(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(engine, "before_cursor_execute", capture)
    try:
        r = await async_client.get("/api/auth/me", headers=headers)
    finally:
        event.remove(engine, "before_cursor_execute", capture)

    assert r.status_code == 200, r.text
    session_lookups = [s for s in statements if "FROM user_sessions" in s]
    assert len(session_lookups) == 1
