"""Service layer and helper tests."""

import uuid
from datetime import date, datetime, time

import pytest

from app.core.constants import UserRole
from app.core.permissions import has_permissions
from app.middleware.error_handler import first_validation_message
from app.models.clinic import Specialization
from app.models.doctor import Doctor, Receptionist
from app.models.user import User
from app.services.admin_service import AdminService
from app.services.appointment_service import free_slots
from app.services.bootstrap_service import BootstrapService
from app.tasks.reminder_tasks import send_daily_reminders
from app.utils.datetime_utils import merge_frames, today_local
from app.utils.errors import Forbidden
from app.utils.pesel import birth_date_from_pesel, decrypt_pesel, encrypt_pesel, pesel_hmac, pesel_matches
from tests.factories import make_admin, make_appointment, make_doctor, make_patient, unique_email


def test_birth_date_from_pesel_century_offsets():
    assert birth_date_from_pesel("85010112345") == date(1985, 1, 1)
    assert birth_date_from_pesel("02270812345") == date(2002, 7, 8)
    assert birth_date_from_pesel("80810112345") == date(1880, 1, 1)
    assert birth_date_from_pesel("99023112345") is None


def test_pesel_hmac_and_encryption(monkeypatch):
    from app.core.config import settings

    digest = pesel_hmac("85010112345")
    assert pesel_matches("85010112345", digest)
    assert not pesel_matches("85010112346", digest)
    assert not pesel_matches("85010112345", None)

    monkeypatch.setattr(settings, "PESEL_ENC_KEY", "MDEyMzQ1Njc4OWFiY2RlZjAxMjM0NTY3ODlhYmNkZWY=")
    sealed = encrypt_pesel("85010112345")
    assert sealed != "85010112345"
    assert decrypt_pesel(sealed) == "85010112345"
    # Rows written before the key was configured stay readable
    assert decrypt_pesel("85010112345") == "85010112345"


def test_merge_frames_joins_touching_ranges():
    assert merge_frames([(600, 720), (480, 600), (800, 900), (850, 960)]) == [(480, 720), (800, 960)]


def test_free_slots_skips_busy_ranges_and_respects_window():
    day = date(2030, 1, 7)
    slots = free_slots(day, [(480, 600)], [(500, 520)], 20)
    assert [s["start"] for s in slots] == [
        "2030-01-07T08:00:00",
        "2030-01-07T08:40:00",
        "2030-01-07T09:00:00",
        "2030-01-07T09:20:00",
        "2030-01-07T09:40:00",
    ]
    assert slots[0]["end"] == "2030-01-07T08:20:00"

    windowed = free_slots(day, [(480, 600)], [], 60, window_start=510, window_end=600)
    assert [s["start"] for s in windowed] == ["2030-01-07T08:30:00"]


@pytest.mark.parametrize(
    "role,requested,allowed",
    [
        (UserRole.ADMIN.value, {"statistics": ["view"], "rooms": ["delete"]}, True),
        (UserRole.DOCTOR.value, {"availability": ["create", "update"]}, True),
        (UserRole.DOCTOR.value, {"rooms": ["list"]}, False),
        (UserRole.RECEPTIONIST.value, {"appointments": ["create"], "patients": ["read"]}, True),
        (UserRole.PATIENT.value, {"appointments": ["delete"]}, False),
        (UserRole.PATIENT.value, {"appointments": ["update"], "patients": ["read"]}, False),
        (UserRole.DOCTOR.value, {"appointments": ["update"], "patients": ["read"]}, False),
        ("unknown", {"appointments": ["read"]}, False),
    ],
)
def test_role_permissions(role, requested, allowed):
    assert has_permissions(role, requested) is allowed


def test_first_validation_message_prefers_custom_text():
    errors = [
        {"type": "value_error", "loc": ("body", "name"), "msg": "Value error, x", "ctx": {"error": ValueError("Imię jest za krótkie")}},
    ]
    assert first_validation_message(errors) == "Imię jest za krótkie"
    assert first_validation_message([{"type": "missing", "loc": ("body", "email"), "msg": "Field required"}]) == (
        "Brak wymaganego pola: email."
    )
    assert first_validation_message([{"type": "extra_forbidden", "loc": ("body", "role"), "msg": "Extra"}]) == (
        "Nieoczekiwane pole: role."
    )


def test_ensure_admin_creates_single_administrator(db_session):
    # Other tests leave admins behind; start from a database without any
    admins = db_session.query(User).filter(User.role == UserRole.ADMIN.value).all()
    for admin in admins:
        admin.role = UserRole.PATIENT.value
    db_session.commit()

    email = unique_email("bootstrap")
    password = BootstrapService.ensure_admin(db_session, email=email)
    assert password and len(password) == 32
    created = db_session.query(User).filter(User.email == email).first()
    assert created.role == UserRole.ADMIN.value
    assert created.name == "Administrator"

    assert BootstrapService.ensure_admin(db_session, email=unique_email("second")) is None


def test_seed_demo_is_idempotent(db_session, monkeypatch):
    from app.core.config import settings

    monkeypatch.setattr(settings, "DEMO_ADMIN_EMAIL", unique_email("demo-admin"))
    monkeypatch.setattr(settings, "DEMO_DOCTOR_EMAIL", unique_email("demo-doctor"))
    monkeypatch.setattr(settings, "DEMO_RECEPTIONIST_EMAIL", unique_email("demo-rec"))
    monkeypatch.setattr(settings, "DEMO_DOCTOR_LICENSE", f"DEMO-{uuid.uuid4().hex[:8]}")

    BootstrapService.seed_demo(db_session)
    BootstrapService.seed_demo(db_session)

    names = {s.name for s in db_session.query(Specialization).all()}
    assert {"Pediatria", "Kardiologia", "Dermatologia"} <= names
    assert db_session.query(Specialization).filter(Specialization.name == "Pediatria").count() == 1

    doctor_user = db_session.query(User).filter(User.email == settings.DEMO_DOCTOR_EMAIL).first()
    assert db_session.query(Doctor).filter(Doctor.user_id == doctor_user.id).count() == 1
    rec_user = db_session.query(User).filter(User.email == settings.DEMO_RECEPTIONIST_EMAIL).first()
    assert db_session.query(Receptionist).filter(Receptionist.user_id == rec_user.id).count() == 1


def test_daily_reminders_queue_todays_visits(db_session, sent_emails):
    patient = make_patient(db_session)
    make_appointment(db_session, patient, make_doctor(db_session), datetime.combine(today_local(), time(23, 50)))

    result = send_daily_reminders()
    assert result["queued"] >= 1
    assert any(e["to"] == patient.user.email for e in sent_emails)


def test_last_admin_cannot_be_demoted(db_session):
    others = db_session.query(User).filter(User.role == UserRole.ADMIN.value).all()
    for admin in others:
        admin.role = UserRole.PATIENT.value
    db_session.commit()
    survivor = make_admin(db_session)

    with pytest.raises(Forbidden) as exc:
        AdminService.delete_admin(db_session, None, "cli", survivor.id)
    assert exc.value.detail.startswith("Nie można usunąć ostatniego administratora")

    db_session.refresh(survivor)
    assert survivor.role == UserRole.ADMIN.value
