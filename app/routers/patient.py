from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies.auth import require_permissions
from app.schemas.patient import AppointmentCancelRequest, PatientBookingRequest, PrescriptionFulfilRequest
from app.services.patient_service import PatientService

router = APIRouter(prefix="/patient", tags=["patient"])


@router.get("/activePrescriptions")
async def active_prescriptions(
    current_user=Depends(require_permissions({"prescriptions": ["list"]})),
    db: Session = Depends(get_db),
):
    return PatientService.active_prescriptions(db, current_user["sub"])


@router.post("/appointments", status_code=status.HTTP_201_CREATED)
async def book_appointment(
    payload: PatientBookingRequest,
    current_user=Depends(require_permissions({"appointments": ["create"]})),
    db: Session = Depends(get_db),
):
    """Book a consultation in one of the doctor's free slots."""
    return await PatientService.book(db, current_user["sub"], payload)


@router.get("/appointments/{appointment_id}")
async def get_appointment(
    appointment_id: int,
    current_user=Depends(require_permissions({"appointments": ["read"]})),
    db: Session = Depends(get_db),
):
    return PatientService.get_appointment(db, current_user["sub"], appointment_id)


@router.patch("/appointments/{appointment_id}")
async def cancel_appointment(
    appointment_id: int,
    payload: AppointmentCancelRequest,
    current_user=Depends(require_permissions({"appointments": ["update"]})),
    db: Session = Depends(get_db),
):
    return await PatientService.cancel_appointment(db, current_user["sub"], appointment_id)


@router.get("/dashboard")
async def dashboard(
    current_user=Depends(require_permissions({"appointments": ["list"], "prescriptions": ["list"]})),
    db: Session = Depends(get_db),
):
    return PatientService.dashboard(db, current_user["sub"])


@router.get("/me")
async def me(
    current_user=Depends(require_permissions({"appointments": ["list"]})),
    db: Session = Depends(get_db),
):
    """Profile with counters, next visits, active prescriptions and latest results."""
    return PatientService.overview(db, current_user["sub"])


@router.get("/prescriptions")
async def prescriptions(
    current_user=Depends(require_permissions({"prescriptions": ["list"]})),
    db: Session = Depends(get_db),
):
    return PatientService.prescriptions(db, current_user["sub"])


@router.patch("/prescriptions/{prescription_id}")
async def fulfil_prescription(
    prescription_id: int,
    payload: PrescriptionFulfilRequest,
    current_user=Depends(require_permissions({"prescriptions": ["update"]})),
    db: Session = Depends(get_db),
):
    return PatientService.fulfil_prescription(db, current_user["sub"], prescription_id)


@router.get("/recentResults")
async def recent_results(
    current_user=Depends(require_permissions({"testResults": ["list"]})),
    db: Session = Depends(get_db),
):
    return PatientService.recent_results(db, current_user["sub"])


@router.get("/recommendations")
async def recommendations(
    current_user=Depends(require_permissions({"recommendations": ["list"]})),
    db: Session = Depends(get_db),
):
    return PatientService.recommendations(db, current_user["sub"])


@router.get("/results")
async def results(
    current_user=Depends(require_permissions({"testResults": ["list"]})),
    db: Session = Depends(get_db),
):
    return PatientService.results(db, current_user["sub"])


@router.get("/specializations")
async def specializations(
    current_user=Depends(require_permissions({"specializations": ["list"]})),
    db: Session = Depends(get_db),
):
    return PatientService.specializations(db)


@router.get("/upcomingVisits")
async def upcoming_visits(
    current_user=Depends(require_permissions({"appointments": ["list"]})),
    db: Session = Depends(get_db),
):
    return PatientService.upcoming_visits(db, current_user["sub"])


@router.get("/visits")
async def visits(
    current_user=Depends(require_permissions({"appointments": ["list"]})),
    db: Session = Depends(get_db),
):
    return PatientService.visits(db, current_user["sub"])
