from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies.auth import require_permissions
from app.schemas.patient import AppointmentCancelRequest
from app.schemas.receptionist import AssignRoomRequest, CheckinRequest, ReceptionistBookingRequest
from app.services.receptionist_service import ReceptionistService

router = APIRouter(prefix="/receptionist", tags=["receptionist"])


@router.patch("/appointments/{appointment_id}")
async def cancel_appointment(
    appointment_id: int,
    payload: AppointmentCancelRequest,
    request: Request,
    current_user=Depends(require_permissions({"appointments": ["update"], "patients": ["read"]})),
    db: Session = Depends(get_db),
):
    """Cancel a scheduled or checked-in visit and email the patient."""
    return await ReceptionistService.cancel_appointment(db, request, current_user["sub"], appointment_id)


@router.post("/appointments", status_code=status.HTTP_201_CREATED)
async def book_appointment(
    payload: ReceptionistBookingRequest,
    request: Request,
    current_user=Depends(require_permissions({"appointments": ["create"], "patients": ["read"]})),
    db: Session = Depends(get_db),
):
    return await ReceptionistService.book(db, request, current_user["sub"], payload)


@router.get("/assignRoom")
async def assign_room_overview(
    day: Optional[str] = Query(None),
    current_user=Depends(require_permissions({"availability": ["list"], "rooms": ["list"], "patients": ["read"]})),
    db: Session = Depends(get_db),
):
    return ReceptionistService.assign_room_overview(db, day)


@router.post("/assignRoom")
async def assign_room(
    payload: AssignRoomRequest,
    request: Request,
    current_user=Depends(require_permissions({"availability": ["update"], "rooms": ["read"], "patients": ["read"]})),
    db: Session = Depends(get_db),
):
    return await ReceptionistService.assign_room(db, request, current_user["sub"], payload)


@router.get("/availableSlots")
async def available_slots(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    specializationId: Optional[int] = Query(None),
    doctorId: Optional[str] = Query(None),
    startTime: Optional[str] = Query(None),
    endTime: Optional[str] = Query(None),
    type: str = Query("consultation"),
    current_user=Depends(require_permissions({"appointments": ["list"], "doctors": ["list"], "patients": ["read"]})),
    db: Session = Depends(get_db),
):
    """Free slots per doctor, cut to the visit length of the requested type."""
    return await ReceptionistService.available_slots(
        db,
        start_date=startDate,
        end_date=endDate,
        specialization_id=specializationId,
        doctor_id=doctorId,
        start_time=startTime,
        end_time=endTime,
        kind=type,
    )


@router.get("/patients/{patient_id}/appointments")
async def patient_appointments(
    patient_id: str,
    current_user=Depends(require_permissions({"appointments": ["list"], "patients": ["read"]})),
    db: Session = Depends(get_db),
):
    return ReceptionistService.patient_appointments(db, patient_id)


@router.get("/stats/visitsToday")
async def visits_today_stats(
    current_user=Depends(require_permissions({"appointments": ["list"], "patients": ["read"]})),
    db: Session = Depends(get_db),
):
    return ReceptionistService.visits_today_stats(db)


@router.get("/users")
async def users(
    current_user=Depends(require_permissions({"users": ["list"], "patients": ["list"]})),
    db: Session = Depends(get_db),
):
    return ReceptionistService.users(db)


@router.post("/visits/checkin")
async def checkin(
    payload: CheckinRequest,
    request: Request,
    current_user=Depends(require_permissions({"appointments": ["update"], "patients": ["read"]})),
    db: Session = Depends(get_db),
):
    return ReceptionistService.checkin(db, request, current_user["sub"], payload)


@router.get("/visits/today")
async def visits_today(
    current_user=Depends(require_permissions({"appointments": ["list"], "patients": ["read"]})),
    db: Session = Depends(get_db),
):
    return ReceptionistService.visits_today(db)
