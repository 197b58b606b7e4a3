from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies.auth import require_permissions
from app.schemas.doctor import CompleteVisitRequest, DispositionsRequest
from app.services.doctor_service import DoctorService

router = APIRouter(prefix="/doctor", tags=["doctor"])


@router.get("/appointments/{appointment_id}")
async def get_appointment(
    appointment_id: int,
    current_user=Depends(require_permissions({"appointments": ["read"]})),
    db: Session = Depends(get_db),
):
    return DoctorService.get_appointment(db, current_user["sub"], appointment_id)


@router.patch("/appointments/{appointment_id}")
async def complete_visit(
    appointment_id: int,
    payload: CompleteVisitRequest,
    request: Request,
    current_user=Depends(require_permissions({
        "appointments": ["update"],
        "prescriptions": ["create"],
        "recommendations": ["create"],
        "testResults": ["create"],
    })),
    db: Session = Depends(get_db),
):
    """Close a checked-in visit with its recommendation, prescription and exam codes."""
    return DoctorService.complete_visit(db, request, current_user["sub"], appointment_id, payload)


@router.get("/dispositions")
async def list_dispositions(
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    current_user=Depends(require_permissions({"availability": ["list"]})),
    db: Session = Depends(get_db),
):
    return DoctorService.dispositions(db, current_user["sub"], startDate, endDate)


@router.post("/dispositions")
async def save_dispositions(
    payload: DispositionsRequest,
    request: Request,
    current_user=Depends(require_permissions({"availability": ["create", "update"]})),
    db: Session = Depends(get_db),
):
    return await DoctorService.save_dispositions(db, request, current_user["sub"], payload)


@router.get("/dispositions/today")
async def today_dispositions(
    current_user=Depends(require_permissions({"availability": ["read"]})),
    db: Session = Depends(get_db),
):
    return DoctorService.today(db, current_user["sub"])


@router.get("/patients")
async def patients(
    current_user=Depends(require_permissions({"users": ["list"]})),
    db: Session = Depends(get_db),
):
    return DoctorService.patients(db, current_user["sub"])


@router.get("/stats/handledVisits")
async def handled_visits(
    current_user=Depends(require_permissions({"appointments": ["list"]})),
    db: Session = Depends(get_db),
):
    return DoctorService.handled_visits(db, current_user["sub"])


@router.get("/stats/visitTypes")
async def visit_types(
    current_user=Depends(require_permissions({"appointments": ["list"]})),
    db: Session = Depends(get_db),
):
    return DoctorService.visit_types(db, current_user["sub"])


@router.get("/visits")
async def visits(
    date: Optional[str] = Query(None),
    current_user=Depends(require_permissions({"appointments": ["list"]})),
    db: Session = Depends(get_db),
):
    return DoctorService.visits(db, current_user["sub"], date)


@router.get("/visits/today")
async def visits_today(
    current_user=Depends(require_permissions({"appointments": ["list"]})),
    db: Session = Depends(get_db),
):
    return DoctorService.visits_today(db, current_user["sub"])
