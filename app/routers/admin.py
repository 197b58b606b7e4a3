"""Admin endpoints."""
from typing import Optional

from fastapi import APIRouter, Body, Depends, Request, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.dependencies.auth import require_permissions
from app.schemas.admin import (
    AdminUpdateRequest,
    DoctorCreateRequest,
    DoctorUpdateRequest,
    ReceptionistUpdateRequest,
    RoomCreateRequest,
    RoomUpdateRequest,
    SpecializationCreateRequest,
    SpecializationUpdateRequest,
    StaffCreateRequest,
)
from app.services.admin_service import AdminService
from app.utils.errors import BadRequest

router = APIRouter(prefix="/admin", tags=["admin"])


def _positive_id(value: str, message: str) -> int:
    try:
        parsed = int(value)
    except ValueError:
        raise BadRequest(message)
    if parsed <= 0:
        raise BadRequest(message)
    return parsed


def _room_id(value: str) -> int:
    return _positive_id(value, "Identyfikator gabinetu jest wymagany.")


def _specialization_id(value: str) -> int:
    return _positive_id(value, "Identyfikator specjalizacji jest wymagany.")


# Administrators

@router.get("/admins")
async def list_admins(
    current_user=Depends(require_permissions({"users": ["list"]})),
    db: Session = Depends(get_db),
):
    return AdminService.list_admins(db)


@router.post("/admins", status_code=status.HTTP_201_CREATED)
async def create_admin(
    payload: StaffCreateRequest,
    request: Request,
    current_user=Depends(require_permissions({"users": ["create"]})),
    db: Session = Depends(get_db),
):
    """Create an admin account and mail a link to set the password."""
    return AdminService.create_admin(db, request, current_user["sub"], payload)


@router.patch("/admins/{user_id}")
async def update_admin(
    user_id: str,
    payload: AdminUpdateRequest,
    request: Request,
    current_user=Depends(require_permissions({"users": ["update"]})),
    db: Session = Depends(get_db),
):
    return AdminService.update_admin(db, request, current_user["sub"], user_id, payload)


@router.delete("/admins/{user_id}")
async def delete_admin(
    user_id: str,
    request: Request,
    current_user=Depends(require_permissions({"users": ["delete"]})),
    db: Session = Depends(get_db),
):
    return AdminService.delete_admin(db, request, current_user["sub"], user_id)


# Doctors

@router.get("/doctors")
async def list_doctors(
    current_user=Depends(require_permissions({"doctors": ["list"]})),
    db: Session = Depends(get_db),
):
    return AdminService.list_doctors(db)


@router.post("/doctors", status_code=status.HTTP_201_CREATED)
async def create_doctor(
    payload: DoctorCreateRequest,
    request: Request,
    current_user=Depends(require_permissions({"doctors": ["create"]})),
    db: Session = Depends(get_db),
):
    return AdminService.create_doctor(db, request, current_user["sub"], payload)


@router.patch("/doctors/{user_id}")
async def update_doctor(
    user_id: str,
    payload: DoctorUpdateRequest,
    request: Request,
    current_user=Depends(require_permissions({"doctors": ["update"]})),
    db: Session = Depends(get_db),
):
    return await AdminService.update_doctor(db, request, current_user["sub"], user_id, payload)


@router.delete("/doctors/{user_id}")
async def delete_doctor(
    user_id: str,
    request: Request,
    current_user=Depends(require_permissions({"doctors": ["delete"]})),
    db: Session = Depends(get_db),
):
    """Disable the doctor, cancel their active visits and notify the patients."""
    return await AdminService.delete_doctor(db, request, current_user["sub"], user_id)


# Receptionists

@router.get("/receptionists")
async def list_receptionists(
    current_user=Depends(require_permissions({"users": ["list"]})),
    db: Session = Depends(get_db),
):
    return AdminService.list_receptionists(db)


@router.get("/receptionists/{user_id}")
async def get_receptionist(
    user_id: str,
    current_user=Depends(require_permissions({"users": ["read"]})),
    db: Session = Depends(get_db),
):
    return AdminService.get_receptionist(db, user_id)


@router.post("/receptionists", status_code=status.HTTP_201_CREATED)
async def create_receptionist(
    payload: StaffCreateRequest,
    request: Request,
    current_user=Depends(require_permissions({"users": ["create"]})),
    db: Session = Depends(get_db),
):
    return AdminService.create_receptionist(db, request, current_user["sub"], payload)


@router.patch("/receptionists/{user_id}")
async def update_receptionist(
    user_id: str,
    payload: Optional[ReceptionistUpdateRequest] = Body(None),
    current_user=Depends(require_permissions({"users": ["update"]})),
    db: Session = Depends(get_db),
):
    return AdminService.update_receptionist(db, user_id)


@router.delete("/receptionists/{user_id}")
async def delete_receptionist(
    user_id: str,
    request: Request,
    current_user=Depends(require_permissions({"users": ["delete"]})),
    db: Session = Depends(get_db),
):
    return AdminService.delete_receptionist(db, request, current_user["sub"], user_id)


# Rooms

@router.get("/rooms")
async def list_rooms(
    current_user=Depends(require_permissions({"rooms": ["list"]})),
    db: Session = Depends(get_db),
):
    return AdminService.list_rooms(db)


@router.get("/rooms/{room_id}")
async def get_room(
    room_id: str,
    current_user=Depends(require_permissions({"rooms": ["read"]})),
    db: Session = Depends(get_db),
):
    return AdminService.get_room(db, _room_id(room_id))


@router.post("/rooms", status_code=status.HTTP_201_CREATED)
async def create_room(
    payload: RoomCreateRequest,
    request: Request,
    current_user=Depends(require_permissions({"rooms": ["create"]})),
    db: Session = Depends(get_db),
):
    return AdminService.create_room(db, request, current_user["sub"], payload)


@router.patch("/rooms/{room_id}")
async def update_room(
    room_id: str,
    payload: RoomUpdateRequest,
    request: Request,
    current_user=Depends(require_permissions({"rooms": ["update"]})),
    db: Session = Depends(get_db),
):
    return AdminService.update_room(db, request, current_user["sub"], _room_id(room_id), payload)


@router.delete("/rooms/{room_id}")
async def delete_room(
    room_id: str,
    request: Request,
    current_user=Depends(require_permissions({"rooms": ["delete"]})),
    db: Session = Depends(get_db),
):
    return AdminService.delete_room(db, request, current_user["sub"], _room_id(room_id))


# Specializations

@router.get("/specializations")
async def list_specializations(
    current_user=Depends(require_permissions({"specializations": ["list"]})),
    db: Session = Depends(get_db),
):
    return AdminService.list_specializations(db)


@router.post("/specializations", status_code=status.HTTP_201_CREATED)
async def create_specialization(
    payload: SpecializationCreateRequest,
    request: Request,
    current_user=Depends(require_permissions({"specializations": ["create"]})),
    db: Session = Depends(get_db),
):
    return await AdminService.create_specialization(db, request, current_user["sub"], payload)


@router.patch("/specializations/{specialization_id}")
async def update_specialization(
    specialization_id: str,
    payload: SpecializationUpdateRequest,
    request: Request,
    current_user=Depends(require_permissions({"specializations": ["update"]})),
    db: Session = Depends(get_db),
):
    return await AdminService.update_specialization(
        db, request, current_user["sub"], _specialization_id(specialization_id), payload
    )


@router.delete("/specializations/{specialization_id}")
async def delete_specialization(
    specialization_id: str,
    request: Request,
    current_user=Depends(require_permissions({"specializations": ["delete"]})),
    db: Session = Depends(get_db),
):
    return await AdminService.delete_specialization(
        db, request, current_user["sub"], _specialization_id(specialization_id)
    )


# Read-only views

@router.get("/appointments")
async def list_appointments(
    current_user=Depends(require_permissions({"appointments": ["list"]})),
    db: Session = Depends(get_db),
):
    return AdminService.list_appointments(db)


@router.get("/patients")
async def list_patients(
    current_user=Depends(require_permissions({"patients": ["list"]})),
    db: Session = Depends(get_db),
):
    return AdminService.list_patients(db)


@router.get("/logs")
async def list_logs(
    current_user=Depends(require_permissions({"logs": ["list"]})),
    db: Session = Depends(get_db),
):
    return AdminService.list_logs(db)


@router.get("/queues")
async def queues(current_user=Depends(require_permissions({"queues": ["list"]}))):
    """Email queue counters and the most recent jobs."""
    return AdminService.queues()


@router.get("/statistics")
async def statistics(
    current_user=Depends(require_permissions({"statistics": ["view"]})),
    db: Session = Depends(get_db),
):
    return AdminService.statistics(db)
