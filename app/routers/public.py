from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.services.public_service import PublicService

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/landing")
async def landing(db: Session = Depends(get_db)):
    return await PublicService.landing(db)
