
from fastapi import FastAPI
from fastapi.exceptions import HTTPException as FastAPIHTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.cache.cache_service import redis_cache
from app.core.config import settings
from app.core.database import SessionLocal
from app.core.logger import setup_logging
from app.middleware.cors import configure_cors
from app.middleware.logging import RequestLoggerMiddleware
from app.middleware.auth import JWTMiddleware
from app.middleware import error_handler
from app.services.bootstrap_service import BootstrapService

# Routers
from app.routers import admin as admin_router
from app.routers import auth as auth_router
from app.routers import doctor as doctor_router
from app.routers import health as health_router
from app.routers import patient as patient_router
from app.routers import public as public_router
from app.routers import receptionist as receptionist_router



def run_bootstrap() -> None:
    db = SessionLocal()
    try:
        BootstrapService.run(db)
    finally:
        db.close()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    setup_logging()
    description = (
        "Clinic API.\n\n"
        "Appointments, availability, prescriptions and staff management for patients, "
        "doctors, receptionists and administrators."
    )

    openapi_tags = [
        {"name": "authentication", "description": "Rejestracja, logowanie, sesje i resetowanie hasła."},
        {"name": "admin", "description": "Zarządzanie kontami, gabinetami, specjalizacjami i kolejkami."},
        {"name": "doctor", "description": "Wizyty, dyspozycje i statystyki lekarza."},
        {"name": "patient", "description": "Wizyty, recepty, wyniki i zalecenia pacjenta."},
        {"name": "receptionist", "description": "Rejestracja wizyt, meldowanie i przydział gabinetów."},
        {"name": "public", "description": "Publiczne dane strony głównej."},
        {"name": "health", "description": "Health checks and service status endpoints."},
    ]

    app = FastAPI(
        title="Clinic API",
        version="0.1.0",
        description=description,
        openapi_tags=openapi_tags,
    )

    # Middleware
    configure_cors(app)
    app.add_middleware(RequestLoggerMiddleware)
    app.add_middleware(JWTMiddleware)

    # Exception handlers
    app.add_exception_handler(FastAPIHTTPException, error_handler.http_exception_handler)
    app.add_exception_handler(RequestValidationError, error_handler.validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, error_handler.sqlalchemy_exception_handler)

    # Include routers
    app.include_router(health_router.router)
    app.include_router(auth_router.router, prefix="/api")
    app.include_router(admin_router.router, prefix="/api")
    app.include_router(doctor_router.router, prefix="/api")
    app.include_router(patient_router.router, prefix="/api")
    app.include_router(receptionist_router.router, prefix="/api")
    app.include_router(public_router.router, prefix="/api")

    @app.on_event("startup")
    async def startup():
        if settings.BOOTSTRAP_ON_STARTUP:
            run_bootstrap()

    @app.on_event("shutdown")
    async def shutdown():
        await redis_cache.close()

    return app


app = create_app()
