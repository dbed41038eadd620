"""API v1 router configuration."""

from fastapi import APIRouter

from dental_clinic.api.v1.endpoints import (
    appointments,
    auth,
    health,
    notifications,
    patients,
    reports,
)

api_router = APIRouter()

api_router.include_router(health.router, tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["Appointments"])
api_router.include_router(reports.router)
api_router.include_router(patients.router)
api_router.include_router(notifications.router)
