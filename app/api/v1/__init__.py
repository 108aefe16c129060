from fastapi import APIRouter

from app.api.v1.routers import (
    auth,
    dashboard_fields,
    files,
    health,
    reports,
    transactions,
    users,
)

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(transactions.router)
api_router.include_router(files.router)
api_router.include_router(reports.router)
api_router.include_router(dashboard_fields.router)

__all__ = ["api_router"]
