"""
API v1 Router

All endpoints require a bearer access token except ``/auth/*``.
"""

from fastapi import APIRouter
from . import activities, attachments, auth, columns, metrics, projects, tasks, users

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(columns.router, prefix="/columns", tags=["Columns"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])
router.include_router(attachments.router, prefix="/attachments", tags=["Attachments"])
router.include_router(activities.router, prefix="/activities", tags=["Activity"])
router.include_router(metrics.router, prefix="/metrics", tags=["Metrics"])
router.include_router(users.router, prefix="/users", tags=["Users"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/auth",
            "/projects",
            "/columns",
            "/tasks",
            "/attachments",
            "/activities",
            "/metrics",
            "/users",
        ],
    }
