"""
Admin API endpoints.

All endpoints require authentication via the X-Admin-Token header.

Submodules:
    - sessions: Stale-session reaping, abandonment and certificate attachment
    - analytics: Cohort analytics and live monitoring per assessment
"""
from fastapi import APIRouter

from . import analytics, sessions

# Create the main admin router
router = APIRouter()

router.include_router(
    sessions.router,
    tags=["Admin - Sessions"],
)

router.include_router(
    analytics.router,
    tags=["Admin - Analytics"],
)

__all__ = ["router"]
