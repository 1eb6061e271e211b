"""
Health check and status endpoints.
"""
from fastapi import APIRouter, Depends
from app.core.clock import Clock, get_clock
from app.core import settings

router = APIRouter()


@router.get("/health")
async def health_check(clock: Clock = Depends(get_clock)):
    """
    Health check endpoint.
    Returns basic health status of the API.
    """
    return {
        "status": "healthy",
        "timestamp": clock.now().isoformat(),
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@router.get("/ping")
async def ping():
    """
    Simple ping endpoint for basic connectivity testing.
    """
    return {"message": "pong"}
