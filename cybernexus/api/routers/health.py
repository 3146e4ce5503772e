"""
Liveness endpoint.
"""

from typing import Any, Dict

from fastapi import APIRouter

from cybernexus.core.config import settings
from cybernexus.core.timeutils import utcnow

router = APIRouter()


@router.get("/health")
async def health() -> Dict[str, Any]:
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": utcnow().isoformat(),
    }
