"""
Dashboard API endpoints.
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from cybernexus.analytics.dashboard import DashboardService
from cybernexus.api.dependencies import get_current_user, get_dashboard_service
from cybernexus.auth.models import User

router = APIRouter()


@router.get("/stats")
async def dashboard_stats(
    service: DashboardService = Depends(get_dashboard_service),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    """
    Portfolio overview and chart series.

    Returns 503 when any collection cannot be read; partial figures are
    never returned.
    """
    return await service.stats()


@router.get("/recent-activities")
async def recent_activities(
    service: DashboardService = Depends(get_dashboard_service),
    current_user: User = Depends(get_current_user),
) -> List[Dict[str, Any]]:
    return await service.recent_activities()


@router.get("/alerts")
async def alerts(
    service: DashboardService = Depends(get_dashboard_service),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return await service.alerts_report()
