"""
Risk register API endpoints.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from cybernexus.api.dependencies import (
    ActivityLogger,
    get_activity_logger,
    get_current_user,
    get_risk_service,
    require_editor,
    require_manager,
)
from cybernexus.api.schemas import MessageResponse, Page
from cybernexus.auth.models import User
from cybernexus.risk.models import Risk, RiskCategory, RiskCreate, RiskStatus, RiskUpdate
from cybernexus.risk.scoring import RiskLevel
from cybernexus.risk.service import RiskService
from cybernexus.security.models import AuditAction

router = APIRouter()


@router.get("", response_model=Page[Risk])
async def list_risks(
    category: Optional[RiskCategory] = None,
    status_: Optional[RiskStatus] = Query(None, alias="status"),
    risk_level: Optional[RiskLevel] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    service: RiskService = Depends(get_risk_service),
    current_user: User = Depends(get_current_user),
) -> Page[Risk]:
    result = await service.list_risks(category, status_, risk_level, page, limit, sort_by, sort_order)
    return Page[Risk].from_result(result)


@router.get("/stats/summary")
async def risk_stats(
    service: RiskService = Depends(get_risk_service),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    """Totals and per category / level / status counts"""
    return await service.stats_summary()


@router.get("/{risk_id}", response_model=Risk)
async def get_risk(
    risk_id: UUID,
    service: RiskService = Depends(get_risk_service),
    current_user: User = Depends(get_current_user),
) -> Risk:
    return await service.get_risk(risk_id)


@router.post("", response_model=Risk, status_code=status.HTTP_201_CREATED)
async def create_risk(
    data: RiskCreate,
    service: RiskService = Depends(get_risk_service),
    current_user: User = Depends(require_editor),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> Risk:
    """
    Create a risk

    The identifier, score and level are assigned by the server.
    """
    risk = await service.create_risk(data, current_user.id)
    await activity.record(AuditAction.CREATE, "Risk", risk.id, status.HTTP_201_CREATED)
    return risk


@router.put("/{risk_id}", response_model=Risk)
async def update_risk(
    risk_id: UUID,
    changes: RiskUpdate,
    service: RiskService = Depends(get_risk_service),
    current_user: User = Depends(require_editor),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> Risk:
    risk = await service.update_risk(risk_id, changes, current_user.id)
    await activity.record(AuditAction.UPDATE, "Risk", risk.id)
    return risk


@router.delete("/{risk_id}", response_model=MessageResponse)
async def delete_risk(
    risk_id: UUID,
    service: RiskService = Depends(get_risk_service),
    current_user: User = Depends(require_manager),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> MessageResponse:
    await service.delete_risk(risk_id)
    await activity.record(AuditAction.DELETE, "Risk", risk_id)
    return MessageResponse(message="Risk deleted successfully")
