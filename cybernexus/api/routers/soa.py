"""
Statement of Applicability API endpoints.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from cybernexus.api.dependencies import (
    ActivityLogger,
    get_activity_logger,
    get_current_user,
    get_soa_service,
    require_editor,
    require_manager,
)
from cybernexus.api.schemas import MessageResponse, Page
from cybernexus.auth.models import User
from cybernexus.security.models import AuditAction
from cybernexus.soa.models import (
    Applicability,
    Control,
    ControlCategory,
    ControlCreate,
    ControlUpdate,
    ImplementationStatus,
)
from cybernexus.soa.service import SoAService

router = APIRouter()


@router.get("", response_model=Page[Control])
async def list_controls(
    category: Optional[ControlCategory] = None,
    applicability: Optional[Applicability] = None,
    implementation_status: Optional[ImplementationStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    sort_by: str = "control_id",
    sort_order: str = Query("asc", pattern="^(asc|desc)$"),
    service: SoAService = Depends(get_soa_service),
    current_user: User = Depends(get_current_user),
) -> Page[Control]:
    result = await service.list_controls(
        category, applicability, implementation_status, page, limit, sort_by, sort_order
    )
    return Page[Control].from_result(result)


@router.get("/stats/summary")
async def soa_stats(
    service: SoAService = Depends(get_soa_service),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    """Compliance percentage over applicable controls plus grouped counts"""
    return await service.stats_summary()


@router.get("/{control_uuid}", response_model=Control)
async def get_control(
    control_uuid: UUID,
    service: SoAService = Depends(get_soa_service),
    current_user: User = Depends(get_current_user),
) -> Control:
    return await service.get_control(control_uuid)


@router.post("", response_model=Control, status_code=status.HTTP_201_CREATED)
async def create_control(
    data: ControlCreate,
    service: SoAService = Depends(get_soa_service),
    current_user: User = Depends(require_editor),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> Control:
    control = await service.create_control(data, current_user.id)
    await activity.record(AuditAction.CREATE, "SoA", control.id, status.HTTP_201_CREATED)
    return control


@router.put("/{control_uuid}", response_model=Control)
async def update_control(
    control_uuid: UUID,
    changes: ControlUpdate,
    service: SoAService = Depends(get_soa_service),
    current_user: User = Depends(require_editor),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> Control:
    control = await service.update_control(control_uuid, changes)
    await activity.record(AuditAction.UPDATE, "SoA", control.id)
    return control


@router.delete("/{control_uuid}", response_model=MessageResponse)
async def delete_control(
    control_uuid: UUID,
    service: SoAService = Depends(get_soa_service),
    current_user: User = Depends(require_manager),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> MessageResponse:
    await service.delete_control(control_uuid)
    await activity.record(AuditAction.DELETE, "SoA", control_uuid)
    return MessageResponse(message="SoA control deleted successfully")
