"""
Audit and finding API endpoints.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from cybernexus.api.dependencies import (
    ActivityLogger,
    get_activity_logger,
    get_audit_service,
    get_current_user,
    require_editor,
    require_manager,
)
from cybernexus.api.schemas import MessageResponse, Page
from cybernexus.audits.models import (
    Audit,
    AuditCreate,
    AuditStatus,
    AuditType,
    AuditUpdate,
    Finding,
    FindingCreate,
    FindingUpdate,
)
from cybernexus.audits.service import AuditService
from cybernexus.auth.models import User
from cybernexus.security.models import AuditAction

router = APIRouter()


@router.get("", response_model=Page[Audit])
async def list_audits(
    type: Optional[AuditType] = None,
    status_: Optional[AuditStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    service: AuditService = Depends(get_audit_service),
    current_user: User = Depends(get_current_user),
) -> Page[Audit]:
    result = await service.list_audits(type, status_, page, limit, sort_by, sort_order)
    return Page[Audit].from_result(result)


@router.get("/stats/summary")
async def audit_stats(
    service: AuditService = Depends(get_audit_service),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return await service.stats_summary()


@router.get("/{audit_uuid}", response_model=Audit)
async def get_audit(
    audit_uuid: UUID,
    service: AuditService = Depends(get_audit_service),
    current_user: User = Depends(get_current_user),
) -> Audit:
    return await service.get_audit(audit_uuid)


@router.post("", response_model=Audit, status_code=status.HTTP_201_CREATED)
async def create_audit(
    data: AuditCreate,
    service: AuditService = Depends(get_audit_service),
    current_user: User = Depends(require_editor),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> Audit:
    audit = await service.create_audit(data, current_user.id)
    await activity.record(AuditAction.CREATE, "Audit", audit.id, status.HTTP_201_CREATED)
    return audit


@router.put("/{audit_uuid}", response_model=Audit)
async def update_audit(
    audit_uuid: UUID,
    changes: AuditUpdate,
    service: AuditService = Depends(get_audit_service),
    current_user: User = Depends(require_editor),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> Audit:
    audit = await service.update_audit(audit_uuid, changes)
    await activity.record(AuditAction.UPDATE, "Audit", audit.id)
    return audit


@router.delete("/{audit_uuid}", response_model=MessageResponse)
async def delete_audit(
    audit_uuid: UUID,
    service: AuditService = Depends(get_audit_service),
    current_user: User = Depends(require_manager),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> MessageResponse:
    await service.delete_audit(audit_uuid)
    await activity.record(AuditAction.DELETE, "Audit", audit_uuid)
    return MessageResponse(message="Audit deleted successfully")


@router.post("/{audit_uuid}/findings", response_model=Finding, status_code=status.HTTP_201_CREATED)
async def add_finding(
    audit_uuid: UUID,
    data: FindingCreate,
    service: AuditService = Depends(get_audit_service),
    current_user: User = Depends(require_editor),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> Finding:
    """
    Add a finding

    Findings are numbered <audit id>-FNN in creation order; numbers are
    never reused.
    """
    finding = await service.add_finding(audit_uuid, data, current_user.id)
    await activity.record(AuditAction.CREATE, "Finding", finding.finding_id, status.HTTP_201_CREATED)
    return finding


@router.put("/{audit_uuid}/findings/{finding_id}", response_model=Finding)
async def update_finding(
    audit_uuid: UUID,
    finding_id: str,
    changes: FindingUpdate,
    service: AuditService = Depends(get_audit_service),
    current_user: User = Depends(require_editor),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> Finding:
    finding = await service.update_finding(audit_uuid, finding_id, changes, current_user.id)
    await activity.record(AuditAction.UPDATE, "Finding", finding.finding_id)
    return finding


@router.delete("/{audit_uuid}/findings/{finding_id}", response_model=MessageResponse)
async def delete_finding(
    audit_uuid: UUID,
    finding_id: str,
    service: AuditService = Depends(get_audit_service),
    current_user: User = Depends(require_manager),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> MessageResponse:
    finding = await service.delete_finding(audit_uuid, finding_id)
    await activity.record(AuditAction.DELETE, "Finding", finding.finding_id)
    return MessageResponse(message="Finding deleted successfully")
