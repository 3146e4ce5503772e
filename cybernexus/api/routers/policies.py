"""
Policy API endpoints.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from cybernexus.api.dependencies import (
    ActivityLogger,
    get_activity_logger,
    get_current_user,
    get_policy_service,
    require_manager,
)
from cybernexus.api.schemas import MessageResponse, Page
from cybernexus.auth.models import User
from cybernexus.policies.models import Policy, PolicyCategory, PolicyCreate, PolicyStatus, PolicyUpdate
from cybernexus.policies.service import PolicyService
from cybernexus.security.models import AuditAction

router = APIRouter()


@router.get("", response_model=Page[Policy])
async def list_policies(
    category: Optional[PolicyCategory] = None,
    status_: Optional[PolicyStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    service: PolicyService = Depends(get_policy_service),
    current_user: User = Depends(get_current_user),
) -> Page[Policy]:
    result = await service.list_policies(category, status_, page, limit, sort_by, sort_order)
    return Page[Policy].from_result(result)


@router.get("/stats/summary")
async def policy_stats(
    service: PolicyService = Depends(get_policy_service),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return await service.stats_summary()


@router.get("/{policy_uuid}", response_model=Policy)
async def get_policy(
    policy_uuid: UUID,
    service: PolicyService = Depends(get_policy_service),
    current_user: User = Depends(get_current_user),
) -> Policy:
    return await service.get_policy(policy_uuid)


@router.post("", response_model=Policy, status_code=status.HTTP_201_CREATED)
async def create_policy(
    data: PolicyCreate,
    service: PolicyService = Depends(get_policy_service),
    current_user: User = Depends(require_manager),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> Policy:
    policy = await service.create_policy(data, current_user.id)
    await activity.record(AuditAction.CREATE, "Policy", policy.id, status.HTTP_201_CREATED)
    return policy


@router.put("/{policy_uuid}", response_model=Policy)
async def update_policy(
    policy_uuid: UUID,
    changes: PolicyUpdate,
    service: PolicyService = Depends(get_policy_service),
    current_user: User = Depends(require_manager),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> Policy:
    policy = await service.update_policy(policy_uuid, changes)
    await activity.record(AuditAction.UPDATE, "Policy", policy.id)
    return policy


@router.delete("/{policy_uuid}", response_model=MessageResponse)
async def delete_policy(
    policy_uuid: UUID,
    service: PolicyService = Depends(get_policy_service),
    current_user: User = Depends(require_manager),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> MessageResponse:
    await service.delete_policy(policy_uuid)
    await activity.record(AuditAction.DELETE, "Policy", policy_uuid)
    return MessageResponse(message="Policy deleted successfully")
