"""
User administration API endpoints (Admin only).
"""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from cybernexus.api.dependencies import (
    ActivityLogger,
    get_activity_logger,
    get_security_service,
    get_user_admin_service,
    require_admin,
)
from cybernexus.api.schemas import Page
from cybernexus.auth.models import User, UserPublic, UserRole
from cybernexus.auth.users import UserAdminService
from cybernexus.security.models import AuditAction, AuditLogEntry
from cybernexus.security.service import SecurityService

router = APIRouter()


class RoleChange(BaseModel):
    role: UserRole


class StatusChange(BaseModel):
    is_active: bool


@router.get("", response_model=Page[UserPublic])
async def list_users(
    role: Optional[UserRole] = None,
    is_active: Optional[bool] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    service: UserAdminService = Depends(get_user_admin_service),
    admin: User = Depends(require_admin),
) -> Page[UserPublic]:
    result = await service.list_users(role, is_active, page, limit, sort_by, sort_order)
    return Page[UserPublic].from_result(result, UserPublic.from_user)


@router.get("/stats/summary")
async def user_stats(
    service: UserAdminService = Depends(get_user_admin_service),
    admin: User = Depends(require_admin),
) -> Dict[str, Any]:
    return await service.stats_summary()


@router.get("/{user_id}", response_model=UserPublic)
async def get_user(
    user_id: UUID,
    service: UserAdminService = Depends(get_user_admin_service),
    admin: User = Depends(require_admin),
) -> UserPublic:
    return UserPublic.from_user(await service.get_user(user_id))


@router.put("/{user_id}/role", response_model=UserPublic)
async def change_role(
    user_id: UUID,
    change: RoleChange,
    service: UserAdminService = Depends(get_user_admin_service),
    admin: User = Depends(require_admin),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> UserPublic:
    user = await service.change_role(user_id, change.role, admin)
    await activity.record(AuditAction.UPDATE, "UserRole", user.id, role=change.role.value)
    return UserPublic.from_user(user)


@router.put("/{user_id}/status", response_model=UserPublic)
async def change_status(
    user_id: UUID,
    change: StatusChange,
    service: UserAdminService = Depends(get_user_admin_service),
    admin: User = Depends(require_admin),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> UserPublic:
    user = await service.change_status(user_id, change.is_active, admin)
    await activity.record(AuditAction.UPDATE, "UserStatus", user.id, is_active=change.is_active)
    return UserPublic.from_user(user)


@router.get("/{user_id}/activity", response_model=Page[AuditLogEntry])
async def user_activity(
    user_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    security: SecurityService = Depends(get_security_service),
    admin: User = Depends(require_admin),
) -> Page[AuditLogEntry]:
    result = await security.user_activity(user_id, page, limit)
    return Page[AuditLogEntry].from_result(result)
