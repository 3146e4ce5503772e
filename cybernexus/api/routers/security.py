"""
Security API endpoints (Admin only).
"""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from cybernexus.api.dependencies import get_client_info, get_security_service, require_admin
from cybernexus.api.schemas import MessageResponse, Page
from cybernexus.auth.models import User
from cybernexus.core.timeutils import UTCDateTime
from cybernexus.security.models import AuditAction, AuditLogEntry, ClientInfo
from cybernexus.security.service import SecurityService

router = APIRouter()


@router.get("/dashboard")
async def security_dashboard(
    request: Request,
    admin: User = Depends(require_admin),
) -> Dict[str, Any]:
    """
    Security events and failed logins of the last 24 hours, active and
    locked accounts, and the most active users of the last 7 days.
    """
    return await request.app.state.alert_evaluator.security_dashboard()


@router.get("/logs", response_model=Page[AuditLogEntry])
async def security_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    action: Optional[AuditAction] = None,
    resource: Optional[str] = None,
    user_id: Optional[UUID] = None,
    ip_address: Optional[str] = None,
    start_date: Optional[UTCDateTime] = None,
    end_date: Optional[UTCDateTime] = None,
    security: SecurityService = Depends(get_security_service),
    admin: User = Depends(require_admin),
) -> Page[AuditLogEntry]:
    result = await security.list_logs(page, limit, action, resource, user_id, ip_address, start_date, end_date)
    return Page[AuditLogEntry].from_result(result)


@router.post("/unlock-account/{user_id}", response_model=MessageResponse)
async def unlock_account(
    user_id: UUID,
    client: ClientInfo = Depends(get_client_info),
    security: SecurityService = Depends(get_security_service),
    admin: User = Depends(require_admin),
) -> MessageResponse:
    await security.unlock_account(user_id, admin, client)
    return MessageResponse(message="Account unlocked successfully")


@router.get("/health")
async def security_health(
    security: SecurityService = Depends(get_security_service),
    admin: User = Depends(require_admin),
) -> Dict[str, Any]:
    return await security.health()
