"""
FastAPI dependencies: service lookup, authentication, role checks and
activity logging.
"""

from typing import Any, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cybernexus.analytics.dashboard import DashboardService
from cybernexus.api.middleware import client_ip
from cybernexus.audits.service import AuditService
from cybernexus.auth.models import User, UserRole
from cybernexus.auth.service import AuthService
from cybernexus.auth.users import UserAdminService
from cybernexus.core.errors import PermissionDeniedError
from cybernexus.core.logging import get_logger, user_id_context
from cybernexus.notifications.service import NotificationService
from cybernexus.policies.service import PolicyService
from cybernexus.risk.service import RiskService
from cybernexus.security.models import AuditAction, ClientInfo
from cybernexus.security.service import SecurityService
from cybernexus.soa.service import SoAService

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_client_info(request: Request) -> ClientInfo:
    return ClientInfo(
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
        method=request.method,
        url=str(request.url.path),
    )


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_security_service(request: Request) -> SecurityService:
    return request.app.state.security_service


def get_risk_service(request: Request) -> RiskService:
    return request.app.state.risk_service


def get_soa_service(request: Request) -> SoAService:
    return request.app.state.soa_service


def get_audit_service(request: Request) -> AuditService:
    return request.app.state.audit_service


def get_policy_service(request: Request) -> PolicyService:
    return request.app.state.policy_service


def get_user_admin_service(request: Request) -> UserAdminService:
    return request.app.state.user_admin_service


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


def get_dashboard_service(request: Request) -> DashboardService:
    return request.app.state.dashboard_service


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    client: ClientInfo = Depends(get_client_info),
    auth_service: AuthService = Depends(get_auth_service),
) -> User:
    """
    Get current user from the bearer token

    Rejections are written to the security log by the auth service.
    """
    token = credentials.credentials if credentials else None
    user = await auth_service.resolve_user(token, client)
    user_id_context.set(str(user.id))
    return user


class RoleChecker:
    """
    Dependency restricting a route to the given roles

    Usage: Depends(RoleChecker(UserRole.ADMIN, UserRole.MANAGER))
    """

    def __init__(self, *roles: UserRole):
        self.roles = roles

    async def __call__(self, user: User = Depends(get_current_user)) -> User:
        if not user.has_role(*self.roles):
            logger.warning("Insufficient permissions", user_id=str(user.id), role=user.role.value)
            raise PermissionDeniedError("Insufficient permissions")
        return user


require_admin = RoleChecker(UserRole.ADMIN)
require_manager = RoleChecker(UserRole.ADMIN, UserRole.MANAGER)
require_editor = RoleChecker(UserRole.ADMIN, UserRole.MANAGER, UserRole.AUDITOR)


class ActivityLogger:
    """Records what the current user did through the security service"""

    def __init__(self, security: SecurityService, user: User, client: ClientInfo):
        self.security = security
        self.user = user
        self.client = client

    async def record(self, action: AuditAction, resource: str, resource_id: Any = None,
                     status_code: int = 200, **details: Any) -> None:
        await self.security.log_activity(
            self.user,
            action,
            resource,
            resource_id=resource_id,
            client=self.client,
            details={"status_code": status_code, **details},
        )


async def get_activity_logger(
    user: User = Depends(get_current_user),
    client: ClientInfo = Depends(get_client_info),
    security: SecurityService = Depends(get_security_service),
) -> ActivityLogger:
    return ActivityLogger(security, user, client)
