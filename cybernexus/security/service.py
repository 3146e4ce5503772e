"""
Security Service

Audit trail writes (activity and security events), log queries, account
unlocking and the health report. Audit trail writes never fail the
request that triggered them: errors are logged and swallowed here only.
"""

import time
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, Optional
from uuid import UUID

from cybernexus.auth.models import User
from cybernexus.core.architecture.base_repository import (
    BaseRepository,
    PageRequest,
    PageResult,
    QueryFilter,
    SortDirection,
    SortOrder,
)
from cybernexus.core.errors import GRCError, NotFoundError
from cybernexus.core.logging import get_logger
from cybernexus.core.timeutils import utcnow
from cybernexus.security.models import AuditAction, AuditLogEntry, ClientInfo, SecurityEvent

logger = get_logger(__name__)

_started_at = time.monotonic()


class SecurityService:
    """Audit log and account security operations"""

    def __init__(
        self,
        audit_logs: BaseRepository[AuditLogEntry],
        users: BaseRepository[User],
        store_probe: Optional[Callable[[], Awaitable[bool]]] = None,
    ):
        self.audit_logs = audit_logs
        self.users = users
        self.store_probe = store_probe

    async def _write(self, entry: AuditLogEntry) -> Optional[AuditLogEntry]:
        try:
            return await self.audit_logs.add(entry)
        except (GRCError, OSError) as e:
            logger.error("Audit log write failed", action=entry.action.value, resource=entry.resource, error=str(e))
            return None

    async def log_activity(
        self,
        user: User,
        action: AuditAction,
        resource: str,
        resource_id: Any = None,
        client: Optional[ClientInfo] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLogEntry]:
        """Record a CREATE/UPDATE/DELETE style action performed by `user`"""
        client = client or ClientInfo()
        payload = {"method": client.method, "url": client.url}
        payload.update(details or {})
        return await self._write(AuditLogEntry(
            user_id=user.id,
            action=action,
            resource=resource,
            resource_id=str(resource_id) if resource_id is not None else None,
            details=payload,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        ))

    async def log_security_event(
        self,
        event: SecurityEvent,
        message: str,
        client: Optional[ClientInfo] = None,
        user_id: Optional[UUID] = None,
        status_code: Optional[int] = None,
    ) -> Optional[AuditLogEntry]:
        client = client or ClientInfo()
        logger.warning("Security event", security_event=event.value, message=message, ip=client.ip_address)
        details: Dict[str, Any] = {
            "event": event.value,
            "details": message,
            "method": client.method,
            "url": client.url,
        }
        if status_code is not None:
            details["status_code"] = status_code
        return await self._write(AuditLogEntry(
            user_id=user_id,
            action=AuditAction.SECURITY_EVENT,
            resource=event.value,
            details=details,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        ))

    async def list_logs(
        self,
        page: int = 1,
        limit: int = 50,
        action: Optional[AuditAction] = None,
        resource: Optional[str] = None,
        user_id: Optional[UUID] = None,
        ip_address: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> PageResult[AuditLogEntry]:
        filters = []
        if action:
            filters.append(QueryFilter("action", "eq", action))
        if resource:
            filters.append(QueryFilter("resource", "eq", resource))
        if user_id:
            filters.append(QueryFilter("user_id", "eq", user_id))
        if ip_address:
            filters.append(QueryFilter("ip_address", "eq", ip_address))
        if start_date:
            filters.append(QueryFilter("created_at", "gte", start_date))
        if end_date:
            filters.append(QueryFilter("created_at", "lte", end_date))

        return await self.audit_logs.find_by_criteria(
            filters,
            PageRequest(page=page, size=limit, sort=[SortOrder("created_at", SortDirection.DESC)]),
        )

    async def user_activity(self, user_id: UUID, page: int = 1, limit: int = 20) -> PageResult[AuditLogEntry]:
        return await self.list_logs(page=page, limit=limit, user_id=user_id)

    async def unlock_account(self, user_id: UUID, admin: User, client: Optional[ClientInfo] = None) -> User:
        """Reset the failed login counter of a locked account"""
        user = await self.users.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        user = user.model_copy(update={"failed_login_attempts": 0})
        await self.users.update(user)

        await self.log_activity(
            admin,
            AuditAction.ADMIN_ACTION,
            "ACCOUNT_UNLOCK",
            resource_id=user_id,
            client=client,
            details={"target_user": user.email, "admin_user": admin.email},
        )
        logger.info("Account unlocked", user_id=str(user_id), admin_id=str(admin.id))
        return user

    async def health(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Store status and share of audit entries in the last 24 hours that recorded an error status"""
        now = now or utcnow()
        database = "connected"
        if self.store_probe is not None and not await self.store_probe():
            database = "disconnected"

        entries = await self.audit_logs.find_by_criteria([QueryFilter("created_at", "gte", now - timedelta(hours=24))])
        errors = sum(1 for e in entries if (e.details.get("status_code") or 0) >= 400)
        error_rate = round(errors / len(entries) * 100, 2) if entries else 0

        return {
            "status": "healthy" if database == "connected" else "degraded",
            "database": database,
            "error_rate": error_rate,
            "uptime": round(time.monotonic() - _started_at),
            "timestamp": now.isoformat(),
        }
