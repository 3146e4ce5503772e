"""
Security audit log models.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from cybernexus.core.timeutils import UTCDateTime, utcnow


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    SECURITY_EVENT = "SECURITY_EVENT"
    ADMIN_ACTION = "ADMIN_ACTION"


class SecurityEvent(str, Enum):
    """Stored as the `resource` of SECURITY_EVENT entries"""
    AUTH_FAILED = "AUTH_FAILED"
    AUTH_ERROR = "AUTH_ERROR"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_INVALID = "TOKEN_INVALID"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    LOGIN_SUCCESS = "LOGIN_SUCCESS"


class AuditLogEntry(BaseModel):
    """One audit trail record"""
    id: UUID = Field(default_factory=uuid4)
    user_id: Optional[UUID] = None
    action: AuditAction
    resource: str
    resource_id: Optional[str] = None
    details: Dict[str, Any] = {}
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: UTCDateTime = Field(default_factory=utcnow)


@dataclass(frozen=True)
class ClientInfo:
    """Where a request came from"""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    method: Optional[str] = None
    url: Optional[str] = None
