"""
Notification Models
"""

from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from cybernexus.core.timeutils import UTCDateTime, utcnow


class NotificationType(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    SUCCESS = "success"


class NotificationCategory(str, Enum):
    RISK = "Risk"
    AUDIT = "Audit"
    POLICY = "Policy"
    SOA = "SoA"
    SYSTEM = "System"


class Notification(BaseModel):
    """In-app message addressed to one user"""
    id: UUID = Field(default_factory=uuid4)
    title: str
    message: str
    type: NotificationType = NotificationType.INFO
    category: NotificationCategory
    recipient: UUID
    entity_type: Optional[str] = None
    entity_id: Optional[UUID] = None
    is_read: bool = False
    read_at: Optional[UTCDateTime] = None
    created_at: UTCDateTime = Field(default_factory=utcnow)
