"""
Audit Models

Audits embed their findings. Finding numbers come from `finding_sequence`,
which only grows, so deleting a finding never renumbers the others.
"""

from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from cybernexus.core.timeutils import UTCDateTime, utcnow


class AuditType(str, Enum):
    INTERNAL = "Internal"
    EXTERNAL = "External"
    CERTIFICATION = "Certification"
    SURVEILLANCE = "Surveillance"


class AuditStatus(str, Enum):
    PLANNED = "Planned"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class FindingSeverity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class FindingCategory(str, Enum):
    NON_CONFORMITY = "Non-Conformity"
    OBSERVATION = "Observation"
    OPPORTUNITY_FOR_IMPROVEMENT = "Opportunity for Improvement"


class FindingStatus(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    CLOSED = "Closed"
    VERIFIED = "Verified"


OPEN_FINDING_STATUSES = (FindingStatus.OPEN, FindingStatus.IN_PROGRESS)
ACTIVE_AUDIT_STATUSES = (AuditStatus.PLANNED, AuditStatus.IN_PROGRESS)


class Finding(BaseModel):
    """Audit observation"""
    id: UUID = Field(default_factory=uuid4)
    finding_id: str
    title: str
    description: str
    severity: FindingSeverity
    category: FindingCategory
    related_control: Optional[str] = None
    corrective_action: Optional[str] = None
    action_owner: Optional[UUID] = None
    target_date: Optional[UTCDateTime] = None
    status: FindingStatus = FindingStatus.OPEN
    created_at: UTCDateTime = Field(default_factory=utcnow)


class Audit(BaseModel):
    """Audit with embedded findings"""
    id: UUID = Field(default_factory=uuid4)
    audit_id: str
    title: str
    type: AuditType
    scope: str
    objectives: str
    audit_criteria: str
    lead_auditor: UUID
    audit_team: List[UUID] = []
    auditees: List[UUID] = []
    planned_start_date: UTCDateTime
    planned_end_date: UTCDateTime
    actual_start_date: Optional[UTCDateTime] = None
    actual_end_date: Optional[UTCDateTime] = None
    status: AuditStatus = AuditStatus.PLANNED
    findings: List[Finding] = []
    finding_sequence: int = 0
    version: int = 0
    overall_conclusion: Optional[str] = None
    recommendations: Optional[str] = None
    report_file: Optional[str] = None
    created_by: UUID
    created_at: UTCDateTime = Field(default_factory=utcnow)
    updated_at: UTCDateTime = Field(default_factory=utcnow)

    def get_finding(self, finding_id: str) -> Optional[Finding]:
        """Look a finding up by its business id or its UUID"""
        for finding in self.findings:
            if finding.finding_id == finding_id or str(finding.id) == finding_id:
                return finding
        return None


class AuditCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=3)
    type: AuditType
    scope: str = Field(..., min_length=10)
    objectives: str = Field(..., min_length=10)
    audit_criteria: str = Field(..., min_length=10)
    lead_auditor: UUID
    audit_team: List[UUID] = []
    auditees: List[UUID] = []
    planned_start_date: UTCDateTime
    planned_end_date: UTCDateTime
    status: AuditStatus = AuditStatus.PLANNED


class AuditUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(None, min_length=3)
    type: Optional[AuditType] = None
    scope: Optional[str] = Field(None, min_length=10)
    objectives: Optional[str] = Field(None, min_length=10)
    audit_criteria: Optional[str] = Field(None, min_length=10)
    lead_auditor: Optional[UUID] = None
    audit_team: Optional[List[UUID]] = None
    auditees: Optional[List[UUID]] = None
    planned_start_date: Optional[UTCDateTime] = None
    planned_end_date: Optional[UTCDateTime] = None
    actual_start_date: Optional[UTCDateTime] = None
    actual_end_date: Optional[UTCDateTime] = None
    status: Optional[AuditStatus] = None
    overall_conclusion: Optional[str] = None
    recommendations: Optional[str] = None
    report_file: Optional[str] = None


class FindingCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=3)
    description: str = Field(..., min_length=10)
    severity: FindingSeverity
    category: FindingCategory
    related_control: Optional[str] = None
    corrective_action: Optional[str] = None
    action_owner: Optional[UUID] = None
    target_date: Optional[UTCDateTime] = None
    status: FindingStatus = FindingStatus.OPEN


class FindingUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(None, min_length=3)
    description: Optional[str] = Field(None, min_length=10)
    severity: Optional[FindingSeverity] = None
    category: Optional[FindingCategory] = None
    related_control: Optional[str] = None
    corrective_action: Optional[str] = None
    action_owner: Optional[UUID] = None
    target_date: Optional[UTCDateTime] = None
    status: Optional[FindingStatus] = None
