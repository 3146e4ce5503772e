"""
Policy Models

Only the metadata of the policy document is stored here; the file itself
lives wherever the upload layer put it.
"""

from enum import Enum
from typing import List, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from cybernexus.core.timeutils import UTCDateTime, utcnow


class PolicyCategory(str, Enum):
    INFORMATION_SECURITY = "Information Security Policy"
    ACCESS_CONTROL = "Access Control Policy"
    ACCEPTABLE_USE = "Acceptable Use Policy"
    DATA_CLASSIFICATION = "Data Classification Policy"
    INCIDENT_RESPONSE = "Incident Response Policy"
    BUSINESS_CONTINUITY = "Business Continuity Policy"
    RISK_MANAGEMENT = "Risk Management Policy"
    SUPPLIER_SECURITY = "Supplier Security Policy"
    HR_SECURITY = "HR Security Policy"
    ASSET_MANAGEMENT = "Asset Management Policy"


class PolicyStatus(str, Enum):
    DRAFT = "Draft"
    UNDER_REVIEW = "Under Review"
    APPROVED = "Approved"
    PUBLISHED = "Published"
    ARCHIVED = "Archived"


ALLOWED_FILE_EXTENSIONS = (".pdf", ".doc", ".docx", ".txt")


class PolicyFile(BaseModel):
    """Metadata of the stored policy document"""
    file_name: str = Field(..., min_length=1)
    file_path: str = Field(..., min_length=1)
    file_size: int = Field(..., ge=0)
    mime_type: str

    def has_allowed_extension(self) -> bool:
        return self.file_name.lower().endswith(ALLOWED_FILE_EXTENSIONS)


class Policy(BaseModel):
    """Governance policy"""
    id: UUID = Field(default_factory=uuid4)
    policy_id: str
    title: str
    description: str
    category: PolicyCategory
    version: str = "1.0"
    status: PolicyStatus = PolicyStatus.DRAFT
    owner: UUID
    approver: Optional[UUID] = None
    approval_date: Optional[UTCDateTime] = None
    effective_date: UTCDateTime
    review_date: UTCDateTime
    next_review_date: UTCDateTime
    file_name: str
    file_path: str
    file_size: int
    mime_type: str
    tags: List[str] = []
    related_policies: List[UUID] = []
    created_by: UUID
    created_at: UTCDateTime = Field(default_factory=utcnow)
    updated_at: UTCDateTime = Field(default_factory=utcnow)


class PolicyCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=3)
    description: str = Field(..., min_length=10)
    category: PolicyCategory
    version: str = "1.0"
    status: PolicyStatus = PolicyStatus.DRAFT
    owner: UUID
    approver: Optional[UUID] = None
    approval_date: Optional[UTCDateTime] = None
    effective_date: UTCDateTime
    review_date: UTCDateTime
    next_review_date: UTCDateTime
    file: PolicyFile
    tags: List[str] = []
    related_policies: List[UUID] = []


class PolicyUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(None, min_length=3)
    description: Optional[str] = Field(None, min_length=10)
    category: Optional[PolicyCategory] = None
    version: Optional[str] = None
    status: Optional[PolicyStatus] = None
    owner: Optional[UUID] = None
    approver: Optional[UUID] = None
    approval_date: Optional[UTCDateTime] = None
    effective_date: Optional[UTCDateTime] = None
    review_date: Optional[UTCDateTime] = None
    next_review_date: Optional[UTCDateTime] = None
    file: Optional[PolicyFile] = None
    tags: Optional[List[str]] = None
    related_policies: Optional[List[UUID]] = None
