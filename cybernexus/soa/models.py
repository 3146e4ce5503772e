"""
Statement of Applicability Models

One record per ISO 27001 Annex A control. Control identifiers are chosen
by the caller and must be unique.
"""

from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from cybernexus.core.timeutils import UTCDateTime, utcnow


class ControlCategory(str, Enum):
    """ISO 27001:2013 Annex A groupings"""
    A5 = "A.5 Information Security Policies"
    A6 = "A.6 Organization of Information Security"
    A7 = "A.7 Human Resource Security"
    A8 = "A.8 Asset Management"
    A9 = "A.9 Access Control"
    A10 = "A.10 Cryptography"
    A11 = "A.11 Physical and Environmental Security"
    A12 = "A.12 Operations Security"
    A13 = "A.13 Communications Security"
    A14 = "A.14 System Acquisition, Development and Maintenance"
    A15 = "A.15 Supplier Relationships"
    A16 = "A.16 Information Security Incident Management"
    A17 = "A.17 Information Security Aspects of Business Continuity Management"
    A18 = "A.18 Compliance"


class Applicability(str, Enum):
    APPLICABLE = "Applicable"
    NOT_APPLICABLE = "Not Applicable"


class ImplementationStatus(str, Enum):
    NOT_IMPLEMENTED = "Not Implemented"
    PARTIALLY_IMPLEMENTED = "Partially Implemented"
    IMPLEMENTED = "Implemented"
    NOT_APPLICABLE = "Not Applicable"


class Control(BaseModel):
    """SoA control"""
    id: UUID = Field(default_factory=uuid4)
    control_id: str
    control_title: str
    control_description: str
    category: ControlCategory
    applicability: Applicability
    implementation_status: ImplementationStatus
    justification: str
    responsible_owner: UUID
    implementation_details: Optional[str] = None
    evidence_location: Optional[str] = None
    last_review_date: Optional[UTCDateTime] = None
    next_review_date: UTCDateTime
    created_by: UUID
    created_at: UTCDateTime = Field(default_factory=utcnow)
    updated_at: UTCDateTime = Field(default_factory=utcnow)


class ControlCreate(BaseModel):
    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "control_id": "A.9.1.1",
                "control_title": "Access control policy",
                "control_description": "An access control policy shall be established.",
                "category": "A.9 Access Control",
                "applicability": "Applicable",
                "implementation_status": "Implemented",
                "justification": "Required for all production systems.",
                "responsible_owner": "8b0f7a5e-3c55-4d0c-9a57-3f2b8f4e6a10",
                "next_review_date": "2027-01-15T00:00:00Z",
            }
        },
    )

    control_id: str = Field(..., min_length=1)
    control_title: str = Field(..., min_length=3)
    control_description: str = Field(..., min_length=10)
    category: ControlCategory
    applicability: Applicability
    implementation_status: ImplementationStatus
    justification: str = Field(..., min_length=10)
    responsible_owner: UUID
    implementation_details: Optional[str] = None
    evidence_location: Optional[str] = None
    last_review_date: Optional[UTCDateTime] = None
    next_review_date: UTCDateTime


class ControlUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    control_id: Optional[str] = Field(None, min_length=1)
    control_title: Optional[str] = Field(None, min_length=3)
    control_description: Optional[str] = Field(None, min_length=10)
    category: Optional[ControlCategory] = None
    applicability: Optional[Applicability] = None
    implementation_status: Optional[ImplementationStatus] = None
    justification: Optional[str] = Field(None, min_length=10)
    responsible_owner: Optional[UUID] = None
    implementation_details: Optional[str] = None
    evidence_location: Optional[str] = None
    last_review_date: Optional[UTCDateTime] = None
    next_review_date: Optional[UTCDateTime] = None
