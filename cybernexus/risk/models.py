"""
Risk Models

Risk register entries and their request schemas. Score and level are
derived fields: request schemas do not accept them.
"""

from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from cybernexus.core.timeutils import UTCDateTime, utcnow
from cybernexus.risk.scoring import RiskLevel


class RiskCategory(str, Enum):
    OPERATIONAL = "Operational"
    TECHNICAL = "Technical"
    FINANCIAL = "Financial"
    STRATEGIC = "Strategic"
    COMPLIANCE = "Compliance"
    REPUTATIONAL = "Reputational"


class RiskTreatment(str, Enum):
    ACCEPT = "Accept"
    MITIGATE = "Mitigate"
    TRANSFER = "Transfer"
    AVOID = "Avoid"


class RiskStatus(str, Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    MONITORING = "Monitoring"
    CLOSED = "Closed"


class Risk(BaseModel):
    """Risk register entry"""
    id: UUID = Field(default_factory=uuid4)
    risk_id: str
    title: str
    description: str
    category: RiskCategory
    likelihood: int = Field(..., ge=1, le=5)
    impact: int = Field(..., ge=1, le=5)
    risk_score: int = 0
    risk_level: RiskLevel = RiskLevel.LOW
    owner: UUID
    treatment: RiskTreatment
    treatment_plan: Optional[str] = None
    status: RiskStatus = RiskStatus.OPEN
    residual_likelihood: Optional[int] = Field(None, ge=1, le=5)
    residual_impact: Optional[int] = Field(None, ge=1, le=5)
    residual_score: Optional[int] = None
    residual_level: Optional[RiskLevel] = None
    review_date: UTCDateTime
    created_by: UUID
    created_at: UTCDateTime = Field(default_factory=utcnow)
    updated_at: UTCDateTime = Field(default_factory=utcnow)


class RiskCreate(BaseModel):
    """Risk creation schema"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "title": "Unpatched VPN appliance",
                "description": "Perimeter VPN runs firmware with a published RCE.",
                "category": "Technical",
                "likelihood": 4,
                "impact": 5,
                "owner": "8b0f7a5e-3c55-4d0c-9a57-3f2b8f4e6a10",
                "treatment": "Mitigate",
                "review_date": "2026-12-01T00:00:00Z",
            }
        },
    )

    title: str = Field(..., min_length=3)
    description: str = Field(..., min_length=10)
    category: RiskCategory
    likelihood: int = Field(..., ge=1, le=5)
    impact: int = Field(..., ge=1, le=5)
    owner: UUID
    treatment: RiskTreatment
    treatment_plan: Optional[str] = None
    status: RiskStatus = RiskStatus.OPEN
    residual_likelihood: Optional[int] = Field(None, ge=1, le=5)
    residual_impact: Optional[int] = Field(None, ge=1, le=5)
    review_date: UTCDateTime


class RiskUpdate(BaseModel):
    """Risk update schema; only supplied fields change"""
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(None, min_length=3)
    description: Optional[str] = Field(None, min_length=10)
    category: Optional[RiskCategory] = None
    likelihood: Optional[int] = Field(None, ge=1, le=5)
    impact: Optional[int] = Field(None, ge=1, le=5)
    owner: Optional[UUID] = None
    treatment: Optional[RiskTreatment] = None
    treatment_plan: Optional[str] = None
    status: Optional[RiskStatus] = None
    residual_likelihood: Optional[int] = Field(None, ge=1, le=5)
    residual_impact: Optional[int] = Field(None, ge=1, le=5)
    review_date: Optional[UTCDateTime] = None
