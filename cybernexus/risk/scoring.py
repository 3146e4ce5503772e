"""
Risk scoring.

Score is likelihood x impact on a 1-5 x 1-5 matrix; the level is bucketed
from the score with inclusive upper bounds.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RiskLevel(str, Enum):
    """Qualitative risk level"""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


# (upper bound inclusive, level)
LEVEL_THRESHOLDS = (
    (5, RiskLevel.LOW),
    (10, RiskLevel.MEDIUM),
    (15, RiskLevel.HIGH),
)


@dataclass(frozen=True)
class RiskScore:
    score: int
    level: RiskLevel


def level_for_score(score: int) -> RiskLevel:
    for upper, level in LEVEL_THRESHOLDS:
        if score <= upper:
            return level
    return RiskLevel.CRITICAL


def compute_score(likelihood: int, impact: int) -> RiskScore:
    """Inherent risk score and level for validated 1-5 inputs"""
    score = likelihood * impact
    return RiskScore(score=score, level=level_for_score(score))


def compute_residual_score(residual_likelihood: Optional[int], residual_impact: Optional[int]) -> Optional[RiskScore]:
    """Residual score, or None unless both inputs are present"""
    if residual_likelihood is None or residual_impact is None:
        return None
    return compute_score(residual_likelihood, residual_impact)
