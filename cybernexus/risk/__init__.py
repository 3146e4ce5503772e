"""
Risk Register Module

Scoring, level classification and the consistency guard applied on every save.
"""

from .scoring import RiskLevel, RiskScore, compute_residual_score, compute_score, level_for_score
from .models import Risk, RiskCategory, RiskCreate, RiskStatus, RiskTreatment, RiskUpdate
from .guard import install_risk_guard

__all__ = [
    "RiskLevel",
    "RiskScore",
    "compute_score",
    "compute_residual_score",
    "level_for_score",
    "Risk",
    "RiskCategory",
    "RiskCreate",
    "RiskStatus",
    "RiskTreatment",
    "RiskUpdate",
    "install_risk_guard",
]
