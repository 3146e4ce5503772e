"""
Consistency guard for risk records.

Registered as a pre-save hook on the risk repository, it recomputes every
derived field right before persistence so a stored risk always satisfies
risk_score == likelihood * impact with a matching level, whatever the
caller sent.
"""

from cybernexus.core.architecture.base_repository import BaseRepository
from cybernexus.core.timeutils import utcnow
from cybernexus.risk.models import Risk
from cybernexus.risk.scoring import compute_residual_score, compute_score


def apply_derived_fields(risk: Risk) -> Risk:
    """Return a copy of `risk` with score, level and residual fields recomputed"""
    inherent = compute_score(risk.likelihood, risk.impact)
    residual = compute_residual_score(risk.residual_likelihood, risk.residual_impact)

    return risk.model_copy(update={
        "risk_score": inherent.score,
        "risk_level": inherent.level,
        "residual_score": residual.score if residual else None,
        "residual_level": residual.level if residual else None,
    })


def risk_consistency_hook(risk: Risk, is_new: bool) -> Risk:
    risk = apply_derived_fields(risk)
    return risk.model_copy(update={"updated_at": utcnow()})


def install_risk_guard(repository: BaseRepository) -> None:
    repository.register_pre_save_hook(risk_consistency_hook)
