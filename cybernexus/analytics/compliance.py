"""
📈 Compliance Aggregator

Portfolio metrics over controls, risks, audits (with their findings),
policies and users. The summary functions are pure and operate on
already-loaded records; ComplianceAggregator loads each collection with
its own read and composes the results.
"""

import asyncio
from collections import Counter
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Awaitable, Dict, Iterable, List, Sequence, Tuple

from cybernexus.audits.models import ACTIVE_AUDIT_STATUSES, OPEN_FINDING_STATUSES, Audit, Finding
from cybernexus.auth.models import User
from cybernexus.core.architecture.base_repository import BaseRepository
from cybernexus.core.errors import GRCError, UnavailableError
from cybernexus.core.logging import get_logger
from cybernexus.core.timeutils import utcnow
from cybernexus.policies.models import Policy, PolicyStatus
from cybernexus.risk.models import Risk, RiskStatus
from cybernexus.risk.scoring import RiskLevel
from cybernexus.soa.models import Applicability, Control, ImplementationStatus

logger = get_logger(__name__)

HIGH_RISK_LEVELS = (RiskLevel.HIGH, RiskLevel.CRITICAL)


def _key(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def group_counts(records: Iterable[Any], field: str) -> List[Dict[str, Any]]:
    """
    Count records per distinct value of `field`.

    Only values that occur are reported, in the order they are first seen.
    Records without a value are skipped.
    """
    counts: Counter = Counter()
    for record in records:
        value = getattr(record, field)
        if value is not None:
            counts[_key(value)] += 1
    return [{"key": key, "count": count} for key, count in counts.items()]


def percentage(part: int, whole: int) -> int:
    """Whole-number percentage rounded half up, 0 when `whole` is 0"""
    if whole == 0:
        return 0
    return int((Decimal(100 * part) / Decimal(whole)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def applicable_controls(controls: Iterable[Control]) -> List[Control]:
    return [c for c in controls if c.applicability == Applicability.APPLICABLE]


def compliance_percentage(controls: Sequence[Control]) -> int:
    """Share of applicable controls that are fully implemented"""
    applicable = applicable_controls(controls)
    implemented = [c for c in applicable if c.implementation_status == ImplementationStatus.IMPLEMENTED]
    return percentage(len(implemented), len(applicable))


def flatten_findings(audits: Iterable[Audit]) -> List[Tuple[Audit, Finding]]:
    """Every finding paired with its parent audit, in audit then finding order"""
    return [(audit, finding) for audit in audits for finding in audit.findings]


def is_open_finding(finding: Finding) -> bool:
    return finding.status in OPEN_FINDING_STATUSES


def policies_due_for_review(policies: Iterable[Policy], now: datetime, horizon_days: int) -> List[Policy]:
    """Policies of any status whose next review falls on or before now + horizon"""
    cutoff = now + timedelta(days=horizon_days)
    return [p for p in policies if p.next_review_date <= cutoff]


def control_summary(controls: Sequence[Control]) -> Dict[str, Any]:
    applicable = applicable_controls(controls)
    implemented = [c for c in applicable if c.implementation_status == ImplementationStatus.IMPLEMENTED]
    return {
        "total_controls": len(controls),
        "applicable_controls": len(applicable),
        "implemented_controls": len(implemented),
        "compliance_percentage": percentage(len(implemented), len(applicable)),
        "by_category": group_counts(controls, "category"),
        "by_status": group_counts(controls, "implementation_status"),
    }


def risk_summary(risks: Sequence[Risk]) -> Dict[str, Any]:
    return {
        "total_risks": len(risks),
        "high_risks": sum(1 for r in risks if r.risk_level in HIGH_RISK_LEVELS),
        "open_risks": sum(1 for r in risks if r.status == RiskStatus.OPEN),
        "by_category": group_counts(risks, "category"),
        "by_level": group_counts(risks, "risk_level"),
        "by_status": group_counts(risks, "status"),
    }


def audit_summary(audits: Sequence[Audit]) -> Dict[str, Any]:
    findings = [finding for _, finding in flatten_findings(audits)]
    return {
        "total_audits": len(audits),
        "active_audits": sum(1 for a in audits if a.status in ACTIVE_AUDIT_STATUSES),
        "total_findings": len(findings),
        "open_findings": sum(1 for f in findings if is_open_finding(f)),
        "by_status": group_counts(audits, "status"),
        "by_type": group_counts(audits, "type"),
        "findings_by_status": group_counts(findings, "status"),
    }


def policy_summary(policies: Sequence[Policy], now: datetime, horizon_days: int) -> Dict[str, Any]:
    return {
        "total_policies": len(policies),
        "published_policies": sum(1 for p in policies if p.status == PolicyStatus.PUBLISHED),
        "upcoming_reviews": len(policies_due_for_review(policies, now, horizon_days)),
        "by_status": group_counts(policies, "status"),
        "by_category": group_counts(policies, "category"),
    }


def user_summary(users: Sequence[User], now: datetime, login_window_days: int = 7) -> Dict[str, Any]:
    since = now - timedelta(days=login_window_days)
    return {
        "total_users": len(users),
        "active_users": sum(1 for u in users if u.is_active),
        "recent_logins": sum(1 for u in users if u.last_login is not None and u.last_login >= since),
        "by_role": group_counts(users, "role"),
    }


def risk_trend(risks: Iterable[Risk], months: int = 12) -> List[Dict[str, int]]:
    """Risks created per calendar month, latest `months` months that have any, oldest first"""
    counts: Counter = Counter((r.created_at.year, r.created_at.month) for r in risks)
    latest = sorted(counts, reverse=True)[:months]
    return [{"year": year, "month": month, "count": counts[(year, month)]} for year, month in sorted(latest)]


@dataclass
class ComplianceOverview:
    """Headline counters for the dashboard"""
    total_risks: int
    high_risks: int
    open_risks: int
    compliance_percentage: int
    total_controls: int
    implemented_controls: int
    total_audits: int
    active_audits: int
    total_findings: int
    open_findings: int
    total_policies: int
    published_policies: int
    upcoming_reviews: int
    total_users: int
    active_users: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def build_overview(
    risks: Sequence[Risk],
    controls: Sequence[Control],
    audits: Sequence[Audit],
    policies: Sequence[Policy],
    users: Sequence[User],
    now: datetime,
    review_horizon_days: int = 30,
) -> ComplianceOverview:
    risk_stats = risk_summary(risks)
    control_stats = control_summary(controls)
    audit_stats = audit_summary(audits)
    policy_stats = policy_summary(policies, now, review_horizon_days)
    return ComplianceOverview(
        total_risks=risk_stats["total_risks"],
        high_risks=risk_stats["high_risks"],
        open_risks=risk_stats["open_risks"],
        compliance_percentage=control_stats["compliance_percentage"],
        total_controls=control_stats["applicable_controls"],
        implemented_controls=control_stats["implemented_controls"],
        total_audits=audit_stats["total_audits"],
        active_audits=audit_stats["active_audits"],
        total_findings=audit_stats["total_findings"],
        open_findings=audit_stats["open_findings"],
        total_policies=policy_stats["total_policies"],
        published_policies=policy_stats["published_policies"],
        upcoming_reviews=policy_stats["upcoming_reviews"],
        total_users=len(users),
        active_users=sum(1 for u in users if u.is_active),
    )


async def load_collections(what: str, *reads: Awaitable[Any]) -> List[Any]:
    """
    Await independent reads together.

    If any read fails nothing partial is returned: a single
    UnavailableError is raised instead.
    """
    results = await asyncio.gather(*reads, return_exceptions=True)
    failures = [r for r in results if isinstance(r, BaseException)]
    if failures:
        for failure in failures:
            if not isinstance(failure, (GRCError, OSError)):
                raise failure
        logger.error("Collection load failed", what=what, errors=[str(f) for f in failures])
        raise UnavailableError(f"{what} is unavailable") from failures[0]
    return list(results)


@dataclass
class PortfolioSnapshot:
    """All collections as read for one aggregation"""
    risks: List[Risk]
    controls: List[Control]
    audits: List[Audit]
    policies: List[Policy]
    users: List[User]


class ComplianceAggregator:
    """Loads the portfolio and produces dashboard statistics"""

    def __init__(
        self,
        risks: BaseRepository[Risk],
        controls: BaseRepository[Control],
        audits: BaseRepository[Audit],
        policies: BaseRepository[Policy],
        users: BaseRepository[User],
        review_horizon_days: int = 30,
    ):
        self.risks = risks
        self.controls = controls
        self.audits = audits
        self.policies = policies
        self.users = users
        self.review_horizon_days = review_horizon_days

    async def load(self) -> PortfolioSnapshot:
        risks, controls, audits, policies, users = await load_collections(
            "Compliance data",
            self.risks.find_all(),
            self.controls.find_all(),
            self.audits.find_all(),
            self.policies.find_all(),
            self.users.find_all(),
        )
        return PortfolioSnapshot(risks, controls, audits, policies, users)

    async def overview(self, now: datetime = None) -> ComplianceOverview:
        snapshot = await self.load()
        return build_overview(
            snapshot.risks, snapshot.controls, snapshot.audits, snapshot.policies, snapshot.users,
            now or utcnow(), self.review_horizon_days,
        )

    async def dashboard_stats(self, now: datetime = None) -> Dict[str, Any]:
        """Overview counters plus chart series for the main dashboard"""
        now = now or utcnow()
        snapshot = await self.load()
        overview = build_overview(
            snapshot.risks, snapshot.controls, snapshot.audits, snapshot.policies, snapshot.users,
            now, self.review_horizon_days,
        )
        return {
            "overview": overview.to_dict(),
            "charts": {
                "risk_trend": risk_trend(snapshot.risks),
                "risks_by_category": group_counts(snapshot.risks, "category"),
                "risks_by_level": group_counts(snapshot.risks, "risk_level"),
            },
        }
