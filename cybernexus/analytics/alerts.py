"""
🚨 Alert Evaluator

Threshold checks over the portfolio at a given instant:

- Critical risks that are not closed
- Risks whose review date has passed
- Planned audits starting within the audit horizon
- Published policies due for review within the policy horizon
- Open findings with their action owner

plus the security dashboard, which applies the same kind of windowed
checks to the audit log. The filter functions are pure and keep the
order of their input.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
from uuid import UUID

from cybernexus.analytics.compliance import flatten_findings, is_open_finding, load_collections
from cybernexus.audits.models import Audit, AuditStatus
from cybernexus.auth.models import User
from cybernexus.core.architecture.base_repository import BaseRepository, QueryFilter
from cybernexus.core.logging import get_logger
from cybernexus.core.timeutils import utcnow
from cybernexus.policies.models import Policy, PolicyStatus
from cybernexus.risk.models import Risk, RiskStatus
from cybernexus.risk.scoring import RiskLevel
from cybernexus.security.models import AuditAction, AuditLogEntry, SecurityEvent

logger = get_logger(__name__)

SECURITY_WINDOW = timedelta(hours=24)
ACTIVITY_WINDOW = timedelta(days=7)
TOP_N = 10


def critical_risks(risks: Iterable[Risk]) -> List[Risk]:
    return [r for r in risks if r.risk_level == RiskLevel.CRITICAL and r.status != RiskStatus.CLOSED]


def overdue_reviews(risks: Iterable[Risk], now: datetime) -> List[Risk]:
    return [r for r in risks if r.review_date < now and r.status != RiskStatus.CLOSED]


def upcoming_audits(audits: Iterable[Audit], now: datetime, horizon_days: int = 7) -> List[Audit]:
    """Planned audits whose start falls in [now, now + horizon]"""
    end = now + timedelta(days=horizon_days)
    return [a for a in audits if a.status == AuditStatus.PLANNED and now <= a.planned_start_date <= end]


def policy_reviews_due(policies: Iterable[Policy], now: datetime, horizon_days: int = 30) -> List[Policy]:
    """Published policies with next review on or before now + horizon, overdue ones included"""
    cutoff = now + timedelta(days=horizon_days)
    return [p for p in policies if p.status == PolicyStatus.PUBLISHED and p.next_review_date <= cutoff]


def open_findings(
    audits: Iterable[Audit],
    users_by_id: Mapping[UUID, User],
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Open or in-progress findings with their parent audit and action owner"""
    rows = []
    for audit, finding in flatten_findings(audits):
        if not is_open_finding(finding):
            continue
        owner = users_by_id.get(finding.action_owner) if finding.action_owner else None
        rows.append({
            "audit_id": audit.audit_id,
            "audit_title": audit.title,
            "finding": finding.model_dump(mode="json"),
            "action_owner": owner.summary() if owner else None,
        })
        if limit is not None and len(rows) >= limit:
            break
    return rows


@dataclass
class AlertReport:
    """Result of one evaluation"""
    generated_at: datetime
    critical_risks: List[Risk] = field(default_factory=list)
    overdue_reviews: List[Risk] = field(default_factory=list)
    upcoming_audits: List[Audit] = field(default_factory=list)
    policy_reviews: List[Policy] = field(default_factory=list)
    open_findings: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at.isoformat(),
            "critical_risks": [r.model_dump(mode="json") for r in self.critical_risks],
            "overdue_reviews": [r.model_dump(mode="json") for r in self.overdue_reviews],
            "upcoming_audits": [a.model_dump(mode="json", exclude={"findings"}) for a in self.upcoming_audits],
            "policy_reviews": [p.model_dump(mode="json") for p in self.policy_reviews],
            "open_findings": self.open_findings,
        }


def evaluate_alerts(
    risks: Sequence[Risk],
    audits: Sequence[Audit],
    policies: Sequence[Policy],
    users: Sequence[User],
    now: datetime,
    audit_horizon_days: int = 7,
    policy_horizon_days: int = 30,
    findings_limit: Optional[int] = 10,
) -> AlertReport:
    users_by_id = {u.id: u for u in users}
    return AlertReport(
        generated_at=now,
        critical_risks=critical_risks(risks),
        overdue_reviews=overdue_reviews(risks, now),
        upcoming_audits=upcoming_audits(audits, now, audit_horizon_days),
        policy_reviews=policy_reviews_due(policies, now, policy_horizon_days),
        open_findings=open_findings(audits, users_by_id, findings_limit),
    )


def _group_latest(entries: Iterable[AuditLogEntry], key) -> "OrderedDict[Any, Dict[str, Any]]":
    """Count entries per key, tracking the newest timestamp of each group"""
    groups: "OrderedDict[Any, Dict[str, Any]]" = OrderedDict()
    for entry in entries:
        k = key(entry)
        group = groups.setdefault(k, {"count": 0, "last": entry.created_at})
        group["count"] += 1
        group["last"] = max(group["last"], entry.created_at)
    return groups


def security_dashboard(
    entries: Sequence[AuditLogEntry],
    users: Sequence[User],
    now: datetime,
    max_failed_logins: int = 5,
) -> Dict[str, Any]:
    """
    Security overview built from the audit log.

    Security events and failed logins look at the last 24 hours, user
    activity at the last 7 days. Failed logins and user activity are
    capped to the top 10 by count.
    """
    day_ago = now - SECURITY_WINDOW
    week_ago = now - ACTIVITY_WINDOW

    recent_events = [e for e in entries if e.action == AuditAction.SECURITY_EVENT and e.created_at >= day_ago]
    events = _group_latest(recent_events, lambda e: e.resource)
    security_events = sorted(
        ({"event": k, "count": g["count"], "last_occurrence": g["last"].isoformat()} for k, g in events.items()),
        key=lambda row: row["count"],
        reverse=True,
    )

    failures = [e for e in entries if e.resource == SecurityEvent.AUTH_FAILED.value and e.created_at >= day_ago]
    by_ip = _group_latest(failures, lambda e: e.ip_address)
    failed_logins = sorted(
        ({"ip_address": k, "count": g["count"], "last_attempt": g["last"].isoformat()} for k, g in by_ip.items()),
        key=lambda row: row["count"],
        reverse=True,
    )[:TOP_N]

    users_by_id = {u.id: u for u in users}
    activity = _group_latest(
        (e for e in entries if e.user_id is not None and e.created_at >= week_ago),
        lambda e: e.user_id,
    )
    user_activities = []
    for user_id, group in activity.items():
        user = users_by_id.get(user_id)
        if user is None:
            continue
        user_activities.append({
            "user_id": str(user_id),
            "user_name": user.full_name,
            "email": user.email,
            "activity_count": group["count"],
            "last_activity": group["last"].isoformat(),
        })
    user_activities.sort(key=lambda row: row["activity_count"], reverse=True)

    return {
        "security_events": security_events,
        "failed_logins": failed_logins,
        "active_users": sum(1 for u in users if u.last_activity is not None and u.last_activity >= day_ago),
        "locked_accounts": sum(1 for u in users if u.is_locked(max_failed_logins)),
        "user_activities": user_activities[:TOP_N],
        "generated_at": now.isoformat(),
    }


class AlertEvaluator:
    """Loads the collections an evaluation needs and runs the checks"""

    def __init__(
        self,
        risks: BaseRepository[Risk],
        audits: BaseRepository[Audit],
        policies: BaseRepository[Policy],
        users: BaseRepository[User],
        audit_logs: BaseRepository[AuditLogEntry],
        audit_horizon_days: int = 7,
        policy_horizon_days: int = 30,
        findings_limit: int = 10,
        max_failed_logins: int = 5,
    ):
        self.risks = risks
        self.audits = audits
        self.policies = policies
        self.users = users
        self.audit_logs = audit_logs
        self.audit_horizon_days = audit_horizon_days
        self.policy_horizon_days = policy_horizon_days
        self.findings_limit = findings_limit
        self.max_failed_logins = max_failed_logins

    async def evaluate(self, now: Optional[datetime] = None) -> AlertReport:
        now = now or utcnow()
        risks, audits, policies, users = await load_collections(
            "Alert data",
            self.risks.find_all(),
            self.audits.find_all(),
            self.policies.find_all(),
            self.users.find_all(),
        )
        report = evaluate_alerts(
            risks, audits, policies, users, now,
            audit_horizon_days=self.audit_horizon_days,
            policy_horizon_days=self.policy_horizon_days,
            findings_limit=self.findings_limit,
        )
        logger.debug(
            "Alerts evaluated",
            critical_risks=len(report.critical_risks),
            overdue_reviews=len(report.overdue_reviews),
            open_findings=len(report.open_findings),
        )
        return report

    async def security_dashboard(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        now = now or utcnow()
        entries, users = await load_collections(
            "Security data",
            self.audit_logs.find_by_criteria([QueryFilter("created_at", "gte", now - ACTIVITY_WINDOW)]),
            self.users.find_all(),
        )
        return security_dashboard(entries, users, now, self.max_failed_logins)
