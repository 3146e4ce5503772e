"""
Dashboard Service

Backs the /dashboard endpoints: portfolio statistics, the recent
activity feed and alerts.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from cybernexus.analytics.alerts import AlertEvaluator
from cybernexus.analytics.compliance import ComplianceAggregator, load_collections
from cybernexus.audits.models import Audit
from cybernexus.core.architecture.base_repository import BaseRepository, PageRequest, SortDirection, SortOrder
from cybernexus.policies.models import Policy
from cybernexus.risk.models import Risk

PER_TYPE_RECENT = 5
FEED_SIZE = 10


def _activity(kind: str, identifier: str, record: Any) -> Dict[str, Any]:
    return {
        "type": kind,
        "id": str(record.id),
        "identifier": identifier,
        "title": record.title,
        "status": record.status.value,
        "created_at": record.created_at,
    }


def merge_recent(risks: List[Risk], audits: List[Audit], policies: List[Policy],
                 limit: int = FEED_SIZE) -> List[Dict[str, Any]]:
    """Newest records of every type merged into one feed, newest first"""
    feed = (
        [_activity("risk", r.risk_id, r) for r in risks]
        + [_activity("audit", a.audit_id, a) for a in audits]
        + [_activity("policy", p.policy_id, p) for p in policies]
    )
    feed.sort(key=lambda item: item["created_at"], reverse=True)
    return [{**item, "created_at": item["created_at"].isoformat()} for item in feed[:limit]]


class DashboardService:

    def __init__(
        self,
        aggregator: ComplianceAggregator,
        alerts: AlertEvaluator,
        risks: BaseRepository[Risk],
        audits: BaseRepository[Audit],
        policies: BaseRepository[Policy],
    ):
        self.aggregator = aggregator
        self.alerts = alerts
        self.risks = risks
        self.audits = audits
        self.policies = policies

    async def stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        return await self.aggregator.dashboard_stats(now)

    async def recent_activities(self) -> List[Dict[str, Any]]:
        newest = PageRequest(page=1, size=PER_TYPE_RECENT, sort=[SortOrder("created_at", SortDirection.DESC)])
        risks, audits, policies = await load_collections(
            "Recent activity",
            self.risks.find_by_criteria([], newest),
            self.audits.find_by_criteria([], newest),
            self.policies.find_by_criteria([], newest),
        )
        return merge_recent(risks.items, audits.items, policies.items)

    async def alerts_report(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        report = await self.alerts.evaluate(now)
        return report.to_dict()
