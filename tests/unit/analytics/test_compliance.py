"""
Unit tests for compliance aggregation
"""

from datetime import datetime, timedelta, timezone

import pytest

from conftest import build_audit, build_control, build_finding, build_policy, build_risk, build_user
from cybernexus.analytics.compliance import (
    ComplianceAggregator,
    build_overview,
    compliance_percentage,
    group_counts,
    load_collections,
    percentage,
    policies_due_for_review,
    risk_trend,
)
from cybernexus.audits.models import AuditStatus, FindingStatus
from cybernexus.core.errors import NotFoundError, UnavailableError
from cybernexus.policies.models import PolicyStatus
from cybernexus.risk.guard import apply_derived_fields
from cybernexus.risk.models import RiskCategory, RiskStatus
from cybernexus.soa.models import Applicability, ImplementationStatus

NOW = datetime(2026, 6, 15, 12, 0, tzinfo=timezone.utc)


def scored_risk(**overrides):
    return apply_derived_fields(build_risk(**overrides))


@pytest.mark.unit
class TestCompliancePercentage:

    def test_half_implemented(self):
        controls = (
            [build_control(implementation_status=ImplementationStatus.IMPLEMENTED) for _ in range(3)]
            + [build_control(implementation_status=ImplementationStatus.PARTIALLY_IMPLEMENTED) for _ in range(3)]
            + [build_control(applicability=Applicability.NOT_APPLICABLE) for _ in range(2)]
        )

        assert compliance_percentage(controls) == 50

    def test_no_applicable_controls(self):
        controls = [build_control(applicability=Applicability.NOT_APPLICABLE)]

        assert compliance_percentage(controls) == 0
        assert compliance_percentage([]) == 0

    @pytest.mark.parametrize("part,whole,expected", [
        (1, 8, 13),
        (1, 3, 33),
        (2, 3, 67),
        (1, 200, 1),
        (1, 201, 0),
        (5, 5, 100),
    ])
    def test_rounds_half_up(self, part, whole, expected):
        assert percentage(part, whole) == expected


@pytest.mark.unit
class TestGroupCounts:

    def test_sparse_in_first_seen_order(self):
        risks = [
            build_risk(category=RiskCategory.FINANCIAL),
            build_risk(category=RiskCategory.TECHNICAL),
            build_risk(category=RiskCategory.FINANCIAL),
        ]

        assert group_counts(risks, "category") == [
            {"key": "Financial", "count": 2},
            {"key": "Technical", "count": 1},
        ]

    def test_skips_missing_values(self):
        risks = [build_risk(), build_risk(residual_likelihood=2, residual_impact=2)]

        assert group_counts([apply_derived_fields(r) for r in risks], "residual_level") == [
            {"key": "Low", "count": 1},
        ]

    def test_empty(self):
        assert group_counts([], "category") == []


@pytest.mark.unit
class TestRiskTrend:

    def test_counts_per_month_oldest_first(self):
        risks = [
            build_risk(created_at=datetime(2026, 3, 2, tzinfo=timezone.utc)),
            build_risk(created_at=datetime(2026, 1, 20, tzinfo=timezone.utc)),
            build_risk(created_at=datetime(2026, 3, 28, tzinfo=timezone.utc)),
        ]

        assert risk_trend(risks) == [
            {"year": 2026, "month": 1, "count": 1},
            {"year": 2026, "month": 3, "count": 2},
        ]

    def test_keeps_latest_months(self):
        risks = [build_risk(created_at=datetime(2024 + m // 12, m % 12 + 1, 1, tzinfo=timezone.utc))
                 for m in range(15)]

        trend = risk_trend(risks, months=12)

        assert len(trend) == 12
        assert (trend[0]["year"], trend[0]["month"]) == (2024, 4)
        assert (trend[-1]["year"], trend[-1]["month"]) == (2025, 3)


@pytest.mark.unit
class TestOverview:

    def test_build_overview(self):
        risks = [
            scored_risk(likelihood=5, impact=5),
            scored_risk(likelihood=3, impact=4, status=RiskStatus.CLOSED),
            scored_risk(likelihood=1, impact=1),
        ]
        controls = [
            build_control(),
            build_control(implementation_status=ImplementationStatus.NOT_IMPLEMENTED),
            build_control(applicability=Applicability.NOT_APPLICABLE),
        ]
        audits = [
            build_audit(findings=[build_finding(), build_finding(status=FindingStatus.CLOSED)]),
            build_audit(status=AuditStatus.COMPLETED, findings=[build_finding(status=FindingStatus.IN_PROGRESS)]),
        ]
        policies = [
            build_policy(next_review_date=NOW + timedelta(days=10)),
            build_policy(status=PolicyStatus.DRAFT, next_review_date=NOW + timedelta(days=20)),
            build_policy(next_review_date=NOW + timedelta(days=90)),
        ]
        users = [build_user(), build_user(is_active=False)]

        overview = build_overview(risks, controls, audits, policies, users, NOW)

        assert overview.total_risks == 3
        assert overview.high_risks == 2
        assert overview.open_risks == 2
        assert overview.total_controls == 2
        assert overview.implemented_controls == 1
        assert overview.compliance_percentage == 50
        assert overview.total_audits == 2
        assert overview.active_audits == 1
        assert overview.total_findings == 3
        assert overview.open_findings == 2
        assert overview.total_policies == 3
        assert overview.published_policies == 2
        assert overview.upcoming_reviews == 2
        assert overview.total_users == 2
        assert overview.active_users == 1

    def test_review_horizon_is_inclusive(self):
        policies = [
            build_policy(next_review_date=NOW + timedelta(days=30)),
            build_policy(next_review_date=NOW + timedelta(days=30, seconds=1)),
        ]

        assert len(policies_due_for_review(policies, NOW, 30)) == 1


@pytest.mark.unit
class TestLoadCollections:

    @pytest.mark.asyncio
    async def test_returns_results_in_order(self, risk_repository, control_repository):
        await risk_repository.add(build_risk())

        risks, controls = await load_collections("Data", risk_repository.find_all(), control_repository.find_all())

        assert len(risks) == 1
        assert controls == []

    @pytest.mark.asyncio
    async def test_any_failure_fails_whole_load(self, risk_repository, control_repository):
        control_repository.available = False

        with pytest.raises(UnavailableError):
            await load_collections("Data", risk_repository.find_all(), control_repository.find_all())

    @pytest.mark.asyncio
    async def test_domain_errors_are_reported_unavailable(self):
        async def missing():
            raise NotFoundError("Gone")

        with pytest.raises(UnavailableError):
            await load_collections("Data", missing())

    @pytest.mark.asyncio
    async def test_programming_errors_propagate(self):
        async def broken():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            await load_collections("Data", broken())


@pytest.mark.unit
class TestComplianceAggregator:

    @pytest.fixture
    def aggregator(self, risk_repository, control_repository, audit_repository, policy_repository,
                   user_repository):
        return ComplianceAggregator(
            risk_repository, control_repository, audit_repository, policy_repository, user_repository,
        )

    @pytest.mark.asyncio
    async def test_dashboard_stats(self, aggregator, risk_repository, control_repository):
        await risk_repository.add(build_risk(likelihood=4, impact=4, category=RiskCategory.COMPLIANCE))
        await risk_repository.add(build_risk(likelihood=1, impact=2, category=RiskCategory.TECHNICAL))
        await control_repository.add(build_control())

        stats = await aggregator.dashboard_stats()

        assert stats["overview"]["total_risks"] == 2
        assert stats["overview"]["high_risks"] == 1
        assert stats["overview"]["compliance_percentage"] == 100
        assert stats["charts"]["risks_by_category"] == [
            {"key": "Compliance", "count": 1},
            {"key": "Technical", "count": 1},
        ]
        assert {row["key"] for row in stats["charts"]["risks_by_level"]} == {"Critical", "Low"}
        assert sum(row["count"] for row in stats["charts"]["risk_trend"]) == 2

    @pytest.mark.asyncio
    async def test_unavailable_store(self, aggregator, policy_repository):
        policy_repository.available = False

        with pytest.raises(UnavailableError):
            await aggregator.overview()
