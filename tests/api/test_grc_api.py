"""
API tests for the risk register, SoA, audits and policies
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from conftest import PASSWORD
from cybernexus.auth.models import UserRole
from cybernexus.core.timeutils import utcnow

API = "/api/v1"


def risk_payload(owner, **overrides):
    data = {
        "title": "Ransomware on file servers",
        "description": "Encryption of shared drives by malware",
        "category": "Technical",
        "likelihood": 4,
        "impact": 5,
        "owner": str(owner),
        "treatment": "Mitigate",
        "review_date": (utcnow() + timedelta(days=90)).isoformat(),
    }
    data.update(overrides)
    return data


def control_payload(control_id="A.12.3.1", **overrides):
    data = {
        "control_id": control_id,
        "control_title": "Information backup",
        "control_description": "Backup copies shall be taken and tested regularly",
        "category": "A.12 Operations Security",
        "applicability": "Applicable",
        "implementation_status": "Implemented",
        "justification": "Needed to recover from data loss",
        "responsible_owner": str(uuid4()),
        "next_review_date": (utcnow() + timedelta(days=365)).isoformat(),
    }
    data.update(overrides)
    return data


def audit_payload(**overrides):
    now = utcnow()
    data = {
        "title": "Surveillance audit",
        "type": "Surveillance",
        "scope": "Data centre operations",
        "objectives": "Confirm continued conformity",
        "audit_criteria": "ISO/IEC 27001:2013 Annex A",
        "lead_auditor": str(uuid4()),
        "planned_start_date": (now + timedelta(days=2)).isoformat(),
        "planned_end_date": (now + timedelta(days=4)).isoformat(),
    }
    data.update(overrides)
    return data


def finding_payload(**overrides):
    data = {
        "title": "Backups not tested",
        "description": "No restore test in the last twelve months",
        "severity": "High",
        "category": "Non-Conformity",
    }
    data.update(overrides)
    return data


def policy_payload(file_name="backup-policy.pdf", **overrides):
    now = utcnow()
    data = {
        "title": "Backup Policy",
        "description": "Requirements for backup and restore testing",
        "category": "Information Security Policy",
        "owner": str(uuid4()),
        "effective_date": now.isoformat(),
        "review_date": now.isoformat(),
        "next_review_date": (now + timedelta(days=20)).isoformat(),
        "file": {
            "file_name": file_name,
            "file_path": f"uploads/policies/{file_name}",
            "file_size": 4096,
            "mime_type": "application/pdf",
        },
    }
    data.update(overrides)
    return data


@pytest.mark.api
class TestRisksAPI:

    def test_create_computes_score(self, client, login_as):
        user, headers = login_as(UserRole.MANAGER)

        response = client.post(f"{API}/risks", json=risk_payload(user.id, risk_score=1), headers=headers)

        assert response.status_code == 201
        body = response.json()
        assert body["risk_id"] == "RISK-0001"
        assert body["risk_score"] == 20
        assert body["risk_level"] == "Critical"
        assert body["created_by"] == str(user.id)

    def test_user_role_cannot_create(self, client, login_as):
        user, headers = login_as(UserRole.USER)

        response = client.post(f"{API}/risks", json=risk_payload(user.id), headers=headers)

        assert response.status_code == 403

    def test_out_of_range_likelihood(self, client, login_as):
        user, headers = login_as(UserRole.AUDITOR)

        response = client.post(f"{API}/risks", json=risk_payload(user.id, likelihood=6), headers=headers)

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "likelihood"

    def test_get_update_delete(self, client, login_as):
        user, headers = login_as(UserRole.MANAGER)
        risk = client.post(f"{API}/risks", json=risk_payload(user.id), headers=headers).json()

        fetched = client.get(f"{API}/risks/{risk['id']}", headers=headers)
        updated = client.put(f"{API}/risks/{risk['id']}", json={"likelihood": 1, "impact": 2}, headers=headers)
        deleted = client.delete(f"{API}/risks/{risk['id']}", headers=headers)
        missing = client.get(f"{API}/risks/{risk['id']}", headers=headers)

        assert fetched.json()["risk_id"] == risk["risk_id"]
        assert updated.json()["risk_score"] == 2
        assert updated.json()["risk_level"] == "Low"
        assert deleted.json()["message"] == "Risk deleted successfully"
        assert missing.status_code == 404

    def test_auditor_cannot_delete(self, client, login_as):
        user, headers = login_as(UserRole.AUDITOR)
        risk = client.post(f"{API}/risks", json=risk_payload(user.id), headers=headers).json()

        response = client.delete(f"{API}/risks/{risk['id']}", headers=headers)

        assert response.status_code == 403

    def test_list_filters_and_pagination(self, client, login_as):
        user, headers = login_as(UserRole.MANAGER)
        for likelihood in (1, 2, 5):
            client.post(f"{API}/risks", json=risk_payload(user.id, likelihood=likelihood), headers=headers)

        page = client.get(f"{API}/risks", params={"limit": 2, "page": 1}, headers=headers).json()
        critical = client.get(f"{API}/risks", params={"risk_level": "Critical"}, headers=headers).json()

        assert page["total"] == 3
        assert page["total_pages"] == 2
        assert len(page["items"]) == 2
        assert critical["total"] == 1

    def test_bad_sort_field(self, client, login_as):
        _, headers = login_as(UserRole.USER)

        response = client.get(f"{API}/risks", params={"sort_by": "bogus"}, headers=headers)

        assert response.status_code == 400

    def test_stats(self, client, login_as):
        user, headers = login_as(UserRole.MANAGER)
        client.post(f"{API}/risks", json=risk_payload(user.id), headers=headers)

        stats = client.get(f"{API}/risks/stats/summary", headers=headers).json()

        assert stats["total_risks"] == 1
        assert stats["by_level"] == [{"key": "Critical", "count": 1}]

    def test_owner_receives_notification(self, client, login_as, make_user):
        owner = make_user(UserRole.USER)
        _, headers = login_as(UserRole.MANAGER)
        client.post(f"{API}/risks", json=risk_payload(owner.id), headers=headers)

        token = client.post(f"{API}/auth/login", json={"email": owner.email, "password": PASSWORD}).json()
        notifications = client.get(
            f"{API}/notifications", headers={"Authorization": f"Bearer {token['access_token']}"},
        ).json()

        assert notifications["total"] == 1
        assert notifications["unread_count"] == 1


@pytest.mark.api
class TestSoAAPI:

    def test_create_and_duplicate(self, client, login_as):
        _, headers = login_as(UserRole.MANAGER)

        created = client.post(f"{API}/soa", json=control_payload(), headers=headers)
        duplicate = client.post(f"{API}/soa", json=control_payload(), headers=headers)

        assert created.status_code == 201
        assert duplicate.status_code == 409

    def test_stats_compliance_percentage(self, client, login_as):
        _, headers = login_as(UserRole.ADMIN)
        client.post(f"{API}/soa", json=control_payload("A.12.3.1"), headers=headers)
        client.post(f"{API}/soa", json=control_payload("A.12.4.1", implementation_status="Not Implemented"),
                    headers=headers)

        stats = client.get(f"{API}/soa/stats/summary", headers=headers).json()

        assert stats["compliance_percentage"] == 50

    def test_update_and_filter(self, client, login_as):
        _, headers = login_as(UserRole.AUDITOR)
        control = client.post(f"{API}/soa", json=control_payload(implementation_status="Not Implemented"),
                              headers=headers).json()

        client.put(f"{API}/soa/{control['id']}", json={"implementation_status": "Implemented"}, headers=headers)
        implemented = client.get(f"{API}/soa", params={"implementation_status": "Implemented"}, headers=headers)

        assert implemented.json()["total"] == 1


@pytest.mark.api
class TestAuditsAPI:

    def test_findings_numbering(self, client, login_as):
        _, headers = login_as(UserRole.AUDITOR)
        audit = client.post(f"{API}/audits", json=audit_payload(), headers=headers).json()

        first = client.post(f"{API}/audits/{audit['id']}/findings", json=finding_payload(), headers=headers)
        second = client.post(f"{API}/audits/{audit['id']}/findings", json=finding_payload(), headers=headers)

        assert audit["audit_id"] == "AUD-0001"
        assert first.status_code == 201
        assert first.json()["finding_id"] == "AUD-0001-F01"
        assert second.json()["finding_id"] == "AUD-0001-F02"

    def test_deleted_finding_number_not_reused(self, client, login_as):
        _, headers = login_as(UserRole.MANAGER)
        audit = client.post(f"{API}/audits", json=audit_payload(), headers=headers).json()
        client.post(f"{API}/audits/{audit['id']}/findings", json=finding_payload(), headers=headers)

        client.delete(f"{API}/audits/{audit['id']}/findings/AUD-0001-F01", headers=headers)
        third = client.post(f"{API}/audits/{audit['id']}/findings", json=finding_payload(), headers=headers)

        assert third.json()["finding_id"] == "AUD-0001-F02"
        stored = client.get(f"{API}/audits/{audit['id']}", headers=headers).json()
        assert [f["finding_id"] for f in stored["findings"]] == ["AUD-0001-F02"]

    def test_update_finding(self, client, login_as):
        _, headers = login_as(UserRole.AUDITOR)
        audit = client.post(f"{API}/audits", json=audit_payload(), headers=headers).json()
        client.post(f"{API}/audits/{audit['id']}/findings", json=finding_payload(), headers=headers)

        response = client.put(
            f"{API}/audits/{audit['id']}/findings/AUD-0001-F01", json={"status": "Closed"}, headers=headers,
        )

        assert response.json()["status"] == "Closed"

    def test_missing_audit(self, client, login_as):
        _, headers = login_as(UserRole.AUDITOR)

        response = client.post(f"{API}/audits/{uuid4()}/findings", json=finding_payload(), headers=headers)

        assert response.status_code == 404


@pytest.mark.api
class TestPoliciesAPI:

    def test_create_policy(self, client, login_as):
        _, headers = login_as(UserRole.MANAGER)

        response = client.post(f"{API}/policies", json=policy_payload(), headers=headers)

        assert response.status_code == 201
        assert response.json()["policy_id"] == "POL-0001"
        assert response.json()["file_name"] == "backup-policy.pdf"

    def test_rejects_file_extension(self, client, login_as):
        _, headers = login_as(UserRole.MANAGER)

        response = client.post(f"{API}/policies", json=policy_payload("backup.exe"), headers=headers)

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "file.file_name"

    def test_stats_upcoming_reviews(self, client, login_as):
        _, headers = login_as(UserRole.ADMIN)
        client.post(f"{API}/policies", json=policy_payload(), headers=headers)

        stats = client.get(f"{API}/policies/stats/summary", headers=headers).json()

        assert stats["total_policies"] == 1
        assert stats["upcoming_reviews"] == 1
