"""
Unit tests for the Statement of Applicability and policy services
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from cybernexus.core.errors import ConflictError, NotFoundError, ValidationError
from cybernexus.core.identifiers import CounterIdentifierAllocator
from cybernexus.core.timeutils import utcnow
from cybernexus.policies.models import PolicyCategory, PolicyCreate, PolicyFile, PolicyStatus, PolicyUpdate
from cybernexus.policies.service import PolicyService
from cybernexus.soa.models import (
    Applicability,
    ControlCategory,
    ControlCreate,
    ControlUpdate,
    ImplementationStatus,
)
from cybernexus.soa.service import SoAService


def control_create(control_id="A.9.1.1", **overrides) -> ControlCreate:
    data = {
        "control_id": control_id,
        "control_title": "Access control policy",
        "control_description": "An access control policy shall be established",
        "category": ControlCategory.A9,
        "applicability": Applicability.APPLICABLE,
        "implementation_status": ImplementationStatus.PARTIALLY_IMPLEMENTED,
        "justification": "Required to protect information assets",
        "responsible_owner": uuid4(),
        "next_review_date": utcnow() + timedelta(days=365),
    }
    data.update(overrides)
    return ControlCreate(**data)


def policy_file(name="access-control.pdf") -> PolicyFile:
    return PolicyFile(file_name=name, file_path=f"uploads/policies/{name}", file_size=1024,
                      mime_type="application/pdf")


def policy_create(**overrides) -> PolicyCreate:
    now = utcnow()
    data = {
        "title": "Access Control Policy",
        "description": "Rules governing logical access to systems",
        "category": PolicyCategory.ACCESS_CONTROL,
        "owner": uuid4(),
        "effective_date": now,
        "review_date": now,
        "next_review_date": now + timedelta(days=365),
        "file": policy_file(),
    }
    data.update(overrides)
    return PolicyCreate(**data)


@pytest.fixture
def soa_service(control_repository):
    return SoAService(control_repository)


@pytest.fixture
def policy_service(policy_repository, sequences):
    return PolicyService(policy_repository, CounterIdentifierAllocator(policy_repository, "policy_id", "POL", sequences))


@pytest.mark.unit
class TestSoAService:

    @pytest.mark.asyncio
    async def test_create_and_get(self, soa_service):
        creator = uuid4()

        control = await soa_service.create_control(control_create(), creator)

        assert (await soa_service.get_control(control.id)).control_id == "A.9.1.1"
        assert control.created_by == creator

    @pytest.mark.asyncio
    async def test_duplicate_control_id(self, soa_service):
        await soa_service.create_control(control_create("A.9.1.1"), uuid4())

        with pytest.raises(ConflictError) as exc_info:
            await soa_service.create_control(control_create("A.9.1.1"), uuid4())

        assert exc_info.value.field == "control_id"

    @pytest.mark.asyncio
    async def test_update_to_taken_control_id(self, soa_service):
        await soa_service.create_control(control_create("A.9.1.1"), uuid4())
        other = await soa_service.create_control(control_create("A.9.1.2"), uuid4())

        with pytest.raises(ConflictError):
            await soa_service.update_control(other.id, ControlUpdate(control_id="A.9.1.1"))

    @pytest.mark.asyncio
    async def test_update_keeping_own_control_id(self, soa_service):
        control = await soa_service.create_control(control_create("A.9.1.1"), uuid4())

        updated = await soa_service.update_control(
            control.id,
            ControlUpdate(control_id="A.9.1.1", implementation_status=ImplementationStatus.IMPLEMENTED),
        )

        assert updated.implementation_status == ImplementationStatus.IMPLEMENTED

    @pytest.mark.asyncio
    async def test_list_sorted_by_control_id(self, soa_service):
        for control_id in ("A.12.1.1", "A.5.1.1", "A.9.2.1"):
            await soa_service.create_control(control_create(control_id), uuid4())

        page = await soa_service.list_controls()

        assert [c.control_id for c in page.items] == ["A.12.1.1", "A.5.1.1", "A.9.2.1"]

    @pytest.mark.asyncio
    async def test_stats_summary(self, soa_service):
        await soa_service.create_control(
            control_create("A.5.1.1", implementation_status=ImplementationStatus.IMPLEMENTED), uuid4(),
        )
        await soa_service.create_control(control_create("A.5.1.2"), uuid4())
        await soa_service.create_control(
            control_create("A.5.1.3", applicability=Applicability.NOT_APPLICABLE,
                           implementation_status=ImplementationStatus.NOT_APPLICABLE),
            uuid4(),
        )

        stats = await soa_service.stats_summary()

        assert stats["total_controls"] == 3
        assert stats["applicable_controls"] == 2
        assert stats["compliance_percentage"] == 50

    @pytest.mark.asyncio
    async def test_delete(self, soa_service):
        control = await soa_service.create_control(control_create(), uuid4())

        await soa_service.delete_control(control.id)

        with pytest.raises(NotFoundError):
            await soa_service.get_control(control.id)


@pytest.mark.unit
class TestPolicyService:

    @pytest.mark.asyncio
    async def test_create_flattens_file_metadata(self, policy_service):
        policy = await policy_service.create_policy(policy_create(), uuid4())

        assert policy.policy_id == "POL-0001"
        assert policy.file_name == "access-control.pdf"
        assert policy.file_size == 1024
        assert policy.status == PolicyStatus.DRAFT

    @pytest.mark.parametrize("name", ["policy.exe", "policy.pdf.zip", "policy"])
    @pytest.mark.asyncio
    async def test_rejects_disallowed_extension(self, policy_service, name):
        with pytest.raises(ValidationError) as exc_info:
            await policy_service.create_policy(policy_create(file=policy_file(name)), uuid4())

        assert exc_info.value.errors[0]["field"] == "file.file_name"

    @pytest.mark.asyncio
    async def test_extension_check_is_case_insensitive(self, policy_service):
        policy = await policy_service.create_policy(policy_create(file=policy_file("POLICY.DOCX")), uuid4())

        assert policy.file_name == "POLICY.DOCX"

    @pytest.mark.asyncio
    async def test_update_replaces_file(self, policy_service):
        policy = await policy_service.create_policy(policy_create(), uuid4())

        updated = await policy_service.update_policy(
            policy.id, PolicyUpdate(status=PolicyStatus.PUBLISHED, file=policy_file("v2.docx")),
        )

        assert updated.status == PolicyStatus.PUBLISHED
        assert updated.file_name == "v2.docx"
        assert updated.title == policy.title

    @pytest.mark.asyncio
    async def test_update_rejects_bad_file(self, policy_service):
        policy = await policy_service.create_policy(policy_create(), uuid4())

        with pytest.raises(ValidationError):
            await policy_service.update_policy(policy.id, PolicyUpdate(file=policy_file("v2.sh")))

    @pytest.mark.asyncio
    async def test_stats_upcoming_reviews(self, policy_service):
        await policy_service.create_policy(policy_create(next_review_date=utcnow() + timedelta(days=10)), uuid4())
        await policy_service.create_policy(policy_create(), uuid4())

        stats = await policy_service.stats_summary()

        assert stats["total_policies"] == 2
        assert stats["upcoming_reviews"] == 1
