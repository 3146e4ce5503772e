"""
Pytest configuration and shared fixtures
"""

import os

# Settings are read on import; configure the test environment first
os.environ["SECRET_KEY"] = "test-secret-key-with-at-least-32-characters"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["ENVIRONMENT"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"

from datetime import timedelta
from typing import Callable, Dict, Tuple

import pytest
from faker import Faker
from fastapi.testclient import TestClient

from cybernexus.api.app import create_app
from cybernexus.audits.models import Audit, AuditStatus, AuditType, Finding, FindingCategory, FindingSeverity
from cybernexus.auth.models import User, UserCreate, UserRole
from cybernexus.core.architecture.base_repository import InMemoryRepository, stamp_updated_at
from cybernexus.core.identifiers import CounterIdentifierAllocator, InMemorySequenceStore
from cybernexus.core.timeutils import utcnow
from cybernexus.notifications.models import Notification
from cybernexus.notifications.service import NotificationService
from cybernexus.policies.models import Policy, PolicyCategory, PolicyStatus
from cybernexus.risk.guard import install_risk_guard
from cybernexus.risk.models import Risk, RiskCategory, RiskCreate, RiskTreatment
from cybernexus.soa.models import Applicability, Control, ControlCategory, ImplementationStatus

# Initialize faker
fake = Faker()

PASSWORD = "Str0ng!Passw0rd"


# Builders

def build_user(**overrides) -> User:
    data = {
        "email": fake.unique.email().lower(),
        "first_name": fake.first_name(),
        "last_name": fake.last_name(),
        "role": UserRole.USER,
    }
    data.update(overrides)
    return User(**data)


def build_risk(**overrides) -> Risk:
    data = {
        "risk_id": f"RISK-{fake.unique.random_int(1, 9999):04d}",
        "title": fake.sentence(nb_words=4),
        "description": fake.paragraph(),
        "category": RiskCategory.TECHNICAL,
        "likelihood": 3,
        "impact": 3,
        "owner": fake.uuid4(cast_to=None),
        "treatment": RiskTreatment.MITIGATE,
        "review_date": utcnow() + timedelta(days=30),
        "created_by": fake.uuid4(cast_to=None),
    }
    data.update(overrides)
    return Risk(**data)


def build_risk_create(**overrides) -> RiskCreate:
    data = {
        "title": fake.sentence(nb_words=4),
        "description": fake.paragraph(),
        "category": RiskCategory.OPERATIONAL,
        "likelihood": 2,
        "impact": 4,
        "owner": fake.uuid4(cast_to=None),
        "treatment": RiskTreatment.MITIGATE,
        "review_date": utcnow() + timedelta(days=30),
    }
    data.update(overrides)
    return RiskCreate(**data)


def build_control(**overrides) -> Control:
    data = {
        "control_id": f"A.{fake.random_int(5, 18)}.{fake.unique.random_int(1, 9999)}.1",
        "control_title": fake.sentence(nb_words=3),
        "control_description": fake.paragraph(),
        "category": ControlCategory.A9,
        "applicability": Applicability.APPLICABLE,
        "implementation_status": ImplementationStatus.IMPLEMENTED,
        "justification": fake.paragraph(),
        "responsible_owner": fake.uuid4(cast_to=None),
        "next_review_date": utcnow() + timedelta(days=365),
        "created_by": fake.uuid4(cast_to=None),
    }
    data.update(overrides)
    return Control(**data)


def build_audit(**overrides) -> Audit:
    now = utcnow()
    data = {
        "audit_id": f"AUD-{fake.unique.random_int(1, 9999):04d}",
        "title": fake.sentence(nb_words=4),
        "type": AuditType.INTERNAL,
        "scope": "All ISMS processes and locations",
        "objectives": "Verify conformity with ISO 27001",
        "audit_criteria": "ISO/IEC 27001:2013 clauses 4-10",
        "lead_auditor": fake.uuid4(cast_to=None),
        "planned_start_date": now + timedelta(days=3),
        "planned_end_date": now + timedelta(days=10),
        "status": AuditStatus.PLANNED,
        "created_by": fake.uuid4(cast_to=None),
    }
    data.update(overrides)
    return Audit(**data)


def build_finding(**overrides) -> Finding:
    data = {
        "finding_id": "AUD-0001-F01",
        "title": fake.sentence(nb_words=3),
        "description": fake.paragraph(),
        "severity": FindingSeverity.MEDIUM,
        "category": FindingCategory.NON_CONFORMITY,
    }
    data.update(overrides)
    return Finding(**data)


def build_policy(**overrides) -> Policy:
    now = utcnow()
    data = {
        "policy_id": f"POL-{fake.unique.random_int(1, 9999):04d}",
        "title": fake.sentence(nb_words=3),
        "description": fake.paragraph(),
        "category": PolicyCategory.ACCESS_CONTROL,
        "status": PolicyStatus.PUBLISHED,
        "owner": fake.uuid4(cast_to=None),
        "effective_date": now,
        "review_date": now,
        "next_review_date": now + timedelta(days=180),
        "file_name": "policy.pdf",
        "file_path": "uploads/policies/policy.pdf",
        "file_size": 2048,
        "mime_type": "application/pdf",
        "created_by": fake.uuid4(cast_to=None),
    }
    data.update(overrides)
    return Policy(**data)


# Repositories

@pytest.fixture
def risk_repository():
    """In-memory risk repository with the consistency guard installed"""
    repository = InMemoryRepository("risks", Risk, "risk_id")
    install_risk_guard(repository)
    return repository


@pytest.fixture
def control_repository():
    repository = InMemoryRepository("controls", Control, "control_id")
    repository.register_pre_save_hook(stamp_updated_at)
    return repository


@pytest.fixture
def audit_repository():
    repository = InMemoryRepository("audits", Audit, "audit_id")
    repository.register_pre_save_hook(stamp_updated_at)
    return repository


@pytest.fixture
def policy_repository():
    repository = InMemoryRepository("policies", Policy, "policy_id")
    repository.register_pre_save_hook(stamp_updated_at)
    return repository


@pytest.fixture
def user_repository():
    return InMemoryRepository("users", User, "email")


@pytest.fixture
def notification_repository():
    return InMemoryRepository("notifications", Notification)


@pytest.fixture
def notification_service(notification_repository):
    return NotificationService(notification_repository)


@pytest.fixture
def sequences():
    return InMemorySequenceStore()


@pytest.fixture
def risk_allocator(risk_repository, sequences):
    return CounterIdentifierAllocator(risk_repository, "risk_id", "RISK", sequences)


# API

@pytest.fixture
def app():
    return create_app()


@pytest.fixture
def client(app):
    """TestClient with the lifespan running, so app.state is populated"""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(app, client) -> Callable[..., User]:
    """Create a user with any role directly through the auth service"""
    def _make(role: UserRole = UserRole.USER, password: str = PASSWORD) -> User:
        data = UserCreate(
            email=fake.unique.email().lower(),
            first_name=fake.first_name(),
            last_name=fake.last_name(),
            password=password,
        )
        return client.portal.call(app.state.auth_service.register, data, role)
    return _make


@pytest.fixture
def login_as(app, make_user) -> Callable[[UserRole], Tuple[User, Dict[str, str]]]:
    """Create a user with `role` and return it with bearer headers"""
    def _login(role: UserRole = UserRole.USER) -> Tuple[User, Dict[str, str]]:
        user = make_user(role)
        token = app.state.auth_service.issue_token(user).access_token
        return user, {"Authorization": f"Bearer {token}"}
    return _login
