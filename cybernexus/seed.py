#!/usr/bin/env python3
"""
Seed demo data

Creates one user per role, sample risks, SoA controls, an audit with a
finding and a published policy. Skips everything when the admin account
already exists.

Usage: python -m cybernexus.seed
"""

import asyncio
from datetime import timedelta

from fastapi import FastAPI

from cybernexus.api.app import build_services, create_repositories
from cybernexus.audits.models import AuditCreate, FindingCreate
from cybernexus.auth.models import UserCreate, UserRole
from cybernexus.core import database
from cybernexus.core.config import settings
from cybernexus.core.identifiers import InMemorySequenceStore, PostgresSequenceStore
from cybernexus.core.logging import get_logger
from cybernexus.core.timeutils import utcnow
from cybernexus.policies.models import PolicyCreate, PolicyFile
from cybernexus.risk.models import RiskCreate
from cybernexus.soa.models import ControlCreate

logger = get_logger(__name__)

DEMO_USERS = [
    ("admin@cybernexus.com", "Admin", "User", "Admin123!", UserRole.ADMIN, "IT Security"),
    ("manager@cybernexus.com", "John", "Manager", "Manager123!", UserRole.MANAGER, "Operations"),
    ("auditor@cybernexus.com", "Sarah", "Auditor", "Auditor123!", UserRole.AUDITOR, "Compliance"),
    ("user@cybernexus.com", "Mike", "Employee", "User123!", UserRole.USER, "Finance"),
]


async def seed(state) -> None:
    if await state.auth_service.user_repo.get_by_email(DEMO_USERS[0][0]):
        logger.info("Demo data already present, nothing to do")
        return

    users = {}
    for email, first_name, last_name, password, role, department in DEMO_USERS:
        users[role] = await state.auth_service.register(
            UserCreate(
                email=email,
                first_name=first_name,
                last_name=last_name,
                password=password,
                department=department,
            ),
            role=role,
        )
    admin, manager, auditor = users[UserRole.ADMIN], users[UserRole.MANAGER], users[UserRole.AUDITOR]
    now = utcnow()

    risks = [
        RiskCreate(
            title="Unauthorized Access to Customer Database",
            description="Unauthorized personnel gaining access to customer information in the main database.",
            category="Technical",
            likelihood=3,
            impact=5,
            owner=admin.id,
            treatment="Mitigate",
            treatment_plan="Multi-factor authentication and regular access reviews",
            review_date=now + timedelta(days=30),
        ),
        RiskCreate(
            title="Data Breach via Email Phishing",
            description="Employees fall for phishing emails leading to credential compromise.",
            category="Operational",
            likelihood=4,
            impact=4,
            owner=manager.id,
            treatment="Mitigate",
            treatment_plan="Security awareness training and email filtering",
            status="In Progress",
            review_date=now + timedelta(days=60),
        ),
        RiskCreate(
            title="Ransomware Attack on Critical Systems",
            description="Ransomware infection affecting critical business systems and operations.",
            category="Technical",
            likelihood=2,
            impact=5,
            owner=admin.id,
            treatment="Mitigate",
            treatment_plan="Endpoint protection, offline backups and incident response procedures",
            status="Monitoring",
            residual_likelihood=1,
            residual_impact=5,
            review_date=now + timedelta(days=90),
        ),
    ]
    for data in risks:
        await state.risk_service.create_risk(data, auditor.id)

    controls = [
        ControlCreate(
            control_id="A.9.1.1",
            control_title="Access control policy",
            control_description="An access control policy shall be established, documented and reviewed.",
            category="A.9 Access Control",
            applicability="Applicable",
            implementation_status="Implemented",
            justification="Protects sensitive information and systems.",
            responsible_owner=admin.id,
            evidence_location="Document Management System - Policy Repository",
            next_review_date=now + timedelta(days=365),
        ),
        ControlCreate(
            control_id="A.12.1.1",
            control_title="Documented operating procedures",
            control_description="Operating procedures shall be documented and made available to users.",
            category="A.12 Operations Security",
            applicability="Applicable",
            implementation_status="Partially Implemented",
            justification="Needed for consistent and secure operations.",
            responsible_owner=manager.id,
            evidence_location="Operations Manual - Version 2.1",
            next_review_date=now + timedelta(days=180),
        ),
        ControlCreate(
            control_id="A.16.1.1",
            control_title="Responsibilities and procedures",
            control_description="Management responsibilities shall ensure an orderly response to incidents.",
            category="A.16 Information Security Incident Management",
            applicability="Applicable",
            implementation_status="Implemented",
            justification="Limits the impact of security incidents.",
            responsible_owner=admin.id,
            evidence_location="Incident Response Plan v3.0",
            next_review_date=now + timedelta(days=365),
        ),
    ]
    for data in controls:
        await state.soa_service.create_control(data, admin.id)

    audit = await state.audit_service.create_audit(
        AuditCreate(
            title="Annual ISO 27001 Internal Audit",
            type="Internal",
            scope="Information Security Management System - All departments",
            objectives="Verify compliance with ISO 27001 and identify improvements",
            audit_criteria="ISO/IEC 27001:2013 standard requirements",
            lead_auditor=auditor.id,
            audit_team=[auditor.id],
            auditees=[admin.id, manager.id],
            planned_start_date=now + timedelta(days=7),
            planned_end_date=now + timedelta(days=14),
        ),
        auditor.id,
    )
    await state.audit_service.add_finding(
        audit.id,
        FindingCreate(
            title="Incomplete Access Review Documentation",
            description="Access review records for the last quarter are incomplete for Finance.",
            severity="Medium",
            category="Non-Conformity",
            related_control="A.9.2.5",
            corrective_action="Complete the records and schedule quarterly reviews.",
            action_owner=manager.id,
            target_date=now + timedelta(days=30),
        ),
        auditor.id,
    )

    await state.policy_service.create_policy(
        PolicyCreate(
            title="Information Security Policy",
            description="Top level policy setting the direction for information security.",
            category="Information Security Policy",
            status="Published",
            owner=admin.id,
            approver=admin.id,
            approval_date=now,
            effective_date=now,
            review_date=now,
            next_review_date=now + timedelta(days=365),
            file=PolicyFile(
                file_name="information-security-policy.pdf",
                file_path="uploads/policies/information-security-policy.pdf",
                file_size=184320,
                mime_type="application/pdf",
            ),
            tags=["isms", "governance"],
        ),
        admin.id,
    )

    logger.info("Seed data created", users=len(users), risks=len(risks), controls=len(controls))


async def main():
    db_pool = None
    if settings.storage_backend == "postgres":
        db_pool = await database.init_db_pool()
        sequences = PostgresSequenceStore(db_pool)
        await sequences.create_schema()
    else:
        logger.warning("Seeding the memory backend; data is lost when this process exits")
        sequences = InMemorySequenceStore()

    app = FastAPI()
    try:
        repositories = await create_repositories(settings, db_pool)
        build_services(app, settings, repositories, sequences, db_pool)
        await seed(app.state)
    finally:
        await database.close_db_pool()

    print("\nDefault login credentials:")
    for email, _, _, password, role, _ in DEMO_USERS:
        print(f"  {role.value}: {email} / {password}")


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
