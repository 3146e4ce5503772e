"""
Audit Service

Audits and their embedded findings. A finding is always written by
reloading its parent audit, mutating the copy and saving the whole
document back. Audits are versioned, so a save based on a stale read
fails with ConflictError instead of overwriting a concurrent change.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from cybernexus.analytics.compliance import audit_summary
from cybernexus.audits.models import (
    Audit,
    AuditCreate,
    AuditStatus,
    AuditType,
    AuditUpdate,
    Finding,
    FindingCreate,
    FindingUpdate,
)
from cybernexus.core.architecture.base_repository import (
    BaseRepository,
    PageResult,
    QueryFilter,
    merge_changes,
    page_request_for,
)
from cybernexus.core.errors import NotFoundError
from cybernexus.core.identifiers import IdentifierAllocator, format_finding_id
from cybernexus.core.logging import get_logger
from cybernexus.notifications.models import NotificationCategory, NotificationType
from cybernexus.notifications.service import NotificationService

logger = get_logger(__name__)

AUDIT_PREFIX = "AUD"

AUDIT_NULLABLE_FIELDS = (
    "actual_start_date",
    "actual_end_date",
    "overall_conclusion",
    "recommendations",
    "report_file",
)
FINDING_NULLABLE_FIELDS = ("related_control", "corrective_action", "action_owner", "target_date")


class AuditService:
    """Audit and finding operations"""

    def __init__(
        self,
        repository: BaseRepository[Audit],
        allocator: IdentifierAllocator,
        notifications: Optional[NotificationService] = None,
    ):
        self.repository = repository
        self.allocator = allocator
        self.notifications = notifications

    async def list_audits(
        self,
        type: Optional[AuditType] = None,
        status: Optional[AuditStatus] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> PageResult[Audit]:
        filters = []
        if type:
            filters.append(QueryFilter("type", "eq", type))
        if status:
            filters.append(QueryFilter("status", "eq", status))
        return await self.repository.find_by_criteria(
            filters, page_request_for(Audit, page, limit, sort_by, sort_order)
        )

    async def get_audit(self, audit_uuid: UUID) -> Audit:
        audit = await self.repository.get(audit_uuid)
        if audit is None:
            raise NotFoundError("Audit", audit_uuid)
        return audit

    async def create_audit(self, data: AuditCreate, created_by: UUID) -> Audit:
        audit = Audit(
            **data.model_dump(),
            audit_id=await self.allocator.next_identifier(),
            created_by=created_by,
        )
        audit = await self.repository.add(audit)
        logger.info("Audit created", audit_id=audit.audit_id, type=audit.type.value)
        return audit

    async def update_audit(self, audit_uuid: UUID, changes: AuditUpdate) -> Audit:
        current = await self.get_audit(audit_uuid)
        saved = await self.repository.update(merge_changes(current, changes, nullable=AUDIT_NULLABLE_FIELDS))
        if saved is None:
            raise NotFoundError("Audit", audit_uuid)
        logger.info("Audit updated", audit_id=saved.audit_id, status=saved.status.value)
        return saved

    async def delete_audit(self, audit_uuid: UUID) -> Audit:
        audit = await self.get_audit(audit_uuid)
        if not await self.repository.delete_by_id(audit_uuid):
            raise NotFoundError("Audit", audit_uuid)
        logger.info("Audit deleted", audit_id=audit.audit_id, findings=len(audit.findings))
        return audit

    async def stats_summary(self) -> Dict[str, Any]:
        return audit_summary(await self.repository.find_all())

    async def _save(self, audit: Audit) -> Audit:
        saved = await self.repository.update(audit)
        if saved is None:
            raise NotFoundError("Audit", audit.id)
        return saved

    async def add_finding(self, audit_uuid: UUID, data: FindingCreate, created_by: UUID) -> Finding:
        """
        Append a finding numbered from the audit's finding sequence.

        The sequence only grows, so numbers freed by a deletion are never
        handed out again.
        """
        audit = await self.get_audit(audit_uuid)
        number = audit.finding_sequence + 1
        finding = Finding(**data.model_dump(), finding_id=format_finding_id(audit.audit_id, number))

        audit = audit.model_copy(update={
            "findings": [*audit.findings, finding],
            "finding_sequence": number,
        })
        await self._save(audit)
        logger.info("Finding added", audit_id=audit.audit_id, finding_id=finding.finding_id)

        if finding.action_owner and finding.action_owner != created_by:
            await self._notify_action_owner(audit, finding)
        return finding

    def _find(self, audit: Audit, finding_id: str) -> Finding:
        finding = audit.get_finding(finding_id)
        if finding is None:
            raise NotFoundError("Finding", finding_id)
        return finding

    async def update_finding(self, audit_uuid: UUID, finding_id: str, changes: FindingUpdate,
                             updated_by: UUID) -> Finding:
        audit = await self.get_audit(audit_uuid)
        current = self._find(audit, finding_id)
        updated = merge_changes(current, changes, nullable=FINDING_NULLABLE_FIELDS)

        findings = [updated if f.id == current.id else f for f in audit.findings]
        await self._save(audit.model_copy(update={"findings": findings}))
        logger.info("Finding updated", audit_id=audit.audit_id, finding_id=updated.finding_id)

        if updated.action_owner and updated.action_owner not in (current.action_owner, updated_by):
            await self._notify_action_owner(audit, updated)
        return updated

    async def delete_finding(self, audit_uuid: UUID, finding_id: str) -> Finding:
        audit = await self.get_audit(audit_uuid)
        finding = self._find(audit, finding_id)

        findings = [f for f in audit.findings if f.id != finding.id]
        await self._save(audit.model_copy(update={"findings": findings}))
        logger.info("Finding deleted", audit_id=audit.audit_id, finding_id=finding.finding_id)
        return finding

    async def _notify_action_owner(self, audit: Audit, finding: Finding) -> None:
        if self.notifications is None:
            return
        await self.notifications.notify(
            recipient=finding.action_owner,
            title="Finding assigned",
            message=f"You are the action owner of {finding.finding_id}: {finding.title}",
            category=NotificationCategory.AUDIT,
            type=NotificationType.WARNING,
            entity_type="Audit",
            entity_id=audit.id,
        )
