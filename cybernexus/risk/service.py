"""
Risk Register Service

CRUD over the risk register. New risks receive the next RISK-NNNN
identifier; scores and levels are filled in by the consistency guard
installed on the repository, never here.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from cybernexus.analytics.compliance import risk_summary
from cybernexus.core.architecture.base_repository import (
    BaseRepository,
    PageResult,
    QueryFilter,
    merge_changes,
    page_request_for,
)
from cybernexus.core.errors import NotFoundError
from cybernexus.core.identifiers import IdentifierAllocator
from cybernexus.core.logging import get_logger
from cybernexus.notifications.models import NotificationCategory
from cybernexus.notifications.service import NotificationService
from cybernexus.risk.models import Risk, RiskCategory, RiskCreate, RiskStatus, RiskUpdate
from cybernexus.risk.scoring import RiskLevel

logger = get_logger(__name__)

RISK_PREFIX = "RISK"

# Fields a client may clear with an explicit null
NULLABLE_FIELDS = ("treatment_plan", "residual_likelihood", "residual_impact")


class RiskService:
    """Risk register operations"""

    def __init__(
        self,
        repository: BaseRepository[Risk],
        allocator: IdentifierAllocator,
        notifications: Optional[NotificationService] = None,
    ):
        self.repository = repository
        self.allocator = allocator
        self.notifications = notifications

    async def list_risks(
        self,
        category: Optional[RiskCategory] = None,
        status: Optional[RiskStatus] = None,
        risk_level: Optional[RiskLevel] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> PageResult[Risk]:
        filters = []
        if category:
            filters.append(QueryFilter("category", "eq", category))
        if status:
            filters.append(QueryFilter("status", "eq", status))
        if risk_level:
            filters.append(QueryFilter("risk_level", "eq", risk_level))
        return await self.repository.find_by_criteria(
            filters, page_request_for(Risk, page, limit, sort_by, sort_order)
        )

    async def get_risk(self, risk_id: UUID) -> Risk:
        risk = await self.repository.get(risk_id)
        if risk is None:
            raise NotFoundError("Risk", risk_id)
        return risk

    async def create_risk(self, data: RiskCreate, created_by: UUID) -> Risk:
        """Allocate the next identifier and persist a new risk"""
        risk = Risk(
            **data.model_dump(),
            risk_id=await self.allocator.next_identifier(),
            created_by=created_by,
        )
        risk = await self.repository.add(risk)
        logger.info("Risk created", risk_id=risk.risk_id, level=risk.risk_level.value)

        if risk.owner != created_by:
            await self._notify_owner(risk)
        return risk

    async def update_risk(self, risk_id: UUID, changes: RiskUpdate, updated_by: UUID) -> Risk:
        current = await self.get_risk(risk_id)
        risk = merge_changes(current, changes, nullable=NULLABLE_FIELDS)

        saved = await self.repository.update(risk)
        if saved is None:
            raise NotFoundError("Risk", risk_id)
        logger.info("Risk updated", risk_id=saved.risk_id, level=saved.risk_level.value)

        if saved.owner != current.owner and saved.owner != updated_by:
            await self._notify_owner(saved)
        return saved

    async def delete_risk(self, risk_id: UUID) -> Risk:
        risk = await self.get_risk(risk_id)
        if not await self.repository.delete_by_id(risk_id):
            raise NotFoundError("Risk", risk_id)
        logger.info("Risk deleted", risk_id=risk.risk_id)
        return risk

    async def stats_summary(self) -> Dict[str, Any]:
        return risk_summary(await self.repository.find_all())

    async def _notify_owner(self, risk: Risk) -> None:
        if self.notifications is None:
            return
        await self.notifications.notify(
            recipient=risk.owner,
            title="Risk assigned",
            message=f"You have been assigned as owner of {risk.risk_id}: {risk.title}",
            category=NotificationCategory.RISK,
            entity_type="Risk",
            entity_id=risk.id,
        )
