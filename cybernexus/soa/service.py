"""
Statement of Applicability Service

Control identifiers are supplied by the caller. Uniqueness is checked
before insert and whenever an update changes the identifier; the
repository's unique key still rejects anything that slips through a race.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from cybernexus.analytics.compliance import control_summary
from cybernexus.core.architecture.base_repository import (
    BaseRepository,
    PageResult,
    QueryFilter,
    merge_changes,
    page_request_for,
)
from cybernexus.core.errors import ConflictError, NotFoundError
from cybernexus.core.logging import get_logger
from cybernexus.soa.models import (
    Applicability,
    Control,
    ControlCategory,
    ControlCreate,
    ControlUpdate,
    ImplementationStatus,
)

logger = get_logger(__name__)

NULLABLE_FIELDS = ("implementation_details", "evidence_location", "last_review_date")


class SoAService:
    """SoA control operations"""

    def __init__(self, repository: BaseRepository[Control]):
        self.repository = repository

    async def list_controls(
        self,
        category: Optional[ControlCategory] = None,
        applicability: Optional[Applicability] = None,
        implementation_status: Optional[ImplementationStatus] = None,
        page: int = 1,
        limit: int = 20,
        sort_by: str = "control_id",
        sort_order: str = "asc",
    ) -> PageResult[Control]:
        filters = []
        if category:
            filters.append(QueryFilter("category", "eq", category))
        if applicability:
            filters.append(QueryFilter("applicability", "eq", applicability))
        if implementation_status:
            filters.append(QueryFilter("implementation_status", "eq", implementation_status))
        return await self.repository.find_by_criteria(
            filters, page_request_for(Control, page, limit, sort_by, sort_order)
        )

    async def get_control(self, control_uuid: UUID) -> Control:
        control = await self.repository.get(control_uuid)
        if control is None:
            raise NotFoundError("Control", control_uuid)
        return control

    async def _ensure_control_id_free(self, control_id: str) -> None:
        if await self.repository.exists_by_field("control_id", control_id):
            raise ConflictError(f"Control ID '{control_id}' already exists", field="control_id", value=control_id)

    async def create_control(self, data: ControlCreate, created_by: UUID) -> Control:
        await self._ensure_control_id_free(data.control_id)
        control = await self.repository.add(Control(**data.model_dump(), created_by=created_by))
        logger.info("Control created", control_id=control.control_id)
        return control

    async def update_control(self, control_uuid: UUID, changes: ControlUpdate) -> Control:
        current = await self.get_control(control_uuid)
        if changes.control_id and changes.control_id != current.control_id:
            await self._ensure_control_id_free(changes.control_id)

        saved = await self.repository.update(merge_changes(current, changes, nullable=NULLABLE_FIELDS))
        if saved is None:
            raise NotFoundError("Control", control_uuid)
        logger.info("Control updated", control_id=saved.control_id, status=saved.implementation_status.value)
        return saved

    async def delete_control(self, control_uuid: UUID) -> Control:
        control = await self.get_control(control_uuid)
        if not await self.repository.delete_by_id(control_uuid):
            raise NotFoundError("Control", control_uuid)
        logger.info("Control deleted", control_id=control.control_id)
        return control

    async def stats_summary(self) -> Dict[str, Any]:
        return control_summary(await self.repository.find_all())
