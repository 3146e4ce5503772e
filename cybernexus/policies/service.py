"""
Policy Service

Only metadata of the uploaded document is kept: the API receives the
file description, not the bytes.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from cybernexus.analytics.compliance import policy_summary
from cybernexus.core.architecture.base_repository import (
    BaseRepository,
    PageResult,
    QueryFilter,
    merge_changes,
    page_request_for,
)
from cybernexus.core.errors import NotFoundError, ValidationError
from cybernexus.core.identifiers import IdentifierAllocator
from cybernexus.core.logging import get_logger
from cybernexus.core.timeutils import utcnow
from cybernexus.policies.models import (
    ALLOWED_FILE_EXTENSIONS,
    Policy,
    PolicyCategory,
    PolicyCreate,
    PolicyFile,
    PolicyStatus,
    PolicyUpdate,
)

logger = get_logger(__name__)

POLICY_PREFIX = "POL"

NULLABLE_FIELDS = ("approver", "approval_date")


def _check_file(file: PolicyFile) -> None:
    if not file.has_allowed_extension():
        raise ValidationError(errors=[{
            "field": "file.file_name",
            "message": f"Only {', '.join(ALLOWED_FILE_EXTENSIONS)} files are allowed",
        }])


class PolicyService:
    """Policy operations"""

    def __init__(self, repository: BaseRepository[Policy], allocator: IdentifierAllocator,
                 review_horizon_days: int = 30):
        self.repository = repository
        self.allocator = allocator
        self.review_horizon_days = review_horizon_days

    async def list_policies(
        self,
        category: Optional[PolicyCategory] = None,
        status: Optional[PolicyStatus] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> PageResult[Policy]:
        filters = []
        if category:
            filters.append(QueryFilter("category", "eq", category))
        if status:
            filters.append(QueryFilter("status", "eq", status))
        return await self.repository.find_by_criteria(
            filters, page_request_for(Policy, page, limit, sort_by, sort_order)
        )

    async def get_policy(self, policy_uuid: UUID) -> Policy:
        policy = await self.repository.get(policy_uuid)
        if policy is None:
            raise NotFoundError("Policy", policy_uuid)
        return policy

    async def create_policy(self, data: PolicyCreate, created_by: UUID) -> Policy:
        _check_file(data.file)
        fields = data.model_dump(exclude={"file"})
        policy = Policy(
            **fields,
            **data.file.model_dump(),
            policy_id=await self.allocator.next_identifier(),
            created_by=created_by,
        )
        policy = await self.repository.add(policy)
        logger.info("Policy created", policy_id=policy.policy_id, category=policy.category.value)
        return policy

    async def update_policy(self, policy_uuid: UUID, changes: PolicyUpdate) -> Policy:
        current = await self.get_policy(policy_uuid)
        policy = merge_changes(current, changes.model_copy(update={"file": None}), nullable=NULLABLE_FIELDS)
        if changes.file is not None:
            _check_file(changes.file)
            policy = policy.model_copy(update=changes.file.model_dump())

        saved = await self.repository.update(policy)
        if saved is None:
            raise NotFoundError("Policy", policy_uuid)
        logger.info("Policy updated", policy_id=saved.policy_id, status=saved.status.value)
        return saved

    async def delete_policy(self, policy_uuid: UUID) -> Policy:
        policy = await self.get_policy(policy_uuid)
        if not await self.repository.delete_by_id(policy_uuid):
            raise NotFoundError("Policy", policy_uuid)
        logger.info("Policy deleted", policy_id=policy.policy_id)
        return policy

    async def stats_summary(self) -> Dict[str, Any]:
        return policy_summary(await self.repository.find_all(), utcnow(), self.review_horizon_days)
