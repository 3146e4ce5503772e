"""
User administration: listing, role and status changes, statistics.
Admins may not change their own role or status.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from cybernexus.analytics.compliance import user_summary
from cybernexus.auth.models import User, UserRole
from cybernexus.core.architecture.base_repository import BaseRepository, PageResult, QueryFilter, page_request_for
from cybernexus.core.errors import NotFoundError, ValidationError
from cybernexus.core.logging import get_logger
from cybernexus.core.timeutils import utcnow

logger = get_logger(__name__)


class UserAdminService:

    def __init__(self, repository: BaseRepository[User]):
        self.repository = repository

    async def list_users(
        self,
        role: Optional[UserRole] = None,
        is_active: Optional[bool] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: str = "created_at",
        sort_order: str = "desc",
    ) -> PageResult[User]:
        filters = []
        if role:
            filters.append(QueryFilter("role", "eq", role))
        if is_active is not None:
            filters.append(QueryFilter("is_active", "eq", is_active))
        return await self.repository.find_by_criteria(
            filters, page_request_for(User, page, limit, sort_by, sort_order)
        )

    async def get_user(self, user_id: UUID) -> User:
        user = await self.repository.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    async def _change(self, user_id: UUID, acting_user: User, field: str, value: Any) -> User:
        user = await self.get_user(user_id)
        if user.id == acting_user.id:
            label = field.replace("is_active", "status")
            raise ValidationError(f"Cannot change your own {label}", [{"field": field, "message": "own account"}])

        user = user.model_copy(update={field: value, "updated_at": utcnow()})
        await self.repository.update(user)
        logger.info("User changed", user_id=str(user_id), field=field, admin_id=str(acting_user.id))
        return user

    async def change_role(self, user_id: UUID, role: UserRole, acting_user: User) -> User:
        return await self._change(user_id, acting_user, "role", role)

    async def change_status(self, user_id: UUID, is_active: bool, acting_user: User) -> User:
        return await self._change(user_id, acting_user, "is_active", is_active)

    async def stats_summary(self) -> Dict[str, Any]:
        return user_summary(await self.repository.find_all(), utcnow())
