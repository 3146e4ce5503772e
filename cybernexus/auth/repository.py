"""
User Repository

User-specific queries and bookkeeping on top of a document store.
"""

from typing import Optional
from uuid import UUID

from cybernexus.core.architecture.base_repository import BaseRepository, QueryFilter
from cybernexus.core.logging import get_logger
from cybernexus.core.timeutils import utcnow
from cybernexus.auth.models import User, UserCreate, UserRole

logger = get_logger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserRepository:
    """Repository for user management"""

    def __init__(self, store: BaseRepository[User]):
        self.store = store

    async def get(self, user_id: UUID) -> Optional[User]:
        return await self.store.get(user_id)

    async def get_by_email(self, email: str) -> Optional[User]:
        return await self.store.find_first([QueryFilter("email", "eq", normalize_email(email))])

    async def create_user(self, user_data: UserCreate, role: UserRole = UserRole.USER) -> User:
        """
        Create new user

        Args:
            user_data: User creation data
            role: Role to assign

        Returns:
            Created user object
        """
        user = User(
            email=normalize_email(user_data.email),
            first_name=user_data.first_name,
            last_name=user_data.last_name,
            role=role,
            department=user_data.department,
        )
        user.set_password(user_data.password)
        user = await self.store.add(user)
        logger.info("User created", user_id=str(user.id), role=role.value)
        return user

    async def save(self, user: User) -> Optional[User]:
        return await self.store.update(user)

    async def record_failed_login(self, user: User) -> User:
        user = user.model_copy(update={"failed_login_attempts": user.failed_login_attempts + 1})
        await self.store.update(user)
        return user

    async def record_login(self, user: User, ip_address: Optional[str]) -> User:
        now = utcnow()
        user = user.model_copy(update={
            "failed_login_attempts": 0,
            "last_login": now,
            "last_activity": now,
            "last_ip": ip_address,
        })
        await self.store.update(user)
        return user

    async def touch_activity(self, user: User, ip_address: Optional[str]) -> User:
        user = user.model_copy(update={"last_activity": utcnow(), "last_ip": ip_address})
        await self.store.update(user)
        return user
