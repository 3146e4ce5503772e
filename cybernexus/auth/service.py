"""
Authentication Service

High-level authentication operations: registration, login with account
lockout, bearer token resolution and profile maintenance.
"""

from typing import Optional

from cybernexus.auth.jwt_handler import JWTHandler, TOKEN_EXPIRED, TokenError
from cybernexus.auth.models import ProfileUpdate, Token, User, UserCreate, UserLogin, UserPublic, UserRole
from cybernexus.auth.repository import UserRepository
from cybernexus.core.architecture.base_repository import merge_changes
from cybernexus.core.errors import AccountLockedError, AuthenticationError, ConflictError
from cybernexus.core.logging import get_logger
from cybernexus.security.models import ClientInfo, SecurityEvent
from cybernexus.security.service import SecurityService

logger = get_logger(__name__)


class AuthService:
    """Service for authentication operations"""

    def __init__(
        self,
        user_repo: UserRepository,
        jwt_handler: JWTHandler,
        security: SecurityService,
        max_failed_logins: int = 5,
    ):
        self.user_repo = user_repo
        self.jwt_handler = jwt_handler
        self.security = security
        self.max_failed_logins = max_failed_logins

    def issue_token(self, user: User) -> Token:
        return Token(
            access_token=self.jwt_handler.create_access_token(user),
            expires_in=self.jwt_handler.expires_in,
            user=UserPublic.from_user(user),
        )

    async def register(self, user_data: UserCreate, role: UserRole = UserRole.USER) -> User:
        """
        Register new user

        Args:
            user_data: User registration data
            role: Role to assign; self-registration always gets User

        Returns:
            Created user object

        Raises:
            ConflictError: If the email is already registered
        """
        if await self.user_repo.get_by_email(user_data.email):
            raise ConflictError("User already exists with this email", field="email", value=user_data.email)
        return await self.user_repo.create_user(user_data, role)

    async def login(self, credentials: UserLogin, client: Optional[ClientInfo] = None) -> Token:
        """
        Authenticate user and issue an access token

        Raises:
            AuthenticationError: If credentials are invalid or the account is inactive
            AccountLockedError: If too many failed attempts were recorded
        """
        user = await self.user_repo.get_by_email(credentials.email)
        if user is None or not user.is_active:
            await self.security.log_security_event(
                SecurityEvent.AUTH_FAILED,
                f"Failed login attempt for email: {credentials.email}",
                client,
                status_code=401,
            )
            raise AuthenticationError("Invalid credentials")

        if user.is_locked(self.max_failed_logins):
            await self.security.log_security_event(
                SecurityEvent.ACCOUNT_LOCKED, "Login attempt on locked account", client, user.id, status_code=423,
            )
            raise AccountLockedError("Account temporarily locked due to suspicious activity")

        if not user.verify_password(credentials.password):
            user = await self.user_repo.record_failed_login(user)
            await self.security.log_security_event(
                SecurityEvent.AUTH_FAILED,
                f"Invalid password for user: {credentials.email}",
                client,
                user.id,
                status_code=401,
            )
            raise AuthenticationError("Invalid credentials")

        user = await self.user_repo.record_login(user, client.ip_address if client else None)
        await self.security.log_security_event(
            SecurityEvent.LOGIN_SUCCESS, f"Successful login for user: {user.email}", client, user.id,
        )
        logger.info("User logged in", user_id=str(user.id))
        return self.issue_token(user)

    async def resolve_user(self, token: Optional[str], client: Optional[ClientInfo] = None) -> User:
        """
        Resolve a bearer token to an active, unlocked user and record the activity

        Raises:
            AuthenticationError: Missing, expired or invalid token, unknown or inactive user
            AccountLockedError: Account locked
        """
        if not token:
            await self.security.log_security_event(
                SecurityEvent.AUTH_FAILED, "No token provided", client, status_code=401,
            )
            raise AuthenticationError("Access denied. No token provided.")

        try:
            token_data = self.jwt_handler.verify_token(token)
        except TokenError as e:
            event = SecurityEvent.TOKEN_EXPIRED if e.reason == TOKEN_EXPIRED else SecurityEvent.TOKEN_INVALID
            await self.security.log_security_event(event, e.message, client, status_code=401)
            raise

        user = await self.user_repo.get(token_data.user_id)
        if user is None:
            await self.security.log_security_event(
                SecurityEvent.AUTH_FAILED, "User not found", client, status_code=401,
            )
            raise AuthenticationError("Token is not valid")

        if not user.is_active:
            await self.security.log_security_event(
                SecurityEvent.AUTH_FAILED, "Inactive user attempted access", client, user.id, status_code=401,
            )
            raise AuthenticationError("Account is deactivated")

        if user.is_locked(self.max_failed_logins):
            await self.security.log_security_event(
                SecurityEvent.ACCOUNT_LOCKED, "Too many failed attempts", client, user.id, status_code=423,
            )
            raise AccountLockedError("Account temporarily locked due to suspicious activity")

        return await self.user_repo.touch_activity(user, client.ip_address if client else None)

    async def update_profile(self, user: User, changes: ProfileUpdate) -> User:
        user = merge_changes(user, changes)
        await self.user_repo.save(user)
        return user
