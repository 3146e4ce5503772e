"""
Authentication API endpoints.
"""

from fastapi import APIRouter, Depends, status

from cybernexus.api.dependencies import (
    ActivityLogger,
    get_activity_logger,
    get_auth_service,
    get_client_info,
    get_current_user,
)
from cybernexus.auth.models import ProfileUpdate, Token, User, UserCreate, UserLogin, UserPublic
from cybernexus.auth.service import AuthService
from cybernexus.core.logging import get_logger
from cybernexus.security.models import AuditAction, ClientInfo

logger = get_logger(__name__)

router = APIRouter()


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserCreate,
    auth_service: AuthService = Depends(get_auth_service),
) -> Token:
    """
    Register new user

    Self-registered accounts always get the User role; admins promote
    them through the users API.
    """
    user = await auth_service.register(user_data)
    return auth_service.issue_token(user)


@router.post("/login", response_model=Token)
async def login(
    credentials: UserLogin,
    client: ClientInfo = Depends(get_client_info),
    auth_service: AuthService = Depends(get_auth_service),
) -> Token:
    """
    Login user

    Five consecutive failures lock the account until an admin unlocks it.
    """
    return await auth_service.login(credentials, client)


@router.get("/profile", response_model=UserPublic)
async def get_profile(current_user: User = Depends(get_current_user)) -> UserPublic:
    return UserPublic.from_user(current_user)


@router.put("/profile", response_model=UserPublic)
async def update_profile(
    changes: ProfileUpdate,
    current_user: User = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> UserPublic:
    user = await auth_service.update_profile(current_user, changes)
    await activity.record(AuditAction.UPDATE, "User", user.id)
    return UserPublic.from_user(user)
