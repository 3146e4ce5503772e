"""
Authentication Models

Defines the user model, its role, and the login/token schemas.
"""

from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict, EmailStr, Field

from cybernexus.core.config import settings
from cybernexus.core.timeutils import UTCDateTime, utcnow

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)


class UserRole(str, Enum):
    """Roles, from most to least privileged"""
    ADMIN = "Admin"
    MANAGER = "Manager"
    AUDITOR = "Auditor"
    USER = "User"


class User(BaseModel):
    """User model"""
    id: UUID = Field(default_factory=uuid4)
    email: EmailStr
    first_name: str
    last_name: str
    password_hash: Optional[str] = None
    role: UserRole = UserRole.USER
    department: Optional[str] = None
    is_active: bool = True
    failed_login_attempts: int = 0
    last_login: Optional[UTCDateTime] = None
    last_activity: Optional[UTCDateTime] = None
    last_ip: Optional[str] = None
    created_at: UTCDateTime = Field(default_factory=utcnow)
    updated_at: UTCDateTime = Field(default_factory=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def set_password(self, password: str) -> None:
        """Hash and set user password"""
        self.password_hash = pwd_context.hash(password)

    def verify_password(self, password: str) -> bool:
        """Verify password against hash"""
        if not self.password_hash:
            return False
        return pwd_context.verify(password, self.password_hash)

    def is_locked(self, max_failed_logins: int) -> bool:
        return self.failed_login_attempts >= max_failed_logins

    def has_role(self, *roles: UserRole) -> bool:
        return self.role in roles

    def summary(self) -> dict:
        """Name and contact fields used when a user is embedded in another response"""
        return {
            "id": str(self.id),
            "first_name": self.first_name,
            "last_name": self.last_name,
            "email": self.email,
        }


class UserPublic(BaseModel):
    """User as returned by the API"""
    id: UUID
    email: EmailStr
    first_name: str
    last_name: str
    role: UserRole
    department: Optional[str] = None
    is_active: bool
    failed_login_attempts: int = 0
    last_login: Optional[UTCDateTime] = None
    last_activity: Optional[UTCDateTime] = None
    created_at: UTCDateTime
    updated_at: UTCDateTime

    @classmethod
    def from_user(cls, user: User) -> "UserPublic":
        return cls.model_validate(user.model_dump(exclude={"password_hash", "last_ip"}))


class UserCreate(BaseModel):
    """User registration model"""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "email": "analyst@example.com",
                "first_name": "Dana",
                "last_name": "Reyes",
                "password": "S3cure!Passw0rd",
                "department": "Security",
            }
        },
    )

    email: EmailStr
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=8, max_length=72)
    department: Optional[str] = None


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    department: Optional[str] = None


class UserLogin(BaseModel):
    """User login model"""
    email: EmailStr
    password: str


class Token(BaseModel):
    """Token response model"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: UserPublic


class TokenData(BaseModel):
    """Token payload data"""
    user_id: UUID
    email: str
    role: UserRole
    exp: UTCDateTime
