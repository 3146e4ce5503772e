"""
JWT Token Handler

Manages JWT token creation, validation, and decoding for authentication.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt

from cybernexus.core.config import settings
from cybernexus.core.errors import AuthenticationError
from cybernexus.core.logging import get_logger
from cybernexus.core.timeutils import utcnow
from cybernexus.auth.models import TokenData, User

logger = get_logger(__name__)

TOKEN_EXPIRED = "TOKEN_EXPIRED"
TOKEN_INVALID = "TOKEN_INVALID"


class TokenError(AuthenticationError):
    """Bearer token rejected; `reason` is TOKEN_EXPIRED or TOKEN_INVALID"""

    def __init__(self, message: str, reason: str):
        super().__init__(message)
        self.reason = reason


class JWTHandler:
    """Handle JWT token operations"""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 60 * 24 * 7,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_expire_minutes = access_token_expire_minutes

    @property
    def expires_in(self) -> int:
        return self.access_token_expire_minutes * 60

    def create_access_token(self, user: User, expires_delta: Optional[timedelta] = None) -> str:
        """
        Create JWT access token for user

        Args:
            user: User object
            expires_delta: Optional custom expiration time

        Returns:
            Encoded JWT token string
        """
        now = utcnow()
        expire = now + (expires_delta or timedelta(minutes=self.access_token_expire_minutes))

        token_data = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role.value,
            "exp": expire,
            "iat": now,
            "type": "access",
        }

        encoded_jwt = jwt.encode(token_data, self.secret_key, algorithm=self.algorithm)
        logger.debug("Access token created", user_id=str(user.id))
        return encoded_jwt

    def decode_token(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate JWT token

        Raises:
            TokenError: If the token is expired or invalid
        """
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as e:
            raise TokenError("Token expired", TOKEN_EXPIRED) from e
        except JWTError as e:
            raise TokenError("Invalid token", TOKEN_INVALID) from e

    def verify_token(self, token: str) -> TokenData:
        """Verify an access token and return its payload"""
        payload = self.decode_token(token)

        if payload.get("type") != "access":
            raise TokenError("Invalid token", TOKEN_INVALID)

        try:
            return TokenData(
                user_id=payload["sub"],
                email=payload.get("email", ""),
                role=payload["role"],
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (KeyError, ValueError) as e:
            logger.warning("Malformed token payload", error=str(e))
            raise TokenError("Invalid token", TOKEN_INVALID) from e


# Global JWT handler instance
_jwt_handler: Optional[JWTHandler] = None


def get_jwt_handler() -> JWTHandler:
    """Get global JWT handler instance"""
    global _jwt_handler

    if _jwt_handler is None:
        _jwt_handler = JWTHandler(
            secret_key=settings.secret_key,
            algorithm=settings.jwt_algorithm,
            access_token_expire_minutes=settings.access_token_expire_minutes,
        )

    return _jwt_handler
