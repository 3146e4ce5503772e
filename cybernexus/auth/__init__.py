"""
Authentication and Authorization Module

This module provides:
- User accounts with bcrypt password hashes
- JWT access tokens
- Role-based access control
- Account lockout after repeated failed logins
"""

from .models import Token, TokenData, User, UserCreate, UserLogin, UserPublic, UserRole
from .jwt_handler import JWTHandler, TokenError, get_jwt_handler

__all__ = [
    "User",
    "UserRole",
    "UserCreate",
    "UserLogin",
    "UserPublic",
    "Token",
    "TokenData",
    "JWTHandler",
    "TokenError",
    "get_jwt_handler",
]
