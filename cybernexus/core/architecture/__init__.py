"""
Architecture building blocks

- Repository pattern over an in-memory store or PostgreSQL JSONB documents
- Token bucket rate limiting
"""

from .base_repository import (
    BaseRepository,
    InMemoryRepository,
    PageRequest,
    PageResult,
    PostgresDocumentRepository,
    QueryFilter,
    SortDirection,
    SortOrder,
)
from .rate_limiter import RateLimitConfig, RateLimiter, RateLimitResult

__all__ = [
    "BaseRepository",
    "InMemoryRepository",
    "PostgresDocumentRepository",
    "PageRequest",
    "PageResult",
    "QueryFilter",
    "SortDirection",
    "SortOrder",
    "RateLimitConfig",
    "RateLimiter",
    "RateLimitResult",
]
