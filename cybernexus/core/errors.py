"""
Domain errors for CyberNexus ISMS.

Every error carries the HTTP status it maps to; the API layer turns
them into JSON responses, services never build HTTP responses themselves.
"""

from typing import Any, Dict, List, Optional


class GRCError(Exception):
    """Base class for all domain errors"""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.message}
        body.update(self.details)
        return body


class ValidationError(GRCError):
    """Payload failed field-level constraints"""

    status_code = 400

    def __init__(self, message: str = "Validation failed", errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message, {"errors": errors or []})
        self.errors = errors or []


class NotFoundError(GRCError):
    """Referenced record does not exist"""

    status_code = 404

    def __init__(self, resource: str, identifier: Any = None):
        super().__init__(f"{resource} not found")
        self.resource = resource
        self.identifier = identifier


class ConflictError(GRCError):
    """Uniqueness violated; the caller may retry with a fresh identifier"""

    status_code = 409

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        super().__init__(message, {"retryable": True})
        self.field = field
        self.value = value


class UnavailableError(GRCError):
    """Underlying store is unreachable"""

    status_code = 503


class AuthenticationError(GRCError):
    """Missing, invalid or expired credentials"""

    status_code = 401


class AccountLockedError(GRCError):
    """Too many failed login attempts"""

    status_code = 423


class PermissionDeniedError(GRCError):
    """Authenticated user lacks the required role"""

    status_code = 403
