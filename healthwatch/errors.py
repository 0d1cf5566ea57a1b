"""
Typed errors raised by the core and translated to HTTP responses by the API.
"""

from typing import Any, Dict, Optional


class PortalError(Exception):
    """Base class for every error the portal surfaces to callers."""
    reason = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message, "reason": self.reason}


class Unauthenticated(PortalError):
    """No caller identity – the UI should prompt a sign-in."""
    reason = "not_authenticated"
    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class Unauthorized(PortalError):
    """Authenticated, but the resolved role lacks the base permission."""
    reason = "role_insufficient"
    status_code = 403

    def __init__(self, message: str, role: str):
        super().__init__(message)
        self.role = role

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["role"] = self.role
        return out


class Forbidden(PortalError):
    """The role permits the action class, but the caller does not own the target."""
    reason = "not_owner"
    status_code = 403


class NotFound(PortalError):
    reason = "not_found"
    status_code = 404


class ValidationError(PortalError):
    """Malformed input, caught before anything is persisted."""
    reason = "invalid_input"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        if self.field:
            out["field"] = self.field
        return out


class InvalidTransition(ValidationError):
    """A status change the record lifecycle does not define."""


class UpstreamError(PortalError):
    """Identity provider or storage failure; the underlying message is preserved."""
    reason = "upstream_error"
    status_code = 500
