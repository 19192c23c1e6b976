"""SharkBoot exception hierarchy.

Every error carries the HTTP status the route layer should answer with, so
the application-level handler can render a uniform envelope.
"""

from typing import Any, Optional


class SharkbootError(Exception):
    """Base exception for all SharkBoot errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str = "",
        code: str = "SHARKBOOT_ERROR",
        details: Any = None,
    ):
        self.message = message
        self.code = code
        self.details = details
        super().__init__(message)


class NotFoundError(SharkbootError):
    """Raised when a tenant-scoped lookup finds nothing.

    The message never says whether the row exists under another tenant.
    """

    status_code = 404

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, code="NOT_FOUND")


class ValidationError(SharkbootError):
    """Raised on missing or malformed required input."""

    status_code = 400

    def __init__(self, message: str = "Invalid request", details: Any = None):
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class ConflictError(SharkbootError):
    """Raised on uniqueness violations."""

    status_code = 409

    def __init__(self, message: str = "Resource already exists"):
        super().__init__(message, code="CONFLICT")


class AuthenticationError(SharkbootError):
    """Raised when credentials or bearer tokens are rejected."""

    status_code = 401

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, code="UNAUTHORIZED")


class PlanLimitError(SharkbootError):
    """Raised when a tenant reached its plan quota."""

    status_code = 403

    def __init__(self, message: str = "Plan limit reached", details: Any = None):
        super().__init__(message, code="PLAN_LIMIT", details=details)


class RemoteApiError(SharkbootError):
    """A single call to OpenAI or the Graph API failed.

    ``remote_status`` is the status the remote side answered with, or None
    when no response was received (timeout, connection error).
    """

    status_code = 502

    def __init__(
        self,
        service: str,
        remote_status: Optional[int],
        message: str = "Remote API error",
        details: Any = None,
    ):
        self.service = service
        self.remote_status = remote_status
        super().__init__(message, code="REMOTE_API_ERROR", details=details)

    @property
    def is_not_found(self) -> bool:
        return self.remote_status == 404

    def __repr__(self) -> str:
        return f"RemoteApiError({self.service!r}, {self.remote_status!r}, {self.message!r})"


class DependencyError(SharkbootError):
    """A required remote side effect failed, so the operation as a whole failed."""

    status_code = 502

    def __init__(self, message: str = "Required remote dependency failed", details: Any = None):
        super().__init__(message, code="DEPENDENCY_FAILED", details=details)
