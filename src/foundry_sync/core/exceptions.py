"""Custom exceptions for Foundry Sync."""

from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Error codes reported by the platform API."""

    NOT_AUTHORIZED = "CF-NotAuthorized"
    RESOURCE_NOT_FOUND = "CF-ResourceNotFound"
    UNKNOWN = "UnknownError"


class FoundrySyncError(Exception):
    """Base exception for all sync errors."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class ConfigurationError(FoundrySyncError):
    """Configuration error."""
    pass


class ResourceNotFoundError(FoundrySyncError):
    """Entity does not exist on the platform."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, code=ErrorCode.RESOURCE_NOT_FOUND)


class RemoteApiError(FoundrySyncError):
    """A platform call failed."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, code=code or ErrorCode.UNKNOWN)
        self.cause = cause

    @property
    def is_not_authorized(self) -> bool:
        return self.code == ErrorCode.NOT_AUTHORIZED


class UnauthorizedError(RemoteApiError):
    """Caller lacks permission for the requested resource."""

    def __init__(self, message: str = "Not authorized", cause: Optional[BaseException] = None):
        super().__init__(message, code=ErrorCode.NOT_AUTHORIZED, cause=cause)


class RefreshAbortedError(FoundrySyncError):
    """A reconciliation cycle could not run to completion."""
    pass


class PipelineError(FoundrySyncError):
    """Deployment pipeline step failed."""
    pass


class PipelineTerminalFailure(PipelineError):
    """Package or build reached a terminal failure state."""

    def __init__(self, message: str, status: Optional[str] = None):
        super().__init__(message, code="PipelineTerminalFailure")
        self.status = status


class UnexpectedResponseError(PipelineError):
    """Platform reported success but returned no usable payload."""
    pass


class PipelineTimeoutError(PipelineError):
    """Polling did not reach a terminal state before the deadline."""
    pass
