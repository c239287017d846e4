"""Error taxonomy surfaced to tool callers."""

from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Closed set of error codes carried by failure envelopes."""

    NOT_FOUND = "NOT_FOUND"
    VALIDATION = "VALIDATION"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    CONFIRMATION_REQUIRED = "CONFIRMATION_REQUIRED"


class ToolError(Exception):
    """Raised inside a tool to end the call with a failure envelope."""

    code = ErrorCode.UPSTREAM_ERROR

    def __init__(
        self,
        message: str,
        details: Optional[Any] = None,
        code: Optional[ErrorCode] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        if code is not None:
            self.code = code


class NotFoundError(ToolError):
    code = ErrorCode.NOT_FOUND


class ValidationError(ToolError):
    code = ErrorCode.VALIDATION


class UpstreamError(ToolError):
    code = ErrorCode.UPSTREAM_ERROR


class ConfirmationRequired(ToolError):
    """Deliberate refusal by the safety gate, not a failure.

    ``details`` carries the preview of what would change.
    """

    code = ErrorCode.CONFIRMATION_REQUIRED
