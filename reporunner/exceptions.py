"""Custom exception hierarchy for reporunner's HTTP front-end."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Job errors
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    JOB_ALREADY_EXISTS = "JOB_ALREADY_EXISTS"

    # Request validation
    INVALID_PAYLOAD = "INVALID_PAYLOAD"
    WRONG_REPOSITORY = "WRONG_REPOSITORY"

    # Auth
    WEBHOOK_VALIDATION_FAILED = "WEBHOOK_VALIDATION_FAILED"
    UNAUTHORIZED = "UNAUTHORIZED"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class RunnerException(Exception):
    """
    Base exception for errors surfaced to HTTP callers.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON response."""
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class JobNotFoundError(RunnerException):
    """No job directory with this id."""

    def __init__(self, job_id: str):
        super().__init__(
            f"Job not found: {job_id}",
            ErrorCode.JOB_NOT_FOUND,
            status_code=404,
            details={"job_id": job_id}
        )


class JobConflictError(RunnerException):
    """A job with this id is already stored."""

    def __init__(self, job_id: str):
        super().__init__(
            f"Job already exists: {job_id}",
            ErrorCode.JOB_ALREADY_EXISTS,
            status_code=409,
            details={"job_id": job_id}
        )


class InvalidPayloadError(RunnerException):
    """Request body or query is missing something required."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.INVALID_PAYLOAD,
            status_code=400,
            details=details
        )


class WrongRepositoryError(RunnerException):
    """Webhook was sent for a repository this service does not track."""

    def __init__(self, received: str, expected: str):
        super().__init__(
            "Wrong Repository",
            ErrorCode.WRONG_REPOSITORY,
            status_code=400,
            details={"received": received, "expected": expected}
        )


class WebhookValidationError(RunnerException):
    """Webhook signature validation failed."""

    def __init__(self, message: str = "Invalid webhook signature"):
        super().__init__(
            message,
            ErrorCode.WEBHOOK_VALIDATION_FAILED,
            status_code=401,
        )


class AuthenticationError(RunnerException):
    """Admin request lacks valid credentials."""

    def __init__(self, message: str = "Invalid or missing credentials"):
        super().__init__(
            message,
            ErrorCode.UNAUTHORIZED,
            status_code=401,
        )
