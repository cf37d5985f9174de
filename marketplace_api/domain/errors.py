# SPDX-License-Identifier: Apache-2.0

"""
Application exception taxonomy.

Every exception raised to callers derives from CustomException and carries the
HTTP status and problem type used by the error handler middleware.
NotificationDispatchError is the exception: it never leaves the notification
adapter.
"""

import math
from typing import List, Optional


class CustomException(Exception):
    """Base class for custom application exceptions."""

    def __init__(self, message: str, status_code: int = 500, error_type: str = "application-error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class ValidationException(CustomException):
    """Exception for validation errors."""

    def __init__(self, message: str, validation_errors: list = None):
        super().__init__(message, 400, "validation-error")
        self.validation_errors = validation_errors or []


class AuthenticationException(CustomException):
    """Exception for authentication errors."""

    def __init__(self, message: str):
        super().__init__(message, 401, "authentication-required")


class AuthorizationException(CustomException):
    """Exception for authorization errors (actor is not allowed to act)."""

    def __init__(self, message: str):
        super().__init__(message, 403, "insufficient-permissions")


class NotFoundException(CustomException):
    """Exception for resource not found errors."""

    def __init__(self, message: str):
        super().__init__(message, 404, "resource-not-found")


class InvalidStateException(CustomException):
    """Exception for operations not allowed from the target's current state."""

    def __init__(self, message: str, current_state: Optional[str] = None):
        super().__init__(message, 409, "invalid-state")
        self.current_state = current_state


class ConflictException(CustomException):
    """Exception for resource conflict errors, including lost races."""

    def __init__(self, message: str):
        super().__init__(message, 409, "resource-conflict")


class PendingRequestExistsError(ConflictException):
    """A pending unsuspension request already exists for the business."""

    def __init__(self, business_id: str):
        super().__init__(f"A pending unsuspension request already exists for business {business_id}")
        self.business_id = business_id


class RateLimitedException(CustomException):
    """Exception for appeals resubmitted inside the cooldown window."""

    def __init__(self, message: str, hours_remaining: int):
        super().__init__(message, 429, "rate-limit-exceeded")
        self.hours_remaining = hours_remaining

    @property
    def retry_after_seconds(self) -> int:
        return int(self.hours_remaining * 3600)

    @classmethod
    def for_elapsed(cls, hours_since_request: float, cooldown_hours: int) -> "RateLimitedException":
        """Build the error from the age of the blocking request."""
        hours_remaining = max(1, math.ceil(cooldown_hours - hours_since_request))
        return cls(
            f"You already submitted a request {math.floor(hours_since_request)} hours ago. "
            f"Please wait {hours_remaining} more hours before submitting another request.",
            hours_remaining
        )


class SchemaMissingException(CustomException):
    """Ledger storage has not been provisioned."""

    def __init__(self, message: str, missing: List[str] = None):
        super().__init__(message, 503, "schema-missing")
        self.missing = missing or []


class NotificationDispatchError(Exception):
    """Raised inside the notification adapter when a dispatch fails."""
    pass
