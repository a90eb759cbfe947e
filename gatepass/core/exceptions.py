"""Exception hierarchy for the gate-pass core.

Lookup failures are recovered inside the enrichment pipeline; validation
failures and stale-write conflicts always reach the caller typed.
"""

from typing import Optional


class AppError(Exception):
    """Base exception for application errors."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class ValidationError(AppError):
    """Raised when a mutation is missing required input.

    Always raised before any network call is made.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class StaleWriteConflictError(AppError):
    """Raised when a mutation targets a request whose stage already advanced."""

    def __init__(
        self,
        message: str,
        reference_number: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, original_error=original_error)
        self.reference_number = reference_number


class LookupUnavailableError(AppError):
    """Raised when an identity or ERP lookup fails or times out."""

    pass


class APIClientError(AppError):
    """Raised when an external API call fails."""

    pass


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""

    pass


class NotFoundError(APIClientError):
    """Raised when an external API reports that a resource does not exist."""

    pass


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""

    pass
