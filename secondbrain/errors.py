"""Exception hierarchy for the RAG pipeline.

Every error carries a human-readable message, optional details for debugging,
and the HTTP status the API layer reports it with.
"""
from typing import Any, Dict, Optional


class SecondBrainError(Exception):
    """Base exception for all pipeline errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for a JSON error response."""
        return {
            "error": self.message,
            "kind": type(self).__name__,
            "details": self.details,
        }


class ValidationError(SecondBrainError):
    """Missing or empty required input. Fixable by the caller."""

    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class NotFoundError(SecondBrainError):
    """Requested document does not exist."""

    status_code = 404


class ProviderError(SecondBrainError):
    """Embedding or generation provider failed, timed out, or returned bad data."""

    status_code = 502

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if provider:
            details["provider"] = provider
        if status is not None:
            details["status"] = status
        super().__init__(message, details)


class StoreError(SecondBrainError):
    """Persistence layer failure."""

    status_code = 500


class ConsistencyError(SecondBrainError):
    """Internal invariant violation. Always fatal."""

    status_code = 500
