"""
Custom exceptions for the govAIrn backend.

Provides a hierarchy of exceptions with HTTP-like error codes so routers can
translate service failures into consistent API responses.
"""
from typing import Optional


class GovAIrnError(Exception):
    """Base exception for all govAIrn errors."""

    def __init__(
        self,
        message: str,
        code: int = 500,
        retryable: bool = True,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        result = {
            "error_code": self.code,
            "error_message": self.message,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        return result


# ============================================
# 4xx Client Errors
# ============================================

class ValidationError(GovAIrnError):
    """400 Bad Request - Invalid input data."""

    def __init__(self, message: str = "Invalid request data"):
        super().__init__(message, code=400, retryable=False)


class ResourceNotFoundError(GovAIrnError):
    """404 Not Found - Requested resource doesn't exist."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, code=404, retryable=False)


class PersonaNotFoundError(ResourceNotFoundError):
    """No (active) persona for the user."""

    def __init__(self, message: str = "No active persona found. Please create a persona first."):
        super().__init__(message)


class ProposalNotFoundError(ResourceNotFoundError):
    """Proposal id unknown to the store."""

    def __init__(self, message: str = "Proposal not found"):
        super().__init__(message)


# ============================================
# 5xx Server Errors
# ============================================

class VoteDispatchError(GovAIrnError):
    """502 - The vote could not be recorded."""

    def __init__(self, message: str = "Failed to record vote. Please try again."):
        super().__init__(message, code=502, retryable=True)


class DecisionGenerationError(GovAIrnError):
    """502 - The LLM did not produce a decision; only a fallback is available."""

    def __init__(self, message: str = "AI decision service unavailable. Please try again later."):
        super().__init__(message, code=502, retryable=True)


class StoreError(GovAIrnError):
    """503 Service Unavailable - The data store failed or is unreachable."""

    def __init__(
        self,
        message: str = "Data store temporarily unavailable. Please try again later.",
        retry_after: float = 30.0
    ):
        super().__init__(message, code=503, retryable=True, retry_after=retry_after)
