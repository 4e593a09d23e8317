"""
Custom exceptions for the application
"""
from typing import NoReturn

from fastapi import HTTPException, status


class NotFoundError(LookupError):
    """Row does not exist (or is not visible to the caller)"""


class ConflictError(ValueError):
    """Request clashes with existing state, e.g. a duplicate registration"""


class AIServiceError(Exception):
    """Failure talking to the LLM provider"""

    def __init__(self, message: str, provider: str | None = None, model: str | None = None, original_error: Exception | None = None):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.original_error = original_error


class AssessmentError(Exception):
    """Registration could not be assessed (missing data or unusable AI reply)"""


class AIRateLimitError(HTTPException):
    """Exception for LLM provider rate limit"""
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="AI provider rate limit exceeded. Please wait a moment and try again."
        )


class AIUnavailableError(HTTPException):
    """Exception for LLM provider errors"""
    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"AI service error: {detail}"
        )


def handle_ai_error(error: Exception) -> HTTPException:
    """
    Map LLM provider errors to HTTP exceptions

    Args:
        error: Exception raised while calling the provider

    Returns:
        Matching HTTPException
    """
    error_msg = str(error)

    if "429" in error_msg or "rate limit" in error_msg.lower():
        return AIRateLimitError()

    if isinstance(error, AIServiceError) and error.provider is None:
        # Provider not configured at all
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=error_msg,
        )

    return AIUnavailableError(error_msg)


def raise_for_domain_error(error: Exception) -> NoReturn:
    """Translate service-layer exceptions into HTTP errors"""
    if isinstance(error, NotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, PermissionError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(error))
    if isinstance(error, ConflictError):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    raise error


# Service-layer errors handled by raise_for_domain_error
DOMAIN_ERRORS = (LookupError, PermissionError, ValueError)
