from typing import Optional, Any


class SlideBotError(Exception):
    """
    Base exception for SlideBot application.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class ResourceNotFoundError(SlideBotError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class AuthenticationError(SlideBotError):
    """
    Raised when authentication fails.
    """
    def __init__(self, message: str = "Authentication failed", details: Optional[Any] = None):
        super().__init__(message, code="AUTHENTICATION_FAILED", status_code=401, details=details)


class ValidationError(SlideBotError):
    """
    Raised when input validation fails.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=422, details=details)


class ExternalServiceError(SlideBotError):
    """
    Raised when an external service (e.g., Telegram, renderer) fails.
    """
    def __init__(self, message: str = "External service error", details: Optional[Any] = None):
        super().__init__(message, code="EXTERNAL_SERVICE_ERROR", status_code=502, details=details)


class GenerationFailedError(SlideBotError):
    """
    Raised when a granted generation could not be completed.
    The reservation has already been released when this is raised.
    """
    def __init__(self, message: str = "Generation failed", details: Optional[Any] = None):
        super().__init__(message, code="GENERATION_FAILED", status_code=500, details=details)


# ============================================================
# PROVIDER ERRORS (consumed inside cascades)
# ============================================================

class ProviderError(ExternalServiceError):
    """
    Generic failure of a content or image provider call.
    Aborts the remaining keys of the same provider.
    """
    next_key_allowed = False

    def __init__(self, message: str = "Provider error", provider: Optional[str] = None, status: Optional[int] = None):
        self.provider = provider
        self.status = status
        super().__init__(message, details={"provider": provider, "status": status})


class InvalidKeyError(ProviderError):
    """The API key was rejected (unknown, revoked or malformed)."""
    next_key_allowed = True


class PermissionDeniedError(ProviderError):
    """The key is valid but not allowed: permission, billing or quota."""
    next_key_allowed = True


class ProviderTimeoutError(ProviderError):
    """The provider did not answer within the configured timeout."""
    next_key_allowed = True


class ProviderResponseError(ProviderError):
    """The provider answered, but the payload is empty or has the wrong shape."""


class SlideCountMismatchError(ProviderResponseError):
    """The provider returned a different number of slides than requested."""
    next_key_allowed = True
