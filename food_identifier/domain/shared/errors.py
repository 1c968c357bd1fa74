"""
Domain exceptions.

Typed exceptions raised by adapters and absorbed by the pipeline stages.
Only the coordinator decides what reaches the caller, and it does so with
result values, not exceptions.
"""

from __future__ import annotations


# ═══════════════════════════════════════════════════════════
# BASE EXCEPTION
# ═══════════════════════════════════════════════════════════


class DomainError(Exception):
    """
    Base exception for all food identification errors.

    Allows catching every error raised by this package with one clause.
    """

    pass


# ═══════════════════════════════════════════════════════════
# PIPELINE EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class RecognitionError(DomainError):
    """
    Vision model call could not be completed.

    Raised when:
    - OpenAI returns no content
    - Client used outside its context manager

    Example:
        >>> raise RecognitionError("No response content from vision model")
    """

    pass


class ValidationError(DomainError):
    """
    Input validation failed.

    Raised when:
    - Unknown nutrition source requested
    - Empty identifiers

    Example:
        >>> raise ValidationError("Source must be 'USDA' or 'OpenFoodFacts'")
    """

    pass


class ConfigurationError(DomainError):
    """
    Settings could not be loaded.

    Example:
        >>> raise ConfigurationError("VISION_TIMEOUT_SECONDS must be a number")
    """

    pass


# ═══════════════════════════════════════════════════════════
# EXTERNAL SERVICE EXCEPTIONS
# ═══════════════════════════════════════════════════════════


class ExternalServiceError(DomainError):
    """
    External service call failed.

    Base class for all provider and model errors.

    Example:
        >>> raise ExternalServiceError("OpenFoodFacts API error: 502")
    """

    pass


class RateLimitError(ExternalServiceError):
    """
    API rate limit exceeded.

    Example:
        >>> raise RateLimitError("USDA rate limit (attempt 2)")
    """

    pass


class ProviderTimeoutError(ExternalServiceError):
    """
    API call timed out.

    Example:
        >>> raise ProviderTimeoutError("USDA API timeout")
    """

    pass


class ServiceUnavailableError(ExternalServiceError):
    """
    External service unavailable (5xx after retries).

    Example:
        >>> raise ServiceUnavailableError("OpenFoodFacts service unavailable")
    """

    pass
