"""Custom exceptions for the Websy AI orchestrator."""

import logging
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

# Exception type → safe user-facing message mapping
_SAFE_MESSAGES: dict[str, str] = {
    "ValidationError": "The message cannot be empty. Please check and try again.",
    "ConfigurationError": "The assistant is not configured. Please contact the administrator.",
    "ExhaustionError": (
        "All provider keys have reached their limit. Please try again in a few hours."
    ),
    "ProviderError": "The AI provider could not answer. Please try again.",
    "CollaboratorError": "An external service is temporarily unavailable.",
    "PersistenceError": "A storage error occurred. Please try again.",
}

_DEFAULT_MESSAGE = "An error occurred. Please try again."


def sanitize_error(e: Exception) -> str:
    """Map an exception to a safe, user-facing error message.

    Walks the MRO so subclasses inherit their parent's message. Internal
    details (status bodies, keys) never reach the returned text.

    Args:
        e: The exception to sanitize.

    Returns:
        A safe, generic error message string.
    """
    for cls in type(e).__mro__:
        safe_msg = _SAFE_MESSAGES.get(cls.__name__)
        if safe_msg:
            return safe_msg

    return _DEFAULT_MESSAGE


class WebsyException(Exception):
    """Base exception for all Websy-specific errors."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize Websy exception.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code.
            status_code: HTTP status code.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}


class ValidationError(WebsyException):
    """Input validation error (400)."""

    def __init__(
        self, message: str, field: str | None = None, details: dict[str, Any] | None = None
    ) -> None:
        """Initialize validation error.

        Args:
            message: Error message.
            field: Name of the invalid field.
            details: Additional validation details.
        """
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            code="VALIDATION_ERROR",
            status_code=400,
            details=error_details,
        )


class ConfigurationError(WebsyException):
    """Missing or unusable configuration (500)."""

    def __init__(self, message: str = "No provider API keys are configured") -> None:
        super().__init__(
            message=message,
            code="CONFIGURATION_ERROR",
            status_code=500,
        )


class ProviderErrorKind(str, Enum):
    """Classification of a failed provider call."""

    BAD_REQUEST = "bad-request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    RATE_LIMITED = "rate-limited"
    SERVER_ERROR = "server-error"
    MALFORMED_RESPONSE = "malformed-response"
    UNKNOWN = "unknown"


class ProviderError(WebsyException):
    """Failed call to the conversational provider (502).

    Attributes:
        kind: Failure classification; only ``RATE_LIMITED`` is recovered
            by rotating credentials.
        provider_status: HTTP status returned by the provider, if any.
    """

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str | None = None,
        provider_status: int | None = None,
    ) -> None:
        """Initialize provider error.

        Args:
            kind: Failure classification.
            message: Optional error message.
            provider_status: HTTP status code returned by the provider.
        """
        self.kind = ProviderErrorKind(kind)
        self.provider_status = provider_status
        super().__init__(
            message=message or f"Provider call failed: {self.kind.value}",
            code="PROVIDER_ERROR",
            status_code=502,
            details={"kind": self.kind.value, "provider_status": provider_status},
        )

    @property
    def is_rate_limit(self) -> bool:
        return self.kind is ProviderErrorKind.RATE_LIMITED


class ExhaustionError(WebsyException):
    """Every credential was rate-limited within one pass over the pool (429)."""

    def __init__(self, pool_size: int, message: str | None = None) -> None:
        """Initialize exhaustion error.

        Args:
            pool_size: Number of credentials in the pool.
            message: Optional custom error message.
        """
        super().__init__(
            message=message
            or "All provider API keys have reached their limit. Try again in a few hours.",
            code="KEYS_EXHAUSTED",
            status_code=429,
            details={"pool_size": pool_size},
        )


class CollaboratorError(WebsyException):
    """External side-effect collaborator failure (502).

    Always scoped to one command pipeline stage; never propagated past it.
    """

    def __init__(self, service: str, message: str | None = None) -> None:
        """Initialize collaborator error.

        Args:
            service: Name of the collaborator (calendar, reports, projects).
            message: Optional error message.
        """
        error_message = message or f"Error communicating with {service}"
        super().__init__(
            message=error_message,
            code="COLLABORATOR_ERROR",
            status_code=502,
            details={"service": service},
        )


class PersistenceError(WebsyException):
    """Durable key-pool storage failure (500)."""

    def __init__(self, message: str = "Failed to persist key pool state") -> None:
        super().__init__(
            message=message,
            code="PERSISTENCE_ERROR",
            status_code=500,
        )
