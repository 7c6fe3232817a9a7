from typing import Any, Dict, Optional


class CardMatchError(Exception):
    """Consistent service-layer exception with HTTP-friendly metadata."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_payload(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }

    def __str__(self) -> str:  # pragma: no cover - convenience for logging
        return f"{self.status_code} {self.code}: {self.message} | {self.details}"


class InvalidInputError(CardMatchError, ValueError):
    """Empty description, malformed amount/date, unknown mode or category."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(CardMatchError, LookupError):
    status_code = 404
    code = "NOT_FOUND"


class ProviderUnavailableError(CardMatchError):
    """An external provider (embedding, vector index, LLM) could not answer."""

    status_code = 503
    code = "PROVIDER_UNAVAILABLE"


class ProviderTimeoutError(ProviderUnavailableError):
    code = "PROVIDER_TIMEOUT"


class ProviderUnauthorizedError(ProviderUnavailableError):
    code = "PROVIDER_UNAUTHORIZED"


class IndexNotFoundError(ProviderUnavailableError):
    code = "INDEX_NOT_FOUND"


class ClassificationUnavailableError(CardMatchError):
    """Every categorization tier failed; never silently defaulted to 'Other'."""

    status_code = 503
    code = "CLASSIFICATION_UNAVAILABLE"


class UnauthorizedError(CardMatchError):
    status_code = 401
    code = "UNAUTHORIZED"
