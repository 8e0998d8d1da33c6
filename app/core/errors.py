"""Typed application errors.

Services raise these at the point of failure; the exception handler in
``app.main`` renders them into the uniform ``{"error": {...}}`` envelope.
Nothing outside this module should infer an HTTP status from the shape of an
arbitrary exception.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

if TYPE_CHECKING:
    from app.services.rate_limit.rate_limit_service import RateLimitInfo


class AppError(Exception):
    """Base class for every error the API knows how to render."""

    code: str = "internal_error"
    status_code: int = 500
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None, *, details: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    @property
    def public_message(self) -> str:
        """Message that is safe to show to the client."""
        return self.message

    @property
    def headers(self) -> Dict[str, str]:
        return {}


class ValidationFailedError(AppError):
    code = "validation_error"
    status_code = 400
    default_message = "Request validation failed"


class NotFoundError(AppError):
    code = "not_found"
    status_code = 404

    def __init__(self, resource: str, *, details: Optional[Dict[str, Any]] = None):
        self.resource = resource
        super().__init__(f"{resource} not found", details=details)


class ForbiddenError(AppError):
    code = "forbidden"
    status_code = 403
    default_message = "Operation not permitted"


class ConflictError(AppError):
    code = "conflict"
    status_code = 409
    default_message = "Resource already exists"


class DuplicateDeckError(ConflictError):
    def __init__(self, deck_name: str):
        super().__init__(
            "A deck with this name already exists",
            details={"field": "name", "value": deck_name, "constraint": "unique_deck_name_per_user"},
        )


class DuplicateTagError(ConflictError):
    def __init__(self, tag_name: str, deck_id: str):
        super().__init__(
            "Tag with this name already exists in deck",
            details={
                "field": "name",
                "value": tag_name,
                "deck_id": deck_id,
                "constraint": "unique_tag_name_per_deck",
            },
        )


class DefaultDeckError(AppError):
    """Raised for operations the default deck never allows (deletion)."""

    code = "forbidden"
    status_code = 400

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Cannot {operation} the default deck")


class GlobalTagOperationError(ForbiddenError):
    def __init__(self, operation: str):
        super().__init__(f"Cannot {operation} global tags")


class InvalidDeckError(AppError):
    code = "invalid_deck"
    status_code = 400
    default_message = "Deck not found or access denied"


class DefaultDeckMissingError(AppError):
    """The user has no default deck: a provisioning bug, never user error."""

    code = "internal_error"
    status_code = 500
    default_message = "Default deck not found"

    @property
    def public_message(self) -> str:
        return "Failed to delete deck"


class RateLimitExceededError(AppError):
    code = "rate_limit_exceeded"
    status_code = 429

    def __init__(self, message: str, info: "RateLimitInfo"):
        self.info = info
        super().__init__(
            message,
            details={
                "limit": info.limit,
                "current_count": info.current_count,
                "reset_at": info.reset_at.isoformat(),
            },
        )

    @property
    def headers(self) -> Dict[str, str]:
        headers = self.info.to_headers()
        headers["Retry-After"] = str(self.info.retry_after_seconds())
        return headers


class InternalError(AppError):
    pass


class UserDeletionError(AppError):
    code = "auth_error"
    status_code = 500
    default_message = "Failed to delete user account"


# --- AI generation failures ---------------------------------------------------


class AIServiceError(AppError):
    """Base for failures of the AI generation pipeline."""

    code = "ai_service_error"
    status_code = 502
    user_message = "Failed to generate flashcards. Please try again."

    @property
    def public_message(self) -> str:
        return self.user_message

    @property
    def log_code(self) -> str:
        """Code recorded in generation_error_logs."""
        return self.code


class UnsupportedModelError(AIServiceError):
    code = "unsupported_model"
    status_code = 400

    def __init__(self, model: str, allowed: list[str]):
        self.model = model
        super().__init__(
            f"Model '{model}' is not supported. Allowed models: {', '.join(allowed)}",
            details={"model": model, "allowed_models": allowed},
        )

    @property
    def public_message(self) -> str:
        return self.message


class AITimeoutError(AIServiceError):
    code = "ai_service_timeout"
    status_code = 503
    user_message = "Generation took too long. Please try with shorter text."


class InvalidAIResponseError(AIServiceError):
    status_code = 502
    user_message = "Failed to generate valid flashcards. Please try again."

    def __init__(self, message: str, raw_response: Any = None):
        self.raw_response = raw_response
        super().__init__(message)


_UPSTREAM_MESSAGES = {
    "insufficient_credits": "AI service is temporarily unavailable due to quota limits.",
    "invalid_request_error": "Invalid request parameters. Please try again.",
    "rate_limit_error": "AI service is experiencing high demand. Please try again in a moment.",
    "api_error": "AI service error. Please try again later.",
}


class AIUpstreamError(AIServiceError):
    """The provider answered with an error (or never answered usefully)."""

    def __init__(self, message: str, *, upstream_code: str, upstream_status: Optional[int] = None):
        self.upstream_code = upstream_code
        self.upstream_status = upstream_status
        super().__init__(message)

    @property
    def status_code(self) -> int:  # type: ignore[override]
        status = self.upstream_status
        if status == 400:
            return 400
        if status == 401:
            # Never expose provider auth failures to the client
            return 500
        if status == 429 or (status is not None and status >= 500):
            return 503
        return 502

    @property
    def public_message(self) -> str:
        return _UPSTREAM_MESSAGES.get(self.upstream_code, self.user_message)

    @property
    def log_code(self) -> str:
        return self.upstream_code


class UnexpectedAIError(AIServiceError):
    code = "internal_error"
    status_code = 500
    user_message = "An unexpected error occurred. Please try again."
