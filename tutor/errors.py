"""Error taxonomy for the relay.

Every failure a client can see is a ``RelayError`` subclass. The FastAPI
layer renders them as ``{"error": ..., "details": ...}`` with the class'
status code, so handlers only ever need to raise.
"""

from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    status_code: int = 500
    error: str = "Internal server error"
    details: str = "Failed to process your request. Please try again."

    def __init__(self, details: Optional[str] = None) -> None:
        if details is not None:
            self.details = details
        super().__init__(self.details)

    def to_body(self) -> dict:
        return {"error": self.error, "details": self.details}


class InvalidRequest(RelayError):
    status_code = 400
    error = "Invalid request"
    details = "Request body must be a JSON object"


class MessageTooLong(RelayError):
    status_code = 400
    error = "Message too long"
    details = "Message must be less than 10,000 characters"


class RateLimited(RelayError):
    status_code = 429
    error = "Rate limit exceeded"
    details = "Please try again later"


class ConfigurationError(RelayError):
    status_code = 500
    error = "Configuration error"
    details = "API key is not configured properly"


class InternalError(RelayError):
    status_code = 500
    error = "Internal server error"


class NotFound(RelayError):
    status_code = 404
    error = "Not found"
    details = "The requested endpoint does not exist"


class ServerError(RelayError):
    status_code = 500
    error = "Server error"
    details = "An unexpected error occurred"


class ProviderError(RuntimeError):
    """Raised by ``TutorClient`` when the Gemini call fails."""


def classify_provider_error(exc: BaseException) -> RelayError:
    # Gemini does not surface a stable error code through the chat model
    # wrapper, so this matches on message text. Brittle: a reworded provider
    # message silently falls through to InternalError.
    text = str(exc)
    if "API key" in text:
        return ConfigurationError()
    if "quota" in text:
        return RateLimited()
    return InternalError()
