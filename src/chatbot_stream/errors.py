"""Normalized error shape delivered to ``on_error``.

Streaming failures are never raised to the caller. Every failure path
(transport, HTTP status, server error events) is converted into a
``ChatbotError`` value first.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel

# Fallback text when the server reports an error without a message.
DEFAULT_STREAM_ERROR_MESSAGE = "An error occurred during response generation"


class ErrorCode(StrEnum):
    # Connection dropped, DNS/TLS failure, read error.
    NETWORK_ERROR = "NETWORK_ERROR"

    # HTTP 429 from the streaming endpoint.
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Any other non-success status, or a response without a body.
    MESSAGE_SEND_FAILED = "MESSAGE_SEND_FAILED"

    # Backend dialect ERROR event.
    STREAM_ERROR = "STREAM_ERROR"

    # Legacy message.error event.
    API_ERROR = "API_ERROR"

    # Anything else that escaped the read loop.
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class ChatbotError(BaseModel):
    """Typed error passed to the consumer's ``on_error`` callback."""

    code: ErrorCode
    message: str
    status: int | None = None
    details: dict[str, Any] | None = None

    @classmethod
    def for_status(cls, status_code: int) -> "ChatbotError":
        """Build the error for a non-success HTTP status."""
        code = (
            ErrorCode.RATE_LIMIT_EXCEEDED
            if status_code == 429
            else ErrorCode.MESSAGE_SEND_FAILED
        )
        return cls(
            code=code,
            message=f"Streaming request failed with HTTP {status_code}",
            status=status_code,
        )
