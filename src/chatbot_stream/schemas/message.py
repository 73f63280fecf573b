"""Message request and result schemas for the streaming endpoint."""

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from chatbot_stream.schemas.stream import RichContent


class MessageRequest(BaseModel):
    """What the caller wants to send: the user's text plus optional extras."""

    content: str
    type: str | None = None
    metadata: dict[str, Any] | None = None


class BackendMessageRequest(BaseModel):
    """Payload for POST /chatbot/stream."""

    model_config = ConfigDict(populate_by_name=True)

    message: str
    ticket_id: str | None = Field(default=None, alias="ticketId")

    @classmethod
    def from_request(cls, request: MessageRequest) -> "BackendMessageRequest":
        """Translate the caller's request into the backend body.

        Only a non-empty string ``ticketId`` in the metadata is forwarded.
        """
        ticket_id = (request.metadata or {}).get("ticketId")
        if not isinstance(ticket_id, str) or not ticket_id:
            ticket_id = None
        return cls(message=request.content, ticket_id=ticket_id)

    def to_body(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class UserContext(BaseModel):
    """Geolocation sent Base64-encoded in the X-User-Context header."""

    lat: float
    lng: float


class ChatMessage(BaseModel):
    """A finalized assistant message handed to ``on_complete``."""

    id: str
    conversation_id: str
    role: Literal["assistant"] = "assistant"
    content: str
    type: Literal["text", "rich"] = "text"
    # Assigned when the message is finalized, never taken from the wire.
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    status: Literal["delivered"] = "delivered"
    rich_content: RichContent | None = None
    # Whatever the server attached, passed through untouched.
    metadata: Any = None
