"""Streaming event types for the chatbot event-stream endpoint.

Two wire dialects coexist on the same endpoint:

- Backend dialect: the JSON payload carries its own upper-case ``type`` tag
  (``{"type": "TOKEN", "content": "Hel"}``). The outer ``event:`` name is
  informational only.
- Legacy dialect: the ``event:`` field carries the semantic name
  (``message.delta``, ``message.complete``, ...) and the payload is a flat
  object with ``messageId``, ``content``, ``richContent`` and friends.

Both are normalized into a single ``StreamEvent`` so the translator has one
dispatch path.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class StreamEventType(StrEnum):
    """Canonical event types. Values double as the recognised ``event:`` names."""

    # Backend event names.
    TOKEN = "token"
    THINKING = "thinking"
    DONE = "done"
    ERROR = "error"
    TOOL_CALL_START = "tool_call_start"
    TOOL_CALL_RESULT = "tool_call_result"

    # A live (human) agent started or stopped typing.
    AGENT_TYPING_START = "typing_start"
    AGENT_TYPING_STOP = "typing_stop"

    # Legacy event names, kept for custom endpoints.
    MESSAGE_START = "message.start"
    MESSAGE_DELTA = "message.delta"
    MESSAGE_COMPLETE = "message.complete"
    MESSAGE_ERROR = "message.error"
    TYPING_START = "typing.start"
    TYPING_STOP = "typing.stop"
    QUICK_REPLIES = "quick_replies"


class BackendEventType(StrEnum):
    """Closed tag set of the backend dialect's JSON ``type`` field."""

    TOKEN = "TOKEN"
    THINKING = "THINKING"
    DONE = "DONE"
    ERROR = "ERROR"
    TOOL_CALL_START = "TOOL_CALL_START"
    TOOL_CALL_RESULT = "TOOL_CALL_RESULT"
    TYPING_START = "TYPING_START"
    TYPING_STOP = "TYPING_STOP"

    def to_stream_type(self) -> StreamEventType:
        return _BACKEND_TO_STREAM[self]


_BACKEND_TO_STREAM: dict[BackendEventType, StreamEventType] = {
    BackendEventType.TOKEN: StreamEventType.TOKEN,
    BackendEventType.THINKING: StreamEventType.THINKING,
    BackendEventType.DONE: StreamEventType.DONE,
    BackendEventType.ERROR: StreamEventType.ERROR,
    BackendEventType.TOOL_CALL_START: StreamEventType.TOOL_CALL_START,
    BackendEventType.TOOL_CALL_RESULT: StreamEventType.TOOL_CALL_RESULT,
    BackendEventType.TYPING_START: StreamEventType.AGENT_TYPING_START,
    BackendEventType.TYPING_STOP: StreamEventType.AGENT_TYPING_STOP,
}

# Every name accepted in an ``event:`` field.
KNOWN_EVENT_NAMES: frozenset[str] = frozenset(member.value for member in StreamEventType)


class _WireModel(BaseModel):
    """Base for payload models: camelCase on the wire, unknown keys kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


def _as_text(value: Any) -> str | None:
    """Read a loosely typed scalar as text. Objects and arrays become None."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (bool, int, float)):
        return str(value)
    return None


class QuickReply(_WireModel):
    """A suggested reply the user can tap for their next turn."""

    id: str | None = None
    label: str | None = None
    value: str | None = None
    icon: str | None = None

    @field_validator("id", "label", "value", "icon", mode="before")
    @classmethod
    def scalar_as_text(cls, value: Any) -> str | None:
        return _as_text(value)


class RichContent(_WireModel):
    """Structured content block (cards, carousels, buttons...).

    Only the discriminating ``type`` is typed here; the renderer owns the rest.
    """

    type: str | None = None

    @field_validator("type", mode="before")
    @classmethod
    def type_as_text(cls, value: Any) -> str | None:
        return _as_text(value)


class ServerError(_WireModel):
    """Error carried by ``message.error`` payloads.

    Servers send either ``{"code": ..., "message": ...}`` or a bare string,
    which is taken as the message.
    """

    code: str | None = None
    message: str | None = None

    @model_validator(mode="before")
    @classmethod
    def bare_string_as_message(cls, value: Any) -> Any:
        if value is None or isinstance(value, dict):
            return value
        return {"message": _as_text(value)}

    @field_validator("code", "message", mode="before")
    @classmethod
    def scalar_as_text(cls, value: Any) -> str | None:
        return _as_text(value)


class StreamEventData(_WireModel):
    """Payload of one event. Only the fields relevant to the type are set.

    - message.start: message_id
    - token / message.delta: content (the incremental token)
    - done / message.complete: message_id, content, rich_content, metadata
    - error / message.error: content or error
    - quick_replies: quick_replies
    - tool_call_* / typing_*: content, metadata

    Sub-fields are read leniently: a malformed part is cleared rather than
    failing the whole event, so terminal events always reach the consumer.
    ``metadata`` is passed through as the server sent it.
    """

    message_id: str | None = Field(default=None, alias="messageId")
    content: str | None = None
    rich_content: RichContent | None = Field(default=None, alias="richContent")
    quick_replies: list[QuickReply] | None = Field(default=None, alias="quickReplies")
    error: ServerError | None = None
    metadata: Any = None

    @field_validator("message_id", "content", mode="before")
    @classmethod
    def scalar_as_text(cls, value: Any) -> str | None:
        return _as_text(value)

    @field_validator("rich_content", mode="before")
    @classmethod
    def rich_content_object(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None

    @field_validator("quick_replies", mode="before")
    @classmethod
    def quick_reply_objects(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return None
        return [item for item in value if isinstance(item, dict)]


class BackendStreamEvent(_WireModel):
    """Backend dialect payload: ``{type, content, metadata, timestamp}``."""

    type: BackendEventType
    content: str | None = None
    metadata: Any = None
    timestamp: Any = None

    @field_validator("content", mode="before")
    @classmethod
    def content_as_text(cls, value: Any) -> str | None:
        return _as_text(value)


class StreamEvent(BaseModel):
    """A fully decoded event, whichever dialect it arrived in."""

    type: StreamEventType
    data: StreamEventData = Field(default_factory=StreamEventData)


class TypingStatusEvent(_WireModel):
    """Live-agent typing status forwarded to the agent typing callbacks."""

    is_typing: bool = Field(alias="isTyping")
    agent_id: str | None = Field(default=None, alias="agentId")
    agent_name: str | None = Field(default=None, alias="agentName")
    conversation_id: str | None = Field(default=None, alias="conversationId")

    @field_validator("agent_id", "agent_name", "conversation_id", mode="before")
    @classmethod
    def scalar_as_text(cls, value: Any) -> str | None:
        return _as_text(value)
