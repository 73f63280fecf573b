"""Dual-dialect event translator.

Decoding resolves which dialect a block uses:

1. If the JSON payload has a ``type`` in the backend tag set (``TOKEN``,
   ``DONE``...), the block is a backend event, whatever ``event:`` said.
2. Otherwise the ``event:`` name decides, defaulting to ``message.delta``
   when the server sent unlabeled chunks.

Dispatch then runs one branch per canonical ``StreamEventType``, updating the
stream's ``ParserState`` and invoking the consumer callbacks.
"""

import json
import logging
import uuid
from typing import Any

from pydantic import ValidationError

from chatbot_stream.callbacks import StreamingOptions
from chatbot_stream.errors import DEFAULT_STREAM_ERROR_MESSAGE, ChatbotError, ErrorCode
from chatbot_stream.parser import EventBlock, ParserState
from chatbot_stream.schemas.message import ChatMessage
from chatbot_stream.schemas.stream import (
    BackendEventType,
    BackendStreamEvent,
    StreamEvent,
    StreamEventData,
    StreamEventType,
    TypingStatusEvent,
)

logger = logging.getLogger(__name__)

_BACKEND_TAGS = frozenset(member.value for member in BackendEventType)


def generate_fallback_id() -> str:
    """Id for a completed message when the server never supplied one."""
    return str(uuid.uuid4())


class EventTranslator:
    """Converts event blocks into callback invocations for one client."""

    def translate(
        self, block: EventBlock, state: ParserState, options: StreamingOptions
    ) -> StreamEvent | None:
        """Decode and dispatch one block. Returns the event, or None if dropped."""
        event = self.decode(block)
        if event is not None:
            self.dispatch(event, state, options)
        return event

    # -----------------------------------------------------------------------
    # Decoding
    # -----------------------------------------------------------------------

    def decode(self, block: EventBlock) -> StreamEvent | None:
        """Resolve a block into a canonical event.

        Malformed payloads are logged and dropped so one bad event never
        ends the stream.
        """
        parsed: Any = {}
        if block.data.strip():
            try:
                parsed = json.loads(block.data)
            except json.JSONDecodeError as exc:
                logger.debug("Dropping event with non-JSON data %r: %s", block.data, exc)
                return None

        if not isinstance(parsed, dict):
            logger.debug("Dropping event with non-object data %r", block.data)
            return None

        tag = parsed.get("type")
        try:
            if isinstance(tag, str) and tag in _BACKEND_TAGS:
                return self._from_backend(BackendStreamEvent.model_validate(parsed))

            event_type = (
                StreamEventType(block.event) if block.event else StreamEventType.MESSAGE_DELTA
            )
            return StreamEvent(type=event_type, data=StreamEventData.model_validate(parsed))
        except ValidationError as exc:
            logger.debug("Dropping event with invalid payload %r: %s", block.data, exc)
            return None

    @staticmethod
    def _from_backend(backend: BackendStreamEvent) -> StreamEvent:
        metadata = backend.metadata if isinstance(backend.metadata, dict) else {}
        message_id = metadata.get("messageId")
        data = StreamEventData(
            content=backend.content,
            metadata=backend.metadata,
            message_id=message_id if isinstance(message_id, str) else None,
        )
        return StreamEvent(type=backend.type.to_stream_type(), data=data)

    # -----------------------------------------------------------------------
    # Dispatch
    # -----------------------------------------------------------------------

    def dispatch(
        self, event: StreamEvent, state: ParserState, options: StreamingOptions
    ) -> None:
        data = event.data
        event_type = event.type
        logger.debug(
            "Dispatching %s for conversation %s", event_type, state.conversation_id
        )

        if event_type in (StreamEventType.TOKEN, StreamEventType.MESSAGE_DELTA):
            token = data.content or ""
            if token:
                state.accumulated_text += token
                options.on_delta(token, state.accumulated_text)

        elif event_type == StreamEventType.THINKING:
            if options.on_thinking is not None:
                options.on_thinking()
            elif options.on_typing_start is not None:
                options.on_typing_start()

        elif event_type in (StreamEventType.DONE, StreamEventType.MESSAGE_COMPLETE):
            options.on_complete(self._finalize(data, state))

        elif event_type in (StreamEventType.ERROR, StreamEventType.MESSAGE_ERROR):
            options.on_error(self._stream_error(event_type, data))

        elif event_type == StreamEventType.TOOL_CALL_START:
            if options.on_tool_call_start is not None:
                options.on_tool_call_start(data.metadata)
            else:
                logger.debug("No tool_call_start handler registered; event dropped")

        elif event_type == StreamEventType.TOOL_CALL_RESULT:
            if options.on_tool_call_result is not None:
                options.on_tool_call_result(data.content, data.metadata)
            else:
                logger.debug("No tool_call_result handler registered; event dropped")

        elif event_type in (
            StreamEventType.AGENT_TYPING_START,
            StreamEventType.AGENT_TYPING_STOP,
        ):
            self._dispatch_agent_typing(event_type, data, options)

        elif event_type == StreamEventType.TYPING_START:
            if options.on_typing_start is not None:
                options.on_typing_start()

        elif event_type == StreamEventType.TYPING_STOP:
            if options.on_typing_stop is not None:
                options.on_typing_stop()

        elif event_type == StreamEventType.MESSAGE_START:
            if data.message_id:
                state.streaming_message_id = data.message_id
                logger.debug("Streaming message started: %s", data.message_id)

        elif event_type == StreamEventType.QUICK_REPLIES:
            if data.quick_replies and options.on_quick_replies is not None:
                options.on_quick_replies(data.quick_replies)

        else:
            logger.debug("Unhandled event type %s", event_type)

    @staticmethod
    def _finalize(data: StreamEventData, state: ParserState) -> ChatMessage:
        """Build the completed message.

        The server's content wins over the locally accumulated text.
        """
        content = data.content if data.content is not None else state.accumulated_text
        message_id = data.message_id or state.streaming_message_id or generate_fallback_id()
        return ChatMessage(
            id=message_id,
            conversation_id=state.conversation_id,
            content=content,
            type="rich" if data.rich_content is not None else "text",
            rich_content=data.rich_content,
            metadata=data.metadata,
        )

    @staticmethod
    def _stream_error(event_type: StreamEventType, data: StreamEventData) -> ChatbotError:
        server_error = data.error
        server_message = server_error.message if server_error is not None else None

        if event_type == StreamEventType.MESSAGE_ERROR:
            code = ErrorCode.API_ERROR
            message = server_message or data.content
        else:
            code = ErrorCode.STREAM_ERROR
            message = data.content if data.content is not None else server_message

        error = ChatbotError(code=code, message=message or DEFAULT_STREAM_ERROR_MESSAGE)
        if server_error is not None and server_error.code:
            error.details = {"serverCode": server_error.code}
        return error

    @staticmethod
    def _dispatch_agent_typing(
        event_type: StreamEventType, data: StreamEventData, options: StreamingOptions
    ) -> None:
        is_start = event_type == StreamEventType.AGENT_TYPING_START
        callback = options.on_agent_typing_start if is_start else options.on_agent_typing_stop
        if callback is None:
            logger.debug("No handler registered for %s; event dropped", event_type)
            return

        metadata = data.metadata if isinstance(data.metadata, dict) else {}
        try:
            status = TypingStatusEvent.model_validate({**metadata, "isTyping": is_start})
        except ValidationError as exc:
            logger.debug("Dropping %s with invalid metadata: %s", event_type, exc)
            return
        callback(status)
