"""Callback bundle for one streaming call.

All callbacks run synchronously inside the read loop, in wire order. A
consumer that needs to defer expensive work must schedule it itself.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from chatbot_stream.cancellation import CancellationToken
from chatbot_stream.errors import ChatbotError
from chatbot_stream.schemas.message import ChatMessage
from chatbot_stream.schemas.stream import QuickReply, TypingStatusEvent


@dataclass
class StreamingOptions:
    """Callbacks and cancellation for ``StreamingClient.start``.

    Example:
        options = StreamingOptions(
            on_delta=lambda token, text: renderer.update(message_id, text),
            on_complete=lambda message: store.add(message),
            on_error=lambda error: renderer.show_error(error.message),
        )
    """

    # Receives each new token and the full text reconstructed so far.
    on_delta: Callable[[str, str], None]
    on_complete: Callable[[ChatMessage], None]
    on_error: Callable[[ChatbotError], None]

    on_typing_start: Callable[[], None] | None = None
    on_typing_stop: Callable[[], None] | None = None
    on_quick_replies: Callable[[list[QuickReply]], None] | None = None

    # Model is reasoning. Falls back to on_typing_start when unset.
    on_thinking: Callable[[], None] | None = None

    # Forward-compatible hooks; no production traffic yet. Metadata is
    # forwarded exactly as the server sent it.
    on_tool_call_start: Callable[[Any], None] | None = None
    on_tool_call_result: Callable[[str | None, Any], None] | None = None
    on_agent_typing_start: Callable[[TypingStatusEvent], None] | None = None
    on_agent_typing_stop: Callable[[TypingStatusEvent], None] | None = None

    # Caller-owned cancellation. Cancelling it stops the stream silently.
    cancel_token: CancellationToken | None = None
