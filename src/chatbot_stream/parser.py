"""Incremental event-stream framing.

Turns raw response bytes into ``EventBlock``s, one per blank-line-delimited
unit of the text/event-stream format:

    event: message.delta
    data: {"content":"Hello"}

    event: message.complete
    data: {"messageId":"msg-1","content":"Hello world"}

Chunk boundaries may fall anywhere (inside a line, inside a multi-byte
character, between the two newlines of a terminator); the output is the same
regardless of where they fall.
"""

import codecs
import logging
from dataclasses import dataclass

from chatbot_stream.schemas.stream import KNOWN_EVENT_NAMES

logger = logging.getLogger(__name__)

# Some servers end a stream with this data value instead of a typed done event.
DONE_SENTINEL = "[DONE]"


@dataclass
class ParserState:
    """Mutable state of one stream's read loop. Never shared between streams."""

    conversation_id: str = ""

    # Unterminated tail of decoded text, carried across chunks.
    buffer: str = ""

    # Fields of the block being assembled; reset after every dispatch.
    current_event: str | None = None
    current_data: str = ""

    # Full text rebuilt from token/delta events. Only ever appended to.
    accumulated_text: str = ""

    # Id of the in-progress bot message, from message.start.
    streaming_message_id: str | None = None

    def has_pending_block(self) -> bool:
        return bool(self.current_data) or self.current_event is not None

    def reset_block(self) -> None:
        self.current_event = None
        self.current_data = ""


@dataclass(frozen=True)
class EventBlock:
    """One complete event: the validated ``event:`` name and joined data."""

    event: str | None
    data: str

    @property
    def is_done_sentinel(self) -> bool:
        return self.data.strip() == DONE_SENTINEL


def decode_field(line: str) -> tuple[str, str] | None:
    """Split one line into ``(field, value)``.

    Returns None for comments (leading ``:``) and for lines without a colon.
    A single space after the colon is stripped from the value.
    """
    if line.startswith(":"):
        return None

    colon_index = line.find(":")
    if colon_index == -1:
        return None

    field = line[:colon_index].strip()
    value = line[colon_index + 1 :]
    if value.startswith(" "):
        value = value[1:]
    return field, value


class FrameParser:
    """Feeds decoded lines into a ``ParserState`` and emits finished blocks.

    Usage:
        parser = FrameParser(state)
        async for chunk in response.aiter_bytes():
            for block in parser.feed(chunk):
                ...
        for block in parser.close():
            ...
    """

    def __init__(self, state: ParserState) -> None:
        self.state = state
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: bytes | str) -> list[EventBlock]:
        """Consume one chunk and return the blocks it completed."""
        text = chunk if isinstance(chunk, str) else self._decoder.decode(chunk)
        if not text:
            return []

        lines = (self.state.buffer + text).split("\n")
        # The last segment may be an incomplete line.
        self.state.buffer = lines.pop()

        blocks: list[EventBlock] = []
        for line in lines:
            block = self._process_line(line.removesuffix("\r"))
            if block is not None:
                blocks.append(block)
        return blocks

    def close(self) -> list[EventBlock]:
        """Flush at end of input.

        Dispatches a pending block even if the server never sent the final
        blank line.
        """
        blocks: list[EventBlock] = []
        tail = self.state.buffer + self._decoder.decode(b"", final=True)
        self.state.buffer = ""

        # A tail may still hold complete lines if the decoder had bytes pending.
        *lines, last = tail.split("\n")
        for line in lines:
            block = self._process_line(line.removesuffix("\r"))
            if block is not None:
                blocks.append(block)
        last = last.removesuffix("\r")
        if last.strip():
            self._apply_field(last)

        if self.state.has_pending_block():
            blocks.append(self._take_block())
        return blocks

    def _process_line(self, line: str) -> EventBlock | None:
        if line == "":
            if self.state.has_pending_block():
                return self._take_block()
            self.state.reset_block()
            return None
        self._apply_field(line)
        return None

    def _apply_field(self, line: str) -> None:
        decoded = decode_field(line)
        if decoded is None:
            return
        field, value = decoded

        if field == "event":
            if value in KNOWN_EVENT_NAMES:
                self.state.current_event = value
            else:
                logger.debug("Unknown event type ignored: %r", value)
        elif field == "data":
            # Repeated data lines are joined with a newline.
            if self.state.current_data:
                self.state.current_data = f"{self.state.current_data}\n{value}"
            else:
                self.state.current_data = value
        # id and retry are valid fields but unused here.

    def _take_block(self) -> EventBlock:
        block = EventBlock(event=self.state.current_event, data=self.state.current_data)
        self.state.reset_block()
        return block
