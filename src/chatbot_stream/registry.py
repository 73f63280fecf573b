"""Registry of in-flight streams, one per conversation.

Every mutation is a plain dict operation with no await in between, so the
registry needs no lock on a single event loop.
"""

import logging
from dataclasses import dataclass, field

from chatbot_stream.cancellation import CancellationToken

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class StreamSession:
    """Bookkeeping for one active stream."""

    conversation_id: str
    token: CancellationToken = field(default_factory=CancellationToken)


class SessionRegistry:
    """Owns one cancellation token per conversation.

    Only ``register``, ``cancel``/``cancel_all`` and ``release`` mutate the
    registry; callers never touch the underlying dict.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, StreamSession] = {}

    def register(self, conversation_id: str) -> StreamSession:
        """Start tracking a new stream, cancelling any prior one first.

        The prior stream's teardown is not awaited; its read loop notices the
        cancelled token at its next read.
        """
        self.cancel(conversation_id)
        session = StreamSession(conversation_id=conversation_id)
        self._sessions[conversation_id] = session
        return session

    def cancel(self, conversation_id: str) -> bool:
        """Cancel and forget the conversation's stream. Returns False if none."""
        session = self._sessions.pop(conversation_id, None)
        if session is None:
            return False
        logger.debug("Cancelling stream for conversation %s", conversation_id)
        session.token.cancel()
        return True

    def cancel_all(self) -> int:
        """Cancel every stream. Returns how many were cancelled."""
        sessions, self._sessions = self._sessions, {}
        for session in sessions.values():
            session.token.cancel()
        if sessions:
            logger.debug("Cancelled %d active stream(s)", len(sessions))
        return len(sessions)

    def release(self, session: StreamSession) -> None:
        """Drop the entry at the end of a stream.

        A no-op if the session was already cancelled or replaced, so a
        finishing stream never evicts its successor.
        """
        if self._sessions.get(session.conversation_id) is session:
            del self._sessions[session.conversation_id]

    def is_active(self, conversation_id: str) -> bool:
        return conversation_id in self._sessions

    def __contains__(self, conversation_id: object) -> bool:
        return conversation_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
