"""Cooperative cancellation tokens for in-flight streams.

A ``CancellationToken`` wraps an ``asyncio.Event`` so the read loop can race
each chunk read against it. ``combine_tokens`` merges the client's own token
with one supplied by the caller, so either side can stop the read.
"""

import asyncio
from collections.abc import Callable

Listener = Callable[[], None]


class CancellationToken:
    """One-shot cancellation flag with listeners and an awaitable wait()."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._listeners: list[Listener] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Mark the token cancelled and notify listeners. Idempotent."""
        if self._event.is_set():
            return
        self._event.set()
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener()

    async def wait(self) -> None:
        await self._event.wait()

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a callback fired once on cancel; returns a remover.

        Listeners added after cancellation fire immediately.
        """
        if self.cancelled:
            listener()
            return lambda: None
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def dispose(self) -> None:
        """Release resources held by the token. No-op for plain tokens."""


class LinkedCancellationToken(CancellationToken):
    """Cancels when any of its source tokens cancels.

    Call ``dispose()`` once the stream is over so the sources do not keep
    references to this token.
    """

    def __init__(self, sources: list[CancellationToken]) -> None:
        super().__init__()
        self._removers: list[Callable[[], None]] = []
        for source in sources:
            self._removers.append(source.add_listener(self.cancel))

    def dispose(self) -> None:
        removers, self._removers = self._removers, []
        for remove in removers:
            remove()


def combine_tokens(*tokens: CancellationToken | None) -> CancellationToken:
    """Return a token that cancels when any non-None input cancels.

    A single input is returned unchanged, since there is nothing to link.
    """
    sources = [token for token in tokens if token is not None]
    if not sources:
        return CancellationToken()
    if len(sources) == 1:
        return sources[0]
    return LinkedCancellationToken(sources)
