"""Tests for CancellationToken, combine_tokens and the SessionRegistry."""

import asyncio
from unittest.mock import MagicMock

import pytest

from chatbot_stream.cancellation import CancellationToken, LinkedCancellationToken, combine_tokens
from chatbot_stream.registry import SessionRegistry


# ---------------------------------------------------------------------------
# Tests: CancellationToken
# ---------------------------------------------------------------------------


class TestCancellationToken:
    def test_initial_state_not_cancelled(self):
        assert CancellationToken().cancelled is False

    def test_cancel_is_idempotent_and_fires_listeners_once(self):
        token = CancellationToken()
        listener = MagicMock()
        token.add_listener(listener)

        token.cancel()
        token.cancel()

        assert token.cancelled is True
        listener.assert_called_once_with()

    def test_removed_listener_is_not_called(self):
        token = CancellationToken()
        listener = MagicMock()
        remove = token.add_listener(listener)

        remove()
        token.cancel()

        listener.assert_not_called()

    def test_listener_added_after_cancel_fires_immediately(self):
        token = CancellationToken()
        token.cancel()
        listener = MagicMock()

        token.add_listener(listener)

        listener.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_wait_returns_after_cancel(self):
        token = CancellationToken()
        asyncio.get_running_loop().call_soon(token.cancel)

        await asyncio.wait_for(token.wait(), timeout=1)

        assert token.cancelled is True


# ---------------------------------------------------------------------------
# Tests: combine_tokens
# ---------------------------------------------------------------------------


class TestCombineTokens:
    def test_single_token_returned_unchanged(self):
        token = CancellationToken()

        assert combine_tokens(token, None) is token

    def test_no_tokens_gives_fresh_token(self):
        combined = combine_tokens(None)

        assert isinstance(combined, CancellationToken)
        assert combined.cancelled is False

    @pytest.mark.parametrize("which", [0, 1])
    def test_either_source_cancels_the_combination(self, which):
        sources = [CancellationToken(), CancellationToken()]
        combined = combine_tokens(*sources)

        sources[which].cancel()

        assert isinstance(combined, LinkedCancellationToken)
        assert combined.cancelled is True
        # The other source is untouched.
        assert sources[1 - which].cancelled is False

    def test_already_cancelled_source_cancels_immediately(self):
        source = CancellationToken()
        source.cancel()

        assert combine_tokens(source, CancellationToken()).cancelled is True

    def test_dispose_detaches_from_sources(self):
        first, second = CancellationToken(), CancellationToken()
        combined = combine_tokens(first, second)

        combined.dispose()
        first.cancel()

        assert combined.cancelled is False

    def test_dispose_is_idempotent(self):
        combined = combine_tokens(CancellationToken(), CancellationToken())

        combined.dispose()
        combined.dispose()


# ---------------------------------------------------------------------------
# Tests: SessionRegistry
# ---------------------------------------------------------------------------


class TestSessionRegistry:
    def test_register_tracks_conversation(self):
        registry = SessionRegistry()

        session = registry.register("conv-1")

        assert registry.is_active("conv-1")
        assert "conv-1" in registry
        assert len(registry) == 1
        assert session.conversation_id == "conv-1"
        assert session.token.cancelled is False

    def test_register_cancels_prior_session_for_same_conversation(self):
        registry = SessionRegistry()
        first = registry.register("conv-1")

        second = registry.register("conv-1")

        assert first.token.cancelled is True
        assert second.token.cancelled is False
        assert len(registry) == 1

    def test_different_conversations_are_independent(self):
        registry = SessionRegistry()
        a = registry.register("a")
        b = registry.register("b")

        registry.cancel("a")

        assert a.token.cancelled is True
        assert b.token.cancelled is False
        assert registry.is_active("b")

    def test_cancel_unknown_conversation_is_noop(self):
        registry = SessionRegistry()

        assert registry.cancel("missing") is False

    def test_cancel_all(self):
        registry = SessionRegistry()
        sessions = [registry.register(cid) for cid in ("a", "b", "c")]

        assert registry.cancel_all() == 3
        assert len(registry) == 0
        assert all(session.token.cancelled for session in sessions)

    def test_cancel_all_on_empty_registry(self):
        assert SessionRegistry().cancel_all() == 0

    def test_release_removes_own_entry(self):
        registry = SessionRegistry()
        session = registry.register("conv-1")

        registry.release(session)

        assert not registry.is_active("conv-1")

    def test_release_of_replaced_session_keeps_successor(self):
        """A finishing stream must not evict the stream that replaced it."""
        registry = SessionRegistry()
        old = registry.register("conv-1")
        new = registry.register("conv-1")

        registry.release(old)

        assert registry.is_active("conv-1")
        registry.release(new)
        assert not registry.is_active("conv-1")

    def test_release_twice_is_safe(self):
        registry = SessionRegistry()
        session = registry.register("conv-1")

        registry.release(session)
        registry.release(session)

        assert len(registry) == 0
