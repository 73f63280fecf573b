"""Shared test configuration for chatbot_stream tests.

Sets required environment variables before any module that uses
pydantic-settings gets imported.
"""

import os
from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

# Must be set before StreamSettings() is instantiated anywhere.
os.environ.setdefault("CHATBOT_API_URL", "https://api.test")

from chatbot_stream.callbacks import StreamingOptions  # noqa: E402
from chatbot_stream.client import StreamingClient  # noqa: E402
from stream_fakes import API_URL, FakeStreamServer  # noqa: E402


@pytest.fixture
def options() -> StreamingOptions:
    """Callback bundle whose required callbacks are MagicMocks."""
    return StreamingOptions(
        on_delta=MagicMock(name="on_delta"),
        on_complete=MagicMock(name="on_complete"),
        on_error=MagicMock(name="on_error"),
    )


@pytest.fixture
def make_client() -> Callable[..., StreamingClient]:
    """Build a StreamingClient wired to a FakeStreamServer's transport."""

    def _make(server: FakeStreamServer, **kwargs) -> StreamingClient:
        kwargs.setdefault("token", "server-token")
        return StreamingClient(API_URL, transport=server.transport, **kwargs)

    return _make
