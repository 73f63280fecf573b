"""Streaming client for real-time chatbot responses.

Sends the user's message as a POST with ``Accept: text/event-stream`` and
parses the chunked response body into typed events. Each active stream is
tracked by conversation id; starting a new stream for a conversation cancels
the previous one, and ``abort()`` / ``abort_all()`` cancel streams on demand.

Retry and reconnection are not handled here: the connection-management
layer above this client decides whether a failed stream is retried.
"""

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

import httpx

from chatbot_stream.auth import AuthHeaderProvider
from chatbot_stream.callbacks import StreamingOptions
from chatbot_stream.cancellation import CancellationToken, combine_tokens
from chatbot_stream.config import StreamSettings
from chatbot_stream.errors import ChatbotError, ErrorCode
from chatbot_stream.parser import FrameParser, ParserState
from chatbot_stream.registry import SessionRegistry
from chatbot_stream.request_builder import StreamRequestBuilder
from chatbot_stream.schemas.message import MessageRequest, UserContext
from chatbot_stream.translator import EventTranslator

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StreamAborted(Exception):
    """The stream's cancellation token fired. Never reported via on_error."""


class StreamingClient:
    """Event-stream client with per-conversation cancellation.

    ``timeout`` bounds connecting and sending the request, not the gaps
    between streamed chunks. ``debug=True`` lowers the shared
    ``chatbot_stream`` logger to DEBUG for the whole process; a later client
    created with ``debug=False`` does not restore it.

    Usage:
        client = StreamingClient("https://api.example.com", token="server-token")
        await client.start("conv-1", MessageRequest(content="Hello!"), options)

        # From another task, to stop mid-stream:
        client.abort("conv-1")

        # On teardown:
        client.destroy()
    """

    def __init__(
        self,
        api_url: str,
        token: str = "",
        *,
        auth: AuthHeaderProvider | None = None,
        tenant_id: str | None = None,
        event_id: str | None = None,
        source: str | None = None,
        user_context: UserContext | None = None,
        timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
        debug: bool = False,
    ) -> None:
        self._builder = StreamRequestBuilder(
            api_url,
            token,
            auth=auth,
            tenant_id=tenant_id,
            event_id=event_id,
            source=source,
            user_context=user_context,
        )
        self._registry = SessionRegistry()
        self._translator = EventTranslator()
        # Reads are unbounded; idle-stream policy belongs to the connection layer.
        self._timeout = httpx.Timeout(timeout, read=None)
        # Injected in tests (httpx.MockTransport); None means the network.
        self._transport = transport

        if debug:
            # Process-wide: the package logger is shared by every client.
            logging.getLogger("chatbot_stream").setLevel(logging.DEBUG)

    @classmethod
    def from_settings(
        cls,
        settings: StreamSettings,
        auth: AuthHeaderProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "StreamingClient":
        return cls(
            settings.api_url,
            settings.token,
            auth=auth,
            tenant_id=settings.tenant_id,
            event_id=settings.event_id,
            source=settings.source,
            user_context=settings.user_context,
            timeout=settings.request_timeout,
            transport=transport,
            debug=settings.debug,
        )

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    async def start(
        self,
        conversation_id: str,
        request: MessageRequest | dict[str, Any],
        options: StreamingOptions,
    ) -> None:
        """Send a message and stream the reply into ``options``' callbacks.

        Returns when the stream completes, fails or is cancelled. Never
        raises for stream failures: they all arrive at ``options.on_error``.
        Cancellation (``abort``, a replacing stream, or
        ``options.cancel_token``) returns silently with no callback.

        Exceptions raised by the consumer's own callbacks are reported as
        ``UNKNOWN_ERROR``. If ``on_complete`` itself raises, the consumer
        receives ``on_complete`` and then ``on_error`` for the same stream.
        """
        message = (
            request if isinstance(request, MessageRequest) else MessageRequest.model_validate(request)
        )
        session = self._registry.register(conversation_id)
        token = combine_tokens(session.token, options.cancel_token)

        logger.debug(
            "Starting stream conversation=%s url=%s content_length=%d",
            conversation_id,
            self._builder.url,
            len(message.content),
        )

        try:
            if token.cancelled:
                raise StreamAborted()
            await self._until_cancelled(
                self._exchange(conversation_id, message, options, token), token
            )
        except StreamAborted:
            logger.debug("Stream aborted for conversation %s", conversation_id)
        except httpx.HTTPError as exc:
            if token.cancelled:
                logger.debug("Stream aborted for conversation %s", conversation_id)
            else:
                logger.error(
                    "Stream connection error for conversation %s: %s", conversation_id, exc
                )
                self._report_error(
                    options,
                    ChatbotError(
                        code=ErrorCode.NETWORK_ERROR,
                        message=str(exc) or type(exc).__name__,
                    ),
                )
        except Exception as exc:
            logger.exception("Unexpected streaming failure for conversation %s", conversation_id)
            self._report_error(
                options,
                ChatbotError(
                    code=ErrorCode.UNKNOWN_ERROR,
                    message=str(exc) or "Unknown streaming error",
                ),
            )
        finally:
            token.dispose()
            self._registry.release(session)

    def abort(self, conversation_id: str) -> None:
        """Cancel the conversation's stream, if any. ``on_error`` is not called."""
        if self._registry.cancel(conversation_id):
            logger.debug("Aborted stream for conversation %s", conversation_id)

    def abort_all(self) -> None:
        """Cancel every active stream, e.g. on widget teardown."""
        self._registry.cancel_all()

    def is_streaming(self, conversation_id: str) -> bool:
        return self._registry.is_active(conversation_id)

    def destroy(self) -> None:
        """Cancel all streams. Safe to call more than once."""
        logger.debug("Destroying StreamingClient")
        self.abort_all()

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    @staticmethod
    async def _until_cancelled(awaitable: Awaitable[T], token: CancellationToken) -> T:
        """Await ``awaitable`` unless ``token`` fires first.

        On cancellation the work is cancelled at its current await (the
        pending network read) and its teardown is awaited before raising
        ``StreamAborted``.
        """
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            waiter.cancel()

        if not task.done():
            task.cancel()
            # Collect the outcome so teardown errors are not left unretrieved.
            await asyncio.gather(task, return_exceptions=True)
            raise StreamAborted()
        return task.result()

    async def _exchange(
        self,
        conversation_id: str,
        message: MessageRequest,
        options: StreamingOptions,
        token: CancellationToken,
    ) -> None:
        http_request = self._builder.build(message)

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            response = await client.send(http_request, stream=True)
            try:
                if not response.is_success:
                    body = await response.aread()
                    logger.error(
                        "Streaming endpoint returned HTTP %d: %s",
                        response.status_code,
                        body[:200].decode("utf-8", errors="replace"),
                    )
                    options.on_error(ChatbotError.for_status(response.status_code))
                    return

                if response.status_code == httpx.codes.NO_CONTENT:
                    logger.error("Streaming response has no body")
                    options.on_error(
                        ChatbotError(
                            code=ErrorCode.MESSAGE_SEND_FAILED,
                            message="Streaming response has no body",
                        )
                    )
                    return

                await self._read_stream(response, conversation_id, options, token)
            finally:
                # Release the connection on every exit path.
                await response.aclose()

    async def _read_stream(
        self,
        response: httpx.Response,
        conversation_id: str,
        options: StreamingOptions,
        token: CancellationToken,
    ) -> None:
        """Read loop: chunks in, callbacks out, strictly in wire order."""
        state = ParserState(conversation_id=conversation_id)
        parser = FrameParser(state)
        logger.debug("Read loop started for conversation %s", conversation_id)

        async for chunk in response.aiter_bytes():
            for block in parser.feed(chunk):
                if token.cancelled:
                    raise StreamAborted()
                if block.is_done_sentinel:
                    logger.debug("Received [DONE] sentinel for conversation %s", conversation_id)
                    return
                self._translator.translate(block, state, options)

        logger.debug("Stream closed by server for conversation %s", conversation_id)
        for block in parser.close():
            if token.cancelled:
                raise StreamAborted()
            if block.is_done_sentinel:
                return
            self._translator.translate(block, state, options)

    @staticmethod
    def _report_error(options: StreamingOptions, error: ChatbotError) -> None:
        """Deliver a failure to the consumer without letting it escape start()."""
        try:
            options.on_error(error)
        except Exception:
            logger.exception("on_error callback raised while reporting %s", error.code)
