"""Command-line entry point: stream one chatbot reply to stdout.

Configuration comes from CHATBOT_* environment variables (or .env):

    CHATBOT_API_URL=https://api.example.com CHATBOT_TOKEN=... \
        chatbot-stream --conversation demo "What time do doors open?"

Ctrl+C aborts the stream cleanly.
"""

import argparse
import asyncio
import logging
import signal
import sys
import uuid

from chatbot_stream.auth import AuthConfig, AuthManager, AuthMode
from chatbot_stream.callbacks import StreamingOptions
from chatbot_stream.client import StreamingClient
from chatbot_stream.config import StreamSettings
from chatbot_stream.errors import ChatbotError
from chatbot_stream.schemas.message import ChatMessage, MessageRequest
from chatbot_stream.schemas.stream import QuickReply

logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="chatbot-stream", description="Stream a chatbot reply to stdout."
    )
    parser.add_argument("message", help="Text to send to the chatbot.")
    parser.add_argument(
        "--conversation",
        default=None,
        help="Conversation id (a random one is generated when omitted).",
    )
    parser.add_argument("--ticket", default=None, help="Ticket id to attach to the message.")
    parser.add_argument("--jwt", default=None, help="User JWT sent instead of the server token.")
    return parser.parse_args(argv)


async def stream_to_stdout(
    client: StreamingClient, conversation_id: str, request: MessageRequest
) -> int:
    """Run one stream, echoing tokens as they arrive. Returns an exit code."""
    errors: list[ChatbotError] = []

    def on_delta(token: str, _accumulated: str) -> None:
        sys.stdout.write(token)
        sys.stdout.flush()

    def on_complete(message: ChatMessage) -> None:
        sys.stdout.write("\n")
        logger.info("Message %s complete (%d chars)", message.id, len(message.content))

    def on_error(error: ChatbotError) -> None:
        errors.append(error)
        logger.error("Stream failed: %s %s", error.code, error.message)

    def on_quick_replies(replies: list[QuickReply]) -> None:
        labels = ", ".join(reply.label or reply.value or "?" for reply in replies)
        sys.stdout.write(f"[suggestions: {labels}]\n")

    options = StreamingOptions(
        on_delta=on_delta,
        on_complete=on_complete,
        on_error=on_error,
        on_quick_replies=on_quick_replies,
    )

    loop = asyncio.get_running_loop()
    handles_sigint = True
    try:
        loop.add_signal_handler(signal.SIGINT, client.abort, conversation_id)
    except NotImplementedError:
        # add_signal_handler is unavailable on Windows event loops.
        handles_sigint = False

    try:
        await client.start(conversation_id, request, options)
    finally:
        if handles_sigint:
            loop.remove_signal_handler(signal.SIGINT)
        client.destroy()

    return 1 if errors else 0


def run(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = StreamSettings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)-5s %(name)s: %(message)s",
    )

    auth = None
    if args.jwt:
        auth = AuthManager(AuthConfig(mode=AuthMode.JWT, token=args.jwt))

    client = StreamingClient.from_settings(settings, auth=auth)
    metadata = {"ticketId": args.ticket} if args.ticket else None
    request = MessageRequest(content=args.message, metadata=metadata)
    conversation_id = args.conversation or str(uuid.uuid4())

    return asyncio.run(stream_to_stdout(client, conversation_id, request))


if __name__ == "__main__":
    sys.exit(run())
