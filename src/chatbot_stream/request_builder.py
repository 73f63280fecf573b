"""Builds the outbound POST request for the streaming endpoint."""

import base64
import json

import httpx

from chatbot_stream.auth import AuthHeaderProvider
from chatbot_stream.schemas.message import BackendMessageRequest, MessageRequest, UserContext

STREAM_PATH = "/chatbot/stream"
EVENT_STREAM_MEDIA_TYPE = "text/event-stream"


def encode_user_context(user_context: UserContext) -> str:
    """Base64 of the compact JSON geolocation, as sent in X-User-Context."""
    payload = json.dumps(user_context.model_dump(), separators=(",", ":"))
    return base64.b64encode(payload.encode("utf-8")).decode("ascii")


class StreamRequestBuilder:
    """Assembles headers, query parameters and body for one stream.

    Optional values that are not configured are left out entirely rather
    than sent as empty strings.
    """

    def __init__(
        self,
        api_url: str,
        token: str | None = None,
        *,
        auth: AuthHeaderProvider | None = None,
        tenant_id: str | None = None,
        event_id: str | None = None,
        source: str | None = None,
        user_context: UserContext | None = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._token = token
        self._auth = auth
        self._tenant_id = tenant_id
        self._event_id = event_id
        self._source = source
        self._user_context_header = (
            encode_user_context(user_context) if user_context is not None else None
        )

    @property
    def url(self) -> str:
        return f"{self._api_url}{STREAM_PATH}"

    def build_params(self) -> dict[str, str]:
        params: dict[str, str] = {}
        if self._event_id:
            params["eventId"] = self._event_id
        if self._source:
            params["source"] = self._source
        return params

    def build_headers(self) -> dict[str, str]:
        """Default headers with the auth collaborator's headers merged last."""
        headers = {
            "Content-Type": "application/json",
            "Accept": EVENT_STREAM_MEDIA_TYPE,
            "Cache-Control": "no-cache",
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        if self._tenant_id:
            headers["X-Tenant-ID"] = self._tenant_id
        if self._user_context_header:
            headers["X-User-Context"] = self._user_context_header

        # Collaborator headers win on collision (e.g. a user JWT).
        if self._auth is not None:
            headers.update(self._auth.get_auth_headers())
        return headers

    def build(self, request: MessageRequest) -> httpx.Request:
        body = BackendMessageRequest.from_request(request).to_body()
        return httpx.Request(
            "POST",
            self.url,
            params=self.build_params() or None,
            headers=self.build_headers(),
            json=body,
        )
