"""Streaming client configuration loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from chatbot_stream.schemas.message import UserContext


class StreamSettings(BaseSettings):
    """Settings for the chatbot streaming client (CHATBOT_* env vars)."""

    # Base URL of the chatbot API, e.g. "https://api.example.com".
    api_url: str

    # Bearer token from the server config endpoint.
    token: str = ""

    # Sent as X-Tenant-ID; required for guest users.
    tenant_id: str | None = None

    # Scopes the conversation thread to one event.
    event_id: str | None = None

    # Guest session source id.
    source: str | None = None

    # Optional geolocation, sent Base64-encoded as X-User-Context.
    user_lat: float | None = None
    user_lng: float | None = None

    # Connect/write/pool timeout for the streaming request. Reads between
    # chunks are not timed out.
    request_timeout: float = 300.0

    log_level: str = "INFO"

    # Lower the chatbot_stream logger to DEBUG (process-wide).
    debug: bool = False

    model_config = SettingsConfigDict(
        env_prefix="CHATBOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def user_context(self) -> UserContext | None:
        if self.user_lat is None or self.user_lng is None:
            return None
        return UserContext(lat=self.user_lat, lng=self.user_lng)
