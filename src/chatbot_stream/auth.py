"""Authentication header collaborator for streaming requests.

The streaming client consults ``get_auth_headers()`` once per stream start
and merges the result over its default bearer header. Token refresh lives
elsewhere; this module only turns the current token into headers.
"""

import logging
from enum import StrEnum
from typing import Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class AuthHeaderProvider(Protocol):
    def get_auth_headers(self) -> dict[str, str]: ...


class AuthMode(StrEnum):
    # No user auth; requests rely on the server config token only.
    PUBLIC = "public"
    # Authorization: Bearer <token>
    JWT = "jwt"
    # <header_name>: <header_prefix> <token>
    CUSTOM = "custom"


class AuthConfig(BaseModel):
    """Authentication settings supplied by the host application."""

    mode: AuthMode = AuthMode.PUBLIC
    token: str | None = None
    header_name: str = "Authorization"
    header_prefix: str = "Bearer"


class AuthManager:
    """Holds the current user token and renders it as request headers."""

    def __init__(self, config: AuthConfig) -> None:
        self._config = config
        self._token: str | None = config.token or None
        logger.debug(
            "AuthManager initialized mode=%s has_token=%s",
            config.mode,
            self._token is not None,
        )

    @property
    def token(self) -> str | None:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self._config.mode != AuthMode.PUBLIC and self._token is not None

    def set_token(self, token: str) -> None:
        """Set or replace the token, e.g. after a host-side login."""
        self._token = token or None

    def clear_token(self) -> None:
        self._token = None

    def get_auth_headers(self) -> dict[str, str]:
        """Headers for the current token; empty in public mode or without a token."""
        if self._config.mode == AuthMode.PUBLIC or self._token is None:
            return {}
        if self._config.mode == AuthMode.JWT:
            return {"Authorization": f"Bearer {self._token}"}
        return {self._config.header_name: f"{self._config.header_prefix} {self._token}"}
