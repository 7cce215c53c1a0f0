"""
Client configuration, wire constants, and session defaults.

All constants used across the client modules are centralized here so that
configuration is separated from logic.  Credentials are never hard-coded:
:meth:`InteractConfig.from_env` reads them from the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

# ---------------------------------------------------------------------------
# Endpoint and headers
# ---------------------------------------------------------------------------

# Every batch is POSTed to this path under the configured server URL
SERVLET_PATH = "/servlet/RestServlet"

CONTENT_TYPE = "application/json; charset=utf-8"

TOKEN_HEADER = "m_tokenId"
USERNAME_HEADER = "m_user_name"
PASSWORD_HEADER = "m_user_password"

REQUEST_TIMEOUT_SECONDS: int = 60

# ---------------------------------------------------------------------------
# Engine defaults
# ---------------------------------------------------------------------------

DEFAULT_INTERACTIVE_CHANNEL = "_RealTimePersonalization_"
DEFAULT_MAX_RETRIES: int = 1

# Duplicate policy sent with each getOffersForMultipleInteractionPoints
# request: 1 → the engine never returns the same offer twice in one call.
DEFAULT_DUP_POLICY: int = 1

# ---------------------------------------------------------------------------
# Session persistence
# ---------------------------------------------------------------------------

DEFAULT_SESSION_EXPIRY = timedelta(minutes=30)
DEFAULT_STORAGE_KEY = "interact_session"
DEFAULT_SESSION_FILE = Path.home() / ".interact_client" / "session.json"

# ---------------------------------------------------------------------------
# Response codes
# ---------------------------------------------------------------------------

STATUS_SUCCESS = 0
STATUS_WARNING = 1
STATUS_ERROR = 2

MSG_LEVEL_INFO = 0
MSG_LEVEL_WARNING = 1
MSG_LEVEL_ERROR = 2

# Message code the engine attaches to session lookup failures
SESSION_ERROR_MSG_CODE = 1

# Lower-cased substrings identifying a stale or unknown session.  Matching is
# text based; a localized engine will not be recognized.
RECOVERABLE_SESSION_PHRASES: tuple[str, ...] = (
    "invalid session id",
    "session expired",
    "session timeout",
)

# ---------------------------------------------------------------------------
# Environment variables read by InteractConfig.from_env
# ---------------------------------------------------------------------------

ENV_SERVER_URL = "INTERACT_SERVER_URL"
ENV_CHANNEL = "INTERACT_CHANNEL"
ENV_USERNAME = "INTERACT_USERNAME"
ENV_PASSWORD = "INTERACT_PASSWORD"
ENV_ENABLE_LOGGING = "INTERACT_ENABLE_LOGGING"
ENV_PERSIST_SESSION = "INTERACT_PERSIST_SESSION"
ENV_STORAGE_KEY = "INTERACT_STORAGE_KEY"
ENV_SESSION_EXPIRY_MINUTES = "INTERACT_SESSION_EXPIRY_MINUTES"

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass
class InteractConfig:
    """
    Connection and session settings for one :class:`InteractClient`.

    ``session_expiry=None`` disables the local staleness check; the engine is
    then the only judge of whether a session is still alive.
    """

    server_url: str
    interactive_channel: str = DEFAULT_INTERACTIVE_CHANNEL
    username: str | None = None
    password: str | None = None
    enable_logging: bool = False
    persist_session: bool = False
    storage_key: str = DEFAULT_STORAGE_KEY
    session_expiry: timedelta | None = DEFAULT_SESSION_EXPIRY
    max_retries: int = DEFAULT_MAX_RETRIES
    timeout: int = REQUEST_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if not self.server_url:
            raise ValueError("server_url must be a non-empty URL.")
        if not self.interactive_channel:
            self.interactive_channel = DEFAULT_INTERACTIVE_CHANNEL
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}.")

    @classmethod
    def from_env(cls) -> InteractConfig:
        """
        Build a config from ``INTERACT_*`` environment variables.

        Returns:
            A populated :class:`InteractConfig`.

        Raises:
            ValueError: If ``INTERACT_SERVER_URL`` is unset, or the expiry
                        variable is not an integer.
        """
        server_url = os.getenv(ENV_SERVER_URL)
        if not server_url:
            raise ValueError(
                f"Server URL not found. Set the '{ENV_SERVER_URL}' environment "
                "variable before creating the client."
            )

        expiry: timedelta | None = DEFAULT_SESSION_EXPIRY
        raw_expiry = os.getenv(ENV_SESSION_EXPIRY_MINUTES)
        if raw_expiry:
            try:
                minutes = int(raw_expiry)
            except ValueError as exc:
                raise ValueError(
                    f"'{ENV_SESSION_EXPIRY_MINUTES}' must be an integer number "
                    f"of minutes, got '{raw_expiry}'."
                ) from exc
            # 0 or negative disables the local expiry check
            expiry = timedelta(minutes=minutes) if minutes > 0 else None

        return cls(
            server_url=server_url,
            interactive_channel=os.getenv(ENV_CHANNEL) or DEFAULT_INTERACTIVE_CHANNEL,
            username=os.getenv(ENV_USERNAME) or None,
            password=os.getenv(ENV_PASSWORD) or None,
            enable_logging=(os.getenv(ENV_ENABLE_LOGGING) or "").lower() in _TRUTHY,
            persist_session=(os.getenv(ENV_PERSIST_SESSION) or "").lower() in _TRUTHY,
            storage_key=os.getenv(ENV_STORAGE_KEY) or DEFAULT_STORAGE_KEY,
            session_expiry=expiry,
        )
