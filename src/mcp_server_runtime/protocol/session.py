"""
Session management.

Issues opaque session tokens at initialization and keeps the per-session
client log level. The table lives on the server instance and is lost on
restart.
"""

import base64
import binascii
import re
import secrets
from typing import Dict, Optional

import structlog

logger = structlog.get_logger(__name__)

SESSION_ID_BYTES = 16

# URL-safe base64 alphabet, optionally padded
_TOKEN_PATTERN = re.compile(r"[A-Za-z0-9_-]+={0,2}")

LOG_LEVELS = (
    "debug",
    "info",
    "notice",
    "warning",
    "error",
    "critical",
    "alert",
    "emergency",
)

_LEVEL_ALIASES = {"warn": "warning"}


def normalize_log_level(level: str) -> Optional[str]:
    """Return the canonical level name, or None if ``level`` is not one."""
    if not isinstance(level, str):
        return None
    level = _LEVEL_ALIASES.get(level, level)
    return level if level in LOG_LEVELS else None


class SessionManager:
    """Session tokens and per-session log levels."""

    def __init__(self):
        self._log_levels: Dict[str, str] = {}

    @staticmethod
    def generate_session_id() -> str:
        """
        Create a new session token.

        Returns:
            16 random bytes, URL-safe base64 without padding (22 characters)
        """
        token = secrets.token_bytes(SESSION_ID_BYTES)
        return base64.urlsafe_b64encode(token).rstrip(b"=").decode("ascii")

    @staticmethod
    def validate_session_id(session_id: Optional[str]) -> bool:
        """
        Check that a token has the shape of an issued session id.

        Only the format is checked; the token is not looked up.
        """
        if not isinstance(session_id, str) or not _TOKEN_PATTERN.fullmatch(session_id):
            return False
        padded = session_id + "=" * (-len(session_id) % 4)
        try:
            decoded = base64.b64decode(padded, altchars=b"-_", validate=True)
        except (binascii.Error, ValueError):
            return False
        return len(decoded) > 0

    def set_log_level(self, session_id: str, level: str) -> str:
        """
        Store the client log level for a session.

        Returns:
            The canonical level name

        Raises:
            ValueError: If ``level`` is not a known level
        """
        canonical = normalize_log_level(level)
        if canonical is None:
            raise ValueError(f"Invalid logging level: {level}")

        self._log_levels[session_id] = canonical
        logger.debug("Session log level set", session_id=session_id, level=canonical)
        return canonical

    def get_log_level(self, session_id: str, default: Optional[str] = None) -> Optional[str]:
        return self._log_levels.get(session_id, default)

    def __len__(self) -> int:
        return len(self._log_levels)
