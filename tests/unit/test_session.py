"""
Unit tests for session tokens and per-session log levels.
"""

import pytest

from mcp_server_runtime.protocol.session import LOG_LEVELS, SessionManager, normalize_log_level


class TestSessionIds:
    """Test session token generation and validation."""

    def test_generated_id_shape(self):
        session_id = SessionManager.generate_session_id()

        assert len(session_id) == 22
        assert "=" not in session_id
        assert SessionManager.validate_session_id(session_id)

    def test_generated_ids_are_unique(self):
        ids = {SessionManager.generate_session_id() for _ in range(100)}

        assert len(ids) == 100

    @pytest.mark.parametrize("token", ["abcd", "abc", "a-b_c9"])
    def test_any_decodable_token_is_accepted(self, token):
        assert SessionManager.validate_session_id(token)

    @pytest.mark.parametrize(
        "token",
        ["", "!!!", "has space", "a", None, "ab+/", "AAAAAAAAAAAAAAAAAAAA+/", "abc\n"],
    )
    def test_invalid_tokens(self, token):
        assert not SessionManager.validate_session_id(token)


class TestLogLevels:
    """Test per-session log level storage."""

    def test_set_and_get(self):
        sessions = SessionManager()

        assert sessions.set_log_level("s1", "debug") == "debug"
        assert sessions.get_log_level("s1") == "debug"
        assert len(sessions) == 1

    def test_warn_alias(self):
        sessions = SessionManager()

        assert sessions.set_log_level("s1", "warn") == "warning"

    def test_invalid_level(self):
        sessions = SessionManager()

        with pytest.raises(ValueError, match="Invalid logging level: loud"):
            sessions.set_log_level("s1", "loud")

        assert sessions.get_log_level("s1", "info") == "info"

    def test_sessions_are_independent(self):
        sessions = SessionManager()
        sessions.set_log_level("s1", "error")

        assert sessions.get_log_level("s2") is None

    def test_all_levels_are_accepted(self):
        assert [normalize_log_level(level) for level in LOG_LEVELS] == list(LOG_LEVELS)

    def test_non_string_level(self):
        assert normalize_log_level(3) is None
