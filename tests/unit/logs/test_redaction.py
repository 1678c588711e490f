"""Tests for credential redaction in log output."""

from insidemeter.logging import redact_secrets, token_preview


class TestTokenPreview:
    """Tests for token_preview."""

    def test_long_token_shortened(self):
        """Test that only the first ten characters survive."""
        assert token_preview("42:1700000000000:deadbeef") == "42:1700000..."

    def test_short_token_hidden(self):
        """Test that short values are hidden entirely."""
        assert token_preview("abc") == "***"

    def test_none(self):
        """Test that a missing token stays None."""
        assert token_preview(None) is None


class TestRedactSecrets:
    """Tests for the redact_secrets processor."""

    def test_raw_token_redacted(self):
        """Test that a full token logged by mistake is shortened."""
        event = redact_secrets(None, "info", {"event": "x", "token": "42:1700000000000:deadbeef"})
        assert event["token"] == "42:1700000..."

    def test_preview_left_alone(self):
        """Test that values already shortened are not shortened again."""
        event = redact_secrets(None, "info", {"event": "x", "token": "42:1700000..."})
        assert event["token"] == "42:1700000..."

    def test_other_keys_untouched(self):
        """Test that ordinary fields pass through."""
        event = redact_secrets(None, "info", {"event": "login_failed", "login": "moonchild", "session_id": None})
        assert event == {"event": "login_failed", "login": "moonchild", "session_id": None}
