"""
Tests for configuration management.
"""

from pathlib import Path

import pytest

from logpush_otel.config import Settings


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep host environment variables out of config unit tests."""
    for key in ["DESTINATION", "AUTHORIZATION", "STRICT_PARSING", "LOG_DIR", "XDG_STATE_HOME"]:
        monkeypatch.delenv(key, raising=False)
    yield


class TestSettings:
    """Tests for Settings configuration."""

    def test_defaults(self):
        """Test default settings."""
        settings = Settings(_env_file=None)

        assert settings.destination == ""
        assert settings.authorization is None
        assert settings.strict_parsing is True
        assert settings.otel_max_batch_size == 512
        assert settings.log_level == "INFO"

    def test_settings_from_env_vars(self, monkeypatch):
        """Test that settings can be overridden by environment variables."""
        monkeypatch.setenv("DESTINATION", "https://otel.example.com/v1/logs")
        monkeypatch.setenv("AUTHORIZATION", "Bearer secret")
        monkeypatch.setenv("STRICT_PARSING", "false")
        monkeypatch.setenv("OTEL_MAX_BATCH_SIZE", "100")

        settings = Settings(_env_file=None)

        assert settings.destination == "https://otel.example.com/v1/logs"
        assert settings.authorization == "Bearer secret"
        assert settings.strict_parsing is False
        assert settings.otel_max_batch_size == 100

    def test_case_insensitive_env_vars(self, monkeypatch):
        """Test that environment variables are case-insensitive."""
        monkeypatch.setenv("destination", "https://lower.example.com")

        settings = Settings(_env_file=None)

        assert settings.destination == "https://lower.example.com"


class TestDestinationHeaders:
    """Tests for DESTINATION_HEADER_* collection."""

    def test_prefixed_env_vars_become_headers(self, monkeypatch):
        """The prefix is stripped and the rest of the name kept verbatim."""
        monkeypatch.setenv("DESTINATION_HEADER_X-Api-Key", "abc")
        monkeypatch.setenv("DESTINATION_HEADER_Authorization", "Bearer xyz")

        headers = Settings(_env_file=None).destination_headers()

        assert headers["X-Api-Key"] == "abc"
        assert headers["Authorization"] == "Bearer xyz"

    def test_bare_prefix_is_ignored(self, monkeypatch):
        monkeypatch.setenv("DESTINATION_HEADER_", "nothing")

        assert "" not in Settings(_env_file=None).destination_headers()

    def test_explicit_headers_win(self, monkeypatch):
        monkeypatch.setenv("DESTINATION_HEADER_X-Api-Key", "from-env")

        settings = Settings(_env_file=None, destination_extra_headers={"X-Api-Key": "explicit"})

        assert settings.destination_headers()["X-Api-Key"] == "explicit"


class TestLogDirectory:
    """Tests for log directory resolution."""

    def test_explicit_log_dir(self):
        settings = Settings(_env_file=None, log_dir="/var/log/logpush")

        assert settings.log_directory == Path("/var/log/logpush")

    def test_xdg_state_home(self, monkeypatch, tmp_path):
        monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path))

        settings = Settings(_env_file=None)

        assert settings.log_directory == tmp_path / "logpush-otel" / "logs"
