"""
Logpush OTel bridge configuration.

Centralized configuration management using Pydantic Settings.
Loads configuration from environment variables (and an optional .env file).
"""

import os
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

DESTINATION_HEADER_PREFIX = "DESTINATION_HEADER_"


def get_xdg_state_dir() -> str:
    """
    Get XDG-compliant state directory for bridge logs.

    - Uses $XDG_STATE_HOME/logpush-otel/logs if XDG_STATE_HOME is set
    - Falls back to $HOME/.local/state/logpush-otel/logs if not set
    - Returns relative path ./logs if HOME not available (dev/testing)
    """
    xdg_state_home = os.getenv("XDG_STATE_HOME")
    if xdg_state_home:
        return str(Path(xdg_state_home) / "logpush-otel" / "logs")

    home = os.getenv("HOME")
    if home:
        return str(Path(home) / ".local" / "state" / "logpush-otel" / "logs")

    return "./logs"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Destination (OTLP/HTTP logs endpoint)
    destination: str = ""  # Required at startup, e.g. https://otel.example.com/v1/logs
    destination_extra_headers: dict[str, str] = {}  # Merged over DESTINATION_HEADER_* vars
    destination_timeout_seconds: float = 30.0

    # Inbound authorization (exact match against the Authorization header)
    authorization: Optional[str] = None

    # Ingestion
    strict_parsing: bool = True  # Reject the whole batch on a malformed line

    # Batching (handed to the OpenTelemetry batch processor as-is)
    otel_batch_delay_ms: int = 1000
    otel_max_batch_size: int = 512
    otel_max_queue_size: int = 2048
    otel_export_timeout_ms: int = 30000

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    # Logging
    log_level: str = "INFO"
    log_format: str = "standard"  # standard or json
    log_file_enabled: bool = False
    log_dir: str = ""  # Defaults to XDG state dir if empty
    log_max_bytes: int = 10_485_760  # 10MB per log file
    log_backup_count: int = 5

    def destination_headers(self) -> dict[str, str]:
        """
        Collect static headers for outbound deliveries.

        Every ``DESTINATION_HEADER_<Name>`` environment variable contributes
        a ``<Name>`` header with the prefix stripped and the name otherwise
        kept verbatim. Explicit ``destination_extra_headers`` win on conflict.
        """
        headers = {
            key[len(DESTINATION_HEADER_PREFIX):]: value
            for key, value in os.environ.items()
            if key.startswith(DESTINATION_HEADER_PREFIX)
            and len(key) > len(DESTINATION_HEADER_PREFIX)
        }
        headers.update(self.destination_extra_headers)
        return headers

    @property
    def log_directory(self) -> Path:
        """Get the log directory path, using XDG default if not specified."""
        if self.log_dir:
            return Path(self.log_dir).expanduser()
        return Path(get_xdg_state_dir())


# Global settings instance
settings = Settings()
