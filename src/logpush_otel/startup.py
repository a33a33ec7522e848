"""
Startup checks for the Logpush OTel bridge.

Validates configuration before the application starts serving requests.
Fails fast with clear, actionable error messages when requirements aren't met.
"""

import logging
import sys
import time
from typing import Optional
from urllib.parse import urlparse

from logpush_otel.config import settings

logger = logging.getLogger(__name__)


class StartupCheckError(Exception):
    """Raised when a critical startup check fails."""

    def __init__(self, message: str, hint: Optional[str] = None):
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        error_msg = f"\n{'='*70}\nSTARTUP CHECK FAILED\n{'='*70}\n\n{self.message}\n"
        if self.hint:
            error_msg += f"\nHint: {self.hint}\n"
        error_msg += f"{'='*70}\n"
        return error_msg


def check_required_environment() -> None:
    """
    Validate required environment variables are set.

    Raises:
        StartupCheckError: If DESTINATION is missing
    """
    if not settings.destination:
        raise StartupCheckError(
            "Missing required environment variable:\n  - DESTINATION",
            "Set DESTINATION to your OTLP/HTTP logs endpoint, "
            "e.g. https://otel.example.com/v1/logs",
        )


def check_destination_url() -> None:
    """
    Validate the destination is an absolute http(s) URL.

    Raises:
        StartupCheckError: If the URL cannot be used for deliveries
    """
    parsed = urlparse(settings.destination)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise StartupCheckError(
            f"Invalid DESTINATION: {settings.destination!r}",
            "DESTINATION must be an absolute http:// or https:// URL",
        )


def run_all_startup_checks() -> None:
    """
    Execute all startup checks in order.

    Raises:
        SystemExit: After logging the first failing check
    """
    checks = [
        ("Environment Variables", check_required_environment),
        ("Destination URL", check_destination_url),
    ]

    for check_name, check_func in checks:
        check_start = time.time()
        try:
            check_func()
        except StartupCheckError as e:
            logger.error("Startup check failed: %s%s", check_name, e)
            sys.exit(1)
        logger.info(
            "Startup check passed: %s (%.1fms)",
            check_name,
            (time.time() - check_start) * 1000,
        )
