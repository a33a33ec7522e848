"""Custom exceptions for the Logpush OTel bridge."""

from typing import Optional


class LogpushError(Exception):
    """Base class for errors raised while ingesting a Logpush delivery."""


class InvalidContentEncodingError(LogpushError):
    """Raised when a delivery is not gzip-encoded."""

    def __init__(self, content_encoding: Optional[str]):
        self.content_encoding = content_encoding
        super().__init__("Invalid Content-Encoding header")


class LogpushDecodeError(LogpushError):
    """Raised when a delivery cannot be decompressed or parsed."""

    def __init__(self, message: str, line_number: Optional[int] = None):
        self.line_number = line_number
        if line_number is not None:
            message = f"{message} (line {line_number})"
        super().__init__(message)


class EventShapeError(LogpushError):
    """Raised when a decoded record violates the Logpush event contract."""


class SerializationError(LogpushError):
    """Raised when a log batch cannot be rendered as an OTLP payload."""


class ExportUnitClosedError(LogpushError):
    """Raised when a record is emitted into an export unit that is shutting down."""

    def __init__(self, source: str):
        self.source = source
        super().__init__(f"Export unit for source '{source}' no longer accepts records")
