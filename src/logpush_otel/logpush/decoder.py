"""
Logpush payload decoding.

Turns a raw Workers Logpush delivery (gzip-compressed, newline-delimited
JSON) into a list of untyped records.
"""

from __future__ import annotations

import asyncio
import gzip
import json
import logging
import zlib
from dataclasses import dataclass, field
from typing import Any, Optional

from logpush_otel.exceptions import InvalidContentEncodingError, LogpushDecodeError

logger = logging.getLogger(__name__)

# Sent by Cloudflare when a Logpush job is created, to check the destination
# is reachable. It carries no logs.
CONNECTIVITY_PROBE = '{"content":"test"}'

GZIP_ENCODING = "gzip"


@dataclass
class DecodeIssue:
    """A line skipped while decoding in lenient mode."""

    line_number: int
    message: str
    context: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"line_number": self.line_number, "message": self.message}
        if self.context:
            result["context"] = self.context[:100]
        return result


@dataclass
class DecodeResult:
    """Records decoded from one delivery."""

    records: list[dict[str, Any]] = field(default_factory=list)
    issues: list[DecodeIssue] = field(default_factory=list)
    is_probe: bool = False


def require_gzip(content_encoding: Optional[str]) -> None:
    """
    Check the delivery's Content-Encoding header.

    Raises:
        InvalidContentEncodingError: Unless the header is exactly ``gzip``.
    """
    if content_encoding != GZIP_ENCODING:
        raise InvalidContentEncodingError(content_encoding)


def decompress_payload(body: bytes) -> str:
    """
    Gunzip a delivery body and decode it as UTF-8.

    Raises:
        LogpushDecodeError: If the stream is corrupt or not valid UTF-8.
    """
    try:
        raw = gzip.decompress(body)
    except (OSError, EOFError, zlib.error) as exc:
        raise LogpushDecodeError(f"Invalid gzip payload: {exc}") from exc

    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise LogpushDecodeError(f"Payload is not valid UTF-8: {exc}") from exc


def parse_ndjson(text: str, *, strict: bool = True) -> DecodeResult:
    """
    Parse newline-delimited JSON records.

    Blank lines are ignored. The exact connectivity probe text yields an
    empty result flagged as a probe.

    Args:
        text: Decompressed payload text.
        strict: When True, any malformed line aborts the whole payload.
            When False, malformed lines are skipped and reported as issues.

    Returns:
        DecodeResult with records in payload order.

    Raises:
        LogpushDecodeError: On a malformed line in strict mode.
    """
    if text == CONNECTIVITY_PROBE:
        return DecodeResult(is_probe=True)

    result = DecodeResult()
    for line_number, line in enumerate(text.split("\n"), start=1):
        if not line.strip():
            continue

        try:
            record = json.loads(line)
        except json.JSONDecodeError as exc:
            error = f"Malformed JSON: {exc.msg}"
        else:
            if isinstance(record, dict):
                result.records.append(record)
                continue
            error = f"Expected a JSON object, got {type(record).__name__}"

        if strict:
            raise LogpushDecodeError(error, line_number=line_number)

        logger.warning("Skipping line %d of Logpush payload: %s", line_number, error)
        result.issues.append(DecodeIssue(line_number=line_number, message=error, context=line))

    return result


def decode_logpush_payload(
    body: bytes,
    content_encoding: Optional[str],
    *,
    strict: bool = True,
) -> DecodeResult:
    """
    Decode a Logpush delivery.

    Args:
        body: Raw request body bytes.
        content_encoding: The request's Content-Encoding header value.
        strict: Line parsing policy, see :func:`parse_ndjson`.

    Raises:
        InvalidContentEncodingError: If the body is not declared as gzip.
        LogpushDecodeError: If the body cannot be decompressed or parsed.
    """
    require_gzip(content_encoding)
    return parse_ndjson(decompress_payload(body), strict=strict)


async def decode_logpush_payload_async(
    body: bytes,
    content_encoding: Optional[str],
    *,
    strict: bool = True,
) -> DecodeResult:
    """Same as :func:`decode_logpush_payload`, decompressing off the event loop."""
    require_gzip(content_encoding)
    text = await asyncio.to_thread(decompress_payload, body)
    return parse_ndjson(text, strict=strict)
