"""Tests for Logpush payload decoding."""

import asyncio
import gzip
from unittest.mock import patch

import pytest

from conftest import make_payload, make_record
from logpush_otel.exceptions import InvalidContentEncodingError, LogpushDecodeError
from logpush_otel.logpush.decoder import (
    CONNECTIVITY_PROBE,
    decode_logpush_payload,
    decode_logpush_payload_async,
    parse_ndjson,
)


class TestContentEncoding:
    """Tests for the gzip precondition."""

    @pytest.mark.parametrize("encoding", [None, "", "identity", "br", "GZIP", "gzip, br"])
    def test_rejects_non_gzip_encoding(self, encoding):
        """Anything but an exact gzip header is rejected."""
        with pytest.raises(InvalidContentEncodingError):
            decode_logpush_payload(make_payload([make_record()]), encoding)

    def test_rejects_before_decompressing(self):
        """Decompression is never attempted without the gzip header."""
        with patch("logpush_otel.logpush.decoder.gzip.decompress") as mock_decompress:
            with pytest.raises(InvalidContentEncodingError):
                decode_logpush_payload(b"not gzip", "identity")

        mock_decompress.assert_not_called()


class TestDecompression:
    """Tests for gzip and UTF-8 decoding."""

    def test_decodes_records_in_order(self):
        """Records come back in payload order."""
        records = [make_record(script_name=f"worker-{i}") for i in range(3)]

        result = decode_logpush_payload(make_payload(records), "gzip")

        assert [r["ScriptName"] for r in result.records] == ["worker-0", "worker-1", "worker-2"]
        assert result.issues == []
        assert result.is_probe is False

    def test_corrupt_gzip_is_fatal(self):
        """A corrupt stream raises a decode error."""
        with pytest.raises(LogpushDecodeError, match="Invalid gzip payload"):
            decode_logpush_payload(b"\x1f\x8bthis is not gzip", "gzip")

    def test_truncated_gzip_is_fatal(self):
        """A truncated stream raises a decode error instead of returning partial output."""
        body = make_payload([make_record(), make_record()])

        with pytest.raises(LogpushDecodeError):
            decode_logpush_payload(body[: len(body) // 2], "gzip")

    def test_invalid_utf8_is_fatal(self):
        """Decompressed bytes must be UTF-8."""
        with pytest.raises(LogpushDecodeError, match="UTF-8"):
            decode_logpush_payload(gzip.compress(b'{"a": "\xff"}'), "gzip")

    def test_async_variant_matches_sync(self):
        """The async decoder gives the same records."""
        body = make_payload([make_record(), make_record(script_name="other")])

        result = asyncio.run(decode_logpush_payload_async(body, "gzip"))

        assert result.records == decode_logpush_payload(body, "gzip").records

    def test_async_variant_checks_encoding(self):
        with pytest.raises(InvalidContentEncodingError):
            asyncio.run(decode_logpush_payload_async(b"", None))


class TestConnectivityProbe:
    """Tests for the Logpush job connectivity probe."""

    def test_probe_yields_no_records(self):
        """The exact probe text is a successful no-op."""
        result = decode_logpush_payload(gzip.compress(CONNECTIVITY_PROBE.encode()), "gzip")

        assert result.is_probe is True
        assert result.records == []

    def test_probe_match_is_exact(self):
        """Probe-like content with extra whitespace is parsed as a record."""
        result = parse_ndjson('{"content": "test"}')

        assert result.is_probe is False
        assert result.records == [{"content": "test"}]


class TestLineParsing:
    """Tests for newline-delimited JSON parsing."""

    def test_skips_blank_lines(self):
        """Empty and whitespace-only lines are ignored."""
        result = parse_ndjson('{"a": 1}\n\n   \n{"b": 2}\n')

        assert result.records == [{"a": 1}, {"b": 2}]

    def test_strict_mode_aborts_on_malformed_line(self):
        """One bad line fails the whole payload, reporting its line number."""
        with pytest.raises(LogpushDecodeError) as exc_info:
            parse_ndjson('{"a": 1}\n{"b": \n{"c": 3}')

        assert exc_info.value.line_number == 2

    def test_strict_mode_rejects_non_object_lines(self):
        """A line holding a JSON array is malformed."""
        with pytest.raises(LogpushDecodeError, match="Expected a JSON object"):
            parse_ndjson('{"a": 1}\n[1, 2]')

    def test_lenient_mode_skips_malformed_lines(self):
        """Lenient parsing keeps good lines and reports the bad ones."""
        result = parse_ndjson('{"a": 1}\nnot json\n{"c": 3}\n42', strict=False)

        assert result.records == [{"a": 1}, {"c": 3}]
        assert [issue.line_number for issue in result.issues] == [2, 4]
        assert result.issues[0].to_dict()["context"] == "not json"
