"""
Tests for the raw response parser.

Tests cover:
- Header/body separator detection (earliest of CRLF and LF wins)
- Responses without body or without headers
- Intermediate status blocks from followed redirects
- Repeated header names
- Malformed and empty input
"""

import pytest

from ajax_relay.core.parser import (
    ResponseEnvelope,
    find_separator,
    parse_header_block,
    parse_response,
    split_response,
    strip_redirect_headers,
)
from ajax_relay.errors import ProtocolError


class TestFindSeparator:
    """Test locating the header/body boundary."""

    def test_crlf_only(self):
        raw = b"HTTP/1.1 200 OK\r\nA: b\r\n\r\nbody"
        assert find_separator(raw) == (raw.index(b"\r\n\r\n"), 4)

    def test_lf_only(self):
        raw = b"HTTP/1.1 200 OK\nA: b\n\nbody"
        assert find_separator(raw) == (raw.index(b"\n\n"), 2)

    def test_crlf_before_lf_wins(self):
        raw = b"HTTP/1.1 200 OK\r\nA: b\r\n\r\nline1\n\nline2"
        index, length = find_separator(raw)
        assert length == 4
        assert index == raw.index(b"\r\n\r\n")

    def test_lf_before_crlf_wins(self):
        raw = b"HTTP/1.1 200 OK\nA: b\n\nline1\r\n\r\nline2"
        index, length = find_separator(raw)
        assert length == 2
        assert index == raw.index(b"\n\n")

    def test_no_separator(self):
        assert find_separator(b"HTTP/1.1 204 No Content") == (-1, 0)

    def test_start_offset(self):
        raw = b"a\n\nb\r\n\r\nc"
        assert find_separator(raw, 3) == (4, 4)


class TestParseResponse:
    """Test full raw response parsing."""

    def test_simple_crlf_response(self):
        raw = b"HTTP/1.1 200 OK\r\nContent-Type: text/plain\r\n\r\nhello"

        envelope = parse_response(raw)

        assert envelope.status_line == "HTTP/1.1 200 OK"
        assert envelope.status_code == 200
        assert envelope.headers == {"Content-Type": ["text/plain"]}
        assert envelope.body == b"hello"

    def test_lf_body_keeps_crlf_sequences(self):
        """The body after an LF separator is kept verbatim, CRLFs included."""
        raw = b"HTTP/1.1 200 OK\nContent-Type: text/plain\n\nline1\r\n\r\nline2"

        envelope = parse_response(raw)

        assert envelope.body == b"line1\r\n\r\nline2"
        assert envelope.headers == {"Content-Type": ["text/plain"]}

    def test_crlf_body_keeps_lf_sequences(self):
        raw = b"HTTP/1.1 200 OK\r\nContent-Type: text/plain\r\n\r\nline1\n\nline2"

        envelope = parse_response(raw)

        assert envelope.body == b"line1\n\nline2"

    def test_status_line_only(self):
        """A bare status line is a valid response with no headers and no body."""
        envelope = parse_response(b"HTTP/1.1 204 No Content")

        assert envelope.status_line == "HTTP/1.1 204 No Content"
        assert envelope.status_code == 204
        assert envelope.headers == {}
        assert envelope.body == b""

    def test_empty_body(self):
        envelope = parse_response(b"HTTP/1.1 200 OK\r\nContent-Length: 0\r\n\r\n")

        assert envelope.body == b""
        assert envelope.headers == {"Content-Length": ["0"]}

    def test_followed_redirect_keeps_last_block(self):
        raw = (
            b"HTTP/1.1 302 Found\nLocation: /x\n\n"
            b"HTTP/1.1 200 OK\nContent-Type: text/plain\n\nhello"
        )

        envelope = parse_response(raw)

        assert envelope.status_line == "HTTP/1.1 200 OK"
        assert envelope.headers == {"Content-Type": ["text/plain"]}
        assert "Location" not in envelope.headers
        assert envelope.body == b"hello"

    def test_continue_block_is_skipped(self):
        raw = (
            b"HTTP/1.1 100 Continue\r\n\r\n"
            b"HTTP/1.1 201 Created\r\nLocation: /items/1\r\n\r\n{}"
        )

        envelope = parse_response(raw)

        assert envelope.status_code == 201
        assert envelope.headers == {"Location": ["/items/1"]}
        assert envelope.body == b"{}"

    def test_repeated_header_values_are_kept_in_order(self):
        raw = (
            b"HTTP/1.1 200 OK\r\n"
            b"Set-Cookie: a=1; Path=/\r\n"
            b"Content-Type: text/html\r\n"
            b"Set-Cookie: b=2; Path=/\r\n"
            b"\r\n<html></html>"
        )

        envelope = parse_response(raw)

        assert envelope.headers["Set-Cookie"] == ["a=1; Path=/", "b=2; Path=/"]
        assert envelope.headers["Content-Type"] == ["text/html"]

    def test_header_value_split_on_first_colon_only(self):
        raw = b"HTTP/1.1 302 Found\r\nLocation: http://example.com:8080/x\r\n\r\n"

        envelope = parse_response(raw)

        assert envelope.headers["Location"] == ["http://example.com:8080/x"]

    def test_header_name_case_is_preserved(self):
        raw = b"HTTP/1.1 200 OK\r\nX-Custom-HEADER: v\r\nx-custom-header: w\r\n\r\n"

        envelope = parse_response(raw)

        assert envelope.headers == {"X-Custom-HEADER": ["v"], "x-custom-header": ["w"]}

    def test_binary_body_untouched(self):
        body = bytes(range(256))
        raw = b"HTTP/1.1 200 OK\r\nContent-Type: application/octet-stream\r\n\r\n" + body

        assert parse_response(raw).body == body

    def test_reserved_status_header_is_not_stored(self):
        raw = b"HTTP/1.1 200 OK\r\nstatus: 404\r\nA: b\r\n\r\n"

        envelope = parse_response(raw)

        assert "status" not in envelope.headers
        assert envelope.headers == {"A": ["b"]}
        assert envelope.status_line == "HTTP/1.1 200 OK"

    def test_empty_input_raises(self):
        with pytest.raises(ProtocolError):
            parse_response(b"")

    def test_garbage_without_separator_raises(self):
        with pytest.raises(ProtocolError) as exc_info:
            parse_response(b"this is not a response")
        assert "valid response" in str(exc_info.value)

    def test_headers_without_status_line_raise(self):
        with pytest.raises(ProtocolError):
            parse_response(b"Content-Type: text/plain\r\n\r\nbody")

    def test_body_that_mentions_http_is_not_a_status_block(self):
        raw = b"HTTP/1.1 200 OK\r\n\r\nHTTP/ is a protocol"

        envelope = parse_response(raw)

        assert envelope.body == b"HTTP/ is a protocol"

    def test_final_response_with_http_message_body_is_kept(self):
        raw = (
            b"HTTP/1.1 200 OK\r\nContent-Type: message/http\r\n\r\n"
            b"HTTP/1.1 404 Not Found\r\n\r\n"
        )

        envelope = parse_response(raw)

        assert envelope.status_line == "HTTP/1.1 200 OK"
        assert envelope.headers == {"Content-Type": ["message/http"]}
        assert envelope.body == b"HTTP/1.1 404 Not Found\r\n\r\n"

    def test_error_response_with_http_message_body_is_kept(self):
        raw = b"HTTP/1.1 502 Bad Gateway\n\nHTTP/1.1 200 OK\n\nupstream said hi"

        envelope = parse_response(raw)

        assert envelope.status_code == 502
        assert envelope.body == b"HTTP/1.1 200 OK\n\nupstream said hi"


class TestSplitResponse:
    def test_header_block_excludes_separator(self):
        header, body = split_response(b"HTTP/1.1 200 OK\r\nA: b\r\n\r\nxyz")
        assert header == b"HTTP/1.1 200 OK\r\nA: b"
        assert body == b"xyz"

    def test_trailing_status_block_without_separator(self):
        header, body = split_response(b"HTTP/1.1 301 Moved\n\nHTTP/1.1 304 Not Modified")
        assert header == b"HTTP/1.1 304 Not Modified"
        assert body == b""


class TestStripRedirectHeaders:
    def test_keeps_lines_from_last_status(self):
        lines = [
            "HTTP/1.1 302 Found",
            "Location: /next",
            "HTTP/1.1 301 Moved Permanently",
            "Location: /final",
            "HTTP/1.1 200 OK",
            "Content-Type: text/plain",
        ]
        assert strip_redirect_headers(lines) == ["HTTP/1.1 200 OK", "Content-Type: text/plain"]

    def test_single_status_is_noop(self):
        lines = ["HTTP/1.1 200 OK", "A: b"]
        assert strip_redirect_headers(lines) == lines

    def test_no_status_line_is_noop(self):
        lines = ["A: b", "C: d"]
        assert strip_redirect_headers(lines) == lines


class TestParseHeaderBlock:
    def test_synthesized_block_with_redirect_hops(self):
        block = "HTTP/1.0 302 Found\nLocation: /a\nHTTP/1.0 200 OK\nX: y"

        status_line, headers = parse_header_block(block)

        assert status_line == "HTTP/1.0 200 OK"
        assert headers == {"X": ["y"]}

    def test_carriage_returns_are_stripped(self):
        status_line, headers = parse_header_block("HTTP/1.1 200 OK\r\nA:  b \r\n")

        assert status_line == "HTTP/1.1 200 OK"
        assert headers == {"A": ["b"]}

    def test_empty_value(self):
        _, headers = parse_header_block("HTTP/1.1 200 OK\nX-Empty:")
        assert headers == {"X-Empty": [""]}


class TestResponseEnvelope:
    def test_status_code_absent_for_non_http_status_line(self):
        assert ResponseEnvelope(status_line="garbage").status_code is None

    def test_status_code_http2(self):
        assert ResponseEnvelope(status_line="HTTP/2 404").status_code == 404

    def test_header_items_one_entry_per_value(self):
        envelope = ResponseEnvelope(
            status_line="HTTP/1.1 200 OK",
            headers={"Set-Cookie": ["a=1", "b=2"], "X": ["y"]},
        )
        assert envelope.header_items() == [
            ("Set-Cookie", "a=1"),
            ("Set-Cookie", "b=2"),
            ("X", "y"),
        ]
