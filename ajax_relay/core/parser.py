"""
Raw HTTP response parser.

Turns the byte stream returned by a Transport (status line, header lines,
blank-line separator, body) into a ResponseEnvelope that can be replayed to
the original caller.

Rules:
- The header/body boundary is the earliest of ``\\r\\n\\r\\n`` and ``\\n\\n``.
- A response without any separator is accepted when it starts with
  ``HTTP/``; the whole stream is then headers and the body is empty.
- Informational (1xx) and redirect (3xx) status blocks followed by another
  status block are leftovers from ``100 Continue`` or followed redirects and
  are skipped. Any other status keeps its body, even one that looks like an
  HTTP message.
- Header names are kept exactly as sent and repeated names keep every value.
- The body is passed through untouched (no de-chunking, no decoding).
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ajax_relay.errors import ProtocolError

logger = logging.getLogger("uvicorn.error")

STATUS_KEY = "status"
STATUS_PREFIX = "HTTP/"
CRLF_SEPARATOR = b"\r\n\r\n"
LF_SEPARATOR = b"\n\n"
HEADER_ENCODING = "iso-8859-1"

STATUS_LINE_RE = re.compile(rb"HTTP/\d+(?:\.\d+)? \d{3}")
# Status blocks that can precede the final one in a single exchange
INTERMEDIATE_STATUS_RE = re.compile(rb"HTTP/\d+(?:\.\d+)? [13]\d\d")
STATUS_CODE_RE = re.compile(r"^HTTP/\d+(?:\.\d+)?\s+(\d{3})")


@dataclass
class ResponseEnvelope:
    """Parsed upstream response: status line, header multimap and body."""

    status_line: str
    headers: Dict[str, List[str]] = field(default_factory=dict)
    body: bytes = b""

    @property
    def status_code(self) -> Optional[int]:
        match = STATUS_CODE_RE.match(self.status_line)
        return int(match.group(1)) if match else None

    def header_items(self) -> List[Tuple[str, str]]:
        """Every header occurrence, in order, one entry per value."""
        return [
            (name, value)
            for name, values in self.headers.items()
            if name != STATUS_KEY
            for value in values
        ]


def find_separator(raw: bytes, start: int = 0) -> Tuple[int, int]:
    """
    Locate the earliest header/body separator at or after ``start``.

    Returns:
        (index, length) of the separator, or (-1, 0) when there is none
    """
    found = []
    for separator in (CRLF_SEPARATOR, LF_SEPARATOR):
        index = raw.find(separator, start)
        if index != -1:
            found.append((index, len(separator)))
    if not found:
        return -1, 0
    return min(found)


def split_response(raw: bytes) -> Tuple[bytes, bytes]:
    """
    Split a raw response into the header block of its last status block and
    the body.

    Raises:
        ProtocolError: when no response can be recognized
    """
    if not raw:
        raise ProtocolError("Empty response received from the host")

    start = 0
    while True:
        index, length = find_separator(raw, start)
        if index == -1:
            # Header but no body
            if STATUS_LINE_RE.match(raw, start):
                return raw[start:], b""
            raise ProtocolError("A valid response was not received from the host")

        body_start = index + length
        if INTERMEDIATE_STATUS_RE.match(raw, start) and STATUS_LINE_RE.match(
            raw, body_start
        ):
            logger.debug(
                f"[ResponseParser] Skipping intermediate status block at offset {start}"
            )
            start = body_start
            continue
        return raw[start:index], raw[body_start:]


def strip_redirect_headers(lines: List[str]) -> List[str]:
    """
    Keep only the lines from the last status line onward.

    Stream primitives that follow redirects report the headers of every hop
    one after the other; only the final hop describes the body.
    """
    last_status = 0
    for i, line in enumerate(lines):
        if line.startswith(STATUS_PREFIX):
            last_status = i
    return lines[last_status:]


def parse_header_block(block: str) -> Tuple[str, Dict[str, List[str]]]:
    """Parse a header block into the status line and a header multimap."""
    lines = strip_redirect_headers(block.replace("\r", "").split("\n"))

    status_line = ""
    headers: Dict[str, List[str]] = {}
    for line in lines:
        if not line.strip():
            continue

        name, separator, value = line.partition(":")
        if not separator or line.startswith(STATUS_PREFIX):
            if not status_line:
                status_line = line
            else:
                logger.debug(f"[ResponseParser] Ignoring stray header line: {line!r}")
            continue

        if name == STATUS_KEY:
            logger.debug("[ResponseParser] Dropping reserved 'status' header")
            continue
        headers.setdefault(name, []).append(value.strip(" \t"))

    return status_line, headers


def parse_response(raw: bytes) -> ResponseEnvelope:
    """
    Parse the raw upstream response into a ResponseEnvelope.

    Raises:
        ProtocolError: when the bytes do not contain a recognizable response
    """
    header_block, body = split_response(raw)
    status_line, headers = parse_header_block(header_block.decode(HEADER_ENCODING))
    if not status_line:
        raise ProtocolError("No status line in the response received from the host")

    logger.debug(
        f"[ResponseParser] {status_line!r}: {sum(len(v) for v in headers.values())} "
        f"header lines, {len(body)} body bytes"
    )
    return ResponseEnvelope(status_line=status_line, headers=headers, body=body)
