"""
Transports deliver a ForwardRequest to the upstream host and hand back the
complete raw response: status line, header lines, the blank-line separator
and the body, exactly as the upstream produced them.

Two strategies are available:

- HttpxTransport: the full HTTP client. Redirects are not followed, so the
  response is a single status block rebuilt from httpx's raw header list.
- StreamTransport: the fallback built on ``requests`` in streaming mode. It
  follows redirects on its own and only exposes per-hop metadata, so the
  header blob is synthesized from every hop and the redirect hops are
  stripped again before the body is appended.

Both return the same byte layout so the parser does not care which one ran.
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple, Type

import httpx
import requests
import urllib3

from ajax_relay.core.forward import ForwardRequest
from ajax_relay.core.parser import (
    CRLF_SEPARATOR,
    HEADER_ENCODING,
    strip_redirect_headers,
)
from ajax_relay.errors import ConfigurationError, RequestError, TransportError

logger = logging.getLogger("uvicorn.error")

DEFAULT_TIMEOUT = 30.0

# urllib3 reports the protocol version as an integer
HTTP_VERSIONS = {9: "HTTP/0.9", 10: "HTTP/1.0", 11: "HTTP/1.1", 20: "HTTP/2"}


def render_status_block(
    http_version: str,
    status_code: int,
    reason: str,
    headers: Iterable[Tuple[bytes, bytes]],
) -> bytes:
    """Serialize a status line and header list, including the separator."""
    lines = [f"{http_version} {status_code} {reason}".rstrip().encode(HEADER_ENCODING)]
    for name, value in headers:
        lines.append(name + b": " + value)
    return b"\r\n".join(lines) + CRLF_SEPARATOR


def encode_header_values(headers: Dict[str, str]) -> Dict[str, bytes]:
    """
    Encode outbound header values as ISO-8859-1, the charset inbound headers
    were decoded with, so non-ASCII bytes reach the upstream unchanged.

    Raises:
        RequestError: when a value holds characters outside ISO-8859-1
    """
    encoded = {}
    for name, value in headers.items():
        try:
            encoded[name] = value.encode(HEADER_ENCODING)
        except UnicodeEncodeError as e:
            raise RequestError(
                f"Header ({name}) cannot be sent upstream: {e.reason}"
            ) from e
    return encoded


class Transport:
    """Sends a ForwardRequest and returns the raw upstream response."""

    name = "base"

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        self.timeout = timeout

    def send(self, request: ForwardRequest) -> bytes:
        raise NotImplementedError


class HttpxTransport(Transport):
    name = "httpx"

    def __init__(
        self, timeout: float = DEFAULT_TIMEOUT, client: Optional[httpx.Client] = None
    ):
        super().__init__(timeout)
        self._client = client

    def send(self, request: ForwardRequest) -> bytes:
        try:
            if self._client is not None:
                return self._exchange(self._client, request)
            with httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=False,
            ) as client:
                return self._exchange(client, request)
        except httpx.TimeoutException as e:
            logger.error(f"[HttpxTransport] Timeout for {request.url}: {e}")
            raise TransportError(f"Timed out waiting for {request.url}") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"[HttpxTransport] Request to {request.url} failed: {e}")
            raise TransportError(
                f"There was an error making the request to {request.url}: {e}"
            ) from e

    def _exchange(self, client: httpx.Client, request: ForwardRequest) -> bytes:
        with client.stream(
            request.method.value,
            request.url,
            headers=encode_header_values(request.all_headers()),
            content=request.body,
        ) as response:
            # Raw bytes: no content decoding, the headers still describe them
            body = b"".join(response.iter_raw())
            head = render_status_block(
                response.http_version,
                response.status_code,
                response.reason_phrase,
                response.headers.raw,
            )
        logger.debug(
            f"[HttpxTransport] {request.method.value} {request.url} -> "
            f"{response.status_code} ({len(body)} bytes)"
        )
        return head + body


def header_lines_from_meta(response: requests.Response) -> List[str]:
    """Rebuild the header lines of one hop from the stream metadata."""
    raw = response.raw
    version = HTTP_VERSIONS.get(getattr(raw, "version", 11), "HTTP/1.1")
    lines = [f"{version} {response.status_code} {response.reason or ''}".rstrip()]
    for name, value in raw.headers.iteritems():
        lines.append(f"{name}: {value}")
    return lines


class StreamTransport(Transport):
    name = "stream"

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(timeout)
        self._session = session

    def send(self, request: ForwardRequest) -> bytes:
        session = self._session or requests.Session()
        try:
            response = session.request(
                request.method.value,
                request.url,
                headers=encode_header_values(request.all_headers()),
                data=request.body,
                timeout=self.timeout,
                stream=True,
                allow_redirects=True,
            )
            try:
                body = response.raw.read(decode_content=False)
            finally:
                response.close()
        # Body reads go straight to urllib3, which does not raise RequestException
        except (requests.RequestException, urllib3.exceptions.HTTPError) as e:
            logger.error(f"[StreamTransport] Request to {request.url} failed: {e}")
            raise TransportError(
                "There was an error making the request. "
                f"Make sure that the url ({request.url}) is valid: {e}"
            ) from e
        finally:
            if self._session is None:
                session.close()

        lines: List[str] = []
        for hop in list(response.history) + [response]:
            lines.extend(header_lines_from_meta(hop))
        if response.history:
            logger.debug(
                f"[StreamTransport] Followed {len(response.history)} redirect(s) "
                f"for {request.url}"
            )

        headers = "\n".join(strip_redirect_headers(lines))
        return headers.encode(HEADER_ENCODING) + CRLF_SEPARATOR + (body or b"")


TRANSPORTS: Dict[str, Type[Transport]] = {
    HttpxTransport.name: HttpxTransport,
    StreamTransport.name: StreamTransport,
}


def select_transport(name: str, timeout: float = DEFAULT_TIMEOUT) -> Transport:
    """Instantiate the transport registered under ``name``."""
    transport_class = TRANSPORTS.get((name or "").lower())
    if transport_class is None:
        raise ConfigurationError(
            f"Unknown transport '{name}', expected one of: {', '.join(TRANSPORTS)}"
        )
    return transport_class(timeout=timeout)
