"""
Inbound request snapshot.

A RequestContext is built once per inbound call from the data the hosting
server exposes (method, query, headers, cookies, client address, body) and is
passed explicitly through the relay pipeline. Nothing in the core reads
request state from anywhere else.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from ajax_relay.errors import (
    HeadersUnavailable,
    InvalidMethod,
    MissingRoute,
    MissingUserAgent,
)

logger = logging.getLogger("uvicorn.error")

ROUTE_PARAMETER = "route"


class RequestMethod(Enum):
    """Methods the relay is willing to forward."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"

    @classmethod
    def resolve(cls, method: Optional[str]) -> "RequestMethod":
        """Case-insensitive lookup, raising InvalidMethod for anything else."""
        if not method:
            raise InvalidMethod("Request method unknown")
        for member in cls:
            if member.value == method.upper():
                return member
        raise InvalidMethod(f"Request method ({method.lower()}) invalid")

    @property
    def has_body(self) -> bool:
        return self in (RequestMethod.POST, RequestMethod.PUT)


class InboundBody:
    """
    Single-read request body.

    The underlying source (bytes, a file-like object or a zero-argument
    callable) is consumed on the first read() and the result is cached, so
    later reads never touch the source again.
    """

    def __init__(self, source: Any = None):
        self._source = source
        self._cached: Optional[bytes] = None

    @property
    def consumed(self) -> bool:
        return self._cached is not None

    def read(self) -> bytes:
        if self._cached is not None:
            return self._cached

        source = self._source
        if source is None:
            data = b""
        elif isinstance(source, (bytes, bytearray)):
            data = bytes(source)
        elif hasattr(source, "read"):
            data = source.read()
        else:
            data = source()

        if isinstance(data, str):
            data = data.encode("utf-8")
        self._cached = data or b""
        self._source = None
        return self._cached


def header_value(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup."""
    if name in headers:
        return headers[name]
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def resolve_client_identity(
    remote_host: Optional[str], remote_addr: Optional[str]
) -> str:
    """Prefer the resolved host name, fall back to the address."""
    return remote_host or remote_addr or "unknown"


@dataclass(frozen=True)
class RequestContext:
    method: RequestMethod
    route: str
    headers: Mapping[str, str]
    cookies: Mapping[str, str]
    client: str = "unknown"
    user_agent: str = ""
    content_type: Optional[str] = None
    body: Optional[bytes] = None


def build_request_context(
    method: Optional[str],
    query: Mapping[str, str],
    headers: Optional[Mapping[str, str]],
    cookies: Optional[Mapping[str, str]] = None,
    client: Optional[str] = None,
    body: Any = None,
    strict_user_agent: bool = True,
) -> RequestContext:
    """
    Gather everything the relay needs from the inbound call.

    Args:
        method: HTTP method as sent by the client
        query: Query parameters; must contain ``route``
        headers: Inbound headers, or None when the host cannot provide them
        cookies: Inbound cookies
        client: Resolved client identity (host name or address)
        body: Body source, only read for POST and PUT
        strict_user_agent: Whether a missing User-Agent is an error

    Returns:
        An immutable RequestContext

    Raises:
        InvalidMethod, HeadersUnavailable, MissingUserAgent, MissingRoute
    """
    request_method = RequestMethod.resolve(method)

    if headers is None:
        raise HeadersUnavailable("Could not get request headers")
    frozen_headers = MappingProxyType(dict(headers))

    user_agent = header_value(frozen_headers, "User-Agent")
    if user_agent is None:
        if strict_user_agent:
            raise MissingUserAgent("No HTTP User Agent was found")
        user_agent = ""

    if ROUTE_PARAMETER not in query:
        raise MissingRoute(
            f"You must supply a '{ROUTE_PARAMETER}' parameter in the request"
        )

    request_body = None
    if request_method.has_body:
        if not isinstance(body, InboundBody):
            body = InboundBody(body)
        request_body = body.read()

    return RequestContext(
        method=request_method,
        route=query[ROUTE_PARAMETER],
        headers=frozen_headers,
        cookies=MappingProxyType(dict(cookies or {})),
        client=client or "unknown",
        user_agent=user_agent,
        content_type=header_value(frozen_headers, "Content-Type"),
        body=request_body,
    )
