from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional
from urllib.parse import quote

from ajax_relay.core.context import RequestContext, RequestMethod

# Characters that may stay unescaped inside a cookie value
COOKIE_SAFE_CHARS = "!#$&'()*+-./:<>?@[]^_`{|}~"


@dataclass(frozen=True)
class ForwardRequest:
    """Outbound request sent to the upstream host."""

    method: RequestMethod
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    cookie_header: str = ""
    user_agent: str = ""
    body: Optional[bytes] = None

    def all_headers(self) -> Dict[str, str]:
        """Headers as they go on the wire, including User-Agent and Cookie."""
        headers = dict(self.headers)
        if self.user_agent:
            headers["User-Agent"] = self.user_agent
        if self.cookie_header:
            headers["Cookie"] = self.cookie_header
        return headers


def build_cookie_header(cookies: Mapping[str, str], encode: bool = True) -> str:
    """
    Serialize cookies as ``name=value`` pairs joined by ``"; "``.

    With ``encode`` the values are percent-encoded so that a ``;`` or ``=``
    inside a value cannot break the header apart.
    """
    pairs = []
    for name, value in cookies.items():
        if encode:
            value = quote(value, safe=COOKIE_SAFE_CHARS)
        pairs.append(f"{name}={value}")
    return "; ".join(pairs)


def build_forward_request(
    context: RequestContext, forward_host: str, encode_cookies: bool = True
) -> ForwardRequest:
    """
    Translate the inbound request into the request sent upstream.

    The URL is the forward host with the route appended verbatim. Only the
    Content-Type header is carried over; other inbound headers are dropped.
    """
    headers = {}
    if context.content_type:
        headers["Content-Type"] = context.content_type

    return ForwardRequest(
        method=context.method,
        url=forward_host + context.route,
        headers=headers,
        cookie_header=build_cookie_header(context.cookies, encode=encode_cookies),
        user_agent=context.user_agent,
        body=context.body if context.method.has_body else None,
    )
