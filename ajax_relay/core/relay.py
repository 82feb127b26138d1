import logging
from typing import Iterable, Optional, Union

from opentelemetry import trace
from starlette.responses import Response

from ajax_relay.core.context import RequestContext
from ajax_relay.core.emitter import emit_response
from ajax_relay.core.forward import build_forward_request
from ajax_relay.core.parser import parse_response
from ajax_relay.core.permissions import PermissionGate
from ajax_relay.core.transport import HttpxTransport, Transport
from ajax_relay.errors import ConfigurationError
from ajax_relay.utils import describe_cookies

logger = logging.getLogger("uvicorn.error")
tracer = trace.get_tracer(__name__)


class Relay:
    """
    Forwards one inbound request to the configured host and replays the answer.

    The only public operation is execute(). Every stage raises a RelayError
    subclass on failure and nothing is retried; presenting the failure is up
    to the caller.
    """

    def __init__(
        self,
        forward_host: str,
        allowed_hosts: Optional[Union[str, Iterable[str]]] = None,
        transport: Optional[Transport] = None,
        encode_cookies: bool = True,
        excluded_headers: Iterable[str] = (),
    ):
        """
        Args:
            forward_host: Base address every route is appended to. Must not
                end in a trailing slash.
            allowed_hosts: Optional host name/address (or list of them) that
                may use the relay
            transport: Strategy used to reach the upstream, httpx by default
            encode_cookies: Percent-encode cookie values sent upstream
            excluded_headers: Upstream response headers that are not replayed
        """
        if not forward_host:
            raise ConfigurationError("No forward host was configured for the relay")
        if forward_host.endswith("/"):
            raise ConfigurationError(
                f"Forward host ({forward_host}) must not end in a trailing slash"
            )

        self.forward_host = forward_host
        self.gate = PermissionGate(allowed_hosts)
        self.transport = transport or HttpxTransport()
        self.encode_cookies = encode_cookies
        self.excluded_headers = tuple(excluded_headers)

    def execute(self, context: RequestContext) -> Response:
        with tracer.start_as_current_span("relay.execute") as span:
            span.set_attribute("relay.client", context.client)
            span.set_attribute("relay.route", context.route)
            span.set_attribute("relay.method", context.method.value)
            span.set_attribute("relay.transport", self.transport.name)
            logger.info(
                f"[Relay] {context.method.value} {context.route} from {context.client}"
            )

            self.gate.check(context)

            forward = build_forward_request(
                context, self.forward_host, encode_cookies=self.encode_cookies
            )
            span.set_attribute("relay.target_url", forward.url)
            logger.debug(
                f"[Relay] Forwarding to {forward.url} with "
                f"{describe_cookies(context.cookies)}"
            )

            raw = self.transport.send(forward)
            span.set_attribute("relay.response_bytes", len(raw))

            envelope = parse_response(raw)
            span.set_attribute("relay.status_line", envelope.status_line)
            if envelope.status_code is not None:
                span.set_attribute("relay.status_code", envelope.status_code)

            return emit_response(envelope, self.excluded_headers)
