import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response
from opentelemetry import trace
from starlette.concurrency import run_in_threadpool

from ajax_relay.core.context import (
    RequestContext,
    RequestMethod,
    build_request_context,
)
from ajax_relay.core.relay import Relay
from ajax_relay.core.transport import select_transport
from ajax_relay.errors import RelayError
from ajax_relay.utils.exception_logging import (
    format_exception_message,
    log_exception_with_details,
)
from ajax_relay.vars import (
    RELAY_ALLOWED_HOSTS,
    RELAY_ENCODE_COOKIES,
    RELAY_FORWARD_HOST,
    RELAY_PATH,
    RELAY_STRICT_USER_AGENT,
    RELAY_STRIP_HOP_BY_HOP,
    RELAY_TIMEOUT,
    RELAY_TRANSPORT,
    RELAY_TRAP_ERRORS,
    RELAY_VERBOSE_ERRORS,
)

router = APIRouter()
tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

# Hop-by-hop headers that should NOT be replayed to the client (RFC 2616)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
}


async def context_from_request(request: Request) -> RequestContext:
    """Snapshot the inbound FastAPI request for the relay."""
    client = request.client.host if request.client else None

    body = None
    if request.method.upper() in (RequestMethod.POST.value, RequestMethod.PUT.value):
        # Starlette caches the body, so this is the only read of the stream
        body = await request.body()

    return build_request_context(
        method=request.method,
        query=request.query_params,
        headers=dict(request.headers.items()),
        cookies=request.cookies,
        client=client,
        body=body,
        strict_user_agent=RELAY_STRICT_USER_AGENT,
    )


def build_relay() -> Relay:
    """Create a relay from the current environment configuration."""
    return Relay(
        RELAY_FORWARD_HOST,
        allowed_hosts=RELAY_ALLOWED_HOSTS or None,
        transport=select_transport(RELAY_TRANSPORT, RELAY_TIMEOUT),
        encode_cookies=RELAY_ENCODE_COOKIES,
        excluded_headers=HOP_BY_HOP_HEADERS if RELAY_STRIP_HOP_BY_HOP else (),
    )


def fatal_message(error: RelayError) -> str:
    """Diagnostic text sent instead of a response when a call fails."""
    if RELAY_VERBOSE_ERRORS:
        return f"Fatal proxy Exception: '{format_exception_message(error)}'"
    return f"Fatal proxy Exception: '{error.public_message}'"


async def relay_request(request: Request) -> Response:
    """
    Forward the inbound request to the configured host and replay the
    upstream response.

    Failures are logged and then either turned into a plain-text diagnostic
    (RELAY_TRAP_ERRORS) or raised as HTTPException for the application's
    own handlers.
    """
    if not RELAY_FORWARD_HOST:
        raise HTTPException(
            status_code=503,
            detail="RELAY_FORWARD_HOST is not configured. Relay is unavailable.",
        )

    try:
        relay = build_relay()
        context = await context_from_request(request)
        return await run_in_threadpool(relay.execute, context)
    except RelayError as e:
        level = logging.WARNING if e.status_code < 500 else logging.ERROR
        log_exception_with_details(logger, "[Relay]", e, level=level)

        if RELAY_TRAP_ERRORS:
            return PlainTextResponse(fatal_message(e), status_code=e.status_code)
        raise HTTPException(
            status_code=e.status_code,
            detail=format_exception_message(e)
            if RELAY_VERBOSE_ERRORS
            else e.public_message,
        )


# Other methods are accepted here so the relay can reject them itself
@router.api_route(
    RELAY_PATH, methods=["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]
)
async def relay_endpoint(request: Request):
    """Single relay endpoint: ``{RELAY_PATH}?route=/path/on/upstream``."""
    return await relay_request(request)
