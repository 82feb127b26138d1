import logging
from typing import Iterable

from starlette.responses import Response

from ajax_relay.core.parser import HEADER_ENCODING, ResponseEnvelope

logger = logging.getLogger("uvicorn.error")

DEFAULT_STATUS_CODE = 200
NO_BODY_STATUS_CODES = {204, 304}


def emit_response(
    envelope: ResponseEnvelope, excluded_headers: Iterable[str] = ()
) -> Response:
    """
    Replay a parsed upstream response to the original caller.

    Every stored header value becomes its own header line (never comma-joined),
    in the order it was parsed, followed by the body as-is. Header names are
    lower-cased on the way out as ASGI requires.

    Args:
        envelope: The parsed upstream response
        excluded_headers: Header names (case-insensitive) that must not be replayed

    Returns:
        A Starlette Response carrying the upstream status, headers and body
    """
    excluded = {name.lower() for name in excluded_headers}

    raw_headers = []
    for name, value in envelope.header_items():
        if name.lower() in excluded:
            continue
        raw_headers.append(
            (name.lower().encode(HEADER_ENCODING), value.encode(HEADER_ENCODING))
        )

    status_code = envelope.status_code or DEFAULT_STATUS_CODE
    sent = {name for name, _ in raw_headers}
    if (
        b"content-length" not in sent
        and b"transfer-encoding" not in sent
        and status_code not in NO_BODY_STATUS_CODES
        and status_code >= 200
    ):
        raw_headers.append((b"content-length", str(len(envelope.body)).encode()))

    response = Response(content=envelope.body, status_code=status_code)
    response.raw_headers = raw_headers
    return response
