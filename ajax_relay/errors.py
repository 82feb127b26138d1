"""
Error taxonomy for the relay pipeline.

Every stage raises a subclass of RelayError. None of them are retried; the
route decides how a failure is presented to the caller.
"""


class RelayError(Exception):
    """Base class for every terminal relay failure."""

    status_code = 500
    public_message = "The relay could not complete the request"

    def __init__(self, message: str = ""):
        self.message = message or self.public_message
        super().__init__(self.message)


class ConfigurationError(RelayError):
    """Missing or invalid relay configuration (forward host, transport)."""

    public_message = "The relay is not configured correctly"


class PermissionDenied(RelayError):
    """The calling client is not part of the allow-list."""

    status_code = 403
    public_message = "Requests from this client are not allowed"


class RequestError(RelayError):
    """The inbound request cannot be turned into a forward request."""

    status_code = 400
    public_message = "The relay request is invalid"


class InvalidMethod(RequestError):
    pass


class MissingRoute(RequestError):
    pass


class MissingUserAgent(RequestError):
    pass


class HeadersUnavailable(RequestError):
    """The host environment did not expose the inbound request headers."""

    status_code = 500


class TransportError(RelayError):
    """The upstream could not be reached (DNS, connect, timeout, bad URL)."""

    status_code = 502
    public_message = "The upstream host could not be reached"


class ProtocolError(RelayError):
    """The upstream answered with something that is not an HTTP response."""

    status_code = 502
    public_message = "A valid response was not received from the host"
