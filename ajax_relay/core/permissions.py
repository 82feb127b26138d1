import logging
from typing import Iterable, Optional, Tuple, Union

from ajax_relay.core.context import RequestContext
from ajax_relay.errors import PermissionDenied

logger = logging.getLogger("uvicorn.error")


class PermissionGate:
    """
    Restricts the relay to a fixed set of client host names or addresses.

    Matching is exact string equality; there is no wildcard or subnet support.
    Without an allow-list every client is let through.
    """

    def __init__(self, allowed_hosts: Optional[Union[str, Iterable[str]]] = None):
        if allowed_hosts is None:
            self.allowed_hosts: Optional[Tuple[str, ...]] = None
        elif isinstance(allowed_hosts, str):
            self.allowed_hosts = (allowed_hosts,)
        else:
            self.allowed_hosts = tuple(allowed_hosts)

    def is_allowed(self, identity: str) -> bool:
        if self.allowed_hosts is None:
            return True
        return identity in self.allowed_hosts

    def check(self, context: RequestContext) -> None:
        if not self.is_allowed(context.client):
            logger.warning(f"[Relay] Rejected request from {context.client}")
            raise PermissionDenied(
                f"Requests from hostname ({context.client}) are not allowed"
            )
