# Ensure tests import the relay package from this checkout first,
# so `import ajax_relay` works without installing the project.
import os
import sys

import pytest

SERVICE_ROOT = os.path.dirname(__file__)

if SERVICE_ROOT not in sys.path:
    sys.path.insert(0, SERVICE_ROOT)

from ajax_relay.core.context import build_request_context  # noqa: E402


@pytest.fixture
def make_context():
    """Build a RequestContext with sensible defaults for tests."""

    def _make(
        method="GET",
        route="/api/items",
        headers=None,
        cookies=None,
        client="127.0.0.1",
        body=None,
        strict_user_agent=True,
    ):
        if headers is None:
            headers = {"User-Agent": "test-agent"}
        return build_request_context(
            method=method,
            query={"route": route},
            headers=headers,
            cookies=cookies,
            client=client,
            body=body,
            strict_user_agent=strict_user_agent,
        )

    return _make
