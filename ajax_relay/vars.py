import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "ajax-relay")
HOST = os.environ.get("RELAY_BIND_HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "8000"))

# Base address requests are forwarded to. Must not end in a trailing slash.
RELAY_FORWARD_HOST = os.environ.get("RELAY_FORWARD_HOST", "")
RELAY_ALLOWED_HOSTS = [
    h.strip() for h in os.environ.get("RELAY_ALLOWED_HOSTS", "").split(",") if h.strip()
]
RELAY_PATH = os.environ.get("RELAY_PATH", "/proxy")

# "httpx" (full client) or "stream" (requests, follows redirects itself)
RELAY_TRANSPORT = os.environ.get("RELAY_TRANSPORT", "httpx").lower()
RELAY_TIMEOUT = float(os.environ.get("RELAY_TIMEOUT", "30"))

RELAY_STRICT_USER_AGENT = (
    os.environ.get("RELAY_STRICT_USER_AGENT", "true").lower() == "true"
)
RELAY_TRAP_ERRORS = os.environ.get("RELAY_TRAP_ERRORS", "true").lower() == "true"
RELAY_VERBOSE_ERRORS = (
    os.environ.get("RELAY_VERBOSE_ERRORS", "false").lower() == "true"
)
RELAY_ENCODE_COOKIES = (
    os.environ.get("RELAY_ENCODE_COOKIES", "true").lower() == "true"
)
RELAY_STRIP_HOP_BY_HOP = (
    os.environ.get("RELAY_STRIP_HOP_BY_HOP", "true").lower() == "true"
)

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
