"""Request defaults shared by the HTTP collaborator clients."""

import ssl
from functools import lru_cache

import certifi

USER_AGENT = "murmur-digest/0.1 (+https://github.com/murmur-app/murmur)"


@lru_cache(maxsize=1)
def create_ssl_context() -> ssl.SSLContext:
    """Verifying SSL context using the certifi CA bundle (built once)."""
    return ssl.create_default_context(cafile=certifi.where())


def auth_headers(token: str = "") -> dict[str, str]:
    """Default request headers, with a bearer token when one is configured."""
    headers = {"User-Agent": USER_AGENT, "Accept": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers
