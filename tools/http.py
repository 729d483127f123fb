"""JSON-over-HTTP helper shared by the collaborator clients.

Status handling:
    - 2xx: body parsed and returned; an undecodable body is a ProviderError
    - 404 with ``allow_missing``: None
    - other 4xx: ProviderError immediately (not retried)
    - 5xx, connection errors, timeouts: retried per RetryPolicy, then
      wrapped in ProviderError
"""

import logging
from typing import Any

import aiohttp

from errors import ProviderError
from tools.retry import TRANSIENT_ERRORS, RetryPolicy, call_with_retry
from tools.utils import auth_headers, create_ssl_context

logger = logging.getLogger(__name__)


async def request(
    method: str,
    url: str,
    policy: RetryPolicy,
    payload: Any = None,
    token: str = "",
    allow_missing: bool = False,
    as_text: bool = False,
) -> Any:
    """Send an HTTP request and return the decoded body.

    Args:
        method: HTTP method
        url: Absolute URL
        policy: Timeout and retry settings
        payload: JSON body (omitted when None)
        token: Optional bearer token
        allow_missing: Return None on 404 instead of raising
        as_text: Return the raw text body instead of parsed JSON

    Returns:
        Parsed JSON, text, or None

    Raises:
        ProviderError: On non-retryable status or exhausted retries
    """

    async def once() -> Any:
        async with aiohttp.ClientSession(headers=auth_headers(token)) as session:
            async with session.request(
                method,
                url,
                json=payload,
                ssl=create_ssl_context(),
                timeout=aiohttp.ClientTimeout(total=policy.timeout),
            ) as resp:
                if resp.status >= 500:
                    resp.raise_for_status()
                if resp.status == 404 and allow_missing:
                    return None
                if resp.status >= 400:
                    body = await resp.text()
                    raise ProviderError(f"{method} {url} failed: HTTP {resp.status} {body[:200]}")
                try:
                    if as_text:
                        return await resp.text()
                    return await resp.json(content_type=None)
                except (UnicodeDecodeError, ValueError) as e:
                    raise ProviderError(f"{method} {url} returned an undecodable body: {e}") from e

    try:
        return await call_with_retry(once, policy, retry_on=TRANSIENT_ERRORS)
    except ProviderError:
        raise
    except TRANSIENT_ERRORS as e:
        logger.warning("Request failed | method=%s url=%s error=%s", method, url[:80], type(e).__name__)
        raise ProviderError(f"{method} {url} failed after {policy.attempts} attempts: {e}") from e
