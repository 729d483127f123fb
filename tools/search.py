"""Library search client.

This module talks to the library search service that owns saved items.
The query string is a structured filter (``in:all is:unread saved:last24hrs
wordsCount:>=500`` and so on); this client never interprets it.

Endpoints (JSON over HTTP):
    POST {SEARCH_API_URL}          {userId, query, size, includeContent}
    POST {SEARCH_API_URL}/ids      {userId, ids}

Both answer ``{"items": [LibraryItem, ...]}``.

Error Handling:
    - Transport errors and 5xx: retried, then ProviderError
    - 4xx: ProviderError immediately
    - Malformed items: ProviderError (the whole response is rejected)
"""

import logging

from pydantic import ValidationError

from errors import ProviderError
from models.library import LibraryItem, SearchSpec
from tools.http import request
from tools.retry import RetryPolicy

logger = logging.getLogger(__name__)


def _parse_items(data: object) -> list[LibraryItem]:
    """Validate a search response body into library items."""
    raw = data.get("items", []) if isinstance(data, dict) else data
    if not isinstance(raw, list):
        raise ProviderError(f"Unexpected search response: {type(raw).__name__}")
    try:
        return [LibraryItem.model_validate(item) for item in raw]
    except ValidationError as e:
        raise ProviderError(f"Invalid library item in search response: {e}") from e


class SearchClient:
    """HTTP client for the library search service.

    Example:
        >>> client = SearchClient(config.search_api_url, token=config.api_token)
        >>> items = await client.search(SearchSpec(query="in:inbox", size=10), user_id)
    """

    def __init__(self, base_url: str, token: str = "", policy: RetryPolicy | None = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.policy = policy or RetryPolicy()

    async def search(self, spec: SearchSpec, user_id: str) -> list[LibraryItem]:
        """Run one structured query for a user."""
        payload = {"userId": user_id, **spec.model_dump(by_alias=True)}
        data = await request("POST", self.base_url, self.policy, payload=payload, token=self.token)
        items = _parse_items(data)
        logger.debug("Search complete | query=%s size=%d results=%d", spec.query[:60], spec.size, len(items))
        return items

    async def find_by_ids(self, ids: list[str], user_id: str) -> list[LibraryItem]:
        """Fetch exactly the given items (missing ids are simply absent)."""
        if not ids:
            return []
        payload = {"userId": user_id, "ids": ids}
        data = await request("POST", f"{self.base_url}/ids", self.policy, payload=payload, token=self.token)
        items = _parse_items(data)
        logger.debug("Items fetched by id | requested=%d found=%d", len(ids), len(items))
        return items
