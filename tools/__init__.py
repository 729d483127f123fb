"""Collaborator clients for the Murmur digest pipeline.

SearchClient:
    Library search by selector query and lookup by item id.

UserDirectory:
    Recipient lookup with digest personalization.

CacheStore:
    Redis-backed profiles and digest records.

ObjectStorage:
    Filesystem bucket for audit copies.

SpeechSynthesizer:
    SSML speech files from summary HTML.

call_with_retry / RetryPolicy:
    Timeouts and bounded exponential backoff for every external call.

Example:
    >>> from tools import SearchClient
    >>> items = await SearchClient(url).search(SearchSpec(query="in:all", size=10), "user-42")
"""

from tools.utils import create_ssl_context, USER_AGENT
from tools.retry import RetryPolicy, call_with_retry
from tools.search import SearchClient
from tools.users import UserDirectory
from tools.cache import CacheStore, write_digest
from tools.storage import ObjectStorage
from tools.speech import SpeechOptions, SpeechSynthesizer

__all__ = [
    "SearchClient",
    "UserDirectory",
    "CacheStore",
    "write_digest",
    "ObjectStorage",
    "SpeechOptions",
    "SpeechSynthesizer",
    "RetryPolicy",
    "call_with_retry",
    "create_ssl_context",
    "USER_AGENT",
]
