"""Redis-backed cache store for profiles and digest records.

Keys:
    digest:{user_id}:userProfile      cached preference profile (7 day TTL)
    digest:{user_id}:{digest_id}      digest record for one run
    digest:{user_id}:latest           id of the most recently written digest

Digest records are addressed by digest id so that two runs for the same
user never overwrite each other's record.
"""

import asyncio
import logging

import redis.asyncio as aioredis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from errors import PersistenceError, ProviderError
from models.digest import Digest
from tools.retry import RetryPolicy, call_with_retry

logger = logging.getLogger(__name__)

_RETRYABLE = (RedisConnectionError, RedisTimeoutError, asyncio.TimeoutError)


def digest_key(user_id: str, digest_id: str) -> str:
    return f"digest:{user_id}:{digest_id}"


def latest_digest_key(user_id: str) -> str:
    return f"digest:{user_id}:latest"


class CacheStore:
    """Thin async key/value wrapper with TTLs, retries and typed errors."""

    def __init__(self, client: aioredis.Redis, policy: RetryPolicy | None = None):
        self._client = client
        self.policy = policy or RetryPolicy()

    @classmethod
    def from_url(cls, url: str, policy: RetryPolicy | None = None) -> "CacheStore":
        """Create a store from a redis:// URL."""
        return cls(aioredis.Redis.from_url(url, decode_responses=True), policy)

    async def get(self, key: str) -> str | None:
        """Read a value.

        Raises:
            ProviderError: If the store cannot be reached
        """
        try:
            return await call_with_retry(lambda: self._client.get(key), self.policy, retry_on=_RETRYABLE)
        except (RedisError, asyncio.TimeoutError) as e:
            raise ProviderError(f"Cache read failed for {key}: {e}") from e

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Write a value with an expiry.

        Raises:
            PersistenceError: If the write does not succeed
        """
        try:
            await call_with_retry(
                lambda: self._client.set(key, value, ex=ttl_seconds),
                self.policy,
                retry_on=_RETRYABLE,
            )
        except (RedisError, asyncio.TimeoutError) as e:
            raise PersistenceError(f"Cache write failed for {key}: {e}") from e

    async def close(self) -> None:
        await self._client.aclose()


async def write_digest(cache: CacheStore, user_id: str, digest: Digest, ttl_seconds: int) -> None:
    """Persist a digest record and point the user's ``latest`` key at it.

    The pointer is best-effort: once the record is stored it is final, so a
    failed pointer write is only logged.

    Raises:
        PersistenceError: If the record cannot be written
    """
    payload = digest.model_dump_json(by_alias=True, exclude_none=True)
    await cache.set(digest_key(user_id, digest.id), payload, ttl_seconds)
    try:
        await cache.set(latest_digest_key(user_id), digest.id, ttl_seconds)
    except PersistenceError as e:
        logger.warning("Latest pointer write failed | id=%s error=%s", digest.id, e)
    logger.info("Digest written | id=%s state=%s chapters=%d", digest.id, digest.job_state.value, len(digest.chapters))
