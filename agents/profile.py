"""Preference profile builder.

A preference profile is a short text describing what a user tends to read,
written by an LLM from the titles of items the user recently read or
highlighted. Profiles are cached for a week per user; on a cache miss the
preference selectors are searched, the profile prompt is completed, and
the result is stored.
"""

import logging
from typing import Any

from agents.backends import LLMBackend
from candidates import gather_preferences
from errors import PersistenceError, ProviderError
from tools.cache import CacheStore

logger = logging.getLogger(__name__)

PROFILE_TTL_SECONDS = 60 * 60 * 24 * 7


def profile_key(user_id: str) -> str:
    return f"digest:{user_id}:userProfile"


class ProfileBuilder:
    """Cache-or-compute access to a user's preference profile."""

    def __init__(self, backend: LLMBackend, search: Any, cache: CacheStore):
        self.backend = backend
        self.search = search
        self.cache = cache

    async def find_or_create(self, ctx: Any) -> str:
        """Return the cached profile, creating and caching it on a miss.

        Args:
            ctx: Run context (user id and digest definition)

        Raises:
            ProviderError: If the profile cannot be produced
        """
        key = profile_key(ctx.user_id)
        try:
            existing = await self.cache.get(key)
        except ProviderError as e:
            logger.warning("Profile cache read failed, recomputing | user=%s error=%s", ctx.user_id, e)
            existing = None
        if existing:
            logger.debug("Profile cache hit | user=%s", ctx.user_id)
            return existing

        preferences = await gather_preferences(ctx, self.search)
        titles = "\n".join(f"* {item.title}" for item in preferences)
        profile = await self.backend.complete(
            ctx.definition.zero_shot.user_preferences_profile_prompt,
            {"titles": titles},
        )

        try:
            await self.cache.set(key, profile, PROFILE_TTL_SECONDS)
        except PersistenceError as e:
            logger.warning("Profile not cached | user=%s error=%s", ctx.user_id, e)
        logger.info("Profile created | user=%s preferences=%d chars=%d", ctx.user_id, len(preferences), len(profile))
        return profile
