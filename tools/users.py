"""User directory client.

GET {USERS_API_URL}/{user_id} returns the user with its digest
personalization (``digestConfig``); 404 means the user does not exist.
"""

import logging

from pydantic import ValidationError

from errors import ProviderError
from models.user import User
from tools.http import request
from tools.retry import RetryPolicy

logger = logging.getLogger(__name__)


class UserDirectory:
    """Looks up digest recipients and their personalization."""

    def __init__(self, base_url: str, token: str = "", policy: RetryPolicy | None = None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.policy = policy or RetryPolicy()

    async def find_user_and_personalization(self, user_id: str) -> User | None:
        """Return the user, or None when the directory does not know it."""
        data = await request(
            "GET",
            f"{self.base_url}/{user_id}",
            self.policy,
            token=self.token,
            allow_missing=True,
        )
        if data is None:
            return None
        try:
            user = User.model_validate(data)
        except ValidationError as e:
            raise ProviderError(f"Invalid user record for {user_id}: {e}") from e
        if user.digest_config is None:
            logger.info("User personalization not found | user=%s", user_id)
        return user
