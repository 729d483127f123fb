"""Digest notifications over push and email.

Channels:
    push   JSON POST to PUSH_WEBHOOK_URL: {userId, notification: {title, body}, category}
    email  JSON POST to EMAIL_WEBHOOK_URL (email queue): {to, from, subject, html}

Channels are independent: they run concurrently and a failure in one is
logged without preventing the other. An unset endpoint turns its channel
into a logged no-op.
"""

import asyncio
import html
import logging

from config import Config
from errors import ProviderError
from models.digest import Digest, JobState
from models.user import User
from tools.http import request
from tools.retry import RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Murmur digest"
PUSH_CATEGORY = "reminder"


def push_message(digest: Digest) -> dict[str, str]:
    """Title and body of the push notification for a digest."""
    if digest.job_state == JobState.FAILED:
        body = "We couldn't create your digest this time"
    else:
        body = "Your digest is ready to listen"
    return {"title": digest.title or DEFAULT_TITLE, "body": body}


def render_email_html(digest: Digest) -> str:
    """Email body listing chapters and the transcript."""
    title = html.escape(digest.title or DEFAULT_TITLE)
    chapters = "".join(
        f'\n        <li><a href="{html.escape(chapter.url, quote=True)}">{html.escape(chapter.title)}</a></li>'
        for chapter in digest.chapters
    )
    transcript = html.escape(digest.content) if digest.content else "Transcript not available"
    return f"""
    <h1>{title}</h1>

    <h2>Chapters</h2>
    <ul>{chapters}
    </ul>

    <h2>Transcript</h2>
    <p>{transcript}</p>
  """


class Notifier:
    """Sends digest notifications through the configured endpoints."""

    def __init__(
        self,
        push_url: str = "",
        email_url: str = "",
        sender: str = "",
        token: str = "",
        policy: RetryPolicy | None = None,
    ):
        self.push_url = push_url
        self.email_url = email_url
        self.sender = sender
        self.token = token
        self.policy = policy or RetryPolicy()

    @classmethod
    def from_config(cls, config: Config) -> "Notifier":
        return cls(
            push_url=config.push_webhook_url,
            email_url=config.email_webhook_url,
            sender=config.email_sender,
            token=config.api_token,
            policy=RetryPolicy.from_config(config),
        )

    async def send_push(self, user_id: str, notification: dict[str, str], category: str = PUSH_CATEGORY) -> None:
        """Send one push notification.

        Raises:
            ProviderError: If the endpoint rejects the notification
        """
        if not self.push_url:
            logger.debug("Push endpoint not configured, skipping | user=%s", user_id)
            return
        payload = {"userId": user_id, "notification": notification, "category": category}
        await request("POST", self.push_url, self.policy, payload=payload, token=self.token)
        logger.info("Push sent | user=%s title=%s", user_id, notification["title"][:40])

    async def send_email(self, message: dict[str, str]) -> None:
        """Enqueue one email.

        Raises:
            ProviderError: If the email queue rejects the message
        """
        if not self.email_url:
            logger.debug("Email endpoint not configured, skipping | to=%s", message["to"])
            return
        await request("POST", self.email_url, self.policy, payload=message, token=self.token)
        logger.info("Email queued | subject=%s", message["subject"][:40])

    async def _send(self, channel: str, user_id: str, user: User | None, digest: Digest) -> None:
        if channel == "push":
            await self.send_push(user_id, push_message(digest))
        elif channel == "email":
            if user is None or not user.email:
                raise ProviderError(f"No email address for user {user_id}")
            await self.send_email({
                "to": user.email,
                "from": self.sender,
                "subject": digest.title or DEFAULT_TITLE,
                "html": render_email_html(digest),
            })
        else:
            raise ProviderError(f"Unknown notification channel '{channel}'")

    async def send_notifications(
        self,
        user_id: str,
        user: User | None,
        channels: list[str],
        digest: Digest,
    ) -> tuple[int, int]:
        """Notify the user on every channel once.

        Returns:
            (successful, failed) channel counts
        """
        unique = list(dict.fromkeys(channels))
        results = await asyncio.gather(
            *(self._send(channel, user_id, user, digest) for channel in unique),
            return_exceptions=True,
        )

        ok = 0
        fail = 0
        for channel, result in zip(unique, results):
            if isinstance(result, Exception):
                fail += 1
                logger.error("Notification failed | channel=%s user=%s error=%s", channel, user_id, result)
            else:
                ok += 1

        logger.info("Notifications done | channels=%s ok=%d failed=%d", unique, ok, fail)
        return ok, fail
