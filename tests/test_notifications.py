"""Tests for notification channels."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

from errors import ProviderError
from models.digest import Chapter, Digest, JobState
from notifications import Notifier, push_message, render_email_html

from fakes import make_user


def _digest(**overrides) -> Digest:
    values = {
        "id": "digest-1",
        "job_state": JobState.SUCCEEDED,
        "title": "Murmur digest: Alpha",
        "content": "### Alpha\n<b>summary</b>",
        "chapters": [Chapter(title="Alpha & Co", id="a", url="https://example.com/a?x=1&y=2")],
    }
    values.update(overrides)
    return Digest(**values)


def _notifier() -> Notifier:
    return Notifier(
        push_url="https://push.example.com/send",
        email_url="https://mail.example.com/queue",
        sender="Murmur <digest@murmur.app>",
    )


class TestMessages:
    def test_push_for_success(self) -> None:
        assert push_message(_digest()) == {"title": "Murmur digest: Alpha", "body": "Your digest is ready to listen"}

    def test_push_for_failure_has_default_title(self) -> None:
        message = push_message(Digest.failed("digest-1"))
        assert message["title"] == "Murmur digest"
        assert "couldn't" in message["body"]

    def test_email_html_escapes_content(self) -> None:
        html = render_email_html(_digest())
        assert "Alpha &amp; Co" in html
        assert "&lt;b&gt;summary&lt;/b&gt;" in html
        assert 'href="https://example.com/a?x=1&amp;y=2"' in html

    def test_email_html_without_transcript(self) -> None:
        assert "Transcript not available" in render_email_html(Digest.empty("digest-1"))


class TestSendNotifications:
    def test_push_payload(self) -> None:
        with patch("notifications.request", new=AsyncMock()) as mock_request:
            ok, fail = asyncio.run(_notifier().send_notifications("user-1", make_user(), ["push"], _digest()))

        assert (ok, fail) == (1, 0)
        method, url, _ = mock_request.call_args.args
        assert (method, url) == ("POST", "https://push.example.com/send")
        payload = mock_request.call_args.kwargs["payload"]
        assert payload["userId"] == "user-1"
        assert payload["category"] == "reminder"
        assert payload["notification"]["title"] == "Murmur digest: Alpha"

    def test_email_payload(self) -> None:
        with patch("notifications.request", new=AsyncMock()) as mock_request:
            asyncio.run(_notifier().send_notifications("user-1", make_user(), ["email"], _digest()))

        payload = mock_request.call_args.kwargs["payload"]
        assert payload["to"] == "user-1@example.com"
        assert payload["from"] == "Murmur <digest@murmur.app>"
        assert payload["subject"] == "Murmur digest: Alpha"
        assert "<h2>Chapters</h2>" in payload["html"]

    def test_duplicate_channels_notify_once(self) -> None:
        with patch("notifications.request", new=AsyncMock()) as mock_request:
            ok, _ = asyncio.run(_notifier().send_notifications("user-1", make_user(), ["push", "push"], _digest()))

        assert ok == 1
        assert mock_request.await_count == 1

    def test_failing_channel_does_not_block_the_other(self) -> None:
        async def flaky(method, url, policy, **kwargs):
            if "push" in url:
                raise ProviderError("push service down")

        with patch("notifications.request", new=AsyncMock(side_effect=flaky)) as mock_request:
            ok, fail = asyncio.run(_notifier().send_notifications("user-1", make_user(), ["push", "email"], _digest()))

        assert (ok, fail) == (1, 1)
        assert mock_request.await_count == 2

    def test_email_without_user_fails_only_that_channel(self) -> None:
        with patch("notifications.request", new=AsyncMock()):
            ok, fail = asyncio.run(_notifier().send_notifications("user-1", None, ["push", "email"], _digest()))

        assert (ok, fail) == (1, 1)

    def test_unknown_channel_is_counted_as_failure(self) -> None:
        with patch("notifications.request", new=AsyncMock()):
            ok, fail = asyncio.run(_notifier().send_notifications("user-1", make_user(), ["sms"], _digest()))

        assert (ok, fail) == (0, 1)

    def test_unconfigured_endpoint_is_a_no_op(self) -> None:
        with patch("notifications.request", new=AsyncMock()) as mock_request:
            ok, fail = asyncio.run(Notifier().send_notifications("user-1", make_user(), ["push", "email"], _digest()))

        assert (ok, fail) == (2, 0)
        mock_request.assert_not_awaited()
