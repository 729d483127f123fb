"""End-to-end tests for digest runs with in-memory collaborators."""

from __future__ import annotations

import asyncio
import json
import random
from unittest.mock import AsyncMock

import pytest

from errors import ConfigError, ProviderError
from models.digest import JobState
from models.user import CreateDigestRequest
from pipeline import DigestPipeline, audit_path

from fakes import (
    FakeBackend,
    FakeCache,
    FakeNotifier,
    FakeSearch,
    FakeStorage,
    FakeUsers,
    make_definition,
    make_item,
    make_summary,
    make_user,
)

CANDIDATE_QUERY = "in:all is:unread saved:last24hrs"
PREFERENCE_QUERY = "in:all is:read"


class Harness:
    """A pipeline wired to fakes, plus handles on every fake."""

    def __init__(
        self,
        config,
        items=None,
        user=None,
        users=None,
        definition=None,
        definition_error=None,
        backend=None,
        cache=None,
        storage=None,
        search=None,
    ):
        self.search = search or FakeSearch({
            CANDIDATE_QUERY: items if items is not None else [],
            PREFERENCE_QUERY: [make_item("p1", title="Rust ownership"), make_item("p2", title="Orbital launches")],
        })
        self.users = users or FakeUsers(user if user is not None else make_user())
        self.cache = cache or FakeCache()
        self.storage = storage or FakeStorage()
        self.notifier = FakeNotifier()
        self.backend = backend or FakeBackend()

        if definition_error:
            self.loader = AsyncMock(side_effect=definition_error)
        else:
            self.loader = AsyncMock(return_value=definition or make_definition(model="openai"))

        self.pipeline = DigestPipeline(
            config,
            search=self.search,
            users=self.users,
            cache=self.cache,
            storage=self.storage,
            notifier=self.notifier,
            backend_factory=lambda name, cfg: self.backend,
            definition_loader=self.loader,
            rng=random.Random(11),
        )

    def run(self, **request):
        request.setdefault("id", "digest-1")
        request.setdefault("user_id", "user-1")
        return asyncio.run(self.pipeline.create_digest(CreateDigestRequest(**request)))

    def digest(self):
        return self.cache.digest("user-1", "digest-1")


def _items(n: int, words: int = 2000) -> list:
    return [make_item(str(i), title=f"Story {i}", author=f"Author {i % 2}", words=words) for i in range(n)]


class TestSuccessfulRun:
    def test_scenario_email_only_three_chapters(self, config) -> None:
        harness = Harness(config, items=_items(3), user=make_user(channels=["email"]))

        response = harness.run()

        assert response.job_id == "digest-1"
        assert response.job_state == JobState.SUCCEEDED
        digest = harness.digest()
        assert len(digest.chapters) == 3
        assert len(digest.speech_files) == 3
        assert harness.cache.values["digest:user-1:latest"] == "digest-1"
        assert len(harness.notifier.calls) == 1
        assert harness.notifier.calls[0]["channels"] == ["email"]
        assert harness.notifier.calls[0]["digest"].job_state == JobState.SUCCEEDED

    def test_digest_record_is_written_once(self, config) -> None:
        harness = Harness(config, items=_items(2))
        harness.run()

        digest_writes = [key for key, _, _ in harness.cache.writes if key == "digest:user-1:digest-1"]
        assert digest_writes == ["digest:user-1:digest-1"]

    def test_default_channel_is_push(self, config) -> None:
        harness = Harness(config, items=_items(1))
        harness.run()
        assert harness.notifier.calls[0]["channels"] == ["push"]

    def test_summaries_are_uploaded_for_audit(self, config) -> None:
        harness = Harness(config, items=_items(2))
        harness.run()

        data, content_type, public = harness.storage.objects[audit_path("user-1", "digest-1")]
        payload = json.loads(data)
        assert content_type == "application/json"
        assert public is False
        assert payload["model"] == "openai"
        assert [entry["title"] for entry in payload["summaries"]] == ["Story 0", "Story 1"]

    def test_rejected_summaries_get_no_chapter(self, config) -> None:
        backend = FakeBackend(respond=lambda prompt: "too short" if "Story 1" in prompt else make_summary())
        harness = Harness(config, items=_items(3), backend=backend)

        harness.run()

        digest = harness.digest()
        assert [chapter.id for chapter in digest.chapters] == ["0", "2"]
        assert "Story 1" in digest.title

    def test_explicit_items_bypass_search(self, config) -> None:
        harness = Harness(config, items=_items(5))

        harness.run(library_item_ids=["1", "3"])

        assert harness.search.searches == []
        assert [chapter.id for chapter in harness.digest().chapters] == ["1", "3"]

    def test_request_speech_options_are_used(self, config) -> None:
        harness = Harness(config, items=_items(1))

        harness.run(voices=["en-GB-SoniaNeural"], language="en-GB", rate="0.9")

        speech = harness.digest().speech_files[0]
        assert speech.default_voice == "en-GB-SoniaNeural"
        assert speech.language == "en-GB"

    def test_user_model_override_wins(self, config) -> None:
        chosen = []

        def factory(name, cfg):
            chosen.append(name)
            return FakeBackend(name=name)

        harness = Harness(config, items=_items(1), user=make_user(model="anthropic"))
        harness.pipeline.backend_factory = factory

        harness.run()

        assert chosen == ["anthropic"]
        assert harness.digest().model == "anthropic"


class TestRanking:
    def test_ranked_run_applies_diversity_cap(self, config) -> None:
        config.ranking_enabled = True
        items = _items(8)
        ranking = [{"topic": "AI" if i < 5 else "Space", "id": str(i), "title": f"Story {i}"} for i in range(8)]

        def respond(prompt: str) -> str:
            if prompt.startswith("Describe a reader"):
                return "Likes systems programming and space."
            if prompt.startswith("Profile:"):
                return json.dumps(ranking)
            return make_summary()

        harness = Harness(config, items=items, backend=FakeBackend(respond=respond))

        harness.run()

        digest = harness.digest()
        assert [chapter.id for chapter in digest.chapters] == ["0", "1", "5", "6"]
        assert digest.description.endswith("covering AI, Space.")
        assert harness.cache.values["digest:user-1:userProfile"] == "Likes systems programming and space."

    def test_profile_failure_is_recovered(self, config) -> None:
        config.ranking_enabled = True

        def respond(prompt: str) -> str:
            if prompt.startswith("Describe a reader"):
                raise ProviderError("profile model unavailable")
            if prompt.startswith("Profile:"):
                assert "Profile: \n" in prompt
                return json.dumps([{"topic": "AI", "id": "0", "title": "Story 0"}])
            return make_summary()

        harness = Harness(config, items=_items(2), backend=FakeBackend(respond=respond))

        response = harness.run()

        assert response.job_state == JobState.SUCCEEDED
        assert [chapter.id for chapter in harness.digest().chapters] == ["0"]

    def test_preference_search_failure_is_recovered(self, config) -> None:
        config.ranking_enabled = True
        search = FakeSearch(
            {CANDIDATE_QUERY: _items(2)},
            failing_queries={PREFERENCE_QUERY: ProviderError("POST /search returned an undecodable body")},
        )

        def respond(prompt: str) -> str:
            if prompt.startswith("Profile:"):
                assert "Profile: \n" in prompt
                return json.dumps([{"topic": "AI", "id": "1", "title": "Story 1"}])
            return make_summary()

        harness = Harness(config, search=search, backend=FakeBackend(respond=respond))

        response = harness.run()

        assert response.job_state == JobState.SUCCEEDED
        assert [chapter.id for chapter in harness.digest().chapters] == ["1"]

    def test_cached_profile_is_reused(self, config) -> None:
        config.ranking_enabled = True
        backend = FakeBackend(respond=lambda prompt: json.dumps([{"topic": "AI", "id": "0"}]) if prompt.startswith("Profile:") else make_summary())
        harness = Harness(config, items=_items(1), backend=backend)
        harness.cache.values["digest:user-1:userProfile"] = "cached profile"

        harness.run()

        assert not any(prompt.startswith("Describe a reader") for prompt in backend.prompts)
        assert any("cached profile" in prompt for prompt in backend.prompts)
        assert [spec.query for spec, _ in harness.search.searches] == [CANDIDATE_QUERY]


class TestEmptyAndMissing:
    def test_scenario_no_candidates(self, config) -> None:
        harness = Harness(config, items=[])

        response = harness.run()

        assert response.job_state == JobState.SUCCEEDED
        digest = harness.digest()
        assert digest.chapters == []
        assert len(harness.notifier.calls) == 1
        assert harness.notifier.calls[0]["channels"] == ["push"]
        assert harness.storage.objects == {}

    def test_scenario_user_missing(self, config) -> None:
        harness = Harness(config, items=_items(3), users=FakeUsers(None))

        response = harness.run()

        assert response.job_state == JobState.FAILED
        assert harness.digest().job_state == JobState.FAILED
        assert harness.search.searches == []
        harness.loader.assert_not_awaited()
        assert len(harness.notifier.calls) == 1
        assert harness.notifier.calls[0]["channels"] == ["push"]
        assert harness.notifier.calls[0]["user"] is None

    def test_generated_digest_id(self, config) -> None:
        harness = Harness(config, items=[])

        response = asyncio.run(harness.pipeline.create_digest(CreateDigestRequest(user_id="user-1")))

        assert response.job_id
        assert harness.cache.values["digest:user-1:latest"] == response.job_id


class TestAlwaysNotify:
    """Every failure point ends in exactly one FAILED record and one notification."""

    @staticmethod
    def _assert_failed_once(harness: Harness, response) -> None:
        assert response.job_state == JobState.FAILED
        assert harness.digest().job_state == JobState.FAILED
        assert len(harness.notifier.calls) == 1
        assert harness.notifier.calls[0]["digest"].job_state == JobState.FAILED

    def test_user_lookup_error(self, config) -> None:
        harness = Harness(config, items=_items(2), users=FakeUsers(error=ProviderError("directory down")))
        self._assert_failed_once(harness, harness.run())

    def test_definition_error(self, config) -> None:
        harness = Harness(config, items=_items(2), user=make_user(channels=["push", "email"]), definition_error=ConfigError("PROMPT_FILE_URL not set"))

        response = harness.run()

        self._assert_failed_once(harness, response)
        assert harness.notifier.calls[0]["channels"] == ["push", "email"]

    def test_search_error(self, config) -> None:
        harness = Harness(config, search=FakeSearch(error=ProviderError("search down")))
        self._assert_failed_once(harness, harness.run())

    def test_ranking_error(self, config) -> None:
        config.ranking_enabled = True

        def respond(prompt: str) -> str:
            if prompt.startswith("Profile:"):
                return "not json at all"
            return "profile or summary"

        harness = Harness(config, items=_items(2), backend=FakeBackend(respond=respond))
        self._assert_failed_once(harness, harness.run())

    def test_summarization_error(self, config) -> None:
        harness = Harness(config, items=_items(2))

        def explode(name, cfg):
            raise RuntimeError("no API key")

        harness.pipeline.backend_factory = explode
        self._assert_failed_once(harness, harness.run())

    def test_persistence_error_downgrades_to_failed(self, config) -> None:
        harness = Harness(config, items=_items(2), cache=FakeCache(fail_first_write=True))

        response = harness.run()

        self._assert_failed_once(harness, response)
        keys = [key for key, _, _ in harness.cache.writes]
        assert keys[:2] == ["digest:user-1:digest-1", "digest:user-1:digest-1"]

    def test_latest_pointer_failure_keeps_succeeded_record(self, config) -> None:
        harness = Harness(config, items=_items(2), cache=FakeCache(fail_latest=True))

        response = harness.run()

        states = [
            json.loads(value)["jobState"]
            for key, value, _ in harness.cache.writes
            if key == "digest:user-1:digest-1"
        ]
        assert response.job_state == JobState.SUCCEEDED
        assert states == ["SUCCEEDED"]
        assert harness.notifier.calls[0]["digest"].job_state == JobState.SUCCEEDED

    def test_total_persistence_outage_still_notifies(self, config) -> None:
        harness = Harness(config, items=_items(2), cache=FakeCache(fail_writes=True))

        response = harness.run()

        assert response.job_state == JobState.FAILED
        assert len(harness.notifier.calls) == 1

    def test_audit_upload_failure_is_ignored(self, config) -> None:
        harness = Harness(config, items=_items(1), storage=FakeStorage(error=OSError("disk full")))

        response = harness.run()

        assert response.job_state == JobState.SUCCEEDED
        assert len(harness.notifier.calls) == 1

    def test_cancellation_propagates(self, config) -> None:
        harness = Harness(config, users=FakeUsers(error=asyncio.CancelledError()))

        with pytest.raises(asyncio.CancelledError):
            harness.run()
