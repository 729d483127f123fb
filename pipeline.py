"""Digest run orchestration.

This module coordinates one digest run for one user:

Pipeline Flow:
    1. USER: Look up the recipient and their personalization
    2. DEFINITION: Load the digest definition (selectors and prompts)
    3. MODEL: Choose the summary provider (user override, definition, config)
    4. CANDIDATES: Search the candidate selectors, dedupe, sample to 25
    5. RANK (RANKING_ENABLED): Build the preference profile, rank candidates,
       pick at most 5 with at most 2 per topic
    6. SUMMARIZE: One LLM call per selected item, bounded concurrency
    7. FILTER: Keep summaries between 100 and 1000 words that shrink the source
    8. ARTIFACTS: Title, description, transcript, byline, chapters, speech files
    9. PERSIST: Write the digest record to the cache store
    10. NOTIFY: Exactly once, on every configured channel
    11. AUDIT: Best-effort upload of all summaries to object storage

Failure Semantics:
    Any error from step 1 through 9 ends the run with a FAILED record. The
    user is notified whatever the outcome. A run with no candidates is a
    success with an empty digest. The preference profile is the only stage
    whose failure is recovered in place (ranking then proceeds without it).
"""

import asyncio
import json
import logging
import random
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable

from agents.backends import LLMBackend, create_backend
from agents.profile import ProfileBuilder
from agents.ranker import Ranker, choose_ranked_selections
from agents.summarizer import Summarizer, filter_summaries, select_model
from artifacts import build_digest
from candidates import gather_candidates
from config import Config
from context import RunContext
from definition import load_definition
from errors import DigestError, NotFoundError
from models.definition import DigestDefinition
from models.digest import Digest, JobState, RankedItem
from models.library import LibraryItem
from models.user import DEFAULT_CHANNELS, CreateDigestRequest, CreateDigestResponse, User
from notifications import Notifier
from observability.logging import clear_context, set_run_context
from observability.tracing import PipelineTracer, setup_tracing, trace_operation
from tools.cache import CacheStore, write_digest
from tools.retry import RetryPolicy
from tools.search import SearchClient
from tools.speech import SpeechOptions, SpeechSynthesizer
from tools.storage import ObjectStorage
from tools.users import UserDirectory

logger = logging.getLogger(__name__)

# Profile and ranking always run on this provider
RANKING_PROVIDER = "openai"


def audit_path(user_id: str, digest_id: str) -> str:
    return f"digest/{user_id}/{digest_id}/summaries.json"


@dataclass
class DigestStats:
    """Statistics from a single digest run.

    Attributes:
        model: Selected summary provider
        candidates: Items gathered after dedup and sampling
        selected: Items sent to the summarizer
        summarized: Items that came back with a non-empty summary
        retained: Items that passed the quality filter
        notified: Channels notified successfully
        errors: Count of errors at any stage
        duration: Total run time in seconds
    """

    model: str = ""
    candidates: int = 0
    selected: int = 0
    summarized: int = 0
    retained: int = 0
    notified: int = 0
    errors: int = 0
    duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        d = asdict(self)
        d["duration"] = round(d["duration"], 2)
        return d


class DigestPipeline:
    """Async digest pipeline using PydanticAI-backed LLM stages.

    Collaborators default to the clients configured by ``config`` and can
    be replaced individually (tests pass fakes for all of them).

    Components:
        - SearchClient: Library search and lookup by id
        - UserDirectory: Recipient and personalization lookup
        - CacheStore: Preference profiles and digest records (Redis)
        - ObjectStorage: Audit copies of summaries
        - Notifier: Push and email channels
        - LLM backends: Created per provider on first use
    """

    def __init__(
        self,
        config: Config,
        search: Any = None,
        users: Any = None,
        cache: Any = None,
        storage: Any = None,
        notifier: Any = None,
        synthesizer: Any = None,
        backend_factory: Callable[[str, Config], LLMBackend] | None = None,
        definition_loader: Callable[[Config], Awaitable[DigestDefinition]] | None = None,
        rng: random.Random | None = None,
    ):
        """Initialize pipeline with all components.

        Args:
            config: Application configuration
            rng: Random source for model choice and sampling (seed it in tests)
        """
        self.config = config
        policy = RetryPolicy.from_config(config)
        self.search = search or SearchClient(config.search_api_url, config.api_token, policy)
        self.users = users or UserDirectory(config.users_api_url, config.api_token, policy)
        self.cache = cache or CacheStore.from_url(config.redis_url, policy)
        self.storage = storage or ObjectStorage(config.bucket_dir)
        self.notifier = notifier or Notifier.from_config(config)
        self.synthesizer = synthesizer or SpeechSynthesizer()
        self.backend_factory = backend_factory or create_backend
        self.definition_loader = definition_loader or load_definition
        self.rng = rng
        self._backends: dict[str, LLMBackend] = {}

        # Optional: Distributed tracing
        if config.enable_logfire:
            setup_tracing(enabled=True, service_name="murmur", token=config.logfire_token)

    def backend(self, name: str) -> LLMBackend:
        """Return the backend for a provider, creating it on first use."""
        if name not in self._backends:
            self._backends[name] = self.backend_factory(name, self.config)
        return self._backends[name]

    async def create_digest(self, request: CreateDigestRequest) -> CreateDigestResponse:
        """Execute one digest run.

        Never raises for pipeline failures: they end in a FAILED record and
        a notification. Cancellation propagates.

        Args:
            request: Target user, optional digest id, speech options, items

        Returns:
            CreateDigestResponse with the digest id and final state
        """
        digest_id = request.id or str(uuid.uuid4())
        set_run_context(digest_id[:8], request.user_id)
        start = time.time()
        stats = DigestStats()
        tracer = PipelineTracer()

        user: User | None = None
        summaries: list[RankedItem] = []

        logger.info("Digest run started | items=%s", "explicit" if request.library_item_ids is not None else "search")

        try:
            with tracer.trace_run(digest_id, request.user_id):
                try:
                    with trace_operation("find_user"):
                        user = await self._find_user(request.user_id)
                    digest = await self._produce(request, user, digest_id, stats, tracer, summaries)

                except asyncio.CancelledError:
                    logger.info("Digest run cancelled")
                    raise
                except Exception as e:
                    logger.error("Digest run failed | type=%s error=%s", type(e).__name__, e, exc_info=True)
                    stats.errors += 1
                    digest = Digest.failed(digest_id)

                with trace_operation("persist"):
                    digest = await self._persist(request.user_id, digest, stats)

                channels = user.channels if user else list(DEFAULT_CHANNELS)
                with trace_operation("notify", {"channels": ", ".join(channels)}):
                    stats.notified, failed = await self.notifier.send_notifications(
                        request.user_id, user, channels, digest,
                    )
                stats.errors += failed
                tracer.record_outcome(digest.job_state.value, stats.notified, failed)

                await self._upload_summaries(request.user_id, digest_id, stats.model, summaries)

            stats.duration = time.time() - start
            logger.info(
                "Digest run done | state=%s duration=%.1fs candidates=%d retained=%d notified=%d errors=%d",
                digest.job_state.value, stats.duration, stats.candidates, stats.retained,
                stats.notified, stats.errors,
            )
            return CreateDigestResponse(job_id=digest_id, job_state=digest.job_state)
        finally:
            clear_context()

    async def _find_user(self, user_id: str) -> User:
        user = await self.users.find_user_and_personalization(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def _speech_options(self, request: CreateDigestRequest) -> SpeechOptions:
        voices = request.voices or [self.config.speech_voice, self.config.speech_secondary_voice]
        return SpeechOptions(
            primary_voice=voices[0],
            secondary_voice=voices[1] if len(voices) > 1 else None,
            language=request.language or self.config.speech_language,
            rate=request.rate or self.config.speech_rate,
        )

    async def _produce(
        self,
        request: CreateDigestRequest,
        user: User,
        digest_id: str,
        stats: DigestStats,
        tracer: PipelineTracer,
        summaries: list[RankedItem],
    ) -> Digest:
        """Run the stages from definition loading to artifact generation.

        ``summaries`` is filled in place so that a later failure still
        leaves the produced summaries available for the audit upload.
        """
        with trace_operation("load_definition"):
            definition = await self.definition_loader(self.config)

        rng = self.rng or random.Random()
        override = user.digest_config.model if user.digest_config else None
        model = select_model(override, definition.model or self.config.digest_model, rng)
        stats.model = model
        logger.info("Model selected | model=%s override=%s", model, override or "-")

        ctx = RunContext(
            digest_id=digest_id,
            user_id=request.user_id,
            definition=definition,
            model=model,
            speech=self._speech_options(request),
            rng=rng,
        )

        with trace_operation("gather_candidates") as attrs:
            candidates = await gather_candidates(ctx, self.search, request.library_item_ids)
            attrs["count"] = len(candidates)
        stats.candidates = len(candidates)
        tracer.record_candidates(len(candidates))

        if not candidates:
            logger.info("Nothing to digest, writing empty digest")
            return Digest.empty(digest_id)

        topics: list[str] = []
        if self.config.ranking_enabled:
            with trace_operation("rank"):
                selections, topics = await self._rank(ctx, candidates)
            tracer.record_selection(len(candidates), len(selections), topics)
        else:
            selections = [RankedItem.unranked(item) for item in candidates]
        stats.selected = len(selections)

        with trace_operation("summarize", {"model": model, "items": len(selections)}):
            summarized = await Summarizer(self.backend(model)).summarize(
                definition.summary_prompt, selections,
            )
        summaries.extend(summarized)
        stats.summarized = sum(1 for item in summarized if item.summary)

        retained = filter_summaries(summarized)
        stats.retained = len(retained)
        tracer.record_summaries(stats.summarized, stats.retained)

        with trace_operation("build_digest"):
            return await build_digest(ctx, summarized, retained, topics, self.synthesizer)

    async def _rank(self, ctx: RunContext, candidates: list[LibraryItem]) -> tuple[list[RankedItem], list[str]]:
        backend = self.backend(RANKING_PROVIDER)
        try:
            profile = await ProfileBuilder(backend, self.search, self.cache).find_or_create(ctx)
        except DigestError as e:
            logger.warning("Preference profile unavailable, ranking without it | error=%s", e)
            profile = ""

        ranked = await Ranker(backend).rank(ctx, candidates, profile)
        return choose_ranked_selections(ranked)

    async def _persist(self, user_id: str, digest: Digest, stats: DigestStats) -> Digest:
        """Write the final record; a failed success write becomes one FAILED attempt."""
        ttl = self.config.digest_ttl_seconds
        try:
            await write_digest(self.cache, user_id, digest, ttl)
            return digest
        except Exception as e:
            stats.errors += 1
            logger.error("Digest write failed | state=%s error=%s", digest.job_state.value, e)
            if digest.job_state == JobState.FAILED:
                return digest

        failed = Digest.failed(digest.id)
        try:
            await write_digest(self.cache, user_id, failed, ttl)
        except Exception as e:
            stats.errors += 1
            logger.error("FAILED record write failed | error=%s", e)
        return failed

    async def _upload_summaries(
        self,
        user_id: str,
        digest_id: str,
        model: str,
        summaries: list[RankedItem],
    ) -> None:
        """Best-effort audit copy of every produced summary."""
        if not summaries:
            return
        payload = {
            "model": model,
            "summaries": [
                {"title": item.library_item.title, "summary": item.summary}
                for item in summaries
            ],
        }
        data = json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")
        try:
            await self.storage.put(audit_path(user_id, digest_id), data, "application/json", public=False)
            logger.debug("Summaries uploaded | count=%d", len(summaries))
        except Exception as e:
            logger.warning("Summary upload failed | error=%s", e)

    async def close(self) -> None:
        """Clean up resources."""
        await self.cache.close()


async def create_digest(config: Config, request: CreateDigestRequest) -> dict[str, Any]:
    """Run one digest and return the response as a JSON-ready dict.

    Args:
        config: Application configuration
        request: Digest invocation payload
    """
    pipeline = DigestPipeline(config)
    try:
        response = await pipeline.create_digest(request)
        return response.model_dump(mode="json", by_alias=True)
    finally:
        await pipeline.close()
