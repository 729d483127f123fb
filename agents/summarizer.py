"""Per-item summarization and the summary quality gate."""

import logging
import random

from agents.backends import SUPPORTED_PROVIDERS, LLMBackend
from models.digest import RankedItem
from tools.content import words_count

logger = logging.getLogger(__name__)

MIN_SUMMARY_WORDS = 100
MAX_SUMMARY_WORDS = 1000


def select_model(
    override: str | None,
    default: str | None,
    rng: random.Random,
) -> str:
    """Choose the summary provider for a run.

    The user's override wins over the definition default. 'random' picks
    uniformly between the supported providers; anything unrecognized falls
    back to OpenAI.
    """
    choice = (override or default or "").lower()
    if choice == "random":
        return rng.choice(SUPPORTED_PROVIDERS)
    if choice == "anthropic":
        return "anthropic"
    return "openai"


class Summarizer:
    """Fills ``RankedItem.summary`` using one backend batch call."""

    def __init__(self, backend: LLMBackend):
        self.backend = backend

    async def summarize(self, summary_prompt: str, items: list[RankedItem]) -> list[RankedItem]:
        """Summarize items in place; failed items get an empty summary."""
        variables = [
            {
                "title": item.library_item.title,
                "author": item.library_item.author or "",
                "content": item.library_item.readable_content,
            }
            for item in items
        ]
        summaries = await self.backend.complete_batch(summary_prompt, variables)

        for item, summary in zip(items, summaries):
            item.summary = summary
        logger.info(
            "Items summarized | backend=%s total=%d empty=%d",
            self.backend.name, len(items), sum(1 for item in items if not item.summary),
        )
        return items


def passes_quality(item: RankedItem) -> bool:
    """Length bounds: 100 < words < 1000 and shorter than the source."""
    count = words_count(item.summary)
    return (
        MIN_SUMMARY_WORDS < count < MAX_SUMMARY_WORDS
        and len(item.summary) < len(item.library_item.readable_content)
    )


def filter_summaries(items: list[RankedItem]) -> list[RankedItem]:
    """Drop summaries that are too short, too long, or not a reduction."""
    kept = [item for item in items if passes_quality(item)]
    if len(kept) < len(items):
        logger.info("Summaries rejected by quality filter | rejected=%d kept=%d", len(items) - len(kept), len(kept))
    return kept
