"""Candidate gathering: selector searches, deduplication, and sampling.

Two modes:

Explicit ids:
    The caller names the items; they are fetched directly and search is
    bypassed.

Discovery:
    Every candidate selector of the definition is searched concurrently.
    Results are flattened, deduplicated by id (first occurrence wins), and
    their HTML bodies are normalized to markdown-ish text for prompting.
    When more than SAMPLE_CAP items remain, a uniform random sample of
    exactly SAMPLE_CAP is taken with the run's random source; smaller sets
    pass through in their original order.

An empty result is a valid outcome, not an error.
"""

import asyncio
import logging
import random
from typing import Any, Iterable

from context import RunContext
from models.definition import Selector
from models.library import LibraryItem, SearchSpec
from tools.content import html_to_markdown

logger = logging.getLogger(__name__)

SAMPLE_CAP = 25


def dedupe_items(items: Iterable[LibraryItem]) -> list[LibraryItem]:
    """Drop repeated ids, keeping the first occurrence and its position."""
    seen: set[str] = set()
    unique = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        unique.append(item)
    return unique


def sample_candidates(
    candidates: list[LibraryItem],
    rng: random.Random,
    cap: int = SAMPLE_CAP,
) -> list[LibraryItem]:
    """Uniformly sample ``cap`` items without replacement when over the cap."""
    if len(candidates) <= cap:
        return list(candidates)
    return rng.sample(candidates, cap)


def normalize_content(item: LibraryItem) -> LibraryItem:
    """Return a copy whose readable content is markdown-ish text."""
    return item.model_copy(update={"readable_content": html_to_markdown(item.readable_content)})


async def _run_selectors(
    selectors: Iterable[Selector],
    search: Any,
    user_id: str,
    include_content: bool,
) -> list[LibraryItem]:
    """Search every selector concurrently and flatten in selector order."""
    specs = [
        SearchSpec(query=selector.query, size=selector.count, include_content=include_content)
        for selector in selectors
    ]
    results = await asyncio.gather(*(search.search(spec, user_id) for spec in specs))
    return [item for batch in results for item in batch]


async def gather_preferences(ctx: RunContext, search: Any) -> list[LibraryItem]:
    """Distinct items describing what the user engaged with."""
    items = await _run_selectors(ctx.definition.preference_selectors, search, ctx.user_id, include_content=False)
    preferences = dedupe_items(items)
    logger.debug("Preferences gathered | total=%d distinct=%d", len(items), len(preferences))
    return preferences


async def gather_candidates(
    ctx: RunContext,
    search: Any,
    library_item_ids: list[str] | None = None,
) -> list[LibraryItem]:
    """Resolve the working candidate set for a run.

    Args:
        ctx: Run context (user, definition, random source)
        search: Library search client
        library_item_ids: Explicit items; bypasses selector search when given

    Returns:
        Duplicate-free candidates, at most SAMPLE_CAP in discovery mode
    """
    if library_item_ids is not None:
        items = await search.find_by_ids(library_item_ids, ctx.user_id)
        logger.info("Candidates fetched by id | requested=%d found=%d", len(library_item_ids), len(items))
        return [normalize_content(item) for item in dedupe_items(items)]

    items = await _run_selectors(ctx.definition.candidate_selectors, search, ctx.user_id, include_content=True)
    deduped = [normalize_content(item) for item in dedupe_items(items)]

    logger.info("Candidates deduplicated | total=%d distinct=%d", len(items), len(deduped))
    logger.debug("Deduplicated titles: %s", [item.title for item in deduped])

    if not deduped:
        logger.info("No new candidates found")
        return []

    selected = sample_candidates(deduped, ctx.rng)
    if len(selected) < len(deduped):
        logger.info("Candidates sampled | from=%d to=%d", len(deduped), len(selected))
    logger.debug("Selected titles: %s", [item.title for item in selected])
    return selected
