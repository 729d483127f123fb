"""Candidate ranking and topic-diverse selection.

Ranking:
    The rank prompt receives the user's preference profile and the
    candidates as a JSON list of {id, title}. The model answers with a JSON
    array of {topic, id, title} in rank order (index 0 is best). Entries are
    joined back to candidates by id; ids the model invented are dropped.

Selection (choose_ranked_selections):
    Walk the ranking, admitting an item while its topic has fewer than
    MAX_PER_TOPIC admissions, until MAX_SELECTIONS items are admitted.
    The admitted items are then grouped by topic, topics ordered by where
    they first appeared in the ranking, ranking order kept inside a group.
"""

import json
import logging
from typing import Any

from agents.backends import LLMBackend
from models.digest import RankedItem, RankedTitle
from models.library import LibraryItem

logger = logging.getLogger(__name__)

MAX_SELECTIONS = 5
MAX_PER_TOPIC = 2


class Ranker:
    """Orders candidates against a preference profile with an LLM."""

    def __init__(self, backend: LLMBackend):
        self.backend = backend

    async def rank(self, ctx: Any, candidates: list[LibraryItem], profile: str) -> list[RankedItem]:
        """Rank candidates for the run's user.

        Raises:
            ProviderError: If the model call fails or its answer is not a
                valid ranking array
        """
        titles = json.dumps([{"id": item.id, "title": item.title} for item in candidates], ensure_ascii=False)
        ranked_titles = await self.backend.complete_structured(
            ctx.definition.zero_shot.rank_prompt,
            {"userProfile": profile, "titles": titles},
            list[RankedTitle],
        )

        by_id = {item.id: item for item in candidates}
        ranked = [
            RankedItem(topic=entry.topic, summary="", library_item=by_id[entry.id])
            for entry in ranked_titles
            if entry.id in by_id
        ]
        dropped = len(ranked_titles) - len(ranked)
        if dropped:
            logger.warning("Ranker returned unknown ids | dropped=%d", dropped)
        logger.info("Candidates ranked | candidates=%d ranked=%d", len(candidates), len(ranked))
        return ranked


def filter_topics(topics: list[str]) -> list[str]:
    """Drop empty topic labels."""
    return [topic for topic in topics if topic]


def choose_ranked_selections(ranked: list[RankedItem]) -> tuple[list[RankedItem], list[str]]:
    """Pick a diversity-capped selection and group it by topic.

    Returns:
        (final selections, non-empty topics in first-seen order)
    """
    selected: list[RankedItem] = []
    ranked_topics: list[str] = []
    topic_count: dict[str, int] = {}

    for item in ranked:
        if len(selected) >= MAX_SELECTIONS:
            break
        if topic_count.get(item.topic, 0) >= MAX_PER_TOPIC:
            continue
        topic_count[item.topic] = topic_count.get(item.topic, 0) + 1
        selected.append(item)
        if item.topic not in ranked_topics:
            ranked_topics.append(item.topic)

    final_selections = [item for topic in ranked_topics for item in selected if item.topic == topic]

    logger.info("Topics ranked | topics=%s", ranked_topics)
    logger.debug("Final selections: %s", [item.library_item.title for item in final_selections])
    return final_selections, filter_topics(ranked_topics)
