"""Digest artifact generation.

Turns summarized items into the digest record:

    title        "Murmur digest: " + titles of every summarized item
    description  how many items were kept, plus the covered topics
    content      markdown transcript of every summarized item
    byline       distinct authors
    chapters     one per kept item, sized by its speech file
    speech_files one per kept item, rendered from the summary HTML

Title, content and byline describe the whole summarized batch; chapters,
speech files and the description count only cover items that passed the
quality filter.
"""

import asyncio
import logging
from datetime import datetime, timezone

import markdown

from context import RunContext
from models.digest import Chapter, Digest, JobState, RankedItem, SpeechFile
from tools.speech import SpeechOptions, SpeechSynthesizer

logger = logging.getLogger(__name__)

TITLE_PREFIX = "Murmur digest: "

HTML_WRAPPER = """
    <div id="readability-content">
      <div id="readability-page-1">
        {body}
      </div>
    </div>"""


def summary_to_html(summary: str) -> str:
    """Render a markdown summary inside the reader markup."""
    return HTML_WRAPPER.format(body=markdown.markdown(summary))


async def generate_speech_files(
    items: list[RankedItem],
    options: SpeechOptions,
    synthesizer: SpeechSynthesizer,
) -> list[SpeechFile]:
    """One speech file per item, in item order."""
    return list(await asyncio.gather(
        *(synthesizer.synthesize(summary_to_html(item.summary), options) for item in items)
    ))


def generate_title(summaries: list[RankedItem]) -> str:
    return TITLE_PREFIX + ", ".join(item.library_item.title for item in summaries)


def generate_description(retained: list[RankedItem], topics: list[str]) -> str:
    text = f"We selected {len(retained)} articles from your last 24 hours of saved items"
    return text + (f", covering {', '.join(topics)}." if topics else ".")


def generate_content(summaries: list[RankedItem]) -> str:
    return "\n\n".join(f"### {item.library_item.title}\n{item.summary}" for item in summaries)


def generate_byline(summaries: list[RankedItem]) -> str:
    authors = [item.library_item.author for item in summaries if item.library_item.author]
    return ", ".join(dict.fromkeys(authors))


def generate_chapters(retained: list[RankedItem], speech_files: list[SpeechFile]) -> list[Chapter]:
    return [
        Chapter(
            title=item.library_item.title,
            id=item.library_item.id,
            url=item.library_item.original_url,
            thumbnail=item.library_item.thumbnail,
            word_count=speech.word_count,
        )
        for item, speech in zip(retained, speech_files)
    ]


async def build_digest(
    ctx: RunContext,
    summaries: list[RankedItem],
    retained: list[RankedItem],
    topics: list[str],
    synthesizer: SpeechSynthesizer,
) -> Digest:
    """Assemble the succeeded digest record for a run.

    Args:
        ctx: Run context (digest id, model, speech options)
        summaries: Every summarized item, in selection order
        retained: Items that passed the quality filter
        topics: Non-empty ranked topics (empty when ranking is off)
        synthesizer: Speech file builder
    """
    speech_files = await generate_speech_files(retained, ctx.speech, synthesizer)
    digest = Digest(
        id=ctx.digest_id,
        job_state=JobState.SUCCEEDED,
        title=generate_title(summaries),
        content=generate_content(summaries),
        description=generate_description(retained, topics),
        byline=generate_byline(summaries),
        chapters=generate_chapters(retained, speech_files),
        speech_files=speech_files,
        model=ctx.model,
        created_at=datetime.now(timezone.utc),
    )
    logger.info(
        "Digest assembled | summarized=%d chapters=%d words=%d",
        len(summaries), len(digest.chapters), sum(s.word_count for s in speech_files),
    )
    return digest
