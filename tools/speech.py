"""Speech file generation from digest HTML.

A speech file is the input of the text-to-speech service: an ordered list
of SSML utterances plus the word counts the player needs for chapter
lengths and progress tracking. One utterance is produced per text block
(paragraph, heading, list item, quote). Quotes use the secondary voice
when one is configured.
"""

import logging
from dataclasses import dataclass
from xml.sax.saxutils import escape

from bs4 import BeautifulSoup

from models.digest import SpeechFile, Utterance
from tools.content import words_count

logger = logging.getLogger(__name__)

UTTERANCE_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6", "p", "li", "blockquote", "pre")

SSML_TEMPLATE = (
    '<speak xmlns="http://www.w3.org/2001/10/synthesis" version="1.0" xml:lang="{language}">'
    '<voice name="{voice}"><prosody rate="{rate}" pitch="default">{text}</prosody></voice>'
    "</speak>"
)


@dataclass(frozen=True)
class SpeechOptions:
    """Voice settings for one digest run."""

    primary_voice: str
    language: str
    rate: str
    secondary_voice: str | None = None


def _text_blocks(html: str) -> list[tuple[str, str]]:
    """Return (tag, text) for each leaf text block in document order."""
    soup = BeautifulSoup(html, "html.parser")
    blocks = []
    for element in soup.find_all(UTTERANCE_TAGS):
        # Nested blocks (p inside blockquote, p inside li) are read once, by the innermost tag
        if element.find(UTTERANCE_TAGS):
            continue
        text = element.get_text(" ", strip=True)
        if text:
            parent_quote = element.name == "blockquote" or element.find_parent("blockquote") is not None
            blocks.append(("blockquote" if parent_quote else element.name, text))
    if not blocks:
        text = soup.get_text(" ", strip=True)
        if text:
            blocks.append(("p", text))
    return blocks


class SpeechSynthesizer:
    """Builds SSML speech files from HTML content."""

    async def synthesize(self, html: str, options: SpeechOptions) -> SpeechFile:
        """Render HTML into a speech file with computed word counts."""
        utterances: list[Utterance] = []
        offset = 0
        for idx, (tag, text) in enumerate(_text_blocks(html)):
            voice = options.primary_voice
            if tag == "blockquote" and options.secondary_voice:
                voice = options.secondary_voice
            count = words_count(text)
            ssml = SSML_TEMPLATE.format(
                language=escape(options.language),
                voice=escape(voice),
                rate=escape(options.rate),
                text=escape(text),
            )
            utterances.append(
                Utterance(idx=str(idx), text=ssml, word_offset=offset, word_count=count, voice=voice)
            )
            offset += count

        logger.debug("Speech file built | utterances=%d words=%d", len(utterances), offset)
        return SpeechFile(
            word_count=offset,
            language=options.language,
            default_voice=options.primary_voice,
            utterances=utterances,
        )
