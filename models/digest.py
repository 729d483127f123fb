"""Digest models: ranked items, speech files, chapters, and the digest record.

Model Hierarchy:
    RankedTitle: One element of the ranker's JSON answer
    RankedItem: A candidate flowing through summarization (run-scoped)
    SpeechFile / Utterance: Speech artifact rendered from a summary
    Chapter: Audio chapter pointing back at the source item
    Digest: Terminal record written to the cache store

Digest records are serialized with camelCase keys so that readers of the
cache store see the same shape as the invocation contract.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.library import LibraryItem


class JobState(str, Enum):
    """Terminal state of a digest run."""

    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class _Camel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RankedTitle(_Camel):
    """Ranker output entry. The model may return ids that do not exist."""

    topic: str = ""
    id: str
    title: str = ""


class RankedItem(_Camel):
    """A selected candidate and its (eventual) summary.

    ``summary`` starts empty, is filled by the summarizer, and is either kept
    or discarded by the quality filter.
    """

    topic: str = ""
    summary: str = ""
    library_item: LibraryItem

    @classmethod
    def unranked(cls, item: LibraryItem) -> "RankedItem":
        """Wrap a candidate that bypassed ranking."""
        return cls(topic="", summary="", library_item=item)


class Utterance(_Camel):
    """One SSML block of a speech file."""

    idx: str
    text: str
    word_offset: int
    word_count: int
    voice: str | None = None


class SpeechFile(_Camel):
    """Speech artifact produced from one summary."""

    word_count: int
    language: str
    default_voice: str
    utterances: list[Utterance] = Field(default_factory=list)


class Chapter(_Camel):
    """One digest chapter per retained summary."""

    title: str
    id: str
    url: str
    thumbnail: str | None = None
    word_count: int = 0


class Digest(_Camel):
    """Terminal artifact of a digest run.

    ``id`` is the run's idempotency key. A run writes exactly one record.
    """

    id: str
    job_state: JobState
    title: str | None = None
    content: str | None = None
    description: str | None = None
    byline: str | None = None
    chapters: list[Chapter] = Field(default_factory=list)
    speech_files: list[SpeechFile] = Field(default_factory=list)
    urls_to_audio: list[str] = Field(default_factory=list)
    model: str | None = None
    created_at: datetime | None = None

    @classmethod
    def failed(cls, digest_id: str) -> "Digest":
        """Create the record written when a run fails."""
        return cls(id=digest_id, job_state=JobState.FAILED)

    @classmethod
    def empty(cls, digest_id: str) -> "Digest":
        """Create the record written when there is nothing to digest."""
        return cls(id=digest_id, job_state=JobState.SUCCEEDED)

    def __str__(self) -> str:
        return f"Digest({self.id[:8]}, {self.job_state.value}, chapters={len(self.chapters)})"
