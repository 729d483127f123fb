"""Pydantic models for the Murmur digest pipeline.

This package contains all data models used throughout the pipeline:

DigestDefinition / Selector:
    Run-scoped configuration loaded from the definition document.

LibraryItem:
    A saved content item returned by the search collaborator.

RankedItem / RankedTitle:
    Candidates flowing through ranking, summarization, and filtering.

Digest / Chapter / SpeechFile:
    The terminal digest record and its audio artifacts.

User / CreateDigestRequest / CreateDigestResponse:
    Invocation contract and recipient settings.

Example:
    >>> from models import Digest, JobState
    >>> Digest.failed("abc").job_state
    <JobState.FAILED: 'FAILED'>
"""

from models.definition import DigestDefinition, Selector, ZeroShotDefinition
from models.library import LibraryItem, SearchSpec
from models.digest import (
    Chapter,
    Digest,
    JobState,
    RankedItem,
    RankedTitle,
    SpeechFile,
    Utterance,
)
from models.user import CreateDigestRequest, CreateDigestResponse, DigestConfig, User

__all__ = [
    "DigestDefinition",
    "Selector",
    "ZeroShotDefinition",
    "LibraryItem",
    "SearchSpec",
    "Chapter",
    "Digest",
    "JobState",
    "RankedItem",
    "RankedTitle",
    "SpeechFile",
    "Utterance",
    "CreateDigestRequest",
    "CreateDigestResponse",
    "DigestConfig",
    "User",
]
