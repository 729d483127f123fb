"""Shared fixtures for digest pipeline tests."""

from __future__ import annotations

import random
from pathlib import Path

import pytest

from config import Config
from context import RunContext
from tools.speech import SpeechOptions

from fakes import make_definition


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Configuration that never reaches a real collaborator."""
    return Config(
        prompt_file_url="https://config.example.com/digest.yaml",
        bucket_dir=tmp_path / "bucket",
        log_dir=tmp_path / "log",
        max_retries=1,
        retry_base_delay=0.0,
    )


@pytest.fixture
def speech_options() -> SpeechOptions:
    return SpeechOptions(primary_voice="en-US-JennyNeural", language="en-US", rate="1.1", secondary_voice="en-US-GuyNeural")


@pytest.fixture
def run_context(speech_options: SpeechOptions) -> RunContext:
    return RunContext(
        digest_id="digest-1",
        user_id="user-1",
        definition=make_definition(),
        model="openai",
        speech=speech_options,
        rng=random.Random(7),
    )
