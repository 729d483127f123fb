"""Tests for model selection, summarization and the quality filter."""

from __future__ import annotations

import asyncio
import random

import pytest

from agents.summarizer import Summarizer, filter_summaries, passes_quality, select_model
from errors import ProviderError
from models.digest import RankedItem

from fakes import FakeBackend, make_item, make_summary


def _with_summary(words: int, source_words: int = 2000) -> RankedItem:
    return RankedItem(summary=make_summary(words), library_item=make_item("a", words=source_words))


class TestSelectModel:
    @pytest.mark.parametrize("override,default,expected", [
        ("anthropic", "openai", "anthropic"),
        ("openai", "anthropic", "openai"),
        (None, "anthropic", "anthropic"),
        (None, None, "openai"),
        ("gemini", None, "openai"),
        ("ANTHROPIC", None, "anthropic"),
    ])
    def test_override_then_default(self, override, default, expected) -> None:
        assert select_model(override, default, random.Random(0)) == expected

    def test_random_picks_a_supported_provider(self) -> None:
        rng = random.Random(3)
        picks = {select_model("random", None, rng) for _ in range(50)}
        assert picks == {"openai", "anthropic"}


class TestQualityFilter:
    def test_boundaries_are_exclusive(self) -> None:
        assert not passes_quality(_with_summary(100))
        assert passes_quality(_with_summary(101))
        assert passes_quality(_with_summary(999))
        assert not passes_quality(_with_summary(1000, source_words=5000))

    def test_summary_must_be_shorter_than_source(self) -> None:
        assert not passes_quality(_with_summary(300, source_words=200))

    def test_empty_summary_is_rejected(self) -> None:
        assert not passes_quality(_with_summary(0))

    def test_filter_keeps_order(self) -> None:
        items = [
            RankedItem(summary=make_summary(300), library_item=make_item("a", words=2000)),
            RankedItem(summary=make_summary(50), library_item=make_item("b", words=2000)),
            RankedItem(summary=make_summary(400), library_item=make_item("c", words=2000)),
        ]
        assert [item.library_item.id for item in filter_summaries(items)] == ["a", "c"]


class TestSummarizer:
    def test_fills_summaries_in_order(self) -> None:
        items = [RankedItem.unranked(make_item("a", title="Alpha", author="Ada")), RankedItem.unranked(make_item("b"))]
        backend = FakeBackend(respond=lambda prompt: prompt.splitlines()[0])

        result = asyncio.run(Summarizer(backend).summarize("Summarize {title} by {author}\n{content}", items))

        assert [item.summary for item in result] == ["Summarize Alpha by Ada", "Summarize Article b by "]

    def test_failed_item_gets_empty_summary(self) -> None:
        calls = []

        def respond(prompt: str) -> str:
            calls.append(prompt)
            if "Article b" in prompt:
                raise ProviderError("rate limited")
            return make_summary()

        items = [RankedItem.unranked(make_item(i)) for i in ("a", "b", "c")]
        result = asyncio.run(Summarizer(FakeBackend(respond=respond)).summarize("{title} {content}", items))

        assert [bool(item.summary) for item in result] == [True, False, True]
        assert len(calls) == 3
