"""Tests for candidate gathering, deduplication and sampling."""

from __future__ import annotations

import asyncio
import random
from dataclasses import replace

from candidates import SAMPLE_CAP, dedupe_items, gather_candidates, gather_preferences, sample_candidates
from models.definition import Selector

from fakes import FakeSearch, make_definition, make_item


class TestDedupe:
    def test_first_occurrence_wins(self) -> None:
        first = make_item("a", title="First")
        items = [first, make_item("b"), make_item("a", title="Second"), make_item("c")]

        unique = dedupe_items(items)

        assert [item.id for item in unique] == ["a", "b", "c"]
        assert unique[0].title == "First"

    def test_empty(self) -> None:
        assert dedupe_items([]) == []


class TestSample:
    def test_under_cap_keeps_order(self) -> None:
        items = [make_item(str(i)) for i in range(10)]
        assert sample_candidates(items, random.Random(1)) == items

    def test_exactly_cap_is_not_sampled(self) -> None:
        items = [make_item(str(i)) for i in range(SAMPLE_CAP)]
        assert sample_candidates(items, random.Random(1)) == items

    def test_over_cap_samples_without_replacement(self) -> None:
        items = [make_item(str(i)) for i in range(30)]

        sampled = sample_candidates(items, random.Random(1))

        assert len(sampled) == SAMPLE_CAP
        assert len({item.id for item in sampled}) == SAMPLE_CAP
        assert {item.id for item in sampled} <= {item.id for item in items}

    def test_seeded_rng_is_reproducible(self) -> None:
        items = [make_item(str(i)) for i in range(40)]
        first = sample_candidates(items, random.Random(42))
        second = sample_candidates(items, random.Random(42))
        assert [i.id for i in first] == [i.id for i in second]


class TestGatherCandidates:
    def test_flattens_dedupes_and_normalizes(self, run_context) -> None:
        definition = make_definition(candidate_selectors=(
            Selector(query="q1", count=10),
            Selector(query="q2", count=10),
        ))
        ctx = replace(run_context, definition=definition)
        search = FakeSearch({
            "q1": [make_item("a"), make_item("b")],
            "q2": [make_item("b"), make_item("c")],
        })

        candidates = asyncio.run(gather_candidates(ctx, search))

        assert [item.id for item in candidates] == ["a", "b", "c"]
        assert all("<p>" not in item.readable_content for item in candidates)
        assert all(spec.include_content for spec, _ in search.searches)
        assert {spec.size for spec, _ in search.searches} == {10}

    def test_scenario_thirty_unique_results_are_sampled_to_cap(self, run_context) -> None:
        definition = make_definition(candidate_selectors=(
            Selector(query="q1", count=20),
            Selector(query="q2", count=20),
        ))
        ctx = replace(run_context, definition=definition)
        search = FakeSearch({
            "q1": [make_item(str(i)) for i in range(20)],
            "q2": [make_item(str(i)) for i in range(10, 30)],
        })

        candidates = asyncio.run(gather_candidates(ctx, search))

        assert len(candidates) == 25
        assert len({item.id for item in candidates}) == 25

    def test_no_results_is_empty_not_error(self, run_context) -> None:
        assert asyncio.run(gather_candidates(run_context, FakeSearch())) == []

    def test_explicit_ids_bypass_search(self, run_context) -> None:
        search = FakeSearch({"anything": [make_item(str(i)) for i in range(30)]})
        ids = [str(i) for i in range(28)]

        candidates = asyncio.run(gather_candidates(run_context, search, library_item_ids=ids))

        assert search.searches == []
        assert search.id_lookups == [ids]
        assert [item.id for item in candidates] == ids

    def test_preferences_do_not_request_content(self, run_context) -> None:
        search = FakeSearch({"in:all is:read": [make_item("a"), make_item("a")]})

        preferences = asyncio.run(gather_preferences(run_context, search))

        assert [item.id for item in preferences] == ["a"]
        assert [spec.include_content for spec, _ in search.searches] == [False]
