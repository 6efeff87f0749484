from __future__ import annotations

import asyncio
from pathlib import Path

import httpx

from insights.cache import EntryCache
from insights.llm import MockCompletionClient
from insights.orchestrator import (
    BATCH_ERROR,
    FALLBACK_CONTENT,
    FALLBACK_STORY,
    ContentOrchestrator,
    GenerationState,
    build_content_prompt,
)
from insights.parser import STORY_PLACEHOLDER
from insights.retry import RetryingRequester
from insights.schemas import BlogEntry
from insights.topics import FALLBACK_TOPICS


def _is_topic_prompt(prompt: str) -> bool:
    return prompt.startswith("Generate")


def _orchestrator(client, tmp_path: Path, sleep, retries: int = 0) -> ContentOrchestrator:
    return ContentOrchestrator(
        client,
        cache=EntryCache(tmp_path / "web3Blog.json"),
        requester=RetryingRequester(retries=retries, delay=10.0, sleep=sleep),
        request_delay=30.0,
        sleep=sleep,
    )


def test_run_builds_one_entry_per_topic_in_order(scripted_client, response, sleep, tmp_path: Path) -> None:
    def handler(prompt: str) -> httpx.Response:
        if _is_topic_prompt(prompt):
            return response(200, text="Gas fees\nWallets\nDAOs")
        return response(200, text="Plain explanation.\n\nHere's a story: Alice sends Bob a coin.")

    client = scripted_client(handler)
    orchestrator = _orchestrator(client, tmp_path, sleep)
    progress: list[tuple[int, int, str]] = []
    seen: list[BlogEntry] = []

    entries = asyncio.run(
        orchestrator.run(3, progress_cb=lambda c, t, topic: progress.append((c, t, topic)), entry_cb=seen.append)
    )

    assert [e.topic for e in entries] == ["Gas fees", "Wallets", "DAOs"]
    assert all(e.content == "Plain explanation." for e in entries)
    assert all(e.story == "Alice sends Bob a coin." for e in entries)
    assert progress == [(1, 3, "Gas fees"), (2, 3, "Wallets"), (3, 3, "DAOs")]
    assert seen == entries
    assert len({e.id for e in entries}) == 3
    # One pause between each pair of topics, none after the last.
    assert sleep.calls == [30.0, 30.0]
    assert orchestrator.cache.load() == entries


def test_content_prompt_uses_cleaned_topic(scripted_client, response, sleep, tmp_path: Path) -> None:
    def handler(prompt: str) -> httpx.Response:
        if _is_topic_prompt(prompt):
            return response(200, text="**Bold topic**")
        return response(200, text="Body")

    client = scripted_client(handler)
    entries = asyncio.run(_orchestrator(client, tmp_path, sleep).run(1))

    assert client.prompts[1] == build_content_prompt("Bold topic")
    assert entries[0].topic == "**Bold topic**"


def test_failed_fetches_become_fallback_entries(scripted_client, response, sleep, tmp_path: Path) -> None:
    def handler(prompt: str) -> httpx.Response:
        if _is_topic_prompt(prompt):
            return response(200, text="One\nTwo")
        return response(429, json={"error": "rate limited"})

    client = scripted_client(handler)
    entries = asyncio.run(_orchestrator(client, tmp_path, sleep, retries=1).run(5))

    assert [e.topic for e in entries] == ["One", "Two"]
    assert all(e.content == FALLBACK_CONTENT and e.story == FALLBACK_STORY for e in entries)
    # Retry delay per topic, plus the pause between the two topics.
    assert sleep.calls == [10.0, 30.0, 10.0]


def test_every_request_failing_still_yields_full_batch(scripted_client, sleep, tmp_path: Path) -> None:
    calls = {"n": 0}

    def handler(prompt: str) -> httpx.Response:
        calls["n"] += 1
        if _is_topic_prompt(prompt):
            return httpx.Response(503, request=httpx.Request("POST", "https://llm.test"))
        raise httpx.ReadTimeout("slow upstream")

    client = scripted_client(handler)
    entries = asyncio.run(_orchestrator(client, tmp_path, sleep, retries=2).run(5))

    assert [e.topic for e in entries] == list(FALLBACK_TOPICS)
    assert all(e.content == FALLBACK_CONTENT for e in entries)
    assert calls["n"] == 1 + 5 * 3


def test_malformed_payload_gives_empty_content(scripted_client, response, sleep, tmp_path: Path) -> None:
    def handler(prompt: str) -> httpx.Response:
        if _is_topic_prompt(prompt):
            return response(200, text="Only topic")
        return response(200, json={"choices": [{"message": {}}]})

    entries = asyncio.run(_orchestrator(scripted_client(handler), tmp_path, sleep).run(1))

    assert entries[0].content == ""
    assert entries[0].story == STORY_PLACEHOLDER


def test_mock_client_end_to_end(sleep, tmp_path: Path) -> None:
    entries = asyncio.run(_orchestrator(MockCompletionClient(), tmp_path, sleep).run(5))

    assert len(entries) == 5
    assert [e.topic for e in entries] == list(MockCompletionClient.TOPICS)
    assert all(e.story.startswith("Imagine a neighbourhood notebook") for e in entries)


def test_ensure_entries_uses_cache_without_requests(scripted_client, sleep, tmp_path: Path) -> None:
    def handler(prompt: str) -> httpx.Response:
        raise AssertionError("cache hit must not reach the network")

    client = scripted_client(handler)
    orchestrator = _orchestrator(client, tmp_path, sleep)
    cached = [BlogEntry.create(topic="Cached", content="From disk.", story="Old story.")]
    orchestrator.cache.save(cached)

    state = asyncio.run(orchestrator.ensure_entries(GenerationState()))

    assert state.entries == cached
    assert not state.loading
    assert client.prompts == []


def test_ensure_entries_regenerates_on_miss(scripted_client, response, sleep, tmp_path: Path) -> None:
    def handler(prompt: str) -> httpx.Response:
        if _is_topic_prompt(prompt):
            return response(200, text="A\nB")
        return response(200, text="Text. To put this in perspective: story.")

    orchestrator = _orchestrator(scripted_client(handler), tmp_path, sleep)
    orchestrator.cache.path.write_text("corrupted", encoding="utf-8")
    state = GenerationState(error="stale")

    asyncio.run(orchestrator.ensure_entries(state, 2))

    assert [e.topic for e in state.entries] == ["A", "B"]
    assert state.progress.current == 2 and state.progress.total == 2
    assert state.error is None
    assert not state.loading
    assert orchestrator.cache.load() == state.entries


def test_ensure_entries_reports_batch_failure(scripted_client, sleep, tmp_path: Path) -> None:
    def handler(prompt: str) -> httpx.Response:
        raise httpx.ConnectError("offline")

    orchestrator = _orchestrator(scripted_client(handler), tmp_path, sleep, retries=1)

    state = asyncio.run(orchestrator.ensure_entries(GenerationState()))

    assert state.error == BATCH_ERROR
    assert state.entries == []
    assert not state.loading
    assert orchestrator.cache.load() == []


def test_ensure_entries_reports_expected_total_before_topics(scripted_client, response, sleep, tmp_path: Path) -> None:
    state = GenerationState()
    seen: list[tuple[int, int]] = []

    def handler(prompt: str) -> httpx.Response:
        if _is_topic_prompt(prompt):
            seen.append((state.progress.current, state.progress.total))
            return response(200, text="A\nB")
        return response(200, text="Body.")

    asyncio.run(_orchestrator(scripted_client(handler), tmp_path, sleep).ensure_entries(state, 4))

    assert seen == [(0, 4)]
    assert (state.progress.current, state.progress.total) == (2, 2)
