from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Optional

from .cache import EntryCache
from .config import settings
from .errors import CompletionError, InsightsError
from .llm import CompletionClient
from .log import get_logger
from .parser import clean_formatting, parse_content
from .retry import TRANSPORT_ERRORS, RetryingRequester, Sleep
from .schemas import BlogEntry, Progress
from .topics import generate_topics

logger = get_logger(__name__)

FALLBACK_CONTENT = "We're experiencing high traffic. Please check back in a few minutes."
FALLBACK_STORY = "Content temporarily unavailable."
BATCH_ERROR = "Unable to load all content. Please try again later."

FETCH_ERRORS: tuple[type[Exception], ...] = (CompletionError, *TRANSPORT_ERRORS)
BATCH_ERRORS: tuple[type[Exception], ...] = (InsightsError, OSError, *TRANSPORT_ERRORS)

ProgressCallback = Callable[[int, int, str], None]
EntryCallback = Callable[[BlogEntry], None]


def build_content_prompt(topic: str) -> str:
    return (
        f"Write an engaging blog post about {topic} in Web3 and blockchain technology.\n\n"
        "First section: A clear, conversational explanation for beginners.\n"
        "Focus on real impact and importance.\n\n"
        "Second section: A relatable real-world story or analogy that makes "
        "this concept memorable. It must start with exactly one of these phrases: "
        "Let me share a story: | Here's a story: | To illustrate this: | "
        "As an analogy: | To put this in perspective:\n\n"
        "Write naturally, like explaining to a friend."
    )


def fallback_entry(topic: str) -> BlogEntry:
    return BlogEntry.create(topic=topic, content=FALLBACK_CONTENT, story=FALLBACK_STORY)


@dataclass
class GenerationState:
    """What the presentation layer reads while a run is in flight."""

    entries: list[BlogEntry] = field(default_factory=list)
    progress: Progress = field(default_factory=Progress)
    loading: bool = False
    error: Optional[str] = None

    def reset(self) -> None:
        self.entries = []
        self.progress = Progress()
        self.error = None


class ContentOrchestrator:
    def __init__(
        self,
        client: CompletionClient,
        cache: Optional[EntryCache] = None,
        requester: Optional[RetryingRequester] = None,
        request_delay: Optional[float] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.client = client
        self.cache = cache or EntryCache()
        self.requester = requester or RetryingRequester(sleep=sleep)
        self.request_delay = settings.request_delay_seconds if request_delay is None else request_delay
        self._sleep = sleep

    async def fetch_entry(self, topic: str) -> BlogEntry:
        prompt = build_content_prompt(clean_formatting(topic))
        try:
            response = await self.requester.send(lambda: self.client.request(prompt))
            result = self.client.to_result(response)
        except FETCH_ERRORS as exc:
            logger.warning("Content for %r unavailable: %s", topic, exc)
            return fallback_entry(topic)
        parsed = parse_content(result.text)
        return BlogEntry.create(topic=topic, content=parsed.content, story=parsed.story)

    async def run(
        self,
        topic_count: Optional[int] = None,
        progress_cb: Optional[ProgressCallback] = None,
        entry_cb: Optional[EntryCallback] = None,
    ) -> list[BlogEntry]:
        count = settings.topic_count if topic_count is None else topic_count
        entries: list[BlogEntry] = []
        topics = await generate_topics(self.client, self.requester, count)
        total = len(topics)
        logger.info("Generating %d entries", total)

        for idx, topic in enumerate(topics):
            if progress_cb:
                progress_cb(idx + 1, total, topic)
            entry = await self.fetch_entry(topic)
            entries.append(entry)
            if entry_cb:
                entry_cb(entry)
            logger.info("Entry %d/%d ready: %s", idx + 1, total, topic)
            if idx < total - 1 and self.request_delay > 0:
                await self._sleep(self.request_delay)

        self.cache.save(entries)
        return entries

    async def ensure_entries(
        self, state: GenerationState, topic_count: Optional[int] = None
    ) -> GenerationState:
        """Serve cached entries when present, otherwise regenerate everything from scratch."""
        cached = self.cache.load()
        if cached:
            state.entries = cached
            state.progress = Progress(current=len(cached), total=len(cached))
            state.error = None
            state.loading = False
            return state

        self.cache.clear()
        state.reset()
        # Expected total until the topic list arrives and the first callback fires.
        state.progress = Progress(
            current=0, total=settings.topic_count if topic_count is None else topic_count
        )
        state.loading = True

        def on_progress(current: int, total: int, topic: str) -> None:
            state.progress = Progress(current=current, total=total)

        try:
            await self.run(topic_count, progress_cb=on_progress, entry_cb=state.entries.append)
        except BATCH_ERRORS as exc:
            logger.error("Content generation failed: %s: %s", type(exc).__name__, exc)
            state.error = BATCH_ERROR
        finally:
            state.loading = False
        return state
