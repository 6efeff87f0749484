from __future__ import annotations

from typing import Any, Callable

import httpx
import pytest

from insights.llm import CompletionClient, chat_payload


class ScriptedClient(CompletionClient):
    """Completion client whose responses come from a handler instead of the network."""

    name = "scripted"

    def __init__(self, handler: Callable[[str], httpx.Response]) -> None:
        self.handler = handler
        self.prompts: list[str] = []

    async def request(self, prompt: str) -> httpx.Response:
        self.prompts.append(prompt)
        return self.handler(prompt)


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def make_response(status_code: int = 200, text: str | None = None, json: Any = None) -> httpx.Response:
    if text is not None:
        json = chat_payload(text)
    return httpx.Response(
        status_code,
        json=json if json is not None else {},
        request=httpx.Request("POST", "https://llm.test/chat/completions"),
    )


@pytest.fixture
def scripted_client() -> type[ScriptedClient]:
    return ScriptedClient


@pytest.fixture
def response() -> Callable[..., httpx.Response]:
    return make_response


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()
