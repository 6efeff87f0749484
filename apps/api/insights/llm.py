from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from .config import settings
from .errors import CompletionError, CompletionTransportError
from .log import get_logger

logger = get_logger(__name__)


def chat_payload(text: str, model: str = "mock") -> dict[str, Any]:
    """Build a chat-completion shaped payload around ``text``."""
    return {
        "object": "chat.completion",
        "model": model,
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": text},
                "finish_reason": "stop",
            }
        ],
    }


def extract_text(payload: Any) -> str:
    """Return ``choices[0].message.content`` or an empty string when the shape differs."""
    if not isinstance(payload, dict):
        return ""
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return ""
    first = choices[0]
    if not isinstance(first, dict):
        return ""
    message = first.get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    return content if isinstance(content, str) else ""


def response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


@dataclass
class CompletionResult:
    payload: Any
    status_code: int = 200

    @property
    def text(self) -> str:
        return extract_text(self.payload)


class CompletionClient:
    name: str = "base"

    async def request(self, prompt: str) -> httpx.Response:
        """Issue exactly one outbound call and return the HTTP response as-is."""
        raise NotImplementedError

    def to_result(self, response: httpx.Response) -> CompletionResult:
        if not response.is_success:
            raise CompletionError(
                f"{self.name} completion failed with HTTP {response.status_code}",
                status_code=response.status_code,
                body=response_body(response),
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise CompletionError(
                f"{self.name} returned a non-JSON body",
                status_code=response.status_code,
                body=response.text,
            ) from exc
        return CompletionResult(payload=payload, status_code=response.status_code)

    async def complete(self, prompt: str) -> CompletionResult:
        return self.to_result(await self.request(prompt))

    async def aclose(self) -> None:
        return None

    async def __aenter__(self) -> "CompletionClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()


class MockCompletionClient(CompletionClient):
    name = "mock"

    TOPICS = (
        "What is a Merkle tree and why do blockchains use it?",
        "Proof of Stake versus Proof of Work",
        "How ERC-20 tokens work",
        "Account abstraction (ERC-4337) explained",
        "Rollups: optimistic vs zero-knowledge",
    )

    def __init__(self) -> None:
        self.prompts: list[str] = []

    def _text_for(self, prompt: str) -> str:
        if prompt.lstrip().lower().startswith("generate"):
            return "\n".join(self.TOPICS)
        match = re.search(r"blog post about (.+?) in Web3", prompt)
        topic = match.group(1).strip() if match else "this concept"
        return (
            f"# {topic}\n\n"
            f"{topic} is one of the building blocks of **Web3**. "
            "This is a mock explanation generated for local development.\n\n"
            "## Why it matters\n\n"
            "It changes who gets to verify and own the data.\n\n"
            "Let me share a story:\n\n"
            "Imagine a neighbourhood notebook that everyone can read but nobody can erase."
        )

    async def request(self, prompt: str) -> httpx.Response:
        self.prompts.append(prompt)
        return httpx.Response(
            200,
            json=chat_payload(self._text_for(prompt)),
            request=httpx.Request("POST", "https://mock.local/chat/completions"),
        )


class OpenAIClient(CompletionClient):
    name = "openai"

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None) -> None:
        from openai import AsyncOpenAI
        import certifi

        if http_client is None:
            timeout = httpx.Timeout(settings.openai_timeout_seconds, connect=10.0)
            http_client = httpx.AsyncClient(
                timeout=timeout,
                trust_env=False,
                verify=certifi.where(),
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            )
        # Credentials are not checked here; a bad key comes back as an upstream 401.
        self.client = AsyncOpenAI(
            api_key=settings.openai_api_key or "",
            base_url=settings.openai_base_url,
            max_retries=0,
            http_client=http_client,
        )

    async def request(self, prompt: str) -> httpx.Response:
        from openai import APIConnectionError, APIStatusError

        try:
            raw = await self.client.chat.completions.with_raw_response.create(
                model=settings.openai_model,
                messages=[{"role": "user", "content": prompt}],
            )
        except APIStatusError as exc:
            logger.warning("Upstream completion returned HTTP %s", exc.status_code)
            return exc.response
        except APIConnectionError as exc:
            raise CompletionTransportError(
                f"OpenAI request failed: {type(exc).__name__}: {exc}"
            ) from exc
        return raw.http_response

    async def aclose(self) -> None:
        await self.client.close()


class ProxyCompletionClient(CompletionClient):
    """Talks to a running ``/api/web3data`` proxy instead of the provider directly."""

    name = "proxy"

    def __init__(self, url: Optional[str] = None, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self.url = url or settings.proxy_url
        self.client = http_client or httpx.AsyncClient(timeout=settings.http_timeout)

    async def request(self, prompt: str) -> httpx.Response:
        try:
            return await self.client.post(self.url, json={"query": prompt})
        except httpx.TransportError as exc:
            raise CompletionTransportError(
                f"Proxy request failed: {type(exc).__name__}: {exc}"
            ) from exc

    async def aclose(self) -> None:
        await self.client.aclose()


def _is_production() -> bool:
    return settings.environment.lower().strip() in {"production", "prod"}


def get_upstream_client() -> CompletionClient:
    """Client used by the proxy route: the real provider when configured, else the mock."""
    provider = settings.llm_provider.lower().strip()
    if _is_production() or provider == "openai" or settings.openai_api_key:
        return OpenAIClient()
    return MockCompletionClient()


def get_llm_client() -> CompletionClient:
    provider = settings.llm_provider.lower().strip()
    if provider == "proxy":
        return ProxyCompletionClient()
    return get_upstream_client()
