from __future__ import annotations

from .errors import CompletionError
from .llm import CompletionClient, response_body
from .log import get_logger
from .retry import RetryingRequester

logger = get_logger(__name__)

FALLBACK_TOPICS: tuple[str, ...] = (
    "Zero Knowledge Proofs in Modern Blockchain Applications",
    "The Impact of Layer 2 Solutions on Scalability",
    "Web3 Security Best Practices",
    "DeFi Innovation and Market Trends",
    "Blockchain Interoperability Standards",
)


def build_topics_prompt(count: int) -> str:
    return (
        f"Generate {count} unique Web3 topics like interview questions, concepts, standards, "
        "latest news, development, etc., which should be related to blockchain. "
        "Return as a list with each topic on a new line."
    )


def _clean_topic_line(line: str) -> str:
    cleaned = line.strip()
    if cleaned.endswith(","):
        cleaned = cleaned[:-1].rstrip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in {'"', "'"}:
        cleaned = cleaned[1:-1].strip()
    return cleaned


def parse_topics(text: str, count: int) -> list[str]:
    topics: list[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("[") or stripped.startswith("]"):
            continue
        topic = _clean_topic_line(stripped)
        if topic:
            topics.append(topic)
    return topics[: max(count, 0)]


async def generate_topics(
    client: CompletionClient,
    requester: RetryingRequester,
    count: int = 5,
) -> list[str]:
    """Ask the completion service for ``count`` topics, falling back to the built-in list.

    Transport failures that survive the retries propagate to the caller.
    """
    prompt = build_topics_prompt(count)
    response = await requester.send(lambda: client.request(prompt))
    if response.is_success:
        try:
            text = client.to_result(response).text
        except CompletionError:
            text = ""
    else:
        logger.warning(
            "Topic request failed with HTTP %s: %s", response.status_code, response_body(response)
        )
        text = ""

    topics = parse_topics(text, count)
    if not topics:
        logger.warning("No usable topics in completion, using the built-in list")
        return list(FALLBACK_TOPICS[: max(count, 0)])
    return topics
