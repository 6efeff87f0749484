from __future__ import annotations

import re
from typing import Iterable, Optional

from .schemas import Block, ParsedContent

STORY_MARKERS: tuple[str, ...] = (
    "Let me share a story:",
    "Here's a story:",
    "To illustrate this:",
    "As an analogy:",
    "To put this in perspective:",
)

STORY_PLACEHOLDER = "Loading story..."

_EMPHASIS = re.compile(r"\*+")
# Whitespace other than newlines, so each line is handled on its own.
_HEADING_PREFIX = re.compile(r"^[^\S\n]*(?:#{1,3}[^\S\n]+)+", re.MULTILINE)


def _marker_pattern(markers: Iterable[str]) -> Optional[re.Pattern[str]]:
    """Alternation of the non-empty markers, or None when there is nothing to look for."""
    alternatives = "|".join(re.escape(marker) for marker in markers if marker)
    if not alternatives:
        return None
    return re.compile(alternatives, re.IGNORECASE)


_DEFAULT_PATTERN = _marker_pattern(STORY_MARKERS)


def parse_content(raw_text: str, markers: Optional[Iterable[str]] = None) -> ParsedContent:
    """Split a completion into the explanation and the story that follows the first marker."""
    pattern = _DEFAULT_PATTERN if markers is None else _marker_pattern(markers)
    match = pattern.search(raw_text or "") if pattern is not None else None
    if match is None:
        return ParsedContent(content=(raw_text or "").strip(), story=STORY_PLACEHOLDER)
    content = raw_text[: match.start()].strip()
    story = raw_text[match.end():].strip()
    return ParsedContent(content=content, story=story or STORY_PLACEHOLDER)


def clean_formatting(text: str) -> str:
    text = _EMPHASIS.sub("", text)
    text = _HEADING_PREFIX.sub("", text)
    return text.strip()


def format_blocks(text: str) -> list[Block]:
    """Split text on blank lines into title/heading/paragraph blocks with cleaned text."""
    blocks: list[Block] = []
    for paragraph in text.split("\n\n"):
        stripped = paragraph.strip()
        if not stripped:
            continue
        if stripped.startswith("# "):
            kind = "title"
        elif stripped.startswith("## ") or stripped.startswith("### "):
            kind = "heading"
        else:
            kind = "paragraph"
        cleaned = clean_formatting(stripped)
        if cleaned:
            blocks.append(Block(kind=kind, text=cleaned))
    return blocks
