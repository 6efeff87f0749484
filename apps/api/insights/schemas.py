from __future__ import annotations

import time
from typing import Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def now_ms() -> int:
    return int(time.time() * 1000)


def new_entry_id(timestamp: int) -> str:
    return f"blog-{timestamp}-{uuid4().hex[:12]}"


class BlogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    topic: str
    content: str
    story: str
    timestamp: int

    @classmethod
    def create(cls, topic: str, content: str, story: str) -> "BlogEntry":
        timestamp = now_ms()
        return cls(
            id=new_entry_id(timestamp),
            topic=topic,
            content=content,
            story=story,
            timestamp=timestamp,
        )


class Progress(BaseModel):
    current: int = 0
    total: int = 0


class ParsedContent(BaseModel):
    content: str
    story: str


class Block(BaseModel):
    kind: Literal["title", "heading", "paragraph"]
    text: str


class QueryRequest(BaseModel):
    query: str


class GenerateRequest(BaseModel):
    topic_count: Optional[int] = Field(default=None, ge=1, le=20)


class EntryView(BaseModel):
    id: str
    topic: str
    timestamp: int
    content: str
    story: str
    content_blocks: list[Block]
    story_blocks: list[Block]


class GenerationStatus(BaseModel):
    entries: list[EntryView]
    progress: Progress
    loading: bool
    error: Optional[str] = None
