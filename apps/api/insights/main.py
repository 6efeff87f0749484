from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .cache import EntryCache
from .config import settings
from .llm import get_llm_client, get_upstream_client, response_body
from .log import configure_logging, get_logger
from .orchestrator import BATCH_ERROR, ContentOrchestrator, GenerationState
from .parser import format_blocks
from .retry import TRANSPORT_ERRORS
from .schemas import BlogEntry, EntryView, GenerateRequest, GenerationStatus, Progress, QueryRequest

logger = get_logger(__name__)

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

router = APIRouter(prefix="/api")

state = GenerationState()
cache = EntryCache()
_generation_task: Optional[asyncio.Task] = None


@app.on_event("startup")
def _startup() -> None:
    configure_logging()


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.post("/web3data")
async def web3data(payload: QueryRequest) -> JSONResponse:
    client = get_upstream_client()
    try:
        response = await client.request(payload.query)
    except TRANSPORT_ERRORS as exc:
        logger.error("Upstream request failed: %s", exc)
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})
    finally:
        await client.aclose()

    if not response.is_success:
        body = response_body(response)
        logger.warning("Upstream returned HTTP %s", response.status_code)
        return JSONResponse(
            status_code=response.status_code,
            content={"error": body or "Internal Server Error"},
        )
    try:
        data = response.json()
    except ValueError:
        logger.error("Upstream returned a non-JSON body")
        return JSONResponse(status_code=500, content={"error": "Invalid upstream response"})
    return JSONResponse(content=data)


def _entry_view(entry: BlogEntry) -> EntryView:
    return EntryView(
        id=entry.id,
        topic=entry.topic,
        timestamp=entry.timestamp,
        content=entry.content,
        story=entry.story,
        content_blocks=format_blocks(entry.content),
        story_blocks=format_blocks(entry.story),
    )


def _status() -> GenerationStatus:
    return GenerationStatus(
        entries=[_entry_view(entry) for entry in state.entries],
        progress=state.progress,
        loading=state.loading,
        error=state.error,
    )


def _generation_running() -> bool:
    return _generation_task is not None and not _generation_task.done()


async def _run_generation(topic_count: Optional[int]) -> None:
    async with get_llm_client() as client:
        orchestrator = ContentOrchestrator(client, cache)
        await orchestrator.ensure_entries(state, topic_count)


def _on_generation_done(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background generation crashed", exc_info=exc)
        state.error = BATCH_ERROR
        state.loading = False


def _start_generation(topic_count: Optional[int] = None) -> None:
    global _generation_task
    state.loading = True
    state.progress = Progress(current=0, total=settings.topic_count if topic_count is None else topic_count)
    _generation_task = asyncio.create_task(_run_generation(topic_count))
    _generation_task.add_done_callback(_on_generation_done)


@router.get("/entries", response_model=GenerationStatus)
async def list_entries() -> GenerationStatus:
    if not _generation_running():
        cached = cache.load()
        if cached:
            state.entries = cached
            state.progress = Progress(current=len(cached), total=len(cached))
            state.loading = False
            state.error = None
        elif state.error is None:
            state.reset()
            _start_generation()
    return _status()


@router.post("/entries/generate", response_model=GenerationStatus, status_code=202)
async def generate_entries(payload: Optional[GenerateRequest] = None) -> GenerationStatus:
    payload = payload or GenerateRequest()
    if _generation_running():
        raise HTTPException(status_code=409, detail="Generation already in progress")
    cache.clear()
    state.reset()
    _start_generation(payload.topic_count)
    return _status()


@router.delete("/entries")
async def delete_entries() -> dict[str, str]:
    if _generation_running():
        raise HTTPException(status_code=409, detail="Generation already in progress")
    cache.clear()
    state.reset()
    return {"status": "ok"}


app.include_router(router)
