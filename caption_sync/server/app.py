"""FastAPI application exposing caption preparation and bubble captions.

WHY: The recording app and the video renderer both need the same layouts
and captions, and neither should carry its own copy of the engine. An
HTTP API lets them submit an STT payload once and receive the prepared
layout (for the scrolling transcript) or poll bubble captions for a clip.
FastAPI provides request validation and OpenAPI docs.

HOW: A single FastAPI app with endpoints grouped by tags:
  POST   /layouts                 prepare (or load) a clip layout
  DELETE /layouts/cache           remove all cached layouts
  POST   /sessions                open a caption session for a clip
  GET    /sessions/{id}/caption   caption at an absolute time
  DELETE /sessions/{id}           close a session
  GET    /health                  liveness plus a few counters
Layout preparation runs in a worker thread so the event loop is never
blocked by measurement.

RULES:
- Error responses use the ErrorResponse schema
- Invalid clip windows are 422, unknown sessions are 404, a full session
  store is 429
- The session store and layout cache are module singletons; tests replace
  them
- Expired sessions are swept every 5 minutes
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import Response

from caption_sync import __version__
from caption_sync.core.cache import FileCacheStore, LayoutCache
from caption_sync.core.captions import CaptionSession
from caption_sync.core.ir import ClipWindow
from caption_sync.core.pipeline import ClipRequest, prepare_captions
from caption_sync.server.models import (
    CacheClearedResponse,
    CaptionResponse,
    ClipFields,
    ErrorResponse,
    HealthResponse,
    LayoutRequest,
    LayoutResponse,
    SessionCreatedResponse,
    SessionRequest,
)
from caption_sync.server.sessions import SessionStore

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

session_store = SessionStore()
layout_cache = LayoutCache(FileCacheStore())


async def _periodic_cleanup() -> None:
    """Run session cleanup every 5 minutes."""
    while True:
        await asyncio.sleep(300)
        session_store.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start periodic cleanup on startup, cancel on shutdown."""
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="Caption Sync API",
    description=(
        "Prepare time-synchronized transcript layouts for podcast clips and "
        "serve bubble captions. Submit an STT payload with its clip window "
        "and time base; receive line layout plus a time-to-scroll-offset map."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _clip_window(body: ClipFields) -> ClipWindow:
    """Build the clip window or raise 422."""
    try:
        return ClipWindow(body.clip_start_ms, body.clip_end_ms)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


# ---------------------------------------------------------------------------
# Endpoints: Layouts
# ---------------------------------------------------------------------------


@app.post(
    "/layouts",
    response_model=LayoutResponse,
    tags=["layouts"],
    summary="Prepare a clip layout",
    description=(
        "Normalize the STT payload into clip-relative words, segment "
        "paragraphs, wrap lines and build the time map. Served from the "
        "layout cache when the same clip and theme were prepared before."
    ),
    responses={
        422: {"model": ErrorResponse, "description": "Invalid clip window or request body"},
    },
)
async def create_layout(body: LayoutRequest) -> LayoutResponse:
    clip = _clip_window(body)
    theme = body.theme.model_dump(exclude_none=True) if body.theme else None

    prepared = await asyncio.to_thread(
        prepare_captions,
        ClipRequest(body.episode_id, clip),
        body.payload,
        theme,
        time_base=body.time_base,
        cache=layout_cache,
        policy=body.policy,
        strategy=body.strategy,
        container_width=body.container_width,
    )
    return LayoutResponse(
        cache_key=prepared.cache_key,
        cached=prepared.cached,
        theme=prepared.theme.to_dict(),
        layout=prepared.layout.to_dict(),
    )


@app.delete(
    "/layouts/cache",
    response_model=CacheClearedResponse,
    tags=["layouts"],
    summary="Clear the layout cache",
)
async def clear_layout_cache() -> CacheClearedResponse:
    return CacheClearedResponse(removed=layout_cache.clear_cache())


# ---------------------------------------------------------------------------
# Endpoints: Caption sessions
# ---------------------------------------------------------------------------


@app.post(
    "/sessions",
    response_model=SessionCreatedResponse,
    status_code=201,
    tags=["sessions"],
    summary="Open a caption session",
    description="Create a fresh bubble-caption session for one clip.",
    responses={
        422: {"model": ErrorResponse, "description": "Invalid clip window or request body"},
        429: {"model": ErrorResponse, "description": "Too many open sessions"},
    },
)
async def create_session(body: SessionRequest) -> SessionCreatedResponse:
    clip = _clip_window(body)
    session = CaptionSession.from_response(body.payload, clip, time_base=body.time_base)
    try:
        stored = session_store.create_session(body.episode_id, session)
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    return SessionCreatedResponse(
        id=stored.id,
        episode_id=stored.episode_id,
        utterance_count=len(session.utterances),
    )


@app.get(
    "/sessions/{session_id}/caption",
    response_model=CaptionResponse,
    tags=["sessions"],
    summary="Caption at a point in time",
    description=(
        "Return the caption for the absolute source time t (ms). Blank "
        "outside the clip; is_active is false for the nearest-utterance fallback."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def get_caption(
    session_id: str,
    t: float = Query(description="Absolute source time (ms)."),
) -> CaptionResponse:
    stored = session_store.get_session(session_id)
    if stored is None:
        raise HTTPException(status_code=404, detail="Session not found: {}".format(session_id))
    caption = stored.session.current_caption(t)
    return CaptionResponse(
        text=caption.text,
        speaker=caption.speaker,
        is_active=caption.is_active,
        time_ms=t,
    )


@app.delete(
    "/sessions/{session_id}",
    status_code=204,
    tags=["sessions"],
    summary="Close a caption session",
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
    },
)
async def delete_session(session_id: str) -> Response:
    if not session_store.delete_session(session_id):
        raise HTTPException(status_code=404, detail="Session not found: {}".format(session_id))
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness and readiness check for load balancers and orchestrators.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=__version__,
        sessions=len(session_store),
        cached_layouts=layout_cache.cache_size(),
    )


def run_api() -> None:
    """Entry point for the caption-sync-api console script."""
    import uvicorn

    from caption_sync import config

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host=config.SERVER_HOST, port=config.SERVER_PORT)
