"""FastAPI application exposing the whisper core over JSON endpoints.

Every response uses the envelope {"success": bool, "message": str, "data": ...}.
Validation problems (including vector dimension mismatches) return 422,
missing or expired whispers 404, and an unavailable database 503.
"""

import logging
import os
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..core import WhisperCore
from ..errors import AanganError, NotFound, StorageFailure, ValidationError
from ..search.similarity import SearchResult
from .schemas import (
    EmbeddingUpsert,
    ReactionCreate,
    SearchRequest,
    WhisperCreate,
    envelope,
)

logger = logging.getLogger(__name__)


def _status_for(error: AanganError) -> int:
    if isinstance(error, ValidationError):
        return 422
    if isinstance(error, NotFound):
        return 404
    if isinstance(error, StorageFailure):
        return 503
    return 500


def _results(results: list[SearchResult]) -> list[dict]:
    return [
        {"whisper": result.whisper.to_dict(), "score": result.score}
        for result in results
    ]


def create_app(core: WhisperCore) -> FastAPI:
    """Create the HTTP application around a WhisperCore.

    The embedding queue worker (if any) runs for the lifetime of the app.
    """
    started_at = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if core.queue is not None:
            core.queue.start()
        try:
            yield
        finally:
            if core.queue is not None:
                await core.queue.stop()

    app = FastAPI(title="aangan", lifespan=lifespan)
    app.state.core = core

    @app.exception_handler(AanganError)
    async def handle_core_error(request: Request, exc: AanganError) -> JSONResponse:
        status = _status_for(exc)
        if status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            envelope(None, str(exc), success=False), status_code=status
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = exc.errors()
        message = errors[0]["msg"] if errors else "Invalid request"
        return JSONResponse(envelope(None, message, success=False), status_code=422)

    # SQLite calls block (up to busy_timeout on a held write lock), so every
    # route touching storage is a plain def and runs in the threadpool.

    @app.get("/status")
    def status() -> dict:
        data = core.stats()
        data["pid"] = os.getpid()
        data["uptime"] = round(time.monotonic() - started_at, 3)
        return envelope(data, "aangan is running")

    @app.post("/api/whispers", status_code=201)
    def create_whisper(body: WhisperCreate) -> dict:
        whisper = core.create_whisper(
            body.content,
            emotion=body.emotion,
            zone=body.zone,
            ttl=body.ttl_seconds,
            is_ai_generated=body.is_ai_generated,
        )
        return envelope(whisper.to_dict(), "Whisper created")

    @app.get("/api/whispers")
    def list_whispers(
        zone: str | None = None,
        emotion: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict:
        whispers = core.whispers.list_active_whispers(
            zone=zone, emotion=emotion, limit=limit, offset=offset
        )
        return envelope(
            {
                "whispers": [whisper.to_dict() for whisper in whispers],
                "limit": limit,
                "offset": offset,
            }
        )

    @app.get("/api/whispers/{whisper_id}")
    def get_whisper(whisper_id: int) -> dict:
        return envelope(core.whispers.get_whisper(whisper_id).to_dict())

    @app.delete("/api/whispers/{whisper_id}")
    def delete_whisper(whisper_id: int) -> dict:
        deleted = core.whispers.delete_whisper(whisper_id)
        return envelope(
            {"deleted": deleted},
            "Whisper deleted" if deleted else "Whisper already gone",
        )

    @app.post("/api/whispers/{whisper_id}/reactions", status_code=201)
    def add_reaction(whisper_id: int, body: ReactionCreate) -> dict:
        reaction = core.whispers.add_reaction(whisper_id, body.guest_id, body.emoji)
        counts = core.whispers.reaction_counts(whisper_id)
        return envelope(
            {"reaction": reaction.to_dict(), "reactions": counts}, "Reaction added"
        )

    @app.get("/api/whispers/{whisper_id}/reactions")
    def get_reactions(whisper_id: int, guest_id: str | None = None) -> dict:
        data = {
            "whisper_id": whisper_id,
            "reactions": core.whispers.reaction_counts(whisper_id),
        }
        if guest_id is not None:
            data["has_reacted"] = core.whispers.has_reacted(whisper_id, guest_id)
        return envelope(data)

    @app.delete("/api/whispers/{whisper_id}/reactions")
    def remove_reactions(whisper_id: int, guest_id: str) -> dict:
        removed = core.whispers.remove_reactions(whisper_id, guest_id)
        counts = core.whispers.reaction_counts(whisper_id)
        return envelope(
            {"removed": removed, "reactions": counts},
            "Reactions removed" if removed else "No reactions to remove",
        )

    @app.get("/api/guests/{guest_id}/reactions")
    def guest_reactions(guest_id: str) -> dict:
        reactions = core.whispers.list_guest_reactions(guest_id)
        return envelope(
            {
                "guest_id": guest_id,
                "reactions": [reaction.to_dict() for reaction in reactions],
            }
        )

    @app.put("/api/whispers/{whisper_id}/embedding")
    def upsert_embedding(whisper_id: int, body: EmbeddingUpsert) -> dict:
        core.embeddings.upsert(whisper_id, body.vector)
        return envelope({"whisper_id": whisper_id}, "Embedding stored")

    @app.get("/api/whispers/{whisper_id}/embedding")
    def get_embedding(whisper_id: int) -> dict:
        vector = core.embeddings.get(whisper_id)
        return envelope({"whisper_id": whisper_id, "vector": vector.tolist()})

    @app.get("/api/whispers/{whisper_id}/related")
    def related(whisper_id: int, top_k: int = 5) -> dict:
        results = core.search.related(whisper_id, top_k)
        return envelope({"results": _results(results)})

    @app.post("/api/search", response_model=None)
    def search(body: SearchRequest) -> JSONResponse | dict:
        if body.vector is not None:
            results = core.search.query(
                body.vector, body.top_k, zone=body.zone, emotion=body.emotion
            )
        elif core.search.embedder is None:
            return JSONResponse(
                envelope(None, "Text search is not available", success=False),
                status_code=503,
            )
        else:
            results = core.search.query_text(
                body.text, body.top_k, zone=body.zone, emotion=body.emotion
            )
        return envelope({"results": _results(results)})

    return app
