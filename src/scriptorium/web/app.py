"""FastAPI application serving documents over HTTP."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, List

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from scriptorium.config import AppConfig
from scriptorium.errors import DocumentError, ErrorKind
from scriptorium.host import DocumentHost

LOGGER = logging.getLogger(__name__)


class DefrostPayload(BaseModel):
    concurrency: int | None = Field(default=None, ge=1)
    blocking: bool = False


class DefrostFailureModel(BaseModel):
    name: str
    kind: str
    message: str


class DefrostStatus(BaseModel):
    done: bool
    interrupted: bool
    total: int
    completed: int
    built: List[str]
    failures: List[DefrostFailureModel]


def _error_status(error: DocumentError) -> int:
    return 404 if error.kind is ErrorKind.NOT_FOUND else 500


def _defrost_status(host: DocumentHost) -> DefrostStatus:
    defroster = host.defroster()
    result = defroster.result()
    failures = []
    for failure in result.failures:
        error = failure.error
        kind = error.kind.value if isinstance(error, DocumentError) else type(error).__name__
        failures.append(DefrostFailureModel(name=failure.name, kind=kind, message=str(error)))
    return DefrostStatus(
        done=defroster.is_done(),
        interrupted=result.interrupted,
        total=result.total,
        completed=result.completed,
        built=sorted(result.built),
        failures=sorted(failures, key=lambda item: item.name),
    )


def create_app(host: DocumentHost | None = None) -> FastAPI:
    """Build the application around ``host`` (by default from ``AppConfig()``)."""
    if host is None:
        host = DocumentHost.from_config(AppConfig(), Path.cwd())

    app = FastAPI(title="Scriptorium", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.host = host

    @app.on_event("startup")
    async def startup_event() -> None:
        logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")

    @app.get("/documents")
    async def list_documents() -> dict[str, Any]:
        """List documents known to the source, with their cache state."""
        names = await asyncio.to_thread(host.list_names)
        stats = host.cache.stats()
        return {
            "documents": names,
            "cached": host.cache.names(),
            "stats": {"hits": stats.hits, "misses": stats.misses, "size": stats.size},
        }

    @app.get("/documents/{name:path}", response_class=PlainTextResponse)
    async def run_document(name: str) -> PlainTextResponse:
        """Run a document and return its output as plain text."""
        try:
            context = await asyncio.to_thread(host.execute, name)
        except DocumentError as error:
            if error.kind is not ErrorKind.NOT_FOUND:
                LOGGER.error("Document %s failed: %s", name, error)
            raise HTTPException(status_code=_error_status(error), detail=error.to_dict()) from error
        return PlainTextResponse(context.output)

    @app.post("/defrost")
    async def start_defrost(payload: DefrostPayload) -> DefrostStatus:
        defroster = host.defroster()
        if not defroster.is_done():
            raise HTTPException(status_code=409, detail="A defrost batch is already running")
        try:
            if payload.blocking:
                await asyncio.to_thread(host.defrost, payload.concurrency, blocking=True)
            else:
                host.defrost(payload.concurrency)
        except RuntimeError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        return _defrost_status(host)

    @app.get("/defrost")
    async def defrost_status() -> DefrostStatus:
        return _defrost_status(host)

    @app.delete("/cache")
    async def clear_cache() -> dict[str, str]:
        host.clear()
        return {"status": "ok"}

    return app


app = create_app()
