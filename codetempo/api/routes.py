"""REST API for editor integrations to push events into a session."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from codetempo.models.success import CelebrationType
from codetempo.services.monitors import (
    DiagnosticCounts,
    DocumentSnapshot,
    TerminalEventType,
)
from codetempo.services.session import CodeTempoSession

log = logging.getLogger(__name__)


class TaskEvent(BaseModel):
    name: str = Field(description="Task name, e.g. 'build'")
    command: Optional[str] = Field(default=None, description="Command line that was run")
    exit_code: int = Field(description="Process exit code")
    source: Optional[str] = Field(default=None, description="Task provider, e.g. 'npm'")


class TerminalEvent(BaseModel):
    message: str
    type: TerminalEventType = "info"
    command: Optional[str] = None
    exit_code: Optional[int] = None


class FileSystemEvent(BaseModel):
    path: str = Field(description="Path of the newly created file")


class CelebrateRequest(BaseModel):
    celebration_type: CelebrationType = "compilation_success"
    description: Optional[str] = None
    context: Optional[str] = None


def create_app(session: Optional[CodeTempoSession] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    A session is built from the environment when none is given; it is
    closed when the application shuts down.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await app.state.session.close()

    app = FastAPI(
        title="codetempo",
        description="Music generation driven by live coding activity",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.session = session or CodeTempoSession()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def get_session(request: Request) -> CodeTempoSession:
        return request.app.state.session

    @app.post("/api/events/document", status_code=202)
    async def document_changed(document: DocumentSnapshot, request: Request) -> dict:
        """Schedule a debounced analysis of the document."""
        task = get_session(request).document_changed(document)
        return {"scheduled": task is not None, "uri": document.uri}

    @app.post("/api/events/diagnostics", status_code=202)
    async def diagnostics_changed(counts: DiagnosticCounts, request: Request) -> dict:
        task = get_session(request).diagnostics_changed(counts)
        return {"scheduled": task is not None}

    @app.post("/api/events/task")
    async def task_finished(event: TaskEvent, request: Request) -> dict:
        session = get_session(request)
        await session.tasks.on_task_process_end(
            event.name, event.command, event.exit_code, event.source
        )
        return {"accepted": True}

    @app.post("/api/events/terminal")
    async def terminal_output(event: TerminalEvent, request: Request) -> dict:
        tags = await get_session(request).tasks.on_terminal_output(
            event.message, event.type, event.command, event.exit_code
        )
        return {"patterns": tags}

    @app.post("/api/events/filesystem")
    async def file_created(event: FileSystemEvent, request: Request) -> dict:
        forwarded = await get_session(request).tasks.on_file_created(event.path)
        return {"forwarded": forwarded}

    @app.post("/api/celebrate")
    async def celebrate(body: CelebrateRequest, request: Request) -> dict:
        session = get_session(request)
        celebration = await session.celebrate(
            body.celebration_type, body.description, body.context
        )
        if celebration is None:
            raise HTTPException(status_code=409, detail="Celebrations are disabled")
        return celebration.model_dump(mode="json")

    @app.post("/api/toggle")
    async def toggle(request: Request) -> dict:
        enabled = await get_session(request).toggle()
        return {"enabled": enabled}

    @app.post("/api/audio/mute")
    async def toggle_mute(request: Request) -> dict:
        muted = await get_session(request).player.toggle_mute()
        return {"muted": muted}

    @app.post("/api/audio/stop")
    async def stop_audio(request: Request) -> dict:
        await get_session(request).player.stop()
        return {"stopped": True}

    @app.get("/api/status")
    async def status(request: Request) -> dict:
        return get_session(request).status()

    @app.get("/api/health")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"status": "ok"}

    return app
