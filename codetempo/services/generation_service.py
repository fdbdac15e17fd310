from __future__ import annotations

import itertools
import logging
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from codetempo.models.generation import ClipMetadata, GenerationJob, JobStatus, TriggerType
from codetempo.models.music_request import MusicRequest

log = logging.getLogger(__name__)


class GenerationServiceError(Exception):
    """Raised by generation backends when a request cannot be served."""


@runtime_checkable
class GenerationService(Protocol):
    """Interface for remote music generation backends.

    ``submit`` starts a job and returns its first known state;
    ``fetch_status`` returns the job's current state. Both raise
    ``GenerationServiceError`` when the backend cannot answer.
    """

    async def submit(self, request: MusicRequest) -> GenerationJob: ...

    async def fetch_status(self, job_id: str) -> GenerationJob: ...


STUB_PROGRESSION: tuple[JobStatus, ...] = ("queued", "streaming", "streaming", "complete")


class StubGenerationService:
    """Offline backend that walks each job through queued -> streaming -> complete.

    Every ``fetch_status`` call advances the job one step along
    ``STUB_PROGRESSION``; the last step is repeated once reached.
    """

    def __init__(self, base_url: str = "https://stub.codetempo.local"):
        self.base_url = base_url.rstrip("/")
        self._ids = itertools.count(1)
        self._jobs: dict[str, tuple[MusicRequest, int]] = {}

    async def submit(self, request: MusicRequest) -> GenerationJob:
        job_id = f"stub-{next(self._ids)}"
        self._jobs[job_id] = (request, 0)
        log.info("[StubGenerationService] Would generate %s: %s", job_id, request.prompt)
        return GenerationJob(
            id=job_id,
            status="submitted",
            created_at=datetime.now(timezone.utc).isoformat(),
            metadata=ClipMetadata(bpm=request.bpm, genre=request.genre, duration=request.duration),
        )

    async def fetch_status(self, job_id: str) -> GenerationJob:
        if job_id not in self._jobs:
            raise GenerationServiceError(f"Unknown clip {job_id}")

        request, step = self._jobs[job_id]
        status = STUB_PROGRESSION[min(step, len(STUB_PROGRESSION) - 1)]
        self._jobs[job_id] = (request, step + 1)

        audio_url = None
        if status == "streaming":
            audio_url = f"{self.base_url}/stream/{job_id}"
        elif status == "complete":
            audio_url = f"{self.base_url}/clips/{job_id}.mp3"

        return GenerationJob(
            id=job_id,
            status=status,
            audio_url=audio_url,
            title=f"{request.genre} ({request.bpm} BPM)",
            metadata=ClipMetadata(
                bpm=request.bpm,
                genre=request.genre,
                duration=request.duration,
                tags=", ".join(request.tags),
                prompt=request.prompt,
            ),
        )


@runtime_checkable
class RequestDispatcher(Protocol):
    """Accepts finished music requests, usually the generation lifecycle."""

    async def submit(self, request: MusicRequest, trigger: TriggerType) -> GenerationJob: ...
