"""HTTP client for the remote clip generation API.

Endpoints:
  - Generate:   POST /generate       {"topic", "tags", "make_instrumental"}
  - Clip state: GET  /clips?ids=<id> (returns a JSON array)
"""

from __future__ import annotations

import logging
import os
import uuid
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from codetempo.models.generation import ClipMetadata, GenerationJob, JobStatus
from codetempo.models.music_request import MusicRequest
from codetempo.services.generation_service import GenerationServiceError

log = logging.getLogger(__name__)

DEFAULT_GENERATION_URL = "https://studio-api.prod.suno.com/api/v2/external/hackmit"
USER_AGENT = "codetempo/0.1.0"

_KNOWN_STATUSES: frozenset[str] = frozenset(
    {"submitted", "queued", "streaming", "complete", "error"}
)


def build_generation_payload(request: MusicRequest) -> dict[str, Any]:
    """Translate a MusicRequest into the /generate body."""
    return {
        "topic": f"{request.prompt} in {request.genre} style at {request.bpm} BPM",
        "tags": ", ".join(request.tags),
        "make_instrumental": True,
    }


def _status(value: Any, default: JobStatus) -> JobStatus:
    if value in _KNOWN_STATUSES:
        return value
    if value is not None:
        log.warning("Unrecognised clip status %r, treating as %s", value, default)
    return default


def _tags(value: Any) -> Optional[str]:
    if isinstance(value, (list, tuple)):
        return ", ".join(str(tag) for tag in value)
    return value


class ClipApiClient:
    """Async client for the clip generation API.

    Configured via environment variables:
      - CODETEMPO_GENERATION_URL: base URL
      - CODETEMPO_GENERATION_TOKEN: bearer token (required)

    ``transport`` is handed to ``httpx.AsyncClient`` and exists so tests can
    plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float = 30,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (
            base_url or os.environ.get("CODETEMPO_GENERATION_URL") or DEFAULT_GENERATION_URL
        ).rstrip("/")
        self.token = token or os.environ.get("CODETEMPO_GENERATION_TOKEN")
        self.timeout = timeout
        self._transport = transport

        if not self.token:
            log.warning(
                "CODETEMPO_GENERATION_TOKEN not set; generation requests will fail"
            )

    def _headers(self) -> dict[str, str]:
        if not self.token:
            raise GenerationServiceError("API token not available")
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def submit(self, request: MusicRequest) -> GenerationJob:
        """Start a generation job.

        POST /generate → {"id": "...", "status": "submitted", ...}
        """
        headers = self._headers()
        payload = build_generation_payload(request)
        log.info("Submitting generation request to %s/generate", self.base_url)
        log.debug("Generation payload: %s", payload)

        try:
            async with self._client() as client:
                resp = await client.post(f"{self.base_url}/generate", json=payload, headers=headers)
                resp.raise_for_status()
                body = resp.json()
        except httpx.HTTPStatusError as e:
            raise GenerationServiceError(
                f"Generation API error: {e.response.status_code} - {e.response.text}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise GenerationServiceError(f"Generation request failed: {e}") from e

        if not isinstance(body, dict):
            raise GenerationServiceError(f"Unexpected generation response: {body!r}")

        try:
            metadata = body.get("metadata") or {}
            job = GenerationJob(
                id=str(body.get("id") or f"local-{uuid.uuid4().hex[:12]}"),
                status=_status(body.get("status"), "submitted"),
                audio_url=body.get("audio_url"),
                title=body.get("title"),
                image_url=body.get("image_url"),
                created_at=body.get("created_at"),
                metadata=ClipMetadata(
                    bpm=request.bpm,
                    genre=request.genre,
                    duration=request.duration,
                    tags=_tags(metadata.get("tags")),
                    prompt=metadata.get("prompt"),
                ),
            )
        except (ValidationError, AttributeError, TypeError) as e:
            raise GenerationServiceError(f"Unexpected generation response: {e}") from e
        log.info("Submitted clip %s (status=%s)", job.id, job.status)
        return job

    async def fetch_status(self, job_id: str) -> GenerationJob:
        """Fetch the current state of a clip.

        GET /clips?ids=<id> → [{"id": "...", "status": "streaming", "audio_url": ...}]
        """
        headers = self._headers()
        try:
            async with self._client() as client:
                resp = await client.get(
                    f"{self.base_url}/clips", params={"ids": job_id}, headers=headers
                )
                resp.raise_for_status()
                body = resp.json()
        except httpx.HTTPStatusError as e:
            raise GenerationServiceError(
                f"Clips API error: {e.response.status_code} - {e.response.text}"
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise GenerationServiceError(f"Clip status request failed: {e}") from e

        if not isinstance(body, list) or not body:
            raise GenerationServiceError("No clip data returned from API")

        try:
            clip = body[0]
            metadata = clip.get("metadata") or {}
            return GenerationJob(
                id=str(clip.get("id") or job_id),
                status=_status(clip.get("status"), "queued"),
                audio_url=clip.get("audio_url"),
                title=clip.get("title"),
                image_url=clip.get("image_url"),
                created_at=clip.get("created_at"),
                metadata=ClipMetadata(
                    bpm=metadata.get("bpm") or 0,
                    genre=metadata.get("genre") or "",
                    duration=metadata.get("duration") or 0,
                    tags=_tags(metadata.get("tags")),
                    prompt=metadata.get("prompt"),
                    error_type=metadata.get("error_type"),
                    error_message=metadata.get("error_message"),
                ),
            )
        except (ValidationError, AttributeError, TypeError) as e:
            raise GenerationServiceError(f"Unexpected clip status response: {e}") from e
