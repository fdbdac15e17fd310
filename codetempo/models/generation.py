"""Remote generation job records and lifecycle outcomes."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

JobStatus = Literal["submitted", "queued", "streaming", "complete", "error"]
TERMINAL_STATUSES: frozenset[str] = frozenset({"complete", "error"})

TriggerType = Literal["code_analysis", "success_celebration", "error_feedback", "manual"]
OutcomeKind = Literal["submission_failed", "streaming", "complete", "error", "timeout"]


class ClipMetadata(BaseModel):
    bpm: float = 0
    genre: str = ""
    duration: float = 0
    tags: Optional[str] = None
    prompt: Optional[str] = None
    error_type: Optional[str] = None
    error_message: Optional[str] = None


class GenerationJob(BaseModel):
    """A remote generation job (clip) as last reported by the service."""

    id: str = Field(description="Remote clip identifier")
    status: JobStatus = Field(description="Remote job status")
    audio_url: Optional[str] = Field(
        default=None,
        description="Live stream endpoint while streaming, downloadable asset when complete",
    )
    title: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[str] = None
    metadata: ClipMetadata = Field(default_factory=ClipMetadata)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class AudioHandle(BaseModel):
    """Something a player can play.

    ``stream`` handles point at a live, still-growing stream; ``asset``
    handles point at a finished, downloadable file.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    kind: Literal["stream", "asset"]
    title: Optional[str] = None


class GenerationOutcome(BaseModel):
    """A user-legible lifecycle event reported to listeners."""

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    job_id: str
    status: Optional[JobStatus] = Field(default=None, description="Last known remote status")
    trigger: Optional[TriggerType] = None
    message: str = ""
    error_type: Optional[str] = None
    error_message: Optional[str] = None
    audio: Optional[AudioHandle] = None
    polls: int = 0
