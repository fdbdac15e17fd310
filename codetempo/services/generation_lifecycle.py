"""Drive a remote generation job from submission to playback.

The lifecycle owns at most one poll task. Submitting a new request cancels
the previous task before anything else happens, and every poll checks after
each await that it is still the owned one, so a superseded job can never
reach the player.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import uuid
from typing import Any, Awaitable, Callable, Optional, Union

from codetempo.models.generation import (
    AudioHandle,
    ClipMetadata,
    GenerationJob,
    GenerationOutcome,
    JobStatus,
    TriggerType,
)
from codetempo.models.music_request import MusicRequest
from codetempo.services.generation_service import GenerationService, GenerationServiceError
from codetempo.services.playback import AudioPlayer

log = logging.getLogger(__name__)

OutcomeListener = Callable[[GenerationOutcome], Union[None, Awaitable[None]]]


class GenerationLifecycle:
    """Single-stream coordinator between a generation service and a player.

    Args:
        service: Backend that accepts requests and reports job status.
        player: Receives the stream handle first and the finished asset last.
        poll_interval: Seconds to wait before each status poll.
        max_polls: Status polls per job before reporting a timeout.
        max_poll_errors: Once this many polls have elapsed, a failing status
            query stops polling instead of retrying.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        service: GenerationService,
        player: AudioPlayer,
        *,
        poll_interval: float = 5.0,
        max_polls: int = 60,
        max_poll_errors: int = 10,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.service = service
        self.player = player
        self.poll_interval = poll_interval
        self.max_polls = max_polls
        self.max_poll_errors = max_poll_errors
        self._sleep = sleep

        self._listeners: list[OutcomeListener] = []
        self._poll_task: Optional[asyncio.Task] = None
        self._generation = 0

        self.current_job: Optional[GenerationJob] = None
        self.current_trigger: Optional[TriggerType] = None
        self.last_outcome: Optional[GenerationOutcome] = None

    def add_listener(self, listener: OutcomeListener) -> None:
        self._listeners.append(listener)

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def submit(self, request: MusicRequest, trigger: TriggerType) -> GenerationJob:
        """Supersede any in-flight job and submit ``request``.

        Never raises for backend failures: they come back as an ``error`` job
        and a ``submission_failed`` outcome.
        """
        await self.cancel()
        token = self._generation

        log.info("Submitting %s generation: %s", trigger, request.prompt)
        try:
            job = await self.service.submit(request)
        except GenerationServiceError as e:
            log.warning("Generation submission failed: %s", e)
            job = GenerationJob(
                id=f"failed-{uuid.uuid4().hex[:12]}",
                status="error",
                metadata=ClipMetadata(
                    bpm=request.bpm,
                    genre=request.genre,
                    duration=request.duration,
                    error_type="submission_failed",
                    error_message=str(e),
                ),
            )
            if token == self._generation:
                self.current_job = job
                self.current_trigger = trigger
                await self._emit(
                    GenerationOutcome(
                        kind="submission_failed",
                        job_id=job.id,
                        status="error",
                        trigger=trigger,
                        message=f"Music generation failed: {e}",
                        error_type="submission_failed",
                        error_message=str(e),
                    )
                )
            return job

        if token != self._generation:
            log.info("Submission %s was superseded before polling started", job.id)
            return job

        self.current_job = job
        self.current_trigger = trigger
        log.info("Starting status polling for clip %s", job.id)
        self._poll_task = asyncio.create_task(self._poll(job, trigger, token))
        return job

    async def cancel(self) -> None:
        """Stop the owned poll task; results it was awaiting are discarded."""
        self._generation += 1
        task, self._poll_task = self._poll_task, None
        if task is None or task.done() or task is asyncio.current_task():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def wait(self) -> Optional[GenerationOutcome]:
        """Wait for the owned poll task to finish and return the last outcome."""
        task = self._poll_task
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass
        return self.last_outcome

    async def close(self) -> None:
        await self.cancel()
        await self.player.stop()

    def _owns(self, token: int) -> bool:
        return token == self._generation

    async def _poll(self, job: GenerationJob, trigger: TriggerType, token: int) -> None:
        last_status: Optional[JobStatus] = None
        polls = 0

        while polls < self.max_polls:
            await self._sleep(self.poll_interval)
            if not self._owns(token):
                return
            polls += 1

            try:
                status = await self.service.fetch_status(job.id)
            except GenerationServiceError as e:
                if not self._owns(token):
                    return
                log.warning("Polling error for clip %s (poll %d): %s", job.id, polls, e)
                if polls >= self.max_poll_errors:
                    await self._emit(
                        GenerationOutcome(
                            kind="timeout",
                            job_id=job.id,
                            status=last_status,
                            trigger=trigger,
                            message=f"Stopped polling after repeated status errors: {e}",
                            polls=polls,
                        )
                    )
                    return
                continue

            if not self._owns(token):
                return
            self.current_job = status

            if status.status == last_status:
                continue
            log.info(
                "Clip %s status %s -> %s (poll %d/%d)",
                job.id,
                last_status or "none",
                status.status,
                polls,
                self.max_polls,
            )
            last_status = status.status

            if status.status == "streaming" and status.audio_url:
                handle = AudioHandle(url=status.audio_url, kind="stream", title=status.title)
                await self.player.play(handle)
                if not self._owns(token):
                    return
                await self._emit(
                    GenerationOutcome(
                        kind="streaming",
                        job_id=job.id,
                        status=status.status,
                        trigger=trigger,
                        message="Streaming started, music is playing",
                        audio=handle,
                        polls=polls,
                    )
                )

            elif status.status == "complete":
                handle = None
                if status.audio_url:
                    handle = AudioHandle(url=status.audio_url, kind="asset", title=status.title)
                    await self.player.play(handle)
                    if not self._owns(token):
                        return
                else:
                    log.warning("Clip %s completed without an audio url", job.id)
                await self._emit(
                    GenerationOutcome(
                        kind="complete",
                        job_id=job.id,
                        status=status.status,
                        trigger=trigger,
                        message=f'Music generation complete: "{status.title or "Your Track"}"',
                        audio=handle,
                        polls=polls,
                    )
                )
                return

            elif status.status == "error":
                meta = status.metadata
                await self._emit(
                    GenerationOutcome(
                        kind="error",
                        job_id=job.id,
                        status=status.status,
                        trigger=trigger,
                        message=(
                            f"Music generation failed - {meta.error_message or 'Unknown error'}"
                        ),
                        error_type=meta.error_type,
                        error_message=meta.error_message,
                        polls=polls,
                    )
                )
                return

        if self._owns(token):
            log.warning(
                "Polling timeout after %d attempts, last known status: %s",
                self.max_polls,
                last_status,
            )
            await self._emit(
                GenerationOutcome(
                    kind="timeout",
                    job_id=job.id,
                    status=last_status,
                    trigger=trigger,
                    message=f"Polling timeout after {self.max_polls} attempts",
                    polls=polls,
                )
            )

    async def _emit(self, outcome: GenerationOutcome) -> None:
        self.last_outcome = outcome
        if outcome.kind in ("submission_failed", "error", "timeout"):
            log.warning("Generation %s: %s", outcome.kind, outcome.message)
        else:
            log.info("Generation %s: %s", outcome.kind, outcome.message)

        for listener in self._listeners:
            try:
                result = listener(outcome)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                log.exception("Outcome listener failed")
