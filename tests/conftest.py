"""Shared fakes for the test suite."""

from __future__ import annotations

import asyncio
import itertools
from typing import Optional, Union

import pytest

from codetempo.models.code_signal import CodeSignal
from codetempo.models.generation import ClipMetadata, GenerationJob, JobStatus, TriggerType
from codetempo.models.music_request import MusicRequest
from codetempo.models.success import SuccessEvent

Step = Union[GenerationJob, Exception]


def make_job(
    job_id: str,
    status: JobStatus,
    audio_url: Optional[str] = None,
    title: Optional[str] = None,
    **metadata,
) -> GenerationJob:
    return GenerationJob(
        id=job_id,
        status=status,
        audio_url=audio_url,
        title=title,
        metadata=ClipMetadata(**metadata),
    )


async def instant_sleep(_seconds: float) -> None:
    await asyncio.sleep(0)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeGenerationService:
    """Scripted generation backend.

    ``script(job_id, *steps)`` queues status replies for a job; the last
    step repeats forever. Exceptions in a script are raised instead.
    """

    def __init__(self, submit_error: Optional[Exception] = None):
        self.submit_error = submit_error
        self.submitted: list[MusicRequest] = []
        self.fetches: list[str] = []
        self.scripts: dict[str, list[Step]] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self._ids = itertools.count(1)

    def script(self, job_id: str, *steps: Step) -> None:
        self.scripts[job_id] = list(steps)

    def gate(self, job_id: str) -> asyncio.Event:
        """Block status replies for ``job_id`` until the returned event is set."""
        event = asyncio.Event()
        self.gates[job_id] = event
        return event

    async def submit(self, request: MusicRequest) -> GenerationJob:
        if self.submit_error is not None:
            raise self.submit_error
        job_id = f"job-{next(self._ids)}"
        self.submitted.append(request)
        return make_job(job_id, "submitted")

    async def fetch_status(self, job_id: str) -> GenerationJob:
        self.fetches.append(job_id)
        gate = self.gates.get(job_id)
        if gate is not None:
            await gate.wait()

        steps = self.scripts.get(job_id)
        if not steps:
            return make_job(job_id, "queued")
        step = steps.pop(0) if len(steps) > 1 else steps[0]
        if isinstance(step, Exception):
            raise step
        return step


class RecordingDispatcher:
    def __init__(self):
        self.calls: list[tuple[MusicRequest, TriggerType]] = []

    async def submit(self, request: MusicRequest, trigger: TriggerType) -> GenerationJob:
        self.calls.append((request, trigger))
        return make_job(f"rec-{len(self.calls)}", "submitted")

    @property
    def triggers(self) -> list[str]:
        return [trigger for _, trigger in self.calls]


class FakeAnalyzer:
    def __init__(self, signal: Optional[CodeSignal] = None):
        self.signal = signal
        self.calls: list[tuple[str, str, str]] = []

    async def analyze(self, code: str, language_id: str, file_extension: str = "") -> CodeSignal:
        self.calls.append((code, language_id, file_extension))
        return self.signal or CodeSignal.fallback(language_id)


class RecordingClassifier:
    def __init__(self):
        self.events: list[SuccessEvent] = []

    async def classify(self, event: SuccessEvent):
        self.events.append(event)
        return None


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def service() -> FakeGenerationService:
    return FakeGenerationService()

