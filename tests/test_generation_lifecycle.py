import asyncio

import httpx
import pytest

from conftest import FakeGenerationService, instant_sleep, make_job
from codetempo.models.music_request import MusicRequest
from codetempo.services.clip_client import ClipApiClient
from codetempo.services.generation_lifecycle import GenerationLifecycle
from codetempo.services.generation_service import GenerationServiceError
from codetempo.services.playback import NullAudioPlayer

BASE_URL = "https://clips.example.test/api"

REQUEST = MusicRequest(
    bpm=90,
    mood="focused",
    genre="ambient",
    energy=5,
    complexity="moderate",
    instruments=("piano",),
    structure="steady",
    duration=40,
    prompt="ambient at 90 BPM",
)


def lifecycle_for(service, player=None, **kwargs) -> GenerationLifecycle:
    kwargs.setdefault("max_polls", 10)
    return GenerationLifecycle(service, player or NullAudioPlayer(), sleep=instant_sleep, **kwargs)


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_stream_then_asset(self, service):
        """A job that streams and then completes plays both handles in order."""
        service.script(
            "job-1",
            make_job("job-1", "queued"),
            make_job("job-1", "streaming", audio_url="https://audio/stream/job-1"),
            make_job("job-1", "streaming", audio_url="https://audio/stream/job-1"),
            make_job("job-1", "complete", audio_url="https://audio/job-1.mp3", title="Focus"),
        )
        player = NullAudioPlayer()
        lifecycle = lifecycle_for(service, player)
        outcomes = []
        lifecycle.add_listener(outcomes.append)

        job = await lifecycle.submit(REQUEST, "code_analysis")
        assert job.id == "job-1"
        assert lifecycle.polling

        final = await lifecycle.wait()

        assert [h.kind for h in player.played] == ["stream", "asset"]
        assert player.played[1].url == "https://audio/job-1.mp3"
        assert [o.kind for o in outcomes] == ["streaming", "complete"]
        assert final.message == 'Music generation complete: "Focus"'
        assert final.polls == 4
        assert final.trigger == "code_analysis"
        assert not lifecycle.polling
        assert lifecycle.current_job.status == "complete"

    @pytest.mark.asyncio
    async def test_complete_without_audio_url(self, service):
        service.script("job-1", make_job("job-1", "complete"))
        player = NullAudioPlayer()
        lifecycle = lifecycle_for(service, player)

        await lifecycle.submit(REQUEST, "manual")
        outcome = await lifecycle.wait()

        assert outcome.kind == "complete"
        assert outcome.audio is None
        assert outcome.message == 'Music generation complete: "Your Track"'
        assert player.played == []

    @pytest.mark.asyncio
    async def test_streaming_without_url_waits(self, service):
        """A streaming status without a url plays nothing until completion."""
        service.script(
            "job-1",
            make_job("job-1", "streaming"),
            make_job("job-1", "complete", audio_url="https://audio/job-1.mp3"),
        )
        player = NullAudioPlayer()
        lifecycle = lifecycle_for(service, player)

        await lifecycle.submit(REQUEST, "manual")
        await lifecycle.wait()

        assert [h.kind for h in player.played] == ["asset"]


class TestFailures:
    @pytest.mark.asyncio
    async def test_remote_error(self, service):
        service.script(
            "job-1",
            make_job("job-1", "queued"),
            make_job("job-1", "error", error_type="generation_failed", error_message="model crashed"),
        )
        lifecycle = lifecycle_for(service)

        await lifecycle.submit(REQUEST, "error_feedback")
        outcome = await lifecycle.wait()

        assert outcome.kind == "error"
        assert outcome.message == "Music generation failed - model crashed"
        assert outcome.error_type == "generation_failed"
        assert outcome.polls == 2

    @pytest.mark.asyncio
    async def test_timeout(self, service):
        """A job that never leaves the queue reports a timeout after the last allowed poll."""
        lifecycle = lifecycle_for(service, max_polls=3)

        await lifecycle.submit(REQUEST, "manual")
        outcome = await lifecycle.wait()

        assert outcome.kind == "timeout"
        assert outcome.status == "queued"
        assert outcome.polls == 3
        assert outcome.message == "Polling timeout after 3 attempts"
        assert service.fetches == ["job-1"] * 3

    @pytest.mark.asyncio
    async def test_early_poll_errors_are_retried(self, service):
        service.script(
            "job-1",
            GenerationServiceError("connection reset"),
            GenerationServiceError("connection reset"),
            make_job("job-1", "complete", audio_url="https://audio/job-1.mp3"),
        )
        lifecycle = lifecycle_for(service, max_poll_errors=10)

        await lifecycle.submit(REQUEST, "manual")
        outcome = await lifecycle.wait()

        assert outcome.kind == "complete"
        assert outcome.polls == 3

    @pytest.mark.asyncio
    async def test_persistent_poll_errors_stop_polling(self, service):
        service.script("job-1", GenerationServiceError("503"))
        lifecycle = lifecycle_for(service, max_poll_errors=2)

        await lifecycle.submit(REQUEST, "manual")
        outcome = await lifecycle.wait()

        assert outcome.kind == "timeout"
        assert outcome.polls == 2
        assert "503" in outcome.message

    @pytest.mark.asyncio
    async def test_submission_failure(self):
        """Submission errors become an error job and an outcome, never an exception."""
        service = FakeGenerationService(submit_error=GenerationServiceError("API token not available"))
        lifecycle = lifecycle_for(service)
        outcomes = []
        lifecycle.add_listener(outcomes.append)

        job = await lifecycle.submit(REQUEST, "success_celebration")

        assert job.status == "error"
        assert job.id.startswith("failed-")
        assert job.metadata.error_type == "submission_failed"
        assert job.metadata.bpm == 90
        assert not lifecycle.polling
        assert [o.kind for o in outcomes] == ["submission_failed"]
        assert outcomes[0].message == "Music generation failed: API token not available"

    @pytest.mark.asyncio
    async def test_malformed_submit_reply_becomes_error_job(self):
        def handler(request):
            return httpx.Response(200, json={"id": "clip-1", "metadata": "oops"})

        client = ClipApiClient(base_url=BASE_URL, token="secret", transport=httpx.MockTransport(handler))
        lifecycle = lifecycle_for(client)
        outcomes = []
        lifecycle.add_listener(outcomes.append)

        job = await lifecycle.submit(REQUEST, "manual")

        assert job.status == "error"
        assert job.metadata.error_type == "submission_failed"
        assert [o.kind for o in outcomes] == ["submission_failed"]

    @pytest.mark.asyncio
    async def test_malformed_status_reply_is_reported(self):
        """A status reply that does not fit the job model still ends polling with an outcome."""

        def handler(request):
            if request.method == "POST":
                return httpx.Response(200, json={"id": "clip-1", "status": "submitted"})
            return httpx.Response(200, json=[{"id": "clip-1", "status": "streaming", "title": ["x"]}])

        client = ClipApiClient(base_url=BASE_URL, token="secret", transport=httpx.MockTransport(handler))
        lifecycle = lifecycle_for(client, max_poll_errors=2)

        await lifecycle.submit(REQUEST, "manual")
        outcome = await lifecycle.wait()

        assert outcome.kind == "timeout"
        assert outcome.polls == 2
        assert "Unexpected clip status response" in outcome.message
        assert lifecycle.last_outcome is outcome


class TestSupersession:
    @pytest.mark.asyncio
    async def test_new_submit_cancels_old_poll(self, service):
        """A superseded job never reaches the player, even with a status in flight."""
        gate = service.gate("job-1")
        service.script("job-1", make_job("job-1", "complete", audio_url="https://audio/old.mp3"))
        service.script("job-2", make_job("job-2", "complete", audio_url="https://audio/new.mp3"))
        player = NullAudioPlayer()
        lifecycle = lifecycle_for(service, player)
        outcomes = []
        lifecycle.add_listener(outcomes.append)

        await lifecycle.submit(REQUEST, "code_analysis")
        while not service.fetches:
            await asyncio.sleep(0)

        await lifecycle.submit(REQUEST, "success_celebration")
        gate.set()
        await lifecycle.wait()

        assert [h.url for h in player.played] == ["https://audio/new.mp3"]
        assert [o.job_id for o in outcomes] == ["job-2"]
        assert lifecycle.current_job.id == "job-2"

    @pytest.mark.asyncio
    async def test_slow_submission_is_discarded(self, service):
        """A submission that returns after a newer one never starts polling."""
        release = asyncio.Event()

        class SlowFirstSubmit(FakeGenerationService):
            async def submit(self, request):
                job = await super().submit(request)
                if job.id == "job-1":
                    await release.wait()
                return job

        slow = SlowFirstSubmit()
        slow.script("job-2", make_job("job-2", "complete", audio_url="https://audio/new.mp3"))
        player = NullAudioPlayer()
        lifecycle = lifecycle_for(slow, player)

        first = asyncio.create_task(lifecycle.submit(REQUEST, "code_analysis"))
        while not slow.submitted:
            await asyncio.sleep(0)
        await lifecycle.submit(REQUEST, "manual")
        await lifecycle.wait()

        release.set()
        stale = await first

        assert stale.id == "job-1"
        assert "job-1" not in slow.fetches
        assert [h.url for h in player.played] == ["https://audio/new.mp3"]
        assert lifecycle.current_job.id == "job-2"

    @pytest.mark.asyncio
    async def test_cancel_then_close_stops_player(self, service):
        player = NullAudioPlayer()
        lifecycle = lifecycle_for(service, player)
        await lifecycle.submit(REQUEST, "manual")
        assert lifecycle.polling

        await lifecycle.close()

        assert not lifecycle.polling
        assert player.stops == 1
        assert lifecycle.last_outcome is None


class TestListeners:
    @pytest.mark.asyncio
    async def test_sync_and_async_listeners(self, service):
        service.script("job-1", make_job("job-1", "complete", audio_url="https://audio/a.mp3"))
        lifecycle = lifecycle_for(service)
        seen = []

        async def async_listener(outcome):
            seen.append(("async", outcome.kind))

        def broken_listener(outcome):
            raise RuntimeError("listener bug")

        lifecycle.add_listener(broken_listener)
        lifecycle.add_listener(lambda outcome: seen.append(("sync", outcome.kind)))
        lifecycle.add_listener(async_listener)

        await lifecycle.submit(REQUEST, "manual")
        await lifecycle.wait()

        assert seen == [("sync", "complete"), ("async", "complete")]

    @pytest.mark.asyncio
    async def test_unchanged_status_is_not_repeated(self, service):
        service.script(
            "job-1",
            make_job("job-1", "streaming", audio_url="https://audio/s"),
            make_job("job-1", "streaming", audio_url="https://audio/s"),
            make_job("job-1", "streaming", audio_url="https://audio/s"),
        )
        player = NullAudioPlayer()
        lifecycle = lifecycle_for(service, player, max_polls=5)
        outcomes = []
        lifecycle.add_listener(outcomes.append)

        await lifecycle.submit(REQUEST, "manual")
        await lifecycle.wait()

        assert len(player.played) == 1
        assert [o.kind for o in outcomes] == ["streaming", "timeout"]
