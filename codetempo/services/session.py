"""One wired-up set of components, shared by the API server and the CLI."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import deque
from typing import Any, Awaitable, Callable, Optional

from codetempo.agent.analysis_agent import CodeAnalysisClient
from codetempo.config import Settings
from codetempo.models.generation import GenerationJob, GenerationOutcome, TriggerType
from codetempo.models.music_request import MusicRequest
from codetempo.models.success import Celebration, CelebrationType, SuccessEvent
from codetempo.services.clip_client import ClipApiClient
from codetempo.services.diagnostic_synthesizer import DiagnosticSynthesizer
from codetempo.services.generation_lifecycle import GenerationLifecycle
from codetempo.services.generation_service import GenerationService
from codetempo.services.monitors import (
    CodeAnalyzer,
    DiagnosticCounts,
    DiagnosticTracker,
    DocumentAnalysisScheduler,
    DocumentSnapshot,
    TaskEventObserver,
)
from codetempo.services.parameter_synthesizer import ParameterSynthesizer
from codetempo.services.playback import AudioPlayer, ProcessAudioPlayer
from codetempo.services.success_classifier import SuccessClassifier

log = logging.getLogger(__name__)

RECENT_OUTCOMES = 20

DEFAULT_CELEBRATION_DESCRIPTIONS: dict[str, str] = {
    "compilation_success": "Code compiled successfully!",
    "bug_fix": "Bug resolved!",
    "test_pass": "All tests passed!",
    "deployment": "Deployment successful!",
}


class CodeTempoSession:
    """Owns exactly one classifier and one generation lifecycle.

    Every collaborator can be injected; anything left out is built from
    ``settings`` and the environment.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        service: Optional[GenerationService] = None,
        player: Optional[AudioPlayer] = None,
        analyzer: Optional[CodeAnalyzer] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings or Settings.from_env()
        s = self.settings

        self.service = service or ClipApiClient()
        self.player = player or ProcessAudioPlayer()
        self.analyzer = analyzer or CodeAnalysisClient(max_code_length=s.analysis_max_chars)

        self.synthesizer = ParameterSynthesizer(rng)
        self.diagnostic_synthesizer = DiagnosticSynthesizer()

        self.lifecycle = GenerationLifecycle(
            self.service,
            self.player,
            poll_interval=s.poll_interval,
            max_polls=s.max_polls,
            max_poll_errors=s.max_poll_errors,
            sleep=sleep,
        )
        self.classifier = SuccessClassifier(
            cooldown_seconds=s.celebration_cooldown,
            acceptance_ratio=s.acceptance_ratio,
            clock=clock,
            dispatcher=self.lifecycle,
            enabled=s.enabled,
            celebration_drops=s.celebration_drops,
        )
        self.documents = DocumentAnalysisScheduler(
            self.analyzer,
            self.synthesizer,
            self.lifecycle,
            debounce=s.analysis_debounce,
            min_chars=s.min_analysis_chars,
            sleep=sleep,
        )
        self.diagnostics = DiagnosticTracker(
            self.diagnostic_synthesizer,
            self.lifecycle,
            self.classifier,
            debounce=s.diagnostics_debounce,
            sleep=sleep,
        )
        self.tasks = TaskEventObserver(self.classifier)

        self.outcomes: deque[GenerationOutcome] = deque(maxlen=RECENT_OUTCOMES)
        self.lifecycle.add_listener(self.outcomes.append)

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    async def set_enabled(self, enabled: bool) -> None:
        self.settings = self.settings.model_copy(update={"enabled": enabled})
        self.classifier.enabled = enabled
        log.info("Music generation %s", "enabled" if enabled else "disabled")
        if not enabled:
            await self.documents.cancel_pending()
            await self.diagnostics.cancel_pending()
            await self.lifecycle.cancel()

    async def toggle(self) -> bool:
        await self.set_enabled(not self.enabled)
        return self.enabled

    # ── Editor events ───────────────────────────────

    def document_changed(self, document: DocumentSnapshot) -> Optional[asyncio.Task]:
        if not self.enabled:
            return None
        return self.documents.schedule(document)

    def diagnostics_changed(self, counts: DiagnosticCounts) -> Optional[asyncio.Task]:
        if not self.enabled:
            return None
        return self.diagnostics.update(counts)

    async def success_event(self, event: SuccessEvent) -> Optional[Celebration]:
        return await self.classifier.classify(event)

    async def celebrate(
        self,
        celebration_type: CelebrationType,
        description: Optional[str] = None,
        context: Optional[str] = None,
    ) -> Optional[Celebration]:
        description = description or DEFAULT_CELEBRATION_DESCRIPTIONS[celebration_type]
        return await self.classifier.trigger(celebration_type, description, context)

    async def generate(self, request: MusicRequest, trigger: TriggerType = "manual") -> GenerationJob:
        return await self.lifecycle.submit(request, trigger)

    # ── Introspection ───────────────────────────────

    def status(self) -> dict[str, Any]:
        job = self.lifecycle.current_job
        outcome = self.lifecycle.last_outcome
        summary = self.diagnostics.current
        return {
            "enabled": self.enabled,
            "celebration_drops": self.settings.celebration_drops,
            "muted": self.player.muted,
            "polling": self.lifecycle.polling,
            "current_trigger": self.lifecycle.current_trigger,
            "current_job": job.model_dump(mode="json") if job else None,
            "last_outcome": outcome.model_dump(mode="json") if outcome else None,
            "diagnostics": {
                "summary": summary.model_dump(mode="json") if summary else None,
                "trend": self.diagnostics.trend(),
            },
            "pending_documents": self.documents.pending,
        }

    async def close(self) -> None:
        await self.documents.close()
        await self.diagnostics.close()
        await self.lifecycle.close()
