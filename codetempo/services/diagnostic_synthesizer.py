"""Music for the current error/warning picture of a file."""

from __future__ import annotations

import logging
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

from codetempo.models.music_request import MusicRequest
from codetempo.services.prompt_renderer import render_prompt

log = logging.getLogger(__name__)

Severity = Literal["low", "medium", "high", "critical"]

DIAGNOSTIC_DURATION = 30
DIAGNOSTIC_CONTEXT = "diagnostic_feedback"


class SeverityProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    bpm: int
    mood: str
    genre: str
    energy: int
    instruments: tuple[str, ...]
    tags: tuple[str, ...]


SEVERITY_PROFILES: dict[str, SeverityProfile] = {
    "low": SeverityProfile(
        bpm=85,
        mood="contemplative",
        genre="thoughtful ambient",
        energy=4,
        instruments=("piano", "soft strings"),
        tags=("minor issues", "fixable"),
    ),
    "medium": SeverityProfile(
        bpm=75,
        mood="concerned",
        genre="tense ambient",
        energy=3,
        instruments=("piano", "strings", "subtle dissonance"),
        tags=("needs attention", "moderate issues"),
    ),
    "high": SeverityProfile(
        bpm=65,
        mood="troubled",
        genre="dark ambient",
        energy=2,
        instruments=("low piano", "dark strings", "minor keys"),
        tags=("serious issues", "debugging needed"),
    ),
    "critical": SeverityProfile(
        bpm=55,
        mood="urgent",
        genre="ominous ambient",
        energy=1,
        instruments=("discordant piano", "tense strings", "stuttering rhythm"),
        tags=("critical errors", "immediate attention"),
    ),
}

IMPROVING_REQUEST = MusicRequest(
    bpm=95,
    mood="hopeful",
    genre="uplifting ambient",
    energy=6,
    complexity="moderate",
    instruments=("piano", "strings", "soft synth"),
    structure="building progression",
    duration=DIAGNOSTIC_DURATION,
    tags=("improvement", "progress", "healing"),
    context=DIAGNOSTIC_CONTEXT,
)


def diagnostic_severity(error_count: int, warning_count: int) -> Severity:
    """Classify a diagnostic picture; warnings count half as much as errors."""
    total = error_count + warning_count * 0.5
    if error_count >= 10 or total >= 15:
        return "critical"
    if error_count >= 5 or total >= 10:
        return "high"
    if error_count >= 2 or total >= 5:
        return "medium"
    return "low"


class DiagnosticSynthesizer:
    def synthesize(
        self,
        error_count: int,
        warning_count: int,
        previous_error_count: Optional[int] = None,
    ) -> MusicRequest:
        is_improving = previous_error_count is not None and error_count < previous_error_count

        if is_improving:
            log.info(
                "Diagnostics improving (%d -> %d errors), generating uplifting music",
                previous_error_count,
                error_count,
            )
            return render_prompt(IMPROVING_REQUEST)

        severity = diagnostic_severity(error_count, warning_count)
        profile = SEVERITY_PROFILES[severity]
        log.info(
            "Diagnostic severity %s (%d errors, %d warnings)",
            severity,
            error_count,
            warning_count,
        )

        request = MusicRequest(
            bpm=profile.bpm,
            mood=profile.mood,
            genre=profile.genre,
            energy=profile.energy,
            complexity=severity,
            instruments=profile.instruments,
            structure="reflective contemplation",
            duration=DIAGNOSTIC_DURATION,
            tags=profile.tags + (f"{error_count}_errors", f"{warning_count}_warnings"),
            context=DIAGNOSTIC_CONTEXT,
        )
        return render_prompt(request)
